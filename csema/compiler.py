"""
Analysis Driver

Runs source text through the lexer, parser and expression analyzer against
a scope that accumulates declarations.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import os
from typing import List, Optional

from csema.ast_nodes import Expression
from csema.diagnostics import Diagnostic, ErrorHandler
from csema.ir import TypedExpr
from csema.lexer import Lexer, LexerError, Token
from csema.parser import Parser, ParserError
from csema.scope import Metadata, Scope, StorageClass, SymbolRef
from csema.semantics import DEFAULT_MAX_DEPTH, ExpressionAnalyzer
from csema.types import EnumType

logger = logging.getLogger(__name__)


@dataclass
class AnalysisResult:
    """Result of analyzing one expression"""
    success: bool
    expr: Optional[TypedExpr] = None
    diagnostics: List[Diagnostic] = None
    errors: List[str] = None

    def __post_init__(self):
        if self.diagnostics is None:
            self.diagnostics = []
        if self.errors is None:
            self.errors = []


class Compiler:
    """Declares symbols and analyzes expressions in one shared scope"""

    def __init__(self, max_depth: Optional[int] = None, *, scope: Optional[Scope] = None):
        if max_depth is None:
            max_depth = int(os.environ.get("CSEMA_MAX_DEPTH", DEFAULT_MAX_DEPTH))
        if max_depth < 1:
            raise ValueError(f"max_depth must be positive, got {max_depth}")
        self.max_depth = max_depth
        self.scope = scope if scope is not None else Scope()

    def get_tokens(self, source_code: str) -> List[Token]:
        """Tokenize; the first lexer error is raised"""
        lexer = Lexer(source_code)
        tokens = lexer.tokenize()
        if lexer.has_errors():
            raise lexer.get_errors()[0]
        return tokens

    def get_ast(self, tokens: List[Token]) -> Expression:
        return Parser(tokens, self.scope).parse()

    def declare(self, source: str) -> Optional[SymbolRef]:
        """Parse one declaration and bind it in the current scope.

        Struct, union and enum definitions in the specifiers are bound as
        tags (enumerators as constants). Returns the declared symbol, or None
        for a tag-only declaration. Raises LexerError / ParserError.
        """
        parser = Parser(self.get_tokens(source), self.scope)
        decl = parser.parse_declaration()
        for ctype in parser.tag_definitions:
            if isinstance(ctype, EnumType):
                self.scope.declare_enum(ctype)
            else:
                self.scope.declare_tag(ctype.tag, ctype)
        if decl is None:
            return None
        storage_class = StorageClass(decl.storage_class) if decl.storage_class else StorageClass.AUTO
        ref = self.scope.declare(decl.name, Metadata(decl.name, decl.type, decl.qualifiers, storage_class))
        logger.debug("declared %s %s : %s", storage_class.value, decl.name, decl.type)
        return ref

    def analyze_file(self, source_file: str) -> AnalysisResult:
        """Analyze the expression stored in a file"""
        try:
            with open(source_file, 'r') as f:
                source_code = f.read()
        except OSError as e:
            return AnalysisResult(success=False, errors=[f"Failed to read source file: {e}"])
        return self.analyze_code(source_code)

    def analyze_code(self, source_code: str) -> AnalysisResult:
        """Analyze a single expression"""
        # Phase 1: Lexical Analysis
        try:
            tokens = self.get_tokens(source_code)
        except LexerError as e:
            return AnalysisResult(success=False, errors=[f"Lexical analysis failed: {e}"])

        # Phase 2: Syntax Analysis
        try:
            ast = self.get_ast(tokens)
        except ParserError as e:
            return AnalysisResult(success=False, errors=[f"Syntax analysis failed: {e}"])
        except RecursionError:
            return AnalysisResult(success=False, errors=["Syntax analysis failed: expression nested too deeply"])

        # Phase 3: Semantic Analysis
        error_handler = ErrorHandler()
        analyzer = ExpressionAnalyzer(self.scope, error_handler, self.max_depth)
        depth = self.scope.depth
        try:
            expr = analyzer.lower(ast)
        except NotImplementedError as e:
            return AnalysisResult(
                success=False,
                diagnostics=list(error_handler),
                errors=[f"Semantic analysis failed: {e}"],
            )
        finally:
            while self.scope.depth > depth:
                self.scope.exit()

        return AnalysisResult(
            success=not error_handler.has_errors(),
            expr=expr,
            diagnostics=list(error_handler),
        )
