"""
csema - C expression semantic analysis

Type-checks C expressions against a scope of declarations and lowers them
to a typed tree in which every implicit conversion is explicit.
"""

__version__ = "0.1.0"
__author__ = "csema Contributors"
__license__ = "MIT"

from .lexer import Lexer, Token
from .parser import Parser
from .scope import Scope, Metadata, StorageClass
from .diagnostics import ErrorHandler, SemanticError
from .semantics import ExpressionAnalyzer
from .compiler import Compiler, AnalysisResult

__all__ = [
    'Lexer',
    'Token',
    'Parser',
    'Scope',
    'Metadata',
    'StorageClass',
    'ErrorHandler',
    'SemanticError',
    'ExpressionAnalyzer',
    'Compiler',
    'AnalysisResult',
]
