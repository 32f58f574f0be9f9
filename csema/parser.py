"""csema.parser

Recursive-descent parser for C expressions, type names and single
declarations.

The parser produces the untyped tree in `csema.ast_nodes`. Type names are
resolved while parsing because C needs them to tell a cast from a
parenthesized expression: `(T)x` is a cast only when `T` names a type. The
optional `Scope` supplies typedef names and struct/union/enum tags.

Supported:

- expressions with C operator precedence from comma down to postfix
  (calls, subscripts, member access, ++/--), casts and sizeof
- type names: qualifiers, all arithmetic specifier combinations, void,
  _Bool, struct/union/enum tags (with or without a body), typedef names and
  abstract pointer declarators
- declarations: storage class, specifiers, pointers, `[N]` / `[]` and `()`
  suffixes
"""

from __future__ import annotations

from typing import List, Optional, Tuple

from csema.lexer import Token, TokenType
from csema.ast_nodes import (
    Expression,
    Identifier,
    IntLiteral,
    FloatLiteral,
    CharLiteral,
    StringLiteral,
    BinaryOp,
    UnaryOp,
    TernaryOp,
    CommaOp,
    Assignment,
    FunctionCall,
    ArrayAccess,
    MemberAccess,
    Cast,
    SizeOf,
    Declaration,
)
from csema.scope import Scope, StorageClass
from csema.types import (
    CType,
    ArrayType,
    EnumType,
    FunctionType,
    IntegerType,
    Member,
    PointerType,
    Qualifiers,
    StructType,
    UnionType,
    BOOL,
    DOUBLE,
    FLOAT,
    NO_QUALIFIERS,
    VOID,
)


class ParserError(Exception):
    """Parser error"""
    def __init__(self, message: str, token: Optional[Token] = None):
        self.message = message
        self.token = token
        if token:
            super().__init__(f"{message} at {token.line}:{token.column}")
        else:
            super().__init__(message)


def _located(cls, where, **fields):
    """Build a node positioned at `where` (a token or another node)"""
    return cls(line=where.line, column=where.column, **fields)


TYPE_KEYWORDS = {
    "void", "_Bool", "char", "short", "int", "long", "float", "double",
    "signed", "unsigned", "struct", "union", "enum", "const", "volatile",
    "restrict",
}
STORAGE_CLASSES = {"typedef", "auto", "register", "static", "extern"}

ASSIGNMENT_OPERATORS = {
    TokenType.ASSIGN,
    TokenType.PLUS_ASSIGN,
    TokenType.MINUS_ASSIGN,
    TokenType.STAR_ASSIGN,
    TokenType.SLASH_ASSIGN,
    TokenType.PERCENT_ASSIGN,
    TokenType.LSHIFT_ASSIGN,
    TokenType.RSHIFT_ASSIGN,
    TokenType.AND_ASSIGN,
    TokenType.OR_ASSIGN,
    TokenType.XOR_ASSIGN,
}

# binary operator levels, loosest first
BINARY_LEVELS: List[Tuple[TokenType, ...]] = [
    (TokenType.LOR,),
    (TokenType.LAND,),
    (TokenType.PIPE,),
    (TokenType.CARET,),
    (TokenType.AMPERSAND,),
    (TokenType.EQ, TokenType.NEQ),
    (TokenType.LT, TokenType.GT, TokenType.LTE, TokenType.GTE),
    (TokenType.LSHIFT, TokenType.RSHIFT),
    (TokenType.PLUS, TokenType.MINUS),
    (TokenType.STAR, TokenType.SLASH, TokenType.PERCENT),
]

UNARY_OPERATORS = {
    TokenType.PLUS, TokenType.MINUS, TokenType.BANG, TokenType.TILDE,
    TokenType.AMPERSAND, TokenType.STAR, TokenType.INCREMENT, TokenType.DECREMENT,
}


class Parser:
    """Parser for C expressions and declarations"""

    def __init__(self, tokens: List[Token], scope: Optional[Scope] = None):
        self.tokens: List[Token] = tokens
        self.position = 0
        self.current_token: Optional[Token] = self.tokens[0] if self.tokens else None
        self.scope = scope
        # struct/union/enum types defined with a body while parsing, in order
        self.tag_definitions: List[CType] = []

    def advance(self) -> Token:
        """Move to next token"""
        if self.position < len(self.tokens) - 1:
            self.position += 1
            self.current_token = self.tokens[self.position]
        return self.current_token

    def peek(self, offset: int = 1) -> Optional[Token]:
        """Peek ahead"""
        pos = self.position + offset
        if pos < len(self.tokens):
            return self.tokens[pos]
        return None

    # -----------------
    # Helpers
    # -----------------

    def _at(self, t: TokenType) -> bool:
        return self.current_token is not None and self.current_token.type == t

    def _at_keyword(self, *kws: str) -> bool:
        tok = self.current_token
        return tok is not None and tok.type == TokenType.KEYWORD and tok.value in kws

    def _match(self, t: TokenType) -> bool:
        if self._at(t):
            self.advance()
            return True
        return False

    def _expect(self, t: TokenType, msg: str) -> Token:
        tok = self.current_token
        if tok is None or tok.type != t:
            raise ParserError(msg, tok)
        self.advance()
        return tok

    def _expect_end(self) -> None:
        if not self._at(TokenType.EOF):
            raise ParserError("Unexpected trailing input", self.current_token)

    def _is_typedef_name(self, tok: Optional[Token]) -> bool:
        if tok is None or tok.type != TokenType.IDENTIFIER or self.scope is None:
            return False
        ref = self.scope.lookup(tok.value)
        return ref is not None and self.scope.get(ref).storage_class == StorageClass.TYPEDEF

    def _is_type_name_start(self, tok: Optional[Token]) -> bool:
        if tok is None:
            return False
        if tok.type == TokenType.KEYWORD and tok.value in TYPE_KEYWORDS:
            return True
        return self._is_typedef_name(tok)

    # -----------------
    # Entry points
    # -----------------

    def parse(self) -> Expression:
        """Parse the whole input as a single expression"""
        expr = self._parse_expression()
        self._expect_end()
        return expr

    def parse_declaration(self) -> Optional[Declaration]:
        """Parse a single declaration such as `static const int *p[4];`

        A declaration that only defines a tag (`struct S { int x; };`) returns
        None; the type is in `tag_definitions`.
        """
        tok = self.current_token
        storage_class: Optional[str] = None
        if self._at_keyword(*STORAGE_CLASSES):
            storage_class = self.current_token.value
            self.advance()
        base, quals = self._parse_specifiers()
        if self._at(TokenType.SEMICOLON) or self._at(TokenType.EOF):
            if not self.tag_definitions:
                raise ParserError("Declaration does not declare anything", tok)
            self._match(TokenType.SEMICOLON)
            self._expect_end()
            return None
        name_tok, ctype, quals = self._parse_declarator(base, quals, abstract=False)
        self._match(TokenType.SEMICOLON)
        self._expect_end()
        return _located(
            Declaration,
            tok,
            name=name_tok.value,
            type=ctype,
            qualifiers=quals,
            storage_class=storage_class,
        )

    def parse_type_name(self) -> CType:
        base, _ = self._parse_specifiers()
        _, ctype, _ = self._parse_declarator(base, NO_QUALIFIERS, abstract=True)
        return ctype

    # -----------------
    # Types
    # -----------------

    def _parse_specifiers(self) -> Tuple[CType, Qualifiers]:
        tok = self.current_token
        is_const = False
        is_volatile = False
        signedness: Optional[str] = None
        size_kw: Optional[str] = None
        base: Optional[str] = None
        resolved: Optional[CType] = None

        while True:
            cur = self.current_token
            if cur is None:
                break
            if cur.type == TokenType.KEYWORD:
                v = cur.value
                if v == "const":
                    is_const = True
                elif v == "volatile":
                    is_volatile = True
                elif v == "restrict":
                    pass
                elif v in ("signed", "unsigned"):
                    signedness = v
                elif v in ("short", "long"):
                    size_kw = v
                elif v in ("void", "_Bool", "char", "int", "float", "double"):
                    if base is not None or resolved is not None:
                        raise ParserError("Two or more data types in declaration specifiers", cur)
                    base = v
                elif v in ("struct", "union", "enum"):
                    if base is not None or resolved is not None:
                        raise ParserError("Two or more data types in declaration specifiers", cur)
                    resolved = self._parse_tag_specifier()
                    continue
                else:
                    break
                self.advance()
                continue
            if base is None and resolved is None and signedness is None and size_kw is None and self._is_typedef_name(cur):
                resolved = self.scope.get(self.scope.lookup(cur.value)).ctype
                self.advance()
                continue
            break

        quals = Qualifiers(is_const=is_const, is_volatile=is_volatile)
        if resolved is not None:
            return resolved, quals
        if base is None and signedness is None and size_kw is None:
            raise ParserError("Expected type specifier", tok)
        if base == "void":
            return VOID, quals
        if base == "_Bool":
            return BOOL, quals
        if base == "float":
            return FLOAT, quals
        if base == "double":
            # long double is treated as double
            return DOUBLE, quals
        signed = signedness != "unsigned"
        if base == "char":
            return IntegerType("char", signed), quals
        return IntegerType(size_kw or "int", signed), quals

    def _parse_tag_specifier(self) -> CType:
        kw_tok = self.current_token
        kind = kw_tok.value
        self.advance()
        tag = "<anonymous>"
        if self._at(TokenType.IDENTIFIER):
            tag = self.current_token.value
            self.advance()
        elif not self._at(TokenType.LBRACE):
            raise ParserError(f"Expected tag name or '{{' after '{kind}'", self.current_token)

        if not self._match(TokenType.LBRACE):
            known = self.scope.lookup_tag(tag) if self.scope is not None else None
            if known is not None:
                return known
            if kind == "enum":
                return EnumType(tag)
            return StructType(tag) if kind == "struct" else UnionType(tag)

        if kind == "enum":
            ctype: CType = EnumType(tag, tuple(self._parse_enumerators()))
        else:
            members = tuple(self._parse_members())
            ctype = StructType(tag, members) if kind == "struct" else UnionType(tag, members)
        self.tag_definitions.append(ctype)
        return ctype

    def _parse_enumerators(self) -> List[Tuple[str, int]]:
        enumerators: List[Tuple[str, int]] = []
        value = -1
        while not self._at(TokenType.RBRACE):
            name_tok = self._expect(TokenType.IDENTIFIER, "Expected enumerator name")
            if self._match(TokenType.ASSIGN):
                negative = self._match(TokenType.MINUS)
                num = self._expect(TokenType.NUMBER, "Expected integer constant for enumerator")
                lit = self._number_literal(num)
                if not isinstance(lit, IntLiteral):
                    raise ParserError("Enumerator value must be an integer constant", num)
                value = -lit.value if negative else lit.value
            else:
                value += 1
            enumerators.append((name_tok.value, value))
            if not self._match(TokenType.COMMA):
                break
        self._expect(TokenType.RBRACE, "Expected '}' after enum list")
        return enumerators

    def _parse_members(self) -> List[Member]:
        members: List[Member] = []
        while not self._at(TokenType.RBRACE):
            if self._at(TokenType.EOF):
                raise ParserError("Unterminated member list", self.current_token)
            base, quals = self._parse_specifiers()
            while True:
                name_tok, ctype, member_quals = self._parse_declarator(base, quals, abstract=False)
                members.append(Member(name_tok.value, ctype, member_quals))
                if not self._match(TokenType.COMMA):
                    break
            self._expect(TokenType.SEMICOLON, "Expected ';' after member declaration")
        self._expect(TokenType.RBRACE, "Expected '}' after member list")
        return members

    def _parse_pointer_qualifiers(self) -> Qualifiers:
        is_const = False
        is_volatile = False
        while self._at_keyword("const", "volatile", "restrict"):
            if self.current_token.value == "const":
                is_const = True
            elif self.current_token.value == "volatile":
                is_volatile = True
            self.advance()
        return Qualifiers(is_const=is_const, is_volatile=is_volatile)

    def _parse_declarator(
        self, base: CType, quals: Qualifiers, abstract: bool
    ) -> Tuple[Optional[Token], CType, Qualifiers]:
        """Parse pointers, the declared name and array/function suffixes.

        Returns the name token (None for abstract declarators), the declared
        type and the qualifiers of the declared object itself.
        """
        ctype = base
        object_quals = quals
        layers: List[Qualifiers] = []
        while self._match(TokenType.STAR):
            layers.append(self._parse_pointer_qualifiers())
        for layer in layers:
            ctype = PointerType(ctype, layer)
        if layers and not abstract:
            # `int *const p`: the outermost qualifiers belong to the object
            object_quals = layers[-1]
            ctype = PointerType(ctype.pointee)

        name_tok = None
        if not abstract:
            name_tok = self._expect(TokenType.IDENTIFIER, "Expected identifier in declarator")

        sizes: List[Optional[int]] = []
        while self._match(TokenType.LBRACKET):
            if self._match(TokenType.RBRACKET):
                sizes.append(None)
                continue
            num = self._expect(TokenType.NUMBER, "Expected array size")
            lit = self._number_literal(num)
            if not isinstance(lit, IntLiteral):
                raise ParserError("Array size must be an integer constant", num)
            sizes.append(lit.value)
            self._expect(TokenType.RBRACKET, "Expected ']' after array size")
        for size in reversed(sizes):
            ctype = ArrayType(ctype, size)

        if self._match(TokenType.LPAREN):
            params, varargs = self._parse_parameter_list()
            self._expect(TokenType.RPAREN, "Expected ')' after parameter list")
            ctype = FunctionType(ctype, tuple(params), varargs)
        return name_tok, ctype, object_quals

    def _parse_parameter_list(self) -> Tuple[List[CType], bool]:
        params: List[CType] = []
        if self._at(TokenType.RPAREN):
            return params, False
        if self._at_keyword("void") and self.peek() and self.peek().type == TokenType.RPAREN:
            self.advance()
            return params, False
        while True:
            if self._match(TokenType.ELLIPSIS):
                return params, True
            base, _ = self._parse_specifiers()
            ctype = base
            while self._match(TokenType.STAR):
                ctype = PointerType(ctype, self._parse_pointer_qualifiers())
            self._match(TokenType.IDENTIFIER)
            params.append(ctype)
            if not self._match(TokenType.COMMA):
                return params, False

    # -----------------
    # Expressions (precedence climbing)
    # -----------------

    def _parse_expression(self) -> Expression:
        expr = self._parse_assignment()
        while self._at(TokenType.COMMA):
            op = self.current_token
            self.advance()
            rhs = self._parse_assignment()
            expr = _located(CommaOp, op, left=expr, right=rhs)
        return expr

    def _parse_assignment(self) -> Expression:
        left = self._parse_conditional()
        if self.current_token and self.current_token.type in ASSIGNMENT_OPERATORS:
            op_tok = self.current_token
            self.advance()
            right = self._parse_assignment()
            return _located(Assignment, op_tok, target=left, operator=op_tok.value, value=right)
        return left

    def _parse_conditional(self) -> Expression:
        expr = self._parse_binary(0)
        if self._match(TokenType.QUESTION):
            true_expr = self._parse_expression()
            self._expect(TokenType.COLON, "Expected ':' in conditional expression")
            false_expr = self._parse_conditional()
            return _located(TernaryOp, expr, condition=expr, true_expr=true_expr, false_expr=false_expr)
        return expr

    def _parse_binary(self, level: int) -> Expression:
        if level == len(BINARY_LEVELS):
            return self._parse_unary()
        expr = self._parse_binary(level + 1)
        while self.current_token and self.current_token.type in BINARY_LEVELS[level]:
            op = self.current_token
            self.advance()
            rhs = self._parse_binary(level + 1)
            expr = _located(BinaryOp, op, operator=op.value, left=expr, right=rhs)
        return expr

    def _parse_unary(self) -> Expression:
        tok = self.current_token
        if tok and tok.type == TokenType.KEYWORD and tok.value == "sizeof":
            self.advance()
            # sizeof(type-name) or sizeof unary-expression
            if self._at(TokenType.LPAREN) and self._is_type_name_start(self.peek()):
                self.advance()
                ty = self.parse_type_name()
                self._expect(TokenType.RPAREN, "Expected ')' after sizeof(type)")
                return _located(SizeOf, tok, operand=None, type=ty)
            operand = self._parse_unary()
            return _located(SizeOf, tok, operand=operand, type=None)
        if tok and tok.type in UNARY_OPERATORS:
            self.advance()
            operand = self._parse_unary()
            return _located(UnaryOp, tok, operator=tok.value, operand=operand, is_postfix=False)
        if tok and tok.type == TokenType.LPAREN and self._is_type_name_start(self.peek()):
            self.advance()
            ty = self.parse_type_name()
            self._expect(TokenType.RPAREN, "Expected ')' after cast type")
            expr = self._parse_unary()
            return _located(Cast, tok, type=ty, expression=expr)
        return self._parse_postfix()

    def _parse_postfix(self) -> Expression:
        expr = self._parse_primary()
        while True:
            tok = self.current_token
            if self._match(TokenType.LPAREN):
                args: List[Expression] = []
                if not self._at(TokenType.RPAREN):
                    args.append(self._parse_assignment())
                    while self._match(TokenType.COMMA):
                        args.append(self._parse_assignment())
                self._expect(TokenType.RPAREN, "Expected ')' after call")
                expr = _located(FunctionCall, expr, function=expr, arguments=args)
                continue
            if self._match(TokenType.LBRACKET):
                idx = self._parse_expression()
                self._expect(TokenType.RBRACKET, "Expected ']' after subscript")
                expr = _located(ArrayAccess, expr, array=expr, index=idx)
                continue
            if self._match(TokenType.DOT) or self._match(TokenType.ARROW):
                mem = self._expect(TokenType.IDENTIFIER, f"Expected member name after '{tok.value}'")
                expr = _located(
                    MemberAccess, mem, object=expr, member=mem.value, through_pointer=tok.value == "->"
                )
                continue
            if tok is not None and tok.type in (TokenType.INCREMENT, TokenType.DECREMENT):
                self.advance()
                expr = _located(UnaryOp, tok, operator=tok.value, operand=expr, is_postfix=True)
                continue
            break
        return expr

    def _number_literal(self, tok: Token) -> Expression:
        v = tok.value
        is_hex = v.startswith(("0x", "0X"))
        if not is_hex and any(c in v for c in ".eE") or (not is_hex and v.rstrip("lL")[-1:] in ("f", "F")):
            try:
                return _located(FloatLiteral, tok, value=float(v.rstrip("fFlL")))
            except ValueError:
                raise ParserError(f"Invalid floating constant '{v}'", tok)
        digits = v
        suffix = ""
        while digits and digits[-1] in "uUlL":
            suffix = digits[-1] + suffix
            digits = digits[:-1]
        is_octal = not is_hex and len(digits) > 1 and digits.startswith("0")
        base = 16 if is_hex else 8 if is_octal else 10
        try:
            value = int(digits, base)
        except ValueError:
            raise ParserError(f"Invalid integer constant '{v}'", tok)
        return _located(
            IntLiteral,
            tok,
            value=value,
            is_unsigned="u" in suffix.lower(),
            spelling=v,
        )

    def _parse_primary(self) -> Expression:
        tok = self.current_token
        if tok is None:
            raise ParserError("Unexpected end of input")

        if tok.type == TokenType.IDENTIFIER:
            self.advance()
            return _located(Identifier, tok, name=tok.value)
        if tok.type == TokenType.NUMBER:
            self.advance()
            return self._number_literal(tok)
        if tok.type == TokenType.STRING:
            # adjacent string literals are concatenated
            value = tok.value
            self.advance()
            while self._at(TokenType.STRING):
                value += self.current_token.value
                self.advance()
            return _located(StringLiteral, tok, value=value)
        if tok.type == TokenType.CHAR:
            self.advance()
            return _located(CharLiteral, tok, value=tok.value)
        if self._match(TokenType.LPAREN):
            expr = self._parse_expression()
            self._expect(TokenType.RPAREN, "Expected ')'")
            return expr

        raise ParserError("Expected expression", tok)
