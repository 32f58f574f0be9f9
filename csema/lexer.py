"""
Lexical Analyzer (Lexer) for C expressions and declarations

Converts source text into a stream of tokens for the parser.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
import sys
from typing import Dict, List, Optional, Set


class TokenType(Enum):
    """Token types for the C lexer"""
    # Literals
    NUMBER = auto()
    CHAR = auto()
    STRING = auto()

    # Identifiers and Keywords
    IDENTIFIER = auto()
    KEYWORD = auto()

    # Arithmetic and assignment
    PLUS = auto()                # +
    MINUS = auto()               # -
    STAR = auto()                # *
    SLASH = auto()               # /
    PERCENT = auto()             # %
    ASSIGN = auto()              # =
    PLUS_ASSIGN = auto()         # +=
    MINUS_ASSIGN = auto()        # -=
    STAR_ASSIGN = auto()         # *=
    SLASH_ASSIGN = auto()        # /=
    PERCENT_ASSIGN = auto()      # %=
    LSHIFT_ASSIGN = auto()       # <<=
    RSHIFT_ASSIGN = auto()       # >>=
    AND_ASSIGN = auto()          # &=
    OR_ASSIGN = auto()           # |=
    XOR_ASSIGN = auto()          # ^=

    # Comparison and bitwise
    EQ = auto()                  # ==
    NEQ = auto()                 # !=
    LT = auto()                  # <
    GT = auto()                  # >
    LTE = auto()                 # <=
    GTE = auto()                 # >=
    LSHIFT = auto()              # <<
    RSHIFT = auto()              # >>
    AMPERSAND = auto()           # &
    PIPE = auto()                # |
    CARET = auto()               # ^
    TILDE = auto()               # ~
    LAND = auto()                # &&
    LOR = auto()                 # ||
    BANG = auto()                # !

    # Other operators
    QUESTION = auto()            # ?
    COLON = auto()               # :
    INCREMENT = auto()           # ++
    DECREMENT = auto()           # --
    ARROW = auto()               # ->
    DOT = auto()                 # .
    ELLIPSIS = auto()            # ...

    # Delimiters
    LPAREN = auto()              # (
    RPAREN = auto()              # )
    LBRACE = auto()              # {
    RBRACE = auto()              # }
    LBRACKET = auto()            # [
    RBRACKET = auto()            # ]
    SEMICOLON = auto()           # ;
    COMMA = auto()               # ,

    # Special
    EOF = auto()


# Longest spellings first so that e.g. '<<=' wins over '<<' and '<'.
PUNCTUATORS: Dict[str, TokenType] = {
    '...': TokenType.ELLIPSIS,
    '<<=': TokenType.LSHIFT_ASSIGN,
    '>>=': TokenType.RSHIFT_ASSIGN,
    '+=': TokenType.PLUS_ASSIGN,
    '-=': TokenType.MINUS_ASSIGN,
    '*=': TokenType.STAR_ASSIGN,
    '/=': TokenType.SLASH_ASSIGN,
    '%=': TokenType.PERCENT_ASSIGN,
    '&=': TokenType.AND_ASSIGN,
    '|=': TokenType.OR_ASSIGN,
    '^=': TokenType.XOR_ASSIGN,
    '==': TokenType.EQ,
    '!=': TokenType.NEQ,
    '<=': TokenType.LTE,
    '>=': TokenType.GTE,
    '<<': TokenType.LSHIFT,
    '>>': TokenType.RSHIFT,
    '&&': TokenType.LAND,
    '||': TokenType.LOR,
    '++': TokenType.INCREMENT,
    '--': TokenType.DECREMENT,
    '->': TokenType.ARROW,
    '+': TokenType.PLUS,
    '-': TokenType.MINUS,
    '*': TokenType.STAR,
    '/': TokenType.SLASH,
    '%': TokenType.PERCENT,
    '=': TokenType.ASSIGN,
    '<': TokenType.LT,
    '>': TokenType.GT,
    '&': TokenType.AMPERSAND,
    '|': TokenType.PIPE,
    '^': TokenType.CARET,
    '~': TokenType.TILDE,
    '!': TokenType.BANG,
    '?': TokenType.QUESTION,
    ':': TokenType.COLON,
    '.': TokenType.DOT,
    '(': TokenType.LPAREN,
    ')': TokenType.RPAREN,
    '{': TokenType.LBRACE,
    '}': TokenType.RBRACE,
    '[': TokenType.LBRACKET,
    ']': TokenType.RBRACKET,
    ';': TokenType.SEMICOLON,
    ',': TokenType.COMMA,
}

ESCAPES: Dict[str, str] = {
    'n': '\n', 't': '\t', 'r': '\r', '\\': '\\',
    '"': '"', "'": "'", '?': '?', 'a': '\a',
    'b': '\b', 'f': '\f', 'v': '\v',
}

HEX_DIGITS = '0123456789abcdefABCDEF'


@dataclass
class Token:
    """Represents a lexical token"""
    type: TokenType
    value: str
    line: int
    column: int

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {repr(self.value)}, {self.line}:{self.column})"


class LexerError(Exception):
    """Lexer error with line and column information"""
    def __init__(self, message: str, line: int, column: int):
        self.message = message
        self.line = line
        self.column = column
        super().__init__(f"{message} at {line}:{column}")


class Lexer:
    """Lexical analyzer for C source text"""

    # C99 keywords
    KEYWORDS: Set[str] = {
        'auto', 'break', 'case', 'char', 'const', 'continue', 'default', 'do',
        'double', 'else', 'enum', 'extern', 'float', 'for', 'goto', 'if',
        'inline', 'int', 'long', 'register', 'restrict', 'return', 'short',
        'signed', 'sizeof', 'static', 'struct', 'switch', 'typedef', 'union',
        'unsigned', 'void', 'volatile', 'while', '_Bool', '_Complex', '_Imaginary',
    }

    def __init__(self, source: str, filename: str = "<input>"):
        """Initialize lexer with source code"""
        self.source = source
        self.filename = filename
        self.position = 0
        self.line = 1
        self.column = 1
        self.tokens: List[Token] = []
        self.errors: List[LexerError] = []

    def current_char(self) -> Optional[str]:
        """Get current character without consuming"""
        if self.position >= len(self.source):
            return None
        return self.source[self.position]

    def peek_char(self, offset: int = 1) -> Optional[str]:
        """Peek ahead at character"""
        pos = self.position + offset
        if pos >= len(self.source):
            return None
        return self.source[pos]

    def advance(self) -> Optional[str]:
        """Consume and return current character"""
        if self.position >= len(self.source):
            return None

        char = self.source[self.position]
        self.position += 1

        if char == '\n':
            self.line += 1
            self.column = 1
        else:
            self.column += 1

        return char

    def _at(self, chars: str) -> bool:
        c = self.current_char()
        return c is not None and c in chars

    def skip_whitespace_and_comments(self) -> None:
        while self.position < len(self.source):
            c = self.current_char()
            if c in ' \t\r\n\f\v':
                self.advance()
            elif c == '/' and self.peek_char() == '/':
                while self.current_char() is not None and self.current_char() != '\n':
                    self.advance()
            elif c == '/' and self.peek_char() == '*':
                line, column = self.line, self.column
                self.advance()
                self.advance()
                while self.current_char() is not None and not (self.current_char() == '*' and self.peek_char() == '/'):
                    self.advance()
                if self.current_char() is None:
                    self.errors.append(LexerError("Unterminated block comment", line, column))
                    return
                self.advance()
                self.advance()
            else:
                return

    def read_escape(self) -> str:
        """Read the escape sequence after a backslash"""
        c = self.advance()
        if c is None:
            return ''
        if c in ESCAPES:
            return ESCAPES[c]
        if c == 'x':
            digits = ''
            while self._at(HEX_DIGITS):
                digits += self.advance()
            if not digits:
                self.errors.append(LexerError("\\x used with no following hex digits", self.line, self.column))
                return 'x'
            return chr(int(digits, 16) & 0xFF)
        if c in '01234567':
            digits = c
            while len(digits) < 3 and self._at('01234567'):
                digits += self.advance()
            return chr(int(digits, 8) & 0xFF)
        return c

    def read_quoted(self) -> str:
        """Read a string or character literal body, quotes excluded"""
        quote_char = self.advance()
        line, column = self.line, self.column - 1
        result = ""
        while self.current_char() is not None and self.current_char() not in (quote_char, '\n'):
            if self.current_char() == '\\':
                self.advance()
                result += self.read_escape()
            else:
                result += self.advance()
        if self.current_char() == quote_char:
            self.advance()
        else:
            what = "string" if quote_char == '"' else "character constant"
            self.errors.append(LexerError(f"Unterminated {what}", line, column))
        return result

    def read_number(self) -> str:
        """Read a number literal, including any suffix.

        The parser decides between integer and floating constants.
        """
        num_str = ""
        if self.current_char() == '0' and self.peek_char() in ('x', 'X'):
            num_str += self.advance()
            num_str += self.advance()
            while self._at(HEX_DIGITS):
                num_str += self.advance()
        else:
            while self._at('0123456789'):
                num_str += self.advance()
            if self.current_char() == '.':
                num_str += self.advance()
                while self._at('0123456789'):
                    num_str += self.advance()
            if self._at('eE'):
                num_str += self.advance()
                if self._at('+-'):
                    num_str += self.advance()
                while self._at('0123456789'):
                    num_str += self.advance()
        # integer suffixes (u, l, ul, ll, ...) and float suffixes (f, l)
        while self._at('uUlLfF'):
            num_str += self.advance()
        return num_str

    def read_identifier(self) -> str:
        """Read identifier or keyword"""
        ident = ""
        while self.current_char() is not None and (self.current_char().isalnum() or self.current_char() == '_'):
            ident += self.advance()
        return sys.intern(ident)

    def read_punctuator(self) -> Optional[TokenType]:
        for spelling, token_type in PUNCTUATORS.items():
            if self.source.startswith(spelling, self.position):
                for _ in spelling:
                    self.advance()
                return token_type
        return None

    def tokenize(self) -> List[Token]:
        """Tokenize entire source code"""
        self.tokens = []
        self.errors = []

        while True:
            self.skip_whitespace_and_comments()
            if self.position >= len(self.source):
                break

            token_line = self.line
            token_column = self.column
            char = self.current_char()

            if char == '"':
                self.tokens.append(Token(TokenType.STRING, self.read_quoted(), token_line, token_column))
            elif char == "'":
                value = self.read_quoted()
                if not value:
                    self.errors.append(LexerError("Empty character constant", token_line, token_column))
                self.tokens.append(Token(TokenType.CHAR, value, token_line, token_column))
            elif char.isdigit() or (char == '.' and (self.peek_char() or '').isdigit()):
                self.tokens.append(Token(TokenType.NUMBER, self.read_number(), token_line, token_column))
            elif char.isalpha() or char == '_':
                ident = self.read_identifier()
                kind = TokenType.KEYWORD if ident in self.KEYWORDS else TokenType.IDENTIFIER
                self.tokens.append(Token(kind, ident, token_line, token_column))
            else:
                start = self.position
                token_type = self.read_punctuator()
                if token_type is None:
                    self.errors.append(LexerError(f"Unexpected character '{char}'", token_line, token_column))
                    self.advance()
                else:
                    self.tokens.append(Token(token_type, self.source[start:self.position], token_line, token_column))

        # Add EOF token
        self.tokens.append(Token(TokenType.EOF, '', self.line, self.column))

        return self.tokens

    def has_errors(self) -> bool:
        """Check if any lexer errors occurred"""
        return len(self.errors) > 0

    def get_errors(self) -> List[LexerError]:
        """Get all lexer errors"""
        return self.errors
