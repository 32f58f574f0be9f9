"""csema.ir

Typed expression tree produced by the analyzer.

Every node carries its C type, whether it designates a storage location
(`lval`), and its source span. Implicit conversions are explicit nodes:
a load from an lvalue is a `DerefExpr`, every conversion is a `CastExpr`.
Later passes rely on this and never have to re-derive a conversion.

An lvalue node's payload computes the *address* of the object. For an
`IdExpr` that is the variable's storage; for `*p` it is the value of `p`.
Reading the object therefore always goes through a `DerefExpr`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional, Union

from csema.diagnostics import SourceSpan
from csema.scope import Scope, SymbolRef
from csema.types import CType, INT


class BinaryOp(Enum):
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    MOD = "%"
    SHL = "<<"
    SHR = ">>"
    BIT_AND = "&"
    BIT_OR = "|"
    XOR = "^"
    LT = "<"
    GT = ">"
    LE = "<="
    GE = ">="
    EQ = "=="
    NE = "!="
    ASSIGN = "="

    @property
    def is_comparison(self) -> bool:
        return self in _COMPARISONS

    @property
    def is_equality(self) -> bool:
        return self in (BinaryOp.EQ, BinaryOp.NE)

    def __str__(self) -> str:
        return self.value


_COMPARISONS = {BinaryOp.LT, BinaryOp.GT, BinaryOp.LE, BinaryOp.GE, BinaryOp.EQ, BinaryOp.NE}


class LiteralKind(Enum):
    CHAR = "char"
    INT = "int"
    UNSIGNED_INT = "unsigned"
    FLOAT = "float"
    STR = "str"


@dataclass(frozen=True)
class Literal:
    kind: LiteralKind
    value: Union[int, float, str]

    def is_null(self) -> bool:
        """Null pointer constants: integer or character zero."""
        return self.kind in (LiteralKind.INT, LiteralKind.UNSIGNED_INT, LiteralKind.CHAR) and self.value == 0

    def __str__(self) -> str:
        if self.kind == LiteralKind.STR:
            return repr(self.value)
        if self.kind == LiteralKind.UNSIGNED_INT:
            return f"{self.value}u"
        return str(self.value)


# ============== Expression kinds ==============


@dataclass
class LiteralExpr:
    literal: Literal


@dataclass
class IdExpr:
    symbol: SymbolRef


@dataclass
class BinaryExpr:
    op: BinaryOp
    left: "TypedExpr"
    right: "TypedExpr"


@dataclass
class CastExpr:
    inner: "TypedExpr"


@dataclass
class DerefExpr:
    inner: "TypedExpr"


ExprKind = Union[LiteralExpr, IdExpr, BinaryExpr, CastExpr, DerefExpr]


@dataclass
class TypedExpr:
    expr: ExprKind
    ctype: CType
    lval: bool
    location: SourceSpan

    @classmethod
    def zero(cls, location: SourceSpan) -> "TypedExpr":
        """Placeholder substituted for an expression that failed to analyze."""
        return cls(LiteralExpr(Literal(LiteralKind.INT, 0)), INT, False, location)

    def is_null(self) -> bool:
        return isinstance(self.expr, LiteralExpr) and self.expr.literal.is_null()

    def children(self) -> Iterator["TypedExpr"]:
        e = self.expr
        if isinstance(e, BinaryExpr):
            yield e.left
            yield e.right
        elif isinstance(e, (CastExpr, DerefExpr)):
            yield e.inner


def walk(expr: TypedExpr) -> Iterator[TypedExpr]:
    """Pre-order traversal of a typed tree."""
    stack = [expr]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(list(node.children())))


def _label(node: TypedExpr, scope: Optional[Scope]) -> str:
    e = node.expr
    if isinstance(e, LiteralExpr):
        return f"Literal {e.literal}"
    if isinstance(e, IdExpr):
        name = scope.get(e.symbol).id if scope is not None else e.symbol.name
        return f"Id {name}"
    if isinstance(e, BinaryExpr):
        return f"Binary {e.op}"
    if isinstance(e, CastExpr):
        return "Cast"
    return "Deref"


def dump(expr: TypedExpr, scope: Optional[Scope] = None, indent: int = 0) -> str:
    """Pretty-print a typed tree, one node per line."""
    prefix = "  " * indent
    lval = " lval" if expr.lval else ""
    result = f"{prefix}{_label(expr, scope)} : {expr.ctype}{lval}\n"
    for child in expr.children():
        result += dump(child, scope, indent + 1)
    return result
