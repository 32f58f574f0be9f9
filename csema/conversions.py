"""csema.conversions

Implicit and explicit conversions between typed expressions.

All functions take an expression and return the converted expression; the
conversion itself is materialized as `CastExpr` / `DerefExpr` nodes. Problems
are reported to the given `ErrorHandler` and the best available expression is
returned so analysis can continue.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Tuple

from csema.diagnostics import (
    ErrorHandler,
    FloatPointerCast,
    InvalidCast,
    NonScalarCast,
    SemanticError,
    SourceSpan,
    StructCast,
    VoidCast,
)
from csema.ir import CastExpr, DerefExpr, TypedExpr
from csema.types import CONST, CType, PointerType, ArrayType, promote_types


def decay(expr: TypedExpr) -> TypedExpr:
    """Rvalue conversion.

    - arrays become pointers to their first element
    - functions become const pointers to the function
    - struct and union lvalues become rvalues without a load
    - any other lvalue is loaded through a Deref node

    Applying it to an rvalue returns the expression unchanged, so it is
    idempotent.
    """
    ctype = expr.ctype
    if isinstance(ctype, ArrayType):
        # a + 1 is the same as &a[0] + 1
        return replace(expr, ctype=PointerType(ctype.element), lval=False)
    if ctype.is_function():
        return replace(expr, ctype=PointerType(ctype, CONST), lval=False)
    if not expr.lval:
        return expr
    if ctype.is_struct():
        # aggregates are not scalar, so they are never loaded through a Deref
        return replace(expr, lval=False)
    return TypedExpr(DerefExpr(expr), ctype, False, expr.location)


def implicit_cast(expr: TypedExpr, ctype: CType, error_handler: ErrorHandler) -> TypedExpr:
    """Convert `expr` to `ctype` as if by assignment, C11 6.5.16.1."""
    source = expr.ctype
    if source == ctype:
        return expr
    if (
        source.is_arithmetic() and ctype.is_arithmetic()
        or expr.is_null() and ctype.is_pointer()
        or source.is_pointer() and ctype.is_bool()
        or source.is_pointer() and ctype.is_void_pointer()
        or source.is_pointer() and ctype.is_char_pointer()
    ):
        return TypedExpr(CastExpr(expr), ctype, False, expr.location)
    if ctype.is_pointer() and (expr.is_null() or source.is_void_pointer() or source.is_char_pointer()):
        # same representation, relabel in place
        expr.ctype = ctype
        return expr
    if source.is_error() or ctype.is_error():
        # already reported
        return expr
    error_handler.report(InvalidCast(source, ctype), expr.location)
    return expr


def binary_promote(
    left: TypedExpr, right: TypedExpr, error_handler: ErrorHandler
) -> Tuple[TypedExpr, TypedExpr]:
    """Usual arithmetic conversions on two operands, including all casts.

    See `csema.types.promote_types` for the rules. When either operand is not
    arithmetic the operands are only decayed.
    """
    left, right = decay(left), decay(right)
    ctype = promote_types(left.ctype, right.ctype)
    if ctype.is_error():
        return left, right
    return implicit_cast(left, ctype, error_handler), implicit_cast(right, ctype, error_handler)


def check_explicit_cast(source: CType, target: CType) -> None:
    """Raise SemanticError if a value of type `source` cannot be cast to `target`.

    Casting to void is always allowed and handled by the caller.
    """
    if not target.is_scalar():
        raise SemanticError(NonScalarCast(target))
    if source.is_floating() and target.is_pointer() or source.is_pointer() and target.is_floating():
        raise SemanticError(FloatPointerCast(target))
    if source.is_struct():
        raise SemanticError(StructCast())
    if source.is_void():
        raise SemanticError(VoidCast())


def explicit_cast(
    expr: TypedExpr, ctype: CType, location: SourceSpan, error_handler: ErrorHandler
) -> TypedExpr:
    """`(ctype)expr`. Always returns a Cast node, even for an invalid cast."""
    expr = decay(expr)
    if not ctype.is_void() and not (expr.ctype.is_error() or ctype.is_error()):
        try:
            check_explicit_cast(expr.ctype, ctype)
        except SemanticError as e:
            error_handler.report(e.kind, location)
    # a cast to void tells the backend to discard the value
    return TypedExpr(CastExpr(expr), ctype, False, location)
