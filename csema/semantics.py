"""csema.semantics

Semantic analysis of C expressions.

`ExpressionAnalyzer.lower` turns an untyped expression tree into a typed one:

- identifiers are resolved through the scope, enumerators become constants
- every operand is type-checked by the rule for its operator family
  (integer-only, multiplicative, additive, relational)
- the usual arithmetic conversions, array/function decay and loads are made
  explicit as Cast / Deref nodes
- pointer arithmetic is scaled by the pointee size
- assignments check for a modifiable lvalue; compound assignments evaluate
  their left side exactly once

Errors are reported to the `ErrorHandler` and analysis continues with a
placeholder, so one pass surfaces every error in the expression. Syntax this
module does not handle (calls, `?:`, comma, logical operators, member
access, most unary operators) raises NotImplementedError.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Optional

from csema.ast_nodes import (
    Assignment,
    BinaryOp as BinaryNode,
    Cast,
    CharLiteral,
    Expression,
    FloatLiteral,
    Identifier,
    IntLiteral,
    StringLiteral,
    UnaryOp,
)
from csema.conversions import binary_promote, decay, explicit_cast, implicit_cast
from csema.diagnostics import (
    ErrorHandler,
    ExpressionTooDeep,
    InvalidAdd,
    InvalidRelationalType,
    NonIntegralExpr,
    NotAPointer,
    NotAssignable,
    PointerAddUnknownSize,
    SemanticError,
    SemanticErrorKind,
    SourceSpan,
    TypeMismatch,
    TypedefInExpressionContext,
    UndeclaredVar,
)
from csema.ir import (
    BinaryExpr,
    BinaryOp,
    CastExpr,
    IdExpr,
    Literal,
    LiteralExpr,
    LiteralKind,
    TypedExpr,
)
from csema.scope import Metadata, Scope, StorageClass
from csema.types import (
    ArrayType,
    CType,
    EnumType,
    IncompleteTypeError,
    PointerType,
    BOOL,
    CHAR,
    DOUBLE,
    ERROR,
    LONG,
    NO_QUALIFIERS,
    ULONG,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 200

# name of the hidden variable used to desugar compound assignment;
# not a valid C identifier, so it can never collide with user code
TEMPORARY_NAME = "<tmp>"

INTEGER_OPS: Dict[str, BinaryOp] = {
    "<<": BinaryOp.SHL,
    ">>": BinaryOp.SHR,
    "&": BinaryOp.BIT_AND,
    "|": BinaryOp.BIT_OR,
    "^": BinaryOp.XOR,
}
MULTIPLICATIVE_OPS: Dict[str, BinaryOp] = {"*": BinaryOp.MUL, "/": BinaryOp.DIV, "%": BinaryOp.MOD}
ADDITIVE_OPS: Dict[str, BinaryOp] = {"+": BinaryOp.ADD, "-": BinaryOp.SUB}
COMPARISON_OPS: Dict[str, BinaryOp] = {
    "<": BinaryOp.LT,
    ">": BinaryOp.GT,
    "<=": BinaryOp.LE,
    ">=": BinaryOp.GE,
    "==": BinaryOp.EQ,
    "!=": BinaryOp.NE,
}
COMPOUND_OPS: Dict[str, BinaryOp] = {
    "+=": BinaryOp.ADD,
    "-=": BinaryOp.SUB,
    "*=": BinaryOp.MUL,
    "/=": BinaryOp.DIV,
    "%=": BinaryOp.MOD,
    "<<=": BinaryOp.SHL,
    ">>=": BinaryOp.SHR,
    "&=": BinaryOp.BIT_AND,
    "|=": BinaryOp.BIT_OR,
    "^=": BinaryOp.XOR,
}

Rule = Callable[[TypedExpr, TypedExpr, BinaryOp], TypedExpr]


def span_of(node: Expression) -> SourceSpan:
    return SourceSpan.point(node.line, node.column)


def literal(node: Expression, location: SourceSpan) -> TypedExpr:
    """Type a literal constant.

    Unsuffixed integers are `long`, `u`-suffixed ones `unsigned long`, floating
    constants `double` and character constants `char`. A string is a `char`
    array as long as its contents.
    """
    ctype: CType
    if isinstance(node, CharLiteral):
        lit = Literal(LiteralKind.CHAR, ord(node.value[0]) if node.value else 0)
        ctype = CHAR
    elif isinstance(node, IntLiteral):
        if node.is_unsigned:
            lit, ctype = Literal(LiteralKind.UNSIGNED_INT, node.value), ULONG
        else:
            lit, ctype = Literal(LiteralKind.INT, node.value), LONG
    elif isinstance(node, FloatLiteral):
        lit, ctype = Literal(LiteralKind.FLOAT, node.value), DOUBLE
    elif isinstance(node, StringLiteral):
        lit = Literal(LiteralKind.STR, node.value)
        ctype = ArrayType(CHAR, len(node.value))
    else:
        raise TypeError(f"not a literal: {node!r}")
    return TypedExpr(LiteralExpr(lit), ctype, False, location)


def _poisoned(*exprs: TypedExpr) -> bool:
    """Whether an operand already carries an error, so a new report would be noise."""
    return any(e.ctype.is_error() for e in exprs)


def _common_type(left: TypedExpr, right: TypedExpr) -> CType:
    return left.ctype if left.ctype == right.ctype else ERROR


def _element_type(ctype: CType) -> Optional[CType]:
    if isinstance(ctype, PointerType):
        return ctype.pointee
    if isinstance(ctype, ArrayType):
        return ctype.element
    return None


class ExpressionAnalyzer:
    """Lowers untyped expressions to typed IR against a scope."""

    def __init__(
        self,
        scope: Scope,
        error_handler: Optional[ErrorHandler] = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ):
        self.scope = scope
        self.error_handler = error_handler if error_handler is not None else ErrorHandler()
        self.max_depth = max_depth
        self._depth = 0
        self._depth_reported = False

    def err(self, kind: SemanticErrorKind, location: SourceSpan) -> None:
        self.error_handler.report(kind, location)

    # -----------------
    # Dispatch
    # -----------------

    def lower(self, node: Expression) -> TypedExpr:
        """Type-check `node` and everything below it."""
        if self._depth == 0:
            self._depth_reported = False
        if self._depth >= self.max_depth:
            location = span_of(node)
            if not self._depth_reported:
                self._depth_reported = True
                self.err(ExpressionTooDeep(self.max_depth), location)
            return TypedExpr.zero(location)
        self._depth += 1
        try:
            return self._lower(node)
        finally:
            self._depth -= 1

    def _lower(self, node: Expression) -> TypedExpr:
        location = span_of(node)
        if isinstance(node, (IntLiteral, FloatLiteral, CharLiteral, StringLiteral)):
            return literal(node, location)
        if isinstance(node, Identifier):
            return self.identifier(node.name, location)
        if isinstance(node, Cast):
            return explicit_cast(self.lower(node.expression), node.type, location, self.error_handler)
        if isinstance(node, BinaryNode):
            op = node.operator
            if op in INTEGER_OPS:
                return self._binary(node, INTEGER_OPS[op], self.integer_op)
            if op in COMPARISON_OPS:
                return self._binary(node, COMPARISON_OPS[op], self.relational_expr)
            if op in MULTIPLICATIVE_OPS:
                return self._binary(node, MULTIPLICATIVE_OPS[op], self.mul)
            if op in ADDITIVE_OPS:
                return self._binary(node, ADDITIVE_OPS[op], self.add)
        if isinstance(node, Assignment):
            return self.assignment_expr(node, location)
        if isinstance(node, UnaryOp) and node.operator == "*" and not node.is_postfix:
            return self.deref_expr(self.lower(node.operand), location)
        raise NotImplementedError(f"semantic analysis of {node.__class__.__name__} is not implemented")

    def _binary(self, node: BinaryNode, op: BinaryOp, rule: Rule) -> TypedExpr:
        # left before right, matching source order
        left = self.lower(node.left)
        right = self.lower(node.right)
        return rule(left, right, op)

    # -----------------
    # Primaries
    # -----------------

    def identifier(self, name: str, location: SourceSpan) -> TypedExpr:
        ref = self.scope.lookup(name)
        if ref is None:
            self.err(UndeclaredVar(name), location)
            return TypedExpr.zero(location)
        meta = self.scope.get(ref)
        if meta.storage_class == StorageClass.TYPEDEF:
            self.err(TypedefInExpressionContext(), location)
            return TypedExpr.zero(location)
        if isinstance(meta.ctype, EnumType):
            value = meta.ctype.value_of(name)
            if value is not None:
                return TypedExpr(LiteralExpr(Literal(LiteralKind.INT, value)), meta.ctype, False, location)
        return TypedExpr(IdExpr(ref), meta.ctype, True, location)

    def deref_expr(self, operand: TypedExpr, location: SourceSpan) -> TypedExpr:
        """`*p`: the object p points to.

        The result is an lvalue whose payload is the pointer value itself;
        reading it later adds the load.
        """
        operand = decay(operand)
        if not operand.ctype.is_pointer():
            if not _poisoned(operand):
                self.err(NotAPointer(operand.ctype), location)
            return TypedExpr.zero(location)
        pointee = operand.ctype.pointee
        is_object = not (pointee.is_function() or pointee.is_void())
        return TypedExpr(operand.expr, pointee, is_object, location)

    # -----------------
    # Operator families
    # -----------------

    def integer_op(self, left: TypedExpr, right: TypedExpr, op: BinaryOp) -> TypedExpr:
        """Bitwise and shift operators: both operands must be integers."""
        location = left.location.merge(right.location)
        if not left.ctype.is_integral():
            offender: Optional[CType] = left.ctype
        elif not right.ctype.is_integral():
            offender = right.ctype
        else:
            offender = None
        if offender is not None and not _poisoned(left, right):
            self.err(NonIntegralExpr(offender), location)
        left, right = binary_promote(left, right, self.error_handler)
        return TypedExpr(BinaryExpr(op, left, right), _common_type(left, right), False, location)

    def mul(self, left: TypedExpr, right: TypedExpr, op: BinaryOp) -> TypedExpr:
        location = left.location.merge(right.location)
        if not _poisoned(left, right):
            if op == BinaryOp.MOD and not (left.ctype.is_integral() and right.ctype.is_integral()):
                self.err(
                    TypeMismatch(
                        f"expected integers for both operands of %, got '{left.ctype}' and '{right.ctype}'"
                    ),
                    location,
                )
            elif not (left.ctype.is_arithmetic() and right.ctype.is_arithmetic()):
                self.err(
                    TypeMismatch(
                        f"expected float or integer types for both operands of {op}, "
                        f"got '{left.ctype}' and '{right.ctype}'"
                    ),
                    location,
                )
        left, right = binary_promote(left, right, self.error_handler)
        return TypedExpr(BinaryExpr(op, left, right), _common_type(left, right), False, location)

    def add(self, left: TypedExpr, right: TypedExpr, op: BinaryOp) -> TypedExpr:
        """`+` and `-`, including pointer arithmetic."""
        is_add = op == BinaryOp.ADD
        location = left.location.merge(right.location)

        pointee = _element_type(left.ctype)
        if pointee is not None and right.ctype.is_integral() and pointee.is_complete():
            return self.pointer_arithmetic(decay(left), decay(right), pointee, op, location)
        pointee = _element_type(right.ctype)
        # `i - p` is not valid
        if is_add and pointee is not None and left.ctype.is_integral() and pointee.is_complete():
            return self.pointer_arithmetic(decay(right), decay(left), pointee, op, location)

        if left.ctype.is_arithmetic() and right.ctype.is_arithmetic():
            left, right = binary_promote(left, right, self.error_handler)
            return TypedExpr(BinaryExpr(op, left, right), _common_type(left, right), False, location)

        left, right = decay(left), decay(right)
        # `p1 + p2` is not valid
        if not is_add and left.ctype.is_pointer_to_complete_object() and left.ctype == right.ctype:
            return self.pointer_difference(left, right, location)
        if not _poisoned(left, right):
            self.err(InvalidAdd(str(op), left.ctype, right.ctype), location)
        return TypedExpr(BinaryExpr(op, left, right), left.ctype, False, location)

    def _element_size(self, pointer: CType, pointee: CType, location: SourceSpan) -> int:
        try:
            return pointee.sizeof()
        except IncompleteTypeError:
            self.err(PointerAddUnknownSize(pointer), location)
            return 1

    def pointer_arithmetic(
        self, base: TypedExpr, index: TypedExpr, pointee: CType, op: BinaryOp, location: SourceSpan
    ) -> TypedExpr:
        """`base op (cast<base>(sizeof(pointee)) * cast<base>(index))`.

        The scaling is done in the pointer's own width.
        """
        offset = TypedExpr(CastExpr(index), base.ctype, False, index.location)
        size = self._element_size(base.ctype, pointee, location)
        size_literal = TypedExpr(LiteralExpr(Literal(LiteralKind.UNSIGNED_INT, size)), ULONG, False, offset.location)
        size_cast = TypedExpr(CastExpr(size_literal), offset.ctype, False, offset.location)
        scaled = TypedExpr(BinaryExpr(BinaryOp.MUL, size_cast, offset), offset.ctype, False, offset.location)
        return TypedExpr(BinaryExpr(op, base, scaled), base.ctype, False, location)

    def pointer_difference(self, left: TypedExpr, right: TypedExpr, location: SourceSpan) -> TypedExpr:
        """`p - q`: the distance in elements, as a ptrdiff_t (`long`) rvalue."""
        size = self._element_size(left.ctype, left.ctype.pointee, location)
        diff = TypedExpr(
            BinaryExpr(
                BinaryOp.SUB,
                TypedExpr(CastExpr(left), LONG, False, left.location),
                TypedExpr(CastExpr(right), LONG, False, right.location),
            ),
            LONG,
            False,
            location,
        )
        size_literal = TypedExpr(LiteralExpr(Literal(LiteralKind.UNSIGNED_INT, size)), ULONG, False, location)
        size_cast = TypedExpr(CastExpr(size_literal), LONG, False, location)
        return TypedExpr(BinaryExpr(BinaryOp.DIV, diff, size_cast), LONG, False, location)

    def relational_expr(self, left: TypedExpr, right: TypedExpr, op: BinaryOp) -> TypedExpr:
        location = left.location.merge(right.location)
        if left.ctype.is_arithmetic() and right.ctype.is_arithmetic():
            left, right = binary_promote(left, right, self.error_handler)
        else:
            left, right = decay(left), decay(right)
            lt, rt = left.ctype, right.ctype
            valid = lt.is_pointer() and lt == rt
            # equality also allows void pointers and null pointer constants
            if not valid and op.is_equality:
                if lt.is_pointer() and (rt.is_void_pointer() or right.is_null()):
                    valid = True
                    right = implicit_cast(right, lt, self.error_handler) if right.is_null() else right
                elif rt.is_pointer() and (lt.is_void_pointer() or left.is_null()):
                    valid = True
                    left = implicit_cast(left, rt, self.error_handler) if left.is_null() else left
            if not valid and not _poisoned(left, right):
                self.err(InvalidRelationalType(str(op), lt, rt), location)
        return TypedExpr(BinaryExpr(op, left, right), BOOL, False, location)

    # -----------------
    # Assignment
    # -----------------

    def check_modifiable_lvalue(self, expr: TypedExpr) -> None:
        """Raise SemanticError unless `expr` is a modifiable lvalue.

        C11 6.3.2.1p1: a modifiable lvalue does not have array type, an
        incomplete type or a const-qualified type, and if it is a struct or
        union it has no const-qualified member.
        """
        def fail(reason: str) -> None:
            raise SemanticError(NotAssignable(reason))

        if not expr.lval:
            fail("rvalue")
        if not expr.ctype.is_complete():
            fail(f"expression with incomplete type '{expr.ctype}'")
        if isinstance(expr.expr, IdExpr):
            meta = self.scope.get(expr.expr.symbol)
            if meta.qualifiers.is_const:
                fail(f"variable '{meta.id}' with `const` qualifier")
        if expr.ctype.is_array():
            fail("array")
        if expr.ctype.is_struct() and expr.ctype.has_const_member():
            fail("struct or union with `const` qualified member")

    def assignment_expr(self, node: Assignment, location: SourceSpan) -> TypedExpr:
        lval = self.lower(node.target)
        rval = self.lower(node.value)
        # a rejected target reports nothing further from its conversions
        cast_errors = self.error_handler
        try:
            self.check_modifiable_lvalue(lval)
        except SemanticError as e:
            self.err(e.kind, location)
            cast_errors = ErrorHandler()

        if node.operator == "=":
            rval = decay(rval)
            if rval.ctype != lval.ctype:
                rval = implicit_cast(rval, lval.ctype, cast_errors)
            # `(i = j) = 4` is invalid, so the result is not an lvalue
            return TypedExpr(BinaryExpr(BinaryOp.ASSIGN, lval, rval), lval.ctype, False, location)
        return self.compound_assignment(lval, rval, COMPOUND_OPS[node.operator], location, cast_errors)

    def compound_assignment(
        self,
        lval: TypedExpr,
        rval: TypedExpr,
        op: BinaryOp,
        location: SourceSpan,
        cast_errors: Optional[ErrorHandler] = None,
    ) -> TypedExpr:
        """`lval op= rval` as `(tmp = lval) = tmp op rval`.

        The left side may have side effects (`*f() += 1`), so it appears in the
        result exactly once: it is bound to a hidden temporary and every other
        use goes through the temporary.
        """
        ctype = lval.ctype
        with self.scope.scoped():
            meta = Metadata(TEMPORARY_NAME, ctype, NO_QUALIFIERS, StorageClass.REGISTER)
            tmp = self.scope.declare(TEMPORARY_NAME, meta)
        logger.debug("compound assignment at %s: temporary of type '%s'", location, ctype)

        # tmp = lval; designates the same object as lval
        bind = TypedExpr(
            BinaryExpr(BinaryOp.ASSIGN, TypedExpr(IdExpr(tmp), ctype, True, lval.location), lval),
            ctype,
            True,
            location,
        )
        # tmp op rval
        current = TypedExpr(IdExpr(tmp), ctype, True, lval.location)
        value = self._compound_rule(op)(current, rval, op)
        if value.ctype != ctype:
            value = implicit_cast(value, ctype, self.error_handler if cast_errors is None else cast_errors)
        return TypedExpr(BinaryExpr(BinaryOp.ASSIGN, bind, value), ctype, False, location)

    def _compound_rule(self, op: BinaryOp) -> Rule:
        if op in (BinaryOp.ADD, BinaryOp.SUB):
            return self.add
        if op in (BinaryOp.MUL, BinaryOp.DIV, BinaryOp.MOD):
            return self.mul
        return self.integer_op
