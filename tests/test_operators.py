import pytest

from csema.compiler import Compiler
from csema.diagnostics import (
    FloatPointerCast,
    InvalidAdd,
    InvalidRelationalType,
    NonIntegralExpr,
    NonScalarCast,
    StructCast,
    TypeMismatch,
    VoidCast,
)
from csema.ir import BinaryExpr, BinaryOp, CastExpr, walk
from csema.lexer import Lexer
from csema.parser import Parser
from csema.scope import Metadata, Scope
from csema.semantics import ExpressionAnalyzer
from csema.types import PointerType, BOOL, CHAR, DOUBLE, ERROR, FLOAT, INT, LONG, UINT, ULONG, VOID


def _analyze(expr: str, *decls: str):
    comp = Compiler()
    for d in decls:
        comp.declare(d)
    return comp.analyze_code(expr)


def _kinds(result):
    return [type(d.kind) for d in result.diagnostics]


@pytest.mark.parametrize("expr,ctype", [
    ("1*1.0", DOUBLE),
    ("1*2.0 / 1.3", DOUBLE),
    ("3%2", LONG),
    ("7 / 2", LONG),
    ("1u * 2", ULONG),
    ("'a' * 'b'", INT),
    ("1.5 - 1", DOUBLE),
    ("1 + 2", LONG),
])
def test_arithmetic_result_types(expr, ctype):
    res = _analyze(expr)
    assert res.success, res.diagnostics
    assert res.expr.ctype == ctype


def test_modulo_requires_integers():
    res = _analyze("1 % 2.0")
    assert not res.success
    assert _kinds(res) == [TypeMismatch]
    assert "%" in str(res.diagnostics[0].kind)


def test_multiply_requires_arithmetic():
    res = _analyze("p * 2", "int *p")
    assert _kinds(res) == [TypeMismatch]
    assert str(res.diagnostics[0].kind) == (
        "expected float or integer types for both operands of *, got 'int *' and 'long'"
    )


def test_promotion_casts_are_explicit():
    res = _analyze("i * d", "int i", "double d")
    assert res.success
    top = res.expr.expr
    assert isinstance(top, BinaryExpr) and top.op == BinaryOp.MUL
    assert isinstance(top.left.expr, CastExpr)
    assert top.left.ctype == DOUBLE
    assert top.right.ctype == DOUBLE


def test_commutative_result_types():
    decls = ("char c", "unsigned u", "long l", "float f")
    for a in ("c", "u", "l", "f"):
        for b in ("c", "u", "l", "f"):
            assert _analyze(f"{a} + {b}", *decls).expr.ctype == _analyze(f"{b} + {a}", *decls).expr.ctype


@pytest.mark.parametrize("expr,ctype", [
    ("(int)4.2", INT),
    ("(unsigned int)4.2", UINT),
    ("(float)4.2", FLOAT),
    ("(double)4.2", DOUBLE),
    ("(int*)(int)4.2", PointerType(INT)),
    ("(char)1", CHAR),
    ("(long)p", LONG),
    ("(void)p", VOID),
])
def test_casts(expr, ctype):
    res = _analyze(expr, "int *p")
    assert res.success, res.diagnostics
    assert res.expr.ctype == ctype
    assert isinstance(res.expr.expr, CastExpr)


@pytest.mark.parametrize("expr,kind", [
    ("(int*)4.2", FloatPointerCast),
    ("(double)p", FloatPointerCast),
    ("(struct S)1", NonScalarCast),
    ("(int)s", StructCast),
    ("(int)(void)1", VoidCast),
])
def test_invalid_casts(expr, kind):
    res = _analyze(expr, "int *p", "struct S { int x; } s")
    assert _kinds(res) == [kind]
    # the cast node is still produced
    assert isinstance(res.expr.expr, CastExpr)


@pytest.mark.parametrize("op", ["<<", ">>", "&", "|", "^"])
def test_integer_operators(op):
    res = _analyze(f"c {op} 1", "char c")
    assert res.success
    assert res.expr.ctype == LONG
    assert res.expr.expr.op.value == op


@pytest.mark.parametrize("expr", ["x & 1.5", "1.5 | x", "p << 1"])
def test_integer_operators_reject_non_integers(expr):
    res = _analyze(expr, "int x", "int *p")
    assert _kinds(res) == [NonIntegralExpr]


def test_non_integral_reports_offending_type():
    res = _analyze("x ^ 1.5", "int x")
    assert res.diagnostics[0].kind == NonIntegralExpr(DOUBLE)


@pytest.mark.parametrize("expr", ["x < y", "x == 1", "p == q", "p <= q", "p == 0", "0 != p", "p == v", "v != p"])
def test_comparisons_are_bool(expr):
    res = _analyze(expr, "int x", "unsigned y", "int *p", "int *q", "void *v")
    assert res.success, res.diagnostics
    assert res.expr.ctype == BOOL


def test_comparison_operands_are_promoted():
    res = _analyze("x < y", "int x", "unsigned y")
    top = res.expr.expr
    assert top.left.ctype == UINT
    assert isinstance(top.left.expr, CastExpr)


def test_null_constant_is_converted_for_pointer_equality():
    res = _analyze("p == 0", "int *p")
    assert res.expr.expr.right.ctype == PointerType(INT)


@pytest.mark.parametrize("expr", ["p < 1", "p < v", "p == d", "p > c", "s == s"])
def test_invalid_comparisons(expr):
    res = _analyze(expr, "int *p", "void *v", "double *d", "char *c", "struct S { int x; } s")
    assert _kinds(res) == [InvalidRelationalType]
    assert res.expr.ctype == BOOL


def test_invalid_add_operands():
    res = _analyze("s + 1", "struct S { int x; } s")
    assert _kinds(res) == [InvalidAdd]
    assert str(res.diagnostics[0].kind) == "cannot apply '+' to 'struct S' and 'long'"


def test_binary_location_spans_both_operands():
    res = _analyze("a + b", "int a", "int b")
    loc = res.expr.location
    assert (loc.line, loc.column, loc.end_line, loc.end_column) == (1, 1, 1, 5)


def _lower_with_error_var(expr: str):
    scope = Scope()
    scope.declare("e", Metadata("e", ERROR))
    scope.declare("p", Metadata("p", PointerType(INT)))
    analyzer = ExpressionAnalyzer(scope)
    typed = analyzer.lower(Parser(Lexer(expr).tokenize(), scope).parse())
    return typed, analyzer.error_handler


@pytest.mark.parametrize("expr", ["e * 2", "e % 2", "e << 1", "e + p", "p + e", "e < p", "e == 1", "(int *)e"])
def test_no_cascading_errors_from_error_type(expr):
    typed, eh = _lower_with_error_var(expr)
    assert not eh.has_errors()


def test_error_type_propagates():
    typed, eh = _lower_with_error_var("e * 2")
    assert typed.ctype.is_error()
    assert not eh.has_errors()


def test_every_node_has_a_type():
    res = _analyze("(a + b * 2) << c", "int a", "long b", "unsigned char c")
    for node in walk(res.expr):
        assert node.ctype is not None
