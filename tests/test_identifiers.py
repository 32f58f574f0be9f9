from csema.ast_nodes import Identifier
from csema.compiler import Compiler
from csema.diagnostics import TypedefInExpressionContext, UndeclaredVar
from csema.ir import IdExpr, LiteralExpr, LiteralKind
from csema.scope import Metadata, Scope, StorageClass
from csema.semantics import ExpressionAnalyzer
from csema.types import ArrayType, EnumType, CHAR, DOUBLE, INT, LONG, ULONG


def _analyze(expr: str, *decls: str):
    comp = Compiler()
    for d in decls:
        comp.declare(d)
    return comp.analyze_code(expr)


def test_variable_is_lvalue():
    res = _analyze("x", "int x")
    assert res.success
    assert isinstance(res.expr.expr, IdExpr)
    assert res.expr.ctype == INT
    assert res.expr.lval


def test_undeclared_identifier():
    res = _analyze("x")
    assert not res.success
    assert [d.kind for d in res.diagnostics] == [UndeclaredVar("x")]
    # analysis continues with an int zero
    assert isinstance(res.expr.expr, LiteralExpr)
    assert res.expr.expr.literal.value == 0
    assert res.expr.ctype == INT
    assert not res.expr.lval


def test_undeclared_reported_once_in_larger_expression():
    res = _analyze("x + 1")
    assert [type(d.kind) for d in res.diagnostics] == [UndeclaredVar]
    assert res.expr.ctype == LONG


def test_every_undeclared_identifier_is_reported():
    res = _analyze("a * b")
    assert [d.kind for d in res.diagnostics] == [UndeclaredVar("a"), UndeclaredVar("b")]


def test_diagnostic_location():
    res = _analyze("1 +\n   nope")
    d = res.diagnostics[0]
    assert (d.location.line, d.location.column) == (2, 4)
    assert str(d) == "2:4: use of undeclared identifier 'nope'"


def test_typedef_name_in_expression():
    res = _analyze("T + 1", "typedef int T")
    assert [type(d.kind) for d in res.diagnostics] == [TypedefInExpressionContext]
    assert isinstance(res.expr.expr.left.expr.inner.expr, LiteralExpr)


def test_enumerator_is_constant():
    res = _analyze("BLUE", "enum color { RED, GREEN = 5, BLUE }")
    assert res.success
    lit = res.expr.expr
    assert isinstance(lit, LiteralExpr)
    assert lit.literal.kind == LiteralKind.INT
    assert lit.literal.value == 6
    assert isinstance(res.expr.ctype, EnumType)
    assert not res.expr.lval


def test_enumerator_in_arithmetic():
    res = _analyze("RED + 1", "enum color { RED, GREEN }")
    assert res.success
    assert res.expr.ctype == LONG


def test_enum_typed_variable_is_lvalue():
    comp = Compiler()
    comp.declare("enum color { RED, GREEN } c")
    res = comp.analyze_code("c")
    assert isinstance(res.expr.expr, IdExpr)
    assert res.expr.lval
    assert comp.analyze_code("GREEN").expr.expr.literal.value == 1


def test_inner_scope_shadows_outer():
    scope = Scope()
    scope.declare("x", Metadata("x", INT))
    scope.enter()
    scope.declare("x", Metadata("x", DOUBLE))
    analyzer = ExpressionAnalyzer(scope)
    assert analyzer.lower(Identifier(line=1, column=1, name="x")).ctype == DOUBLE
    scope.exit()
    assert analyzer.lower(Identifier(line=1, column=1, name="x")).ctype == INT


def test_literal_types():
    assert _analyze("'a'").expr.ctype == CHAR
    assert _analyze("'a'").expr.expr.literal.value == ord("a")
    assert _analyze("42").expr.ctype == LONG
    assert _analyze("42u").expr.ctype == ULONG
    assert _analyze("4.2").expr.ctype == DOUBLE
    s = _analyze('"abc"').expr
    assert s.ctype == ArrayType(CHAR, 3)
    assert s.expr.literal.kind == LiteralKind.STR


def test_register_and_static_declarations():
    comp = Compiler()
    ref = comp.declare("register long r")
    assert comp.scope.get(ref).storage_class == StorageClass.REGISTER
    ref = comp.declare("static int s;")
    assert comp.scope.get(ref).storage_class == StorageClass.STATIC
    assert comp.analyze_code("r + s").success
