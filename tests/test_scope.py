import pytest

from csema.compiler import Compiler
from csema.ir import dump, walk
from csema.scope import Metadata, Scope, StorageClass
from csema.types import EnumType, StructType, DOUBLE, INT


def test_lookup_walks_outward():
    scope = Scope()
    outer = scope.declare("x", Metadata("x", INT))
    scope.enter()
    assert scope.lookup("x") == outer
    inner = scope.declare("x", Metadata("x", DOUBLE))
    assert scope.lookup("x") == inner
    scope.exit()
    assert scope.lookup("x") == outer
    assert scope.lookup("y") is None


def test_refs_survive_their_frame():
    scope = Scope()
    with scope.scoped():
        ref = scope.declare("tmp", Metadata("tmp", INT, storage_class=StorageClass.REGISTER))
    assert scope.lookup("tmp") is None
    assert scope.get(ref).ctype == INT
    assert scope.get(ref).storage_class == StorageClass.REGISTER


def test_scoped_exits_on_exception():
    scope = Scope()
    with pytest.raises(KeyError):
        with scope.scoped():
            raise KeyError("boom")
    assert scope.depth == 1


def test_cannot_exit_file_scope():
    with pytest.raises(RuntimeError):
        Scope().exit()


def test_tags_are_scoped():
    scope = Scope()
    s = StructType("S", ())
    with scope.scoped():
        scope.declare_tag("S", s)
        assert scope.lookup_tag("S") == s
    assert scope.lookup_tag("S") is None


def test_declare_enum_binds_enumerators():
    scope = Scope()
    e = EnumType("E", (("A", 0), ("B", 1)))
    refs = scope.declare_enum(e)
    assert [r.name for r in refs] == ["A", "B"]
    assert scope.get(scope.lookup("B")).ctype == e
    assert scope.lookup_tag("E") == e


def test_dump_of_compound_assignment():
    comp = Compiler()
    comp.declare("int i")
    res = comp.analyze_code("i += 1")
    assert dump(res.expr, comp.scope).splitlines() == [
        "Binary = : int",
        "  Binary = : int lval",
        "    Id <tmp> : int lval",
        "    Id i : int lval",
        "  Cast : int",
        "    Binary + : long",
        "      Cast : long",
        "        Deref : int",
        "          Id <tmp> : int lval",
        "      Literal 1 : long",
    ]


def test_walk_is_preorder():
    comp = Compiler()
    comp.declare("long a")
    res = comp.analyze_code("a * 2u")
    kinds = [type(n.expr).__name__ for n in walk(res.expr)]
    # long and unsigned long meet at unsigned long; only the left side converts
    assert kinds == ["BinaryExpr", "CastExpr", "DerefExpr", "IdExpr", "LiteralExpr"]
