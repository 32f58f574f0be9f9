import itertools

import pytest

from csema.types import (
    ArrayType,
    EnumType,
    FunctionType,
    IncompleteTypeError,
    Member,
    PointerType,
    StructType,
    UnionType,
    integer_promote,
    promote_types,
    BOOL,
    CHAR,
    CONST,
    DOUBLE,
    ERROR,
    FLOAT,
    INT,
    LONG,
    SHORT,
    UCHAR,
    UINT,
    ULONG,
    USHORT,
    VOID,
)

COLOR = EnumType("color", (("RED", 0), ("GREEN", 1)))
ARITHMETIC = [BOOL, CHAR, UCHAR, SHORT, USHORT, INT, UINT, LONG, ULONG, FLOAT, DOUBLE, COLOR]


@pytest.mark.parametrize("left,right,expected", [
    (INT, UINT, UINT),
    (LONG, UINT, LONG),
    (ULONG, LONG, ULONG),
    (CHAR, CHAR, INT),
    (UCHAR, SHORT, INT),
    (BOOL, BOOL, INT),
    (COLOR, INT, INT),
    (FLOAT, LONG, FLOAT),
    (DOUBLE, FLOAT, DOUBLE),
    (INT, DOUBLE, DOUBLE),
])
def test_usual_arithmetic_conversions(left, right, expected):
    assert promote_types(left, right) == expected


@pytest.mark.parametrize("left,right", itertools.product(ARITHMETIC, repeat=2))
def test_promotion_is_commutative(left, right):
    assert promote_types(left, right) == promote_types(right, left)


@pytest.mark.parametrize("left,right", itertools.product(ARITHMETIC, repeat=2))
def test_promoted_integers_are_at_least_int(left, right):
    result = promote_types(left, right)
    if result.is_integral():
        assert result.rank() >= INT.rank()
    else:
        assert result in (FLOAT, DOUBLE)


@pytest.mark.parametrize("other", [PointerType(INT), VOID, StructType("S", ()), ArrayType(INT, 2)])
def test_promotion_with_non_arithmetic_is_error(other):
    assert promote_types(INT, other).is_error()
    assert promote_types(other, DOUBLE).is_error()


@pytest.mark.parametrize("ctype,expected", [
    (BOOL, INT),
    (CHAR, INT),
    (UCHAR, INT),
    (USHORT, INT),
    (COLOR, INT),
    (UINT, UINT),
    (LONG, LONG),
    (ULONG, ULONG),
])
def test_integer_promotions(ctype, expected):
    assert integer_promote(ctype) == expected


def test_ranks():
    assert BOOL.rank() < CHAR.rank() < SHORT.rank() < INT.rank() < LONG.rank()
    assert UINT.rank() == INT.rank()
    assert COLOR.rank() == INT.rank()


def test_sign():
    assert CHAR.sign()
    assert not UCHAR.sign()
    assert not BOOL.sign()
    assert COLOR.sign()
    with pytest.raises(TypeError):
        PointerType(INT).sign()
    with pytest.raises(TypeError):
        DOUBLE.sign()


def test_can_represent():
    assert INT.can_represent(SHORT)
    assert INT.can_represent(USHORT)
    assert not INT.can_represent(UINT)
    assert LONG.can_represent(UINT)
    assert not UINT.can_represent(CHAR)
    assert DOUBLE.can_represent(FLOAT)
    assert not FLOAT.can_represent(DOUBLE)


def test_sizes():
    assert [t.sizeof() for t in (BOOL, CHAR, SHORT, INT, LONG, FLOAT, DOUBLE)] == [1, 1, 2, 4, 8, 4, 8]
    assert PointerType(CHAR).sizeof() == 8
    assert ArrayType(INT, 5).sizeof() == 20
    assert COLOR.sizeof() == 4


def test_struct_layout():
    s = StructType("S", (Member("c", CHAR), Member("i", INT), Member("d", CHAR)))
    assert s.alignof() == 4
    assert s.sizeof() == 12
    u = UnionType("U", (Member("c", CHAR), Member("l", LONG)))
    assert u.sizeof() == 8


@pytest.mark.parametrize("ctype", [VOID, ArrayType(INT), StructType("fwd"), FunctionType(INT)])
def test_incomplete_sizeof_raises(ctype):
    with pytest.raises(IncompleteTypeError):
        ctype.sizeof()


def test_completeness():
    assert INT.is_complete()
    assert not VOID.is_complete()
    assert not ArrayType(INT).is_complete()
    assert ArrayType(INT, 1).is_complete()
    assert PointerType(INT).is_pointer_to_complete_object()
    assert not PointerType(VOID).is_pointer_to_complete_object()
    assert not PointerType(FunctionType(INT)).is_pointer_to_complete_object()


def test_predicates():
    assert COLOR.is_integral() and COLOR.is_scalar()
    assert PointerType(VOID).is_void_pointer()
    assert PointerType(UCHAR).is_char_pointer()
    assert not PointerType(INT).is_char_pointer()
    assert UnionType("U", ()).is_struct()
    assert not StructType("S", ()).is_scalar()


def test_const_member():
    assert StructType("S", (Member("x", INT, CONST),)).has_const_member()
    assert not StructType("S", (Member("x", INT),)).has_const_member()
    assert not StructType("S").has_const_member()


def test_error_type_is_never_equal():
    assert ERROR != ERROR
    assert ERROR.is_error()
    assert not INT.is_error()


@pytest.mark.parametrize("ctype,text", [
    (UINT, "unsigned int"),
    (PointerType(INT), "int *"),
    (PointerType(PointerType(CHAR)), "char * *"),
    (PointerType(INT, CONST), "int *const"),
    (ArrayType(CHAR, 5), "char [5]"),
    (ArrayType(INT), "int []"),
    (FunctionType(INT, (INT, DOUBLE)), "int (int, double)"),
    (PointerType(FunctionType(INT), CONST), "int (*const)(void)"),
    (StructType("S"), "struct S"),
    (UnionType("U"), "union U"),
    (COLOR, "enum color"),
    (BOOL, "_Bool"),
    (ERROR, "<type error>"),
])
def test_type_spelling(ctype, text):
    assert str(ctype) == text
