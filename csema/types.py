"""csema.types

C type model used by the expression analyzer.

Types are immutable values: two `IntegerType("int", True)` instances are the
same type. Derived types (pointers, arrays, functions) own their nested
types. The target is LP64 (x86-64 System V).

The `ErrorType` sentinel marks an expression whose type could not be
determined because an error was already reported for it. It compares unequal
to every type, itself included.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import sys
from typing import Optional, Tuple


class IncompleteTypeError(ValueError):
    """Raised when the size of an incomplete type is requested."""

    def __init__(self, ctype: "CType"):
        self.ctype = ctype
        super().__init__(f"cannot take the size of incomplete type '{ctype}'")


# rank of integral types, see C11 6.3.1.1
_RANKS = {"char": 1, "short": 2, "int": 3, "long": 4}
_SIZES = {"char": 1, "short": 2, "int": 4, "long": 8}

POINTER_SIZE = 8
ENUM_SIZE = 4


@dataclass(frozen=True)
class Qualifiers:
    is_const: bool = False
    is_volatile: bool = False

    def __str__(self) -> str:
        parts = []
        if self.is_const:
            parts.append("const")
        if self.is_volatile:
            parts.append("volatile")
        return " ".join(parts)


NO_QUALIFIERS = Qualifiers()
CONST = Qualifiers(is_const=True)


class CType:
    """Base class for every C type."""

    # ---- predicates ----

    def is_void(self) -> bool:
        return isinstance(self, VoidType)

    def is_bool(self) -> bool:
        return isinstance(self, BoolType)

    def is_error(self) -> bool:
        return isinstance(self, ErrorType)

    def is_integral(self) -> bool:
        return isinstance(self, (BoolType, IntegerType, EnumType))

    def is_floating(self) -> bool:
        return isinstance(self, FloatingType)

    def is_arithmetic(self) -> bool:
        return self.is_integral() or self.is_floating()

    def is_pointer(self) -> bool:
        return isinstance(self, PointerType)

    def is_array(self) -> bool:
        return isinstance(self, ArrayType)

    def is_function(self) -> bool:
        return isinstance(self, FunctionType)

    def is_struct(self) -> bool:
        """True for both struct and union types."""
        return isinstance(self, (StructType, UnionType))

    def is_scalar(self) -> bool:
        # enums are integral, so they are covered by is_arithmetic
        return self.is_arithmetic() or self.is_pointer()

    def is_void_pointer(self) -> bool:
        return isinstance(self, PointerType) and self.pointee.is_void()

    def is_char_pointer(self) -> bool:
        return (
            isinstance(self, PointerType)
            and isinstance(self.pointee, IntegerType)
            and self.pointee.kind == "char"
        )

    def is_complete(self) -> bool:
        # struct and union tags count as complete here; their size is checked
        # separately by sizeof()
        if isinstance(self, (VoidType, FunctionType)):
            return False
        if isinstance(self, ArrayType) and self.size is None:
            return False
        return True

    def is_pointer_to_complete_object(self) -> bool:
        """Used for pointer subtraction, see C11 6.5.6."""
        if isinstance(self, PointerType):
            return self.pointee.is_complete() and not self.pointee.is_function()
        return isinstance(self, ArrayType)

    # ---- integer properties ----

    def sign(self) -> bool:
        """Return whether this is a signed type.

        Only integral types have a sign; calling this on any other type is a
        bug in the caller.
        """
        if isinstance(self, IntegerType):
            return self.signed
        if isinstance(self, BoolType):
            return False
        if isinstance(self, EnumType):
            return True
        raise TypeError(f"sign() is only defined for integral types (got {self})")

    def rank(self) -> int:
        """Integer conversion rank. Non-integral types must not be compared."""
        if isinstance(self, BoolType):
            return 0
        if isinstance(self, IntegerType):
            return _RANKS[self.kind]
        if isinstance(self, EnumType):
            return _RANKS["int"]
        return sys.maxsize

    def value_range(self) -> Tuple[int, int]:
        if isinstance(self, BoolType):
            return 0, 1
        if self.is_integral():
            bits = self.sizeof() * 8
            if self.sign():
                return -(1 << (bits - 1)), (1 << (bits - 1)) - 1
            return 0, (1 << bits) - 1
        raise TypeError(f"value_range() is only defined for integral types (got {self})")

    def can_represent(self, other: "CType") -> bool:
        """Whether every value of `other` is a value of this type."""
        if self == other:
            return True
        if self == DOUBLE and other == FLOAT:
            return True
        if self.is_integral() and other.is_integral():
            lo, hi = self.value_range()
            other_lo, other_hi = other.value_range()
            return lo <= other_lo and other_hi <= hi
        return False

    # ---- layout ----

    def sizeof(self) -> int:
        raise IncompleteTypeError(self)

    def alignof(self) -> int:
        return self.sizeof()


@dataclass(frozen=True)
class VoidType(CType):
    def __str__(self) -> str:
        return "void"


@dataclass(frozen=True)
class BoolType(CType):
    def sizeof(self) -> int:
        return 1

    def __str__(self) -> str:
        return "_Bool"


@dataclass(frozen=True)
class IntegerType(CType):
    kind: str  # 'char' | 'short' | 'int' | 'long'
    signed: bool = True

    def sizeof(self) -> int:
        return _SIZES[self.kind]

    def __str__(self) -> str:
        if self.signed:
            return self.kind
        return f"unsigned {self.kind}"


@dataclass(frozen=True)
class FloatingType(CType):
    name: str  # 'float' | 'double'

    def sizeof(self) -> int:
        return 4 if self.name == "float" else 8

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class PointerType(CType):
    pointee: CType
    qualifiers: Qualifiers = NO_QUALIFIERS

    def sizeof(self) -> int:
        return POINTER_SIZE

    def __str__(self) -> str:
        quals = f" {self.qualifiers}" if str(self.qualifiers) else ""
        if isinstance(self.pointee, FunctionType):
            fn = self.pointee
            return f"{fn.return_type} (*{quals.strip()})({fn.params_str()})"
        return f"{self.pointee} *{quals.strip()}".rstrip()


@dataclass(frozen=True)
class ArrayType(CType):
    element: CType
    size: Optional[int] = None  # None: unbounded, e.g. `int a[]`

    def sizeof(self) -> int:
        if self.size is None:
            raise IncompleteTypeError(self)
        return self.element.sizeof() * self.size

    def alignof(self) -> int:
        return self.element.alignof()

    def __str__(self) -> str:
        return f"{self.element} [{'' if self.size is None else self.size}]"


@dataclass(frozen=True)
class FunctionType(CType):
    return_type: CType
    params: Tuple[CType, ...] = ()
    varargs: bool = False

    def params_str(self) -> str:
        parts = [str(p) for p in self.params]
        if self.varargs:
            parts.append("...")
        return ", ".join(parts) if parts else "void"

    def __str__(self) -> str:
        return f"{self.return_type} ({self.params_str()})"


@dataclass(frozen=True)
class Member:
    name: str
    ctype: CType
    qualifiers: Qualifiers = NO_QUALIFIERS


def _round_up(value: int, align: int) -> int:
    if value % align:
        value += align - value % align
    return value


@dataclass(frozen=True)
class StructType(CType):
    tag: str
    # None for a tag that has been declared but not defined (`struct s;`)
    members: Optional[Tuple[Member, ...]] = None

    keyword = "struct"

    def sizeof(self) -> int:
        if self.members is None:
            raise IncompleteTypeError(self)
        offset = 0
        for m in self.members:
            offset = _round_up(offset, m.ctype.alignof()) + m.ctype.sizeof()
        return _round_up(offset, self.alignof())

    def alignof(self) -> int:
        if self.members is None:
            raise IncompleteTypeError(self)
        return max((m.ctype.alignof() for m in self.members), default=1)

    def has_const_member(self) -> bool:
        return any(m.qualifiers.is_const for m in self.members or ())

    def __str__(self) -> str:
        return f"{self.keyword} {self.tag}"


@dataclass(frozen=True)
class UnionType(StructType):
    keyword = "union"

    def sizeof(self) -> int:
        if self.members is None:
            raise IncompleteTypeError(self)
        size = max((m.ctype.sizeof() for m in self.members), default=0)
        return _round_up(size, self.alignof())


@dataclass(frozen=True)
class EnumType(CType):
    tag: str
    # (name, value) pairs in declaration order
    enumerators: Tuple[Tuple[str, int], ...] = field(default=())

    def value_of(self, name: str) -> Optional[int]:
        for member, value in self.enumerators:
            if member == name:
                return value
        return None

    def sizeof(self) -> int:
        return ENUM_SIZE

    def __str__(self) -> str:
        return f"enum {self.tag}"


@dataclass(frozen=True, eq=False)
class ErrorType(CType):
    def __eq__(self, other: object) -> bool:
        return False

    def __hash__(self) -> int:
        return id(self)

    def __str__(self) -> str:
        return "<type error>"


VOID = VoidType()
BOOL = BoolType()
CHAR = IntegerType("char", True)
UCHAR = IntegerType("char", False)
SHORT = IntegerType("short", True)
USHORT = IntegerType("short", False)
INT = IntegerType("int", True)
UINT = IntegerType("int", False)
LONG = IntegerType("long", True)
ULONG = IntegerType("long", False)
FLOAT = FloatingType("float")
DOUBLE = FloatingType("double")
ERROR = ErrorType()


def integer_promote(ctype: CType) -> CType:
    """Integer promotions, C11 6.3.1.1p2."""
    if ctype.rank() <= INT.rank():
        return INT if INT.can_represent(ctype) else UINT
    return ctype


def promote_types(left: CType, right: CType) -> CType:
    """Usual arithmetic conversions, C11 6.3.1.8.

    Returns ERROR when either side is not arithmetic; the caller has already
    reported that.
    """
    if not (left.is_arithmetic() and right.is_arithmetic()):
        return ERROR
    if left == DOUBLE or right == DOUBLE:
        return DOUBLE
    if left == FLOAT or right == FLOAT:
        return FLOAT
    left = integer_promote(left)
    right = integer_promote(right)
    if left.sign() == right.sign():
        return left if left.rank() >= right.rank() else right
    if left.sign():
        signed, unsigned = left, right
    else:
        signed, unsigned = right, left
    return signed if signed.can_represent(unsigned) else unsigned
