"""csema.diagnostics

Source spans, semantic error kinds and the error handler the analyzer reports
into.

Semantic errors never abort analysis. A rule that finds a problem reports it
to the `ErrorHandler` and carries on with a placeholder, so a single
expression can produce several diagnostics. Helpers that need to signal a
failure to their caller raise `SemanticError`; the rule that called them
turns it into a report.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Iterator, List, Type

from csema.types import CType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourceSpan:
    line: int
    column: int
    end_line: int
    end_column: int

    @classmethod
    def point(cls, line: int, column: int) -> "SourceSpan":
        return cls(line, column, line, column)

    def merge(self, other: "SourceSpan") -> "SourceSpan":
        start = min((self.line, self.column), (other.line, other.column))
        end = max((self.end_line, self.end_column), (other.end_line, other.end_column))
        return SourceSpan(start[0], start[1], end[0], end[1])

    def __str__(self) -> str:
        return f"{self.line}:{self.column}"


# ============== Error kinds ==============


class SemanticErrorKind:
    """Base class for semantic error kinds."""

    def message(self) -> str:
        raise NotImplementedError

    def __str__(self) -> str:
        return self.message()


@dataclass(frozen=True)
class UndeclaredVar(SemanticErrorKind):
    name: str

    def message(self) -> str:
        return f"use of undeclared identifier '{self.name}'"


@dataclass(frozen=True)
class TypedefInExpressionContext(SemanticErrorKind):
    def message(self) -> str:
        return "type names are not allowed in an expression context"


@dataclass(frozen=True)
class NonIntegralExpr(SemanticErrorKind):
    ctype: CType

    def message(self) -> str:
        return f"expected an integer type, got '{self.ctype}'"


@dataclass(frozen=True)
class InvalidRelationalType(SemanticErrorKind):
    operator: str
    left: CType
    right: CType

    def message(self) -> str:
        return f"invalid types for '{self.operator}': '{self.left}' and '{self.right}'"


@dataclass(frozen=True)
class InvalidAdd(SemanticErrorKind):
    operator: str
    left: CType
    right: CType

    def message(self) -> str:
        return f"cannot apply '{self.operator}' to '{self.left}' and '{self.right}'"


@dataclass(frozen=True)
class InvalidCast(SemanticErrorKind):
    source: CType
    target: CType

    def message(self) -> str:
        return f"cannot implicitly convert '{self.source}' to '{self.target}'"


@dataclass(frozen=True)
class NonScalarCast(SemanticErrorKind):
    target: CType

    def message(self) -> str:
        return f"cannot cast to non-scalar type '{self.target}'"


@dataclass(frozen=True)
class FloatPointerCast(SemanticErrorKind):
    target: CType

    def message(self) -> str:
        return f"cannot cast between pointer and floating type ('{self.target}')"


@dataclass(frozen=True)
class StructCast(SemanticErrorKind):
    def message(self) -> str:
        return "casting a struct or union is not supported"


@dataclass(frozen=True)
class VoidCast(SemanticErrorKind):
    def message(self) -> str:
        return "cannot cast a void expression to a value"


@dataclass(frozen=True)
class PointerAddUnknownSize(SemanticErrorKind):
    ctype: CType

    def message(self) -> str:
        return f"cannot do pointer arithmetic on '{self.ctype}': pointee has unknown size"


@dataclass(frozen=True)
class NotAssignable(SemanticErrorKind):
    reason: str

    def message(self) -> str:
        return f"expression is not assignable: {self.reason}"


@dataclass(frozen=True)
class NotAPointer(SemanticErrorKind):
    ctype: CType

    def message(self) -> str:
        return f"cannot dereference non-pointer type '{self.ctype}'"


@dataclass(frozen=True)
class ExpressionTooDeep(SemanticErrorKind):
    limit: int

    def message(self) -> str:
        return f"expression nesting exceeds the limit of {self.limit}"


@dataclass(frozen=True)
class TypeMismatch(SemanticErrorKind):
    """Free-form type error with a descriptive message."""

    text: str

    def message(self) -> str:
        return self.text


# ============== Reporting ==============


@dataclass(frozen=True)
class Diagnostic:
    kind: SemanticErrorKind
    location: SourceSpan

    def __str__(self) -> str:
        return f"{self.location}: {self.kind}"


class SemanticError(Exception):
    """Raised by helpers that cannot complete; carries the error kind."""

    def __init__(self, kind: SemanticErrorKind):
        self.kind = kind
        super().__init__(str(kind))


class ErrorHandler:
    """Append-only sink for semantic diagnostics."""

    def __init__(self):
        self.errors: List[Diagnostic] = []

    def report(self, kind: SemanticErrorKind, location: SourceSpan) -> None:
        logger.debug("%s: %s", location, kind)
        self.errors.append(Diagnostic(kind, location))

    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def kinds(self) -> List[SemanticErrorKind]:
        return [d.kind for d in self.errors]

    def count(self, kind_type: Type[SemanticErrorKind]) -> int:
        return sum(1 for d in self.errors if isinstance(d.kind, kind_type))

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self.errors)

    def __len__(self) -> int:
        return len(self.errors)
