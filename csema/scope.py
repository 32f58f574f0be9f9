"""csema.scope

Scope stack consulted by the expression analyzer.

Symbols live in a table owned by the `Scope`; frames map names to
`SymbolRef` handles into that table. A handle stays valid after its frame is
popped, so typed trees can keep referring to a temporary declared in a
scope that no longer exists.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, List, Optional

from csema.types import CType, EnumType, NO_QUALIFIERS, Qualifiers


class StorageClass(Enum):
    AUTO = "auto"
    REGISTER = "register"
    STATIC = "static"
    EXTERN = "extern"
    TYPEDEF = "typedef"


@dataclass(frozen=True)
class Metadata:
    id: str
    ctype: CType
    qualifiers: Qualifiers = NO_QUALIFIERS
    storage_class: StorageClass = StorageClass.AUTO


@dataclass(frozen=True)
class SymbolRef:
    """Opaque handle to a declared symbol. `name` is kept for display only."""

    index: int
    name: str


class Scope:
    """A stack of lexical frames. The outermost frame is file scope."""

    def __init__(self):
        self._symbols: List[Metadata] = []
        self._frames: List[Dict[str, SymbolRef]] = [{}]
        self._tags: List[Dict[str, CType]] = [{}]

    @property
    def depth(self) -> int:
        return len(self._frames)

    def enter(self) -> None:
        self._frames.append({})
        self._tags.append({})

    def exit(self) -> None:
        if len(self._frames) == 1:
            raise RuntimeError("cannot exit file scope")
        self._frames.pop()
        self._tags.pop()

    @contextmanager
    def scoped(self) -> Iterator["Scope"]:
        self.enter()
        try:
            yield self
        finally:
            self.exit()

    def declare(self, name: str, meta: Metadata) -> SymbolRef:
        ref = SymbolRef(len(self._symbols), name)
        self._symbols.append(meta)
        self._frames[-1][name] = ref
        return ref

    def declare_enum(self, ctype: EnumType) -> List[SymbolRef]:
        """Bind the tag and every enumerator of `ctype` in the current frame."""
        self.declare_tag(ctype.tag, ctype)
        return [self.declare(name, Metadata(name, ctype)) for name, _ in ctype.enumerators]

    def lookup(self, name: str) -> Optional[SymbolRef]:
        for frame in reversed(self._frames):
            if name in frame:
                return frame[name]
        return None

    def get(self, ref: SymbolRef) -> Metadata:
        return self._symbols[ref.index]

    def declare_tag(self, tag: str, ctype: CType) -> None:
        self._tags[-1][tag] = ctype

    def lookup_tag(self, tag: str) -> Optional[CType]:
        for frame in reversed(self._tags):
            if tag in frame:
                return frame[tag]
        return None
