"""Item identity and the item table consulted while dumping."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Dict, Iterator, List, Optional, Tuple

from .errors import ConstEvalError

if TYPE_CHECKING:  # pragma: no cover - imported for type checking only
    from .interpret import ConstValue
    from .ir.model import Body


@dataclass(frozen=True, order=True)
class PathComponent:
    """One segment of an item path, e.g. ``{{closure}}`` with disambiguator 1."""

    name: str
    disambiguator: int = 0

    def describe(self) -> str:
        if self.disambiguator:
            return f"{self.name}#{self.disambiguator}"
        return self.name

    def filename_part(self) -> str:
        if self.disambiguator:
            return f"{self.name}[{self.disambiguator}]"
        return self.name

    @classmethod
    def parse(cls, text: str) -> "PathComponent":
        name, sep, suffix = text.rpartition("#")
        if sep and name and suffix.isdigit():
            return cls(name, int(suffix))
        return cls(text)


@dataclass(frozen=True, order=True)
class DefId:
    """Stable path-like identity of a function, constant or static."""

    krate: str
    path: Tuple[PathComponent, ...]
    local: bool = True

    @classmethod
    def parse(cls, text: str, krate: str = "crate", local: bool = True) -> "DefId":
        """Build a :class:`DefId` from ``a::b#1::c`` style text."""

        parts = [part for part in text.split("::") if part]
        if not parts:
            raise ValueError("item path must contain at least one component")
        return cls(krate, tuple(PathComponent.parse(part) for part in parts), local)

    def path_str(self) -> str:
        rendered = "::".join(component.describe() for component in self.path)
        if self.local:
            return rendered
        return f"{self.krate}::{rendered}"

    def filename_friendly(self) -> str:
        return "-".join(component.filename_part() for component in self.path)

    def describe(self) -> str:
        rendered = "::".join(component.describe() for component in self.path)
        return f"DefId({self.krate}::{rendered})"

    def __str__(self) -> str:
        return self.path_str()


class ItemKind(Enum):
    """Definition kinds the signature writer distinguishes."""

    FN = "fn"
    ASSOC_FN = "assoc_fn"
    CTOR = "ctor"
    CLOSURE = "closure"
    CONST = "const"
    ASSOC_CONST = "assoc_const"
    STATIC = "static"
    STRUCT = "struct"
    ENUM = "enum"
    TRAIT = "trait"
    MOD = "mod"

    @property
    def is_function_like(self) -> bool:
        return self in {ItemKind.FN, ItemKind.ASSOC_FN, ItemKind.CTOR, ItemKind.CLOSURE}


@dataclass(frozen=True)
class MirSource:
    """Identity of the body being dumped.

    ``promoted`` selects one of the anonymous constants extracted from the
    item.  ``shim_ty`` carries the display form of the type a drop-glue shim
    was instantiated for; all such shims share the same ``def_id``.
    """

    def_id: DefId
    promoted: Optional[int] = None
    shim_ty: Optional[str] = None

    @classmethod
    def item(cls, def_id: DefId) -> "MirSource":
        return cls(def_id)

    def describe_promoted(self) -> Optional[str]:
        if self.promoted is None:
            return None
        return f"promoted[{self.promoted}]"


@dataclass
class ItemInfo:
    """Everything the dump engine needs to know about one item."""

    def_id: DefId
    kind: Optional[ItemKind]
    mutable: bool = False
    foreign: bool = False
    initializer: Optional[ConstValue] = None
    initializer_error: Optional[str] = None
    body: Optional[Body] = None
    promoted: List[Body] = field(default_factory=list)


class ItemTable:
    """Read-only view of the items known to the session."""

    def __init__(self) -> None:
        self._items: Dict[DefId, ItemInfo] = {}

    def register(self, info: ItemInfo) -> ItemInfo:
        self._items[info.def_id] = info
        return info

    def get(self, def_id: DefId) -> Optional[ItemInfo]:
        return self._items.get(def_id)

    def __iter__(self) -> Iterator[ItemInfo]:
        return iter(self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def def_kind(self, def_id: DefId) -> Optional[ItemKind]:
        info = self._items.get(def_id)
        return info.kind if info is not None else None

    def is_foreign_item(self, def_id: DefId) -> bool:
        info = self._items.get(def_id)
        return bool(info and info.foreign)

    def is_mutable_static(self, def_id: DefId) -> bool:
        info = self._items.get(def_id)
        return bool(info and info.kind is ItemKind.STATIC and info.mutable)

    def const_eval_static(self, def_id: DefId) -> ConstValue:
        """Return the evaluated initializer of a static item."""

        info = self._items.get(def_id)
        if info is None:
            raise ConstEvalError(f"unknown static {def_id}")
        if info.initializer_error is not None:
            raise ConstEvalError(info.initializer_error)
        if info.initializer is None:
            raise ConstEvalError(f"static {def_id} has no initializer")
        return info.initializer

    def optimized_mir(self, def_id: DefId) -> Body:
        info = self._items.get(def_id)
        if info is None or info.body is None:
            raise KeyError(f"no body recorded for {def_id}")
        return info.body

    def promoted_mir(self, def_id: DefId) -> Tuple[Body, ...]:
        info = self._items.get(def_id)
        if info is None:
            return ()
        return tuple(info.promoted)

    def mir_keys(self) -> List[DefId]:
        """Items that carry a body, in registration order."""

        return [info.def_id for info in self._items.values() if info.body is not None]


__all__ = [
    "PathComponent",
    "DefId",
    "ItemKind",
    "MirSource",
    "ItemInfo",
    "ItemTable",
]
