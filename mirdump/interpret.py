"""Compile-time allocations, constant values and the allocation directory."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from .items import DefId


@dataclass(frozen=True, order=True)
class AllocId:
    """Opaque handle resolved through :class:`AllocationDirectory`."""

    index: int

    def __str__(self) -> str:
        return f"alloc{self.index}"


class Endian(Enum):
    LITTLE = "little"
    BIG = "big"


@dataclass(frozen=True)
class DataLayout:
    """Target properties needed to decode pointers stored in allocations."""

    pointer_size: int = 8
    endian: Endian = Endian.LITTLE

    def __post_init__(self) -> None:
        if self.pointer_size not in (2, 4, 8):
            raise ValueError(f"unsupported pointer size: {self.pointer_size}")

    def read_target_uint(self, data: bytes) -> int:
        return int.from_bytes(data, self.endian.value)


@dataclass(frozen=True)
class Allocation:
    """Raw bytes of a compile-time value.

    ``init_mask`` holds one flag per byte; ``None`` means every byte is
    defined.  ``relocations`` maps the offset of a stored pointer to the
    allocation it points into; the offset inside the target is stored in the
    pointer bytes themselves.
    """

    data: bytes
    align: int = 1
    relocations: Mapping[int, AllocId] = field(default_factory=dict, hash=False)
    init_mask: Optional[Tuple[bool, ...]] = None

    def __post_init__(self) -> None:
        if self.init_mask is not None and len(self.init_mask) != len(self.data):
            raise ValueError("init mask length must match the allocation size")
        for offset in self.relocations:
            if not 0 <= offset < len(self.data):
                raise ValueError(f"relocation at {offset} lies outside the allocation")

    @classmethod
    def from_bytes(
        cls,
        data: bytes,
        *,
        align: int = 1,
        relocations: Optional[Mapping[int, AllocId]] = None,
        undefined: Sequence[int] = (),
    ) -> "Allocation":
        mask: Optional[Tuple[bool, ...]] = None
        if undefined:
            holes = set(undefined)
            mask = tuple(offset not in holes for offset in range(len(data)))
        return cls(bytes(data), align, dict(relocations or {}), mask)

    @property
    def size(self) -> int:
        return len(self.data)

    def is_defined(self, offset: int) -> bool:
        if self.init_mask is None:
            return True
        return self.init_mask[offset]

    def relocation_ids(self) -> List[AllocId]:
        """Targets of all stored pointers, in offset order."""

        return [self.relocations[offset] for offset in sorted(self.relocations)]


class ConstValue:
    """Base class for evaluated constant values."""

    def alloc_ids(self) -> Iterator[AllocId]:
        return iter(())

    def describe(self) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class ScalarInt(ConstValue):
    bits: int
    size: int

    def describe(self) -> str:
        if self.size == 0:
            return "Scalar(<ZST>)"
        return f"Scalar(0x{self.bits:0{self.size * 2}x})"


@dataclass(frozen=True)
class ScalarPtr(ConstValue):
    alloc_id: AllocId
    offset: int = 0

    def alloc_ids(self) -> Iterator[AllocId]:
        yield self.alloc_id

    def describe(self) -> str:
        return f"Scalar({self.alloc_id}+{self.offset:#x})"


@dataclass(frozen=True)
class ByRef(ConstValue):
    alloc: Allocation
    offset: int = 0

    def alloc_ids(self) -> Iterator[AllocId]:
        return iter(self.alloc.relocation_ids())

    def describe(self) -> str:
        return f"ByRef {{ alloc: {self.alloc.size} bytes, offset: {self.offset} }}"


@dataclass(frozen=True)
class Slice(ConstValue):
    data: Allocation
    start: int
    end: int

    def alloc_ids(self) -> Iterator[AllocId]:
        return iter(self.data.relocation_ids())

    def describe(self) -> str:
        return f"Slice {{ data: {self.data.size} bytes, start: {self.start}, end: {self.end} }}"


@dataclass(frozen=True)
class FunctionAlloc:
    instance: str


@dataclass(frozen=True)
class StaticAlloc:
    def_id: DefId


@dataclass(frozen=True)
class MemoryAlloc:
    allocation: Allocation


GlobalAlloc = Union[FunctionAlloc, StaticAlloc, MemoryAlloc]


class AllocationDirectory:
    """Session-wide map from :class:`AllocId` to what it refers to.

    Each lookup holds the lock only for the lookup itself; callers must not
    expect it to be held while they render what they found.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: Dict[AllocId, GlobalAlloc] = {}
        self._next_index = 0

    def reserve(self) -> AllocId:
        with self._lock:
            alloc_id = AllocId(self._next_index)
            self._next_index += 1
        return alloc_id

    def set(self, alloc_id: AllocId, alloc: GlobalAlloc) -> None:
        with self._lock:
            self._entries[alloc_id] = alloc
            self._next_index = max(self._next_index, alloc_id.index + 1)

    def create_memory(self, allocation: Allocation) -> AllocId:
        alloc_id = self.reserve()
        self.set(alloc_id, MemoryAlloc(allocation))
        return alloc_id

    def create_fn(self, instance: str) -> AllocId:
        alloc_id = self.reserve()
        self.set(alloc_id, FunctionAlloc(instance))
        return alloc_id

    def create_static(self, def_id: DefId) -> AllocId:
        alloc_id = self.reserve()
        self.set(alloc_id, StaticAlloc(def_id))
        return alloc_id

    def deallocate(self, alloc_id: AllocId) -> None:
        with self._lock:
            self._entries.pop(alloc_id, None)

    def get(self, alloc_id: AllocId) -> Optional[GlobalAlloc]:
        with self._lock:
            return self._entries.get(alloc_id)

    def __contains__(self, alloc_id: object) -> bool:
        with self._lock:
            return alloc_id in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


__all__ = [
    "AllocId",
    "Endian",
    "DataLayout",
    "Allocation",
    "ConstValue",
    "ScalarInt",
    "ScalarPtr",
    "ByRef",
    "Slice",
    "FunctionAlloc",
    "StaticAlloc",
    "MemoryAlloc",
    "GlobalAlloc",
    "AllocationDirectory",
]
