"""Discovery and hex dumps of the allocations a body refers to."""

from __future__ import annotations

import io
import logging
from typing import Dict, Iterable, List, Set, TextIO

from .errors import ConstEvalError, MirDumpBug
from .interpret import (
    AllocId,
    Allocation,
    AllocationDirectory,
    ByRef,
    DataLayout,
    FunctionAlloc,
    MemoryAlloc,
    StaticAlloc,
)
from .ir.model import Body, Const, walk
from .items import ItemTable

logger = logging.getLogger(__name__)

# Number of bytes printed per hex dump line.
BYTES_PER_LINE = 16

_PREFIX = "    "
_RELOC_START = "╾"
_RELOC_END = "╼"
_RELOC_FILL = "─"
_UNDEFINED = "░"
_COLUMN = "│"


def alloc_ids_in_body(body: Body) -> List[AllocId]:
    """Allocation ids referenced directly by constants anywhere in ``body``."""

    found: Dict[AllocId, None] = {}
    for node in walk(body):
        if isinstance(node, Const):
            for alloc_id in node.val.alloc_ids():
                found.setdefault(alloc_id, None)
    return list(found)


def collect_alloc_ids(body: Body, directory: AllocationDirectory) -> List[AllocId]:
    """Return the transitive closure of allocation ids reachable from ``body``.

    Ids are added to ``seen`` before they are scheduled, and only ids seen for
    the first time are scheduled, so cyclic relocation graphs terminate.
    """

    seen: Set[AllocId] = set()
    todo: List[AllocId] = []
    for alloc_id in alloc_ids_in_body(body):
        if alloc_id not in seen:
            seen.add(alloc_id)
            todo.append(alloc_id)
    while todo:
        alloc = directory.get(todo.pop())
        if not isinstance(alloc, MemoryAlloc):
            continue
        for target in alloc.allocation.relocation_ids():
            if target not in seen:
                seen.add(target)
                todo.append(target)
    return sorted(seen)


class AllocationPrinter:
    """Write the allocation appendix that follows a rendered body."""

    def __init__(
        self,
        directory: AllocationDirectory,
        items: ItemTable,
        layout: DataLayout,
    ) -> None:
        self.directory = directory
        self.items = items
        self.layout = layout

    def write_allocations(self, body: Body, out: TextIO) -> None:
        seen: Set[AllocId] = set(collect_alloc_ids(body, self.directory))
        # Popped from the back, so keep the smallest id last.
        todo: List[AllocId] = sorted(seen, reverse=True)

        def write_tracking_relocations(alloc: Allocation) -> None:
            # Reversed so that the first relocation is printed next.
            for target in reversed(alloc.relocation_ids()):
                if target not in seen:
                    seen.add(target)
                    todo.append(target)
            write_allocation(alloc, out, self.layout)

        while todo:
            alloc_id = todo.pop()
            out.write(f"\n{alloc_id}")
            entry = self.directory.get(alloc_id)
            if entry is None:
                out.write(" (deallocated)")
            elif isinstance(entry, FunctionAlloc):
                out.write(f" (fn: {entry.instance})")
            elif isinstance(entry, StaticAlloc) and not self.items.is_foreign_item(entry.def_id):
                path = entry.def_id.path_str()
                try:
                    value = self.items.const_eval_static(entry.def_id)
                except ConstEvalError as exc:
                    logger.debug("evaluating static %s failed: %s", path, exc)
                    out.write(f" (static: {path}, error during initializer evaluation)")
                else:
                    if not isinstance(value, ByRef):
                        raise MirDumpBug(f"static item {path} without `ByRef` initializer")
                    out.write(f" (static: {path}, ")
                    write_tracking_relocations(value.alloc)
            elif isinstance(entry, StaticAlloc):
                out.write(f" (extern static: {entry.def_id.path_str()})")
            elif isinstance(entry, MemoryAlloc):
                out.write(" (")
                write_tracking_relocations(entry.allocation)
            else:
                raise MirDumpBug(f"unknown allocation kind for {alloc_id}: {entry!r}")
            out.write("\n")


def write_allocation(alloc: Allocation, out: TextIO, layout: DataLayout) -> None:
    """Write size, alignment and contents of ``alloc``.

    The caller prints whatever precedes it, so the output looks like this,
    without a leading or trailing newline::

        size: S, align: A) {
            <bytes>
        }

    Bytes are printed the way hex editors do: an address column (only when
    the allocation needs more than one line), sixteen space separated hex
    cells and an ASCII column where control characters and bytes above 0x7f
    become ``.``.  Pointers are shown as ``╾allocN+off╼`` spanning their bytes.
    """

    out.write(f"size: {alloc.size}, align: {alloc.align})")
    if alloc.size == 0:
        out.write(" {}")
        return
    out.write(" {\n")
    write_allocation_bytes(alloc, out, layout, _PREFIX)
    out.write("}")


def render_allocation(alloc: Allocation, layout: DataLayout = DataLayout()) -> str:
    buffer = io.StringIO()
    write_allocation(alloc, buffer, layout)
    return buffer.getvalue()


def _center(text: str, width: int) -> str:
    padding = max(0, width - len(text))
    left = padding // 2
    return _RELOC_FILL * left + text + _RELOC_FILL * (padding - left)


def _relocation_width(num_bytes: int) -> int:
    return num_bytes * 3


def _fit_target(target: str, width: int, pointer_size: int) -> str:
    # Labels that do not fit are replaced, not followed, by the byte count.
    if len(target) <= width:
        return target
    abbreviated = f"({pointer_size} ptr bytes)"
    if len(abbreviated) <= width:
        return abbreviated
    return ""


def _write_endline(out: TextIO, ascii_column: Iterable[str]) -> None:
    text = "".join(ascii_column)
    out.write("   " * (BYTES_PER_LINE - len(text)))
    out.write(f" {_COLUMN} {text}\n")


def _write_newline(
    out: TextIO, line_start: int, ascii_column: Iterable[str], pos_width: int, prefix: str
) -> int:
    """End the current line, print the next line's address and return its start."""

    _write_endline(out, ascii_column)
    line_start += BYTES_PER_LINE
    out.write(f"{prefix}0x{line_start:0{pos_width}x} {_COLUMN} ")
    return line_start


def write_allocation_bytes(
    alloc: Allocation, out: TextIO, layout: DataLayout, prefix: str = _PREFIX
) -> None:
    """Write the hex/ASCII block of ``alloc``, every line starting with ``prefix``."""

    size = alloc.size
    pos_width = len(f"{size:x}")
    ptr_size = layout.pointer_size

    if size > BYTES_PER_LINE:
        out.write(f"{prefix}0x{0:0{pos_width}x} {_COLUMN} ")
    else:
        out.write(prefix)

    i = 0
    line_start = 0
    ascii_column: List[str] = []

    while i < size:
        # The address header already ends in a space.
        if i != line_start:
            out.write(" ")
        target_id = alloc.relocations.get(i)
        if target_id is not None:
            if i + ptr_size > size:
                raise MirDumpBug(
                    f"pointer at offset {i} runs past the end of a {size} byte allocation"
                )
            offset = layout.read_target_uint(alloc.data[i : i + ptr_size])
            target = f"{target_id}+{offset}"
            if (i - line_start) + ptr_size > BYTES_PER_LINE:
                # The pointer starts on this line and ends on the next one.
                remainder = BYTES_PER_LINE - (i - line_start)
                overflow = ptr_size - remainder
                remainder_width = _relocation_width(remainder) - 2
                overflow_width = _relocation_width(overflow - 1) + 1
                ascii_column.append(_RELOC_START)
                ascii_column.extend(_RELOC_FILL * (remainder - 1))
                if overflow_width > remainder_width and overflow_width >= len(target):
                    out.write(_RELOC_START + _center("", remainder_width))
                    line_start = _write_newline(out, line_start, ascii_column, pos_width, prefix)
                    ascii_column = []
                    out.write(_center(target, overflow_width) + _RELOC_END)
                else:
                    target = _fit_target(target, remainder_width, ptr_size)
                    out.write(_RELOC_START + _center(target, remainder_width))
                    line_start = _write_newline(out, line_start, ascii_column, pos_width, prefix)
                    ascii_column = []
                    out.write(_center("", overflow_width) + _RELOC_END)
                ascii_column.extend(_RELOC_FILL * (overflow - 1))
                ascii_column.append(_RELOC_END)
                i += ptr_size
                continue
            width = _relocation_width(ptr_size - 1)
            target = _fit_target(target, width, ptr_size)
            out.write(_RELOC_START + _center(target, width) + _RELOC_END)
            ascii_column.append(_RELOC_START)
            ascii_column.extend(_RELOC_FILL * (ptr_size - 2))
            ascii_column.append(_RELOC_END)
            i += ptr_size
        elif alloc.is_defined(i):
            byte = alloc.data[i]
            out.write(f"{byte:02x}")
            if byte < 0x20 or byte >= 0x7F:
                ascii_column.append(".")
            else:
                ascii_column.append(chr(byte))
            i += 1
        else:
            out.write("__")
            ascii_column.append(_UNDEFINED)
            i += 1
        # Start a new line if there are still bytes left for it.
        if i == line_start + BYTES_PER_LINE and i != size:
            line_start = _write_newline(out, line_start, ascii_column, pos_width, prefix)
            ascii_column = []
    _write_endline(out, ascii_column)


__all__ = [
    "BYTES_PER_LINE",
    "alloc_ids_in_body",
    "collect_alloc_ids",
    "AllocationPrinter",
    "write_allocation",
    "write_allocation_bytes",
    "render_allocation",
]
