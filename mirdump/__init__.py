"""Public package exports for the MIR dump writer."""

from .allocations import AllocationPrinter, collect_alloc_ids, render_allocation
from .context import DumpContext, DumpOptions
from .dump import dump_mir
from .errors import ConstEvalError, MirDumpBug
from .filters import dump_enabled
from .interpret import AllocationDirectory, AllocId, Allocation, DataLayout, Endian
from .ir import Program, load_program, program_from_json
from .items import DefId, ItemInfo, ItemKind, ItemTable, MirSource
from .paths import build_dump_path, dump_path
from .printer import CallbackHook, DumpHook, MirWriter, render_mir, write_mir_pretty
from .source_map import SourceMap, Span

__all__ = [
    "AllocationPrinter",
    "collect_alloc_ids",
    "render_allocation",
    "DumpContext",
    "DumpOptions",
    "dump_mir",
    "ConstEvalError",
    "MirDumpBug",
    "dump_enabled",
    "AllocationDirectory",
    "AllocId",
    "Allocation",
    "DataLayout",
    "Endian",
    "Program",
    "load_program",
    "program_from_json",
    "DefId",
    "ItemInfo",
    "ItemKind",
    "ItemTable",
    "MirSource",
    "build_dump_path",
    "dump_path",
    "CallbackHook",
    "DumpHook",
    "MirWriter",
    "render_mir",
    "write_mir_pretty",
    "SourceMap",
    "Span",
]
