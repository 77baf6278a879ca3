"""Dump configuration and the session state shared by every dump."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .interpret import AllocationDirectory, DataLayout
from .items import ItemTable
from .source_map import SourceMap


@dataclass(frozen=True)
class DumpOptions:
    """Settings fixed once at startup.

    ``filter`` uses the ``group ('|' group)*`` / ``term ('&' term)*`` syntax
    understood by :func:`mirdump.filters.dump_enabled`; ``None`` disables
    dumping entirely.
    """

    filter: Optional[str] = None
    dump_dir: Path = Path("mir_dump")
    exclude_pass_number: bool = False


@dataclass
class DumpContext:
    """Everything a dump needs besides the body itself."""

    options: DumpOptions = field(default_factory=DumpOptions)
    items: ItemTable = field(default_factory=ItemTable)
    allocations: AllocationDirectory = field(default_factory=AllocationDirectory)
    source_map: SourceMap = field(default_factory=SourceMap)
    data_layout: DataLayout = field(default_factory=DataLayout)


__all__ = ["DumpOptions", "DumpContext"]
