"""Source locations and their human readable form."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Mapping, Optional


@dataclass(frozen=True)
class Span:
    """Region of a source file, lines and columns are 1-based."""

    file: str
    lo_line: int
    lo_col: int
    hi_line: int
    hi_col: int

    def is_dummy(self) -> bool:
        return self.lo_line == 0 and self.hi_line == 0


DUMMY_SPAN = Span("no-location", 0, 0, 0, 0)


class SourceMap:
    """Resolve spans to the ``file:line:col: line:col`` form used in dumps."""

    def __init__(self, remap: Optional[Mapping[str, str]] = None) -> None:
        self._remap: Dict[str, str] = dict(remap or {})

    def add_remap(self, prefix: str, replacement: str) -> None:
        self._remap[prefix] = replacement

    def filename(self, span: Span) -> str:
        # longest prefix wins
        for prefix in sorted(self._remap, key=len, reverse=True):
            if span.file.startswith(prefix):
                return self._remap[prefix] + span.file[len(prefix):]
        return span.file

    def span_to_string(self, span: Span) -> str:
        if span.is_dummy():
            return "no-location"
        return (
            f"{self.filename(span)}:{span.lo_line}:{span.lo_col}: "
            f"{span.hi_line}:{span.hi_col}"
        )


__all__ = ["Span", "DUMMY_SPAN", "SourceMap"]
