"""Decide whether a (pass, item) pair should be dumped.

A filter is a set of substrings combined with ``&`` and ``|``, ``&`` binding
tighter.  At least one ``|``-separated group must match, and a group matches
when every one of its ``&``-separated terms matches.  A term matches when it
is ``all`` or occurs in the pass name or in the item path:

- ``all`` dumps every pass of every item
- ``nll`` dumps when ``nll`` appears in either name
- ``foo&nll|typeck`` dumps when both ``foo`` and ``nll`` appear, or ``typeck`` does
"""

from __future__ import annotations

from typing import Optional, Tuple


def parse_filter(filters: str) -> Tuple[Tuple[str, ...], ...]:
    """Split ``filters`` into OR-groups of AND-terms."""

    return tuple(tuple(group.split("&")) for group in filters.split("|"))


def term_matches(term: str, pass_name: str, node_path: str) -> bool:
    return term == "all" or term in pass_name or term in node_path


def dump_enabled(filters: Optional[str], pass_name: str, node_path: str) -> bool:
    if filters is None:
        return False
    return any(
        all(term_matches(term, pass_name, node_path) for term in group)
        for group in parse_filter(filters)
    )


__all__ = ["parse_filter", "term_matches", "dump_enabled"]
