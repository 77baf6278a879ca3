"""Error types raised by the dump engine."""

from __future__ import annotations


class MirDumpBug(RuntimeError):
    """Raised when the IR handed to the printer breaks one of its invariants.

    These are defects in whatever produced the body, not user errors, so the
    package never catches them.
    """


class ConstEvalError(Exception):
    """Evaluating the initializer of a static failed."""


__all__ = ["MirDumpBug", "ConstEvalError"]
