"""Public exports for the IR model and its JSON loader."""

from .model import (
    Aggregate,
    Assign,
    BasicBlockData,
    Body,
    Const,
    Constant,
    LocalDecl,
    Location,
    Place,
    SourceInfo,
    SourceScopeData,
    Statement,
    Terminator,
    Ty,
    VarDebugInfo,
)
from .serialize import Program, load_program, program_from_json

__all__ = [
    "Aggregate",
    "Assign",
    "BasicBlockData",
    "Body",
    "Const",
    "Constant",
    "LocalDecl",
    "Location",
    "Place",
    "SourceInfo",
    "SourceScopeData",
    "Statement",
    "Terminator",
    "Ty",
    "VarDebugInfo",
    "Program",
    "load_program",
    "program_from_json",
]
