"""Load IR bodies, items and allocations from JSON documents.

Every IR node is a mapping with a ``kind`` tag.  Places may be written as
``"_3"`` when they have no projection, types as plain strings when they
embed no constants and spans as ``[file, lo_line, lo_col, hi_line, hi_col]``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from ..context import DumpContext, DumpOptions
from ..interpret import (
    AllocId,
    Allocation,
    AllocationDirectory,
    ByRef,
    DataLayout,
    Endian,
    FunctionAlloc,
    MemoryAlloc,
    ScalarInt,
    ScalarPtr,
    Slice,
    StaticAlloc,
)
from ..items import DefId, ItemInfo, ItemKind, ItemTable
from ..source_map import DUMMY_SPAN, SourceMap, Span
from . import model

logger = logging.getLogger(__name__)

_BORROW_KINDS = {
    "shared": model.BorrowKind.SHARED,
    "shallow": model.BorrowKind.SHALLOW,
    "unique": model.BorrowKind.UNIQUE,
    "mut": model.BorrowKind.MUT,
}


@dataclass
class Program:
    """A loaded document: the session it populated and its items in order."""

    context: DumpContext
    items: List[ItemInfo] = field(default_factory=list)


def load_program(
    path: Path,
    options: Optional[DumpOptions] = None,
    source_map: Optional[SourceMap] = None,
) -> Program:
    """Read ``path`` and build a :class:`Program` from its contents."""

    payload = json.loads(Path(path).read_text("utf-8"))
    return program_from_json(payload, options=options, source_map=source_map)


def program_from_json(
    payload: Any,
    options: Optional[DumpOptions] = None,
    source_map: Optional[SourceMap] = None,
) -> Program:
    if not isinstance(payload, Mapping):
        raise ValueError("program document must be a JSON object")
    return _ProgramDecoder(options or DumpOptions(), source_map or SourceMap()).decode(payload)


def _require(payload: Mapping[str, Any], key: str, what: str) -> Any:
    if key not in payload:
        raise ValueError(f"{what} is missing required field '{key}'")
    return payload[key]


def _kind(payload: Any, what: str) -> str:
    if not isinstance(payload, Mapping):
        raise ValueError(f"{what} must be a JSON object")
    kind = payload.get("kind")
    if not isinstance(kind, str):
        raise ValueError(f"{what} must carry a string 'kind' tag")
    return kind


def _enum(enum_type: Any, value: Any, what: str) -> Any:
    try:
        return enum_type(value)
    except ValueError:
        raise ValueError(f"unknown {what}: {value!r}") from None


class _ProgramDecoder:
    def __init__(self, options: DumpOptions, source_map: SourceMap) -> None:
        self.options = options
        self.source_map = source_map
        self.def_ids: Dict[str, DefId] = {}

    def decode(self, payload: Mapping[str, Any]) -> Program:
        layout = self.data_layout(payload.get("data_layout") or {})
        items = ItemTable()
        directory = AllocationDirectory()
        ctx = DumpContext(
            options=self.options,
            items=items,
            allocations=directory,
            source_map=self.source_map,
            data_layout=layout,
        )

        raw_items = payload.get("items") or []
        # Register every path first so later references resolve to the same DefId.
        for entry in raw_items:
            self.def_id(_require(entry, "path", "item"), entry.get("crate"), entry.get("local", True))

        for entry in payload.get("allocations") or []:
            self.global_alloc(entry, directory)

        program = Program(ctx)
        for entry in raw_items:
            program.items.append(items.register(self.item(entry)))
        logger.debug(
            "loaded %d items and %d allocations", len(program.items), len(directory)
        )
        return program

    # ------------------------------------------------------------------
    # session level
    # ------------------------------------------------------------------
    def data_layout(self, payload: Mapping[str, Any]) -> DataLayout:
        endian = _enum(Endian, payload.get("endian", "little"), "endianness")
        return DataLayout(pointer_size=int(payload.get("pointer_size", 8)), endian=endian)

    def def_id(
        self, path: str, krate: Optional[str] = None, local: bool = True
    ) -> DefId:
        known = self.def_ids.get(path)
        if known is not None:
            return known
        def_id = DefId.parse(path, krate=krate or "crate", local=local)
        self.def_ids[path] = def_id
        return def_id

    def global_alloc(self, payload: Mapping[str, Any], directory: AllocationDirectory) -> None:
        alloc_id = AllocId(int(_require(payload, "id", "allocation")))
        kind = _kind(payload, "allocation")
        if kind == "memory":
            directory.set(alloc_id, MemoryAlloc(self.allocation(payload)))
        elif kind == "fn":
            directory.set(alloc_id, FunctionAlloc(_require(payload, "instance", "fn allocation")))
        elif kind == "static":
            directory.set(alloc_id, StaticAlloc(self.def_id(_require(payload, "path", "static allocation"))))
        elif kind == "deallocated":
            # Reserve the id so fresh allocations never reuse it.
            directory.set(alloc_id, FunctionAlloc(""))
            directory.deallocate(alloc_id)
        else:
            raise ValueError(f"unknown allocation kind: {kind!r}")

    def allocation(self, payload: Mapping[str, Any]) -> Allocation:
        data = bytes.fromhex(payload.get("bytes", ""))
        relocations = {
            int(offset): AllocId(int(target))
            for offset, target in (payload.get("relocations") or {}).items()
        }
        return Allocation.from_bytes(
            data,
            align=int(payload.get("align", 1)),
            relocations=relocations,
            undefined=[int(offset) for offset in payload.get("undefined") or ()],
        )

    def item(self, payload: Mapping[str, Any]) -> ItemInfo:
        def_id = self.def_id(payload["path"])
        raw_kind = payload.get("kind")
        kind = _enum(ItemKind, raw_kind, "item kind") if raw_kind is not None else None
        initializer = payload.get("initializer")
        body = payload.get("body")
        return ItemInfo(
            def_id=def_id,
            kind=kind,
            mutable=bool(payload.get("mutable", False)),
            foreign=bool(payload.get("foreign", False)),
            initializer=self.const_value(initializer) if initializer is not None else None,
            initializer_error=payload.get("initializer_error"),
            body=self.body(body) if body is not None else None,
            promoted=[self.body(entry) for entry in payload.get("promoted") or ()],
        )

    # ------------------------------------------------------------------
    # leaves
    # ------------------------------------------------------------------
    def span(self, payload: Optional[Sequence[Any]]) -> Span:
        if payload is None:
            return DUMMY_SPAN
        if len(payload) != 5:
            raise ValueError("span must be [file, lo_line, lo_col, hi_line, hi_col]")
        file, lo_line, lo_col, hi_line, hi_col = payload
        return Span(str(file), int(lo_line), int(lo_col), int(hi_line), int(hi_col))

    def source_info(self, payload: Optional[Mapping[str, Any]]) -> model.SourceInfo:
        if payload is None:
            return model.SourceInfo()
        return model.SourceInfo(self.span(payload.get("span")), int(payload.get("scope", 0)))

    def ty(self, payload: Any) -> model.Ty:
        if isinstance(payload, str):
            return model.Ty(payload)
        name = _require(payload, "name", "type")
        return model.Ty(name, tuple(self.const(entry) for entry in payload.get("consts") or ()))

    def const_value(self, payload: Any) -> Any:
        kind = _kind(payload, "constant value")
        if kind == "scalar":
            return ScalarInt(int(payload["bits"]), int(payload.get("size", 0)))
        if kind == "ptr":
            return ScalarPtr(AllocId(int(payload["alloc"])), int(payload.get("offset", 0)))
        if kind == "by_ref":
            return ByRef(self.allocation(_require(payload, "alloc", "by_ref value")), int(payload.get("offset", 0)))
        if kind == "slice":
            return Slice(
                self.allocation(_require(payload, "data", "slice value")),
                int(payload.get("start", 0)),
                int(payload.get("end", 0)),
            )
        if kind == "unevaluated":
            promoted = payload.get("promoted")
            return model.Unevaluated(
                self.def_id(payload["path"]), int(promoted) if promoted is not None else None
            )
        raise ValueError(f"unknown constant value kind: {kind!r}")

    def const(self, payload: Mapping[str, Any]) -> model.Const:
        return model.Const(
            self.ty(_require(payload, "ty", "constant")),
            self.const_value(_require(payload, "val", "constant")),
        )

    def place(self, payload: Any) -> model.Place:
        if isinstance(payload, str):
            if not payload.startswith("_") or not payload[1:].isdigit():
                raise ValueError(f"invalid place shorthand: {payload!r}")
            return model.Place(int(payload[1:]))
        projection = tuple(self.projection_elem(elem) for elem in payload.get("projection") or ())
        return model.Place(int(_require(payload, "local", "place")), projection)

    def projection_elem(self, payload: Mapping[str, Any]) -> model.ProjectionElem:
        kind = _kind(payload, "projection element")
        if kind == "deref":
            return model.Deref()
        if kind == "field":
            return model.Field(int(payload["index"]), self.ty(payload["ty"]))
        if kind == "index":
            return model.Index(int(payload["local"]))
        if kind == "constant_index":
            return model.ConstantIndex(
                int(payload["offset"]), int(payload["min_length"]), bool(payload.get("from_end", False))
            )
        if kind == "subslice":
            return model.Subslice(
                int(payload["from"]), int(payload["to"]), bool(payload.get("from_end", True))
            )
        if kind == "downcast":
            return model.Downcast(int(payload["variant"]), payload.get("name"))
        raise ValueError(f"unknown projection element kind: {kind!r}")

    def operand(self, payload: Mapping[str, Any]) -> model.Operand:
        kind = _kind(payload, "operand")
        if kind == "copy":
            return model.Copy(self.place(payload["place"]))
        if kind == "move":
            return model.Move(self.place(payload["place"]))
        if kind == "const":
            user_ty = payload.get("user_ty")
            return model.Constant(
                self.span(payload.get("span")),
                self.const(_require(payload, "literal", "constant operand")),
                int(user_ty) if user_ty is not None else None,
            )
        raise ValueError(f"unknown operand kind: {kind!r}")

    def operands(self, payload: Optional[Sequence[Any]]) -> tuple:
        return tuple(self.operand(entry) for entry in payload or ())

    def user_type_projection(self, payload: Mapping[str, Any]) -> model.UserTypeProjection:
        return model.UserTypeProjection(
            int(_require(payload, "base", "user type projection")),
            tuple(str(proj) for proj in payload.get("projs") or ()),
        )

    # ------------------------------------------------------------------
    # rvalues
    # ------------------------------------------------------------------
    def rvalue(self, payload: Mapping[str, Any]) -> model.Rvalue:
        kind = _kind(payload, "rvalue")
        decoder = self._rvalue_decoders().get(kind)
        if decoder is None:
            raise ValueError(f"unknown rvalue kind: {kind!r}")
        return decoder(payload)

    def _rvalue_decoders(self) -> Dict[str, Callable[[Mapping[str, Any]], model.Rvalue]]:
        return {
            "use": lambda p: model.Use(self.operand(p["operand"])),
            "repeat": lambda p: model.Repeat(self.operand(p["operand"]), int(p["count"])),
            "ref": lambda p: model.Ref(
                self.place(p["place"]),
                _BORROW_KINDS[p.get("borrow", "shared")],
                p.get("region", ""),
            ),
            "address_of": lambda p: model.AddressOf(
                self.place(p["place"]),
                _enum(model.Mutability, p.get("mutability", "not"), "mutability"),
            ),
            "len": lambda p: model.Len(self.place(p["place"])),
            "cast": lambda p: model.Cast(
                self.operand(p["operand"]), self.ty(p["ty"]), p.get("cast_kind", "Misc")
            ),
            "binary_op": lambda p: model.BinaryOp(
                _enum(model.BinOp, p["op"], "binary operator"),
                self.operand(p["lhs"]),
                self.operand(p["rhs"]),
            ),
            "checked_binary_op": lambda p: model.CheckedBinaryOp(
                _enum(model.BinOp, p["op"], "binary operator"),
                self.operand(p["lhs"]),
                self.operand(p["rhs"]),
            ),
            "unary_op": lambda p: model.UnaryOp(
                _enum(model.UnOp, p["op"], "unary operator"), self.operand(p["operand"])
            ),
            "discriminant": lambda p: model.Discriminant(self.place(p["place"])),
            "nullary_op": lambda p: model.NullaryOp(
                _enum(model.NullOp, p["op"], "nullary operator"), self.ty(p["ty"])
            ),
            "aggregate": lambda p: model.Aggregate(
                self.aggregate_kind(p["aggregate"]), self.operands(p.get("operands"))
            ),
        }

    def aggregate_kind(self, payload: Mapping[str, Any]) -> model.AggregateKind:
        kind = _kind(payload, "aggregate")
        if kind == "array":
            return model.ArrayAggregate(self.ty(payload["ty"]))
        if kind == "tuple":
            return model.TupleAggregate()
        if kind == "adt":
            fields_ = payload.get("fields")
            user_ty = payload.get("user_ty")
            return model.AdtAggregate(
                payload["path"],
                payload.get("variant"),
                tuple(fields_) if fields_ is not None else None,
                int(user_ty) if user_ty is not None else None,
            )
        substs = tuple(self.ty(entry) for entry in payload.get("substs") or ())
        if kind == "closure":
            return model.ClosureAggregate(self.def_id(payload["path"]), substs)
        if kind == "generator":
            movability = _enum(model.Movability, payload.get("movability", "Movable"), "movability")
            return model.GeneratorAggregate(self.def_id(payload["path"]), substs, movability)
        raise ValueError(f"unknown aggregate kind: {kind!r}")

    # ------------------------------------------------------------------
    # statements and terminators
    # ------------------------------------------------------------------
    def statement(self, payload: Mapping[str, Any]) -> model.Statement:
        kind = _kind(payload, "statement")
        source_info = self.source_info(payload.get("source_info"))
        if kind == "assign":
            node: model.StatementKind = model.Assign(
                self.place(payload["place"]), self.rvalue(payload["rvalue"])
            )
        elif kind == "fake_read":
            node = model.FakeRead(payload.get("cause", "ForLet"), self.place(payload["place"]))
        elif kind == "set_discriminant":
            node = model.SetDiscriminant(self.place(payload["place"]), int(payload["variant"]))
        elif kind == "storage_live":
            node = model.StorageLive(int(payload["local"]))
        elif kind == "storage_dead":
            node = model.StorageDead(int(payload["local"]))
        elif kind == "retag":
            node = model.Retag(self.place(payload["place"]), payload.get("retag_kind", ""))
        elif kind == "ascribe_user_type":
            node = model.AscribeUserType(
                self.place(payload["place"]),
                payload.get("variance", "Invariant"),
                self.user_type_projection(payload["projection"]),
            )
        elif kind == "nop":
            node = model.Nop()
        else:
            raise ValueError(f"unknown statement kind: {kind!r}")
        return model.Statement(source_info, node)

    def terminator(self, payload: Mapping[str, Any]) -> model.Terminator:
        kind = _kind(payload, "terminator")
        source_info = self.source_info(payload.get("source_info"))
        simple = {
            "resume": model.Resume,
            "abort": model.Abort,
            "return": model.Return,
            "unreachable": model.Unreachable,
            "generator_drop": model.GeneratorDrop,
        }
        if kind in simple:
            return model.Terminator(source_info, simple[kind]())

        def optional_block(key: str) -> Optional[int]:
            value = payload.get(key)
            return int(value) if value is not None else None

        if kind == "goto":
            node: model.TerminatorKind = model.Goto(int(payload["target"]))
        elif kind == "switch_int":
            node = model.SwitchInt(
                self.operand(payload["discr"]),
                self.ty(payload.get("switch_ty", "usize")),
                tuple(int(value) for value in payload["values"]),
                tuple(int(target) for target in payload["targets"]),
            )
        elif kind == "drop":
            node = model.Drop(
                self.place(payload["place"]), int(payload["target"]), optional_block("unwind")
            )
        elif kind == "drop_and_replace":
            node = model.DropAndReplace(
                self.place(payload["place"]),
                self.operand(payload["value"]),
                int(payload["target"]),
                optional_block("unwind"),
            )
        elif kind == "call":
            destination = payload.get("destination")
            node = model.Call(
                self.operand(payload["func"]),
                self.operands(payload.get("args")),
                self.place(destination) if destination is not None else None,
                optional_block("target"),
                optional_block("cleanup"),
            )
        elif kind == "assert":
            node = model.Assert(
                self.operand(payload["cond"]),
                bool(payload.get("expected", True)),
                payload.get("msg", ""),
                int(payload["target"]),
                optional_block("cleanup"),
            )
        elif kind == "yield":
            node = model.Yield(
                self.operand(payload["value"]),
                int(payload["resume"]),
                self.place(payload["resume_arg"]),
                optional_block("drop"),
            )
        elif kind == "false_edges":
            node = model.FalseEdges(int(payload["real_target"]), int(payload["imaginary_target"]))
        elif kind == "false_unwind":
            node = model.FalseUnwind(int(payload["real_target"]), optional_block("unwind"))
        else:
            raise ValueError(f"unknown terminator kind: {kind!r}")
        return model.Terminator(source_info, node)

    # ------------------------------------------------------------------
    # bodies
    # ------------------------------------------------------------------
    def body(self, payload: Mapping[str, Any]) -> model.Body:
        blocks = tuple(
            model.BasicBlockData(
                tuple(self.statement(entry) for entry in block.get("statements") or ()),
                self.terminator(_require(block, "terminator", "basic block")),
                bool(block.get("cleanup", False)),
            )
            for block in _require(payload, "blocks", "body")
        )
        locals_ = tuple(
            model.LocalDecl(
                self.ty(_require(entry, "ty", "local")),
                self.source_info(entry.get("source_info")),
                model.Mutability.MUT if entry.get("mutable", True) else model.Mutability.NOT,
                tuple(self.user_type_projection(proj) for proj in entry.get("user_ty") or ()),
            )
            for entry in _require(payload, "locals", "body")
        )
        scopes = tuple(
            model.SourceScopeData(
                self.span(entry.get("span")),
                int(entry["parent"]) if entry.get("parent") is not None else None,
            )
            for entry in payload.get("scopes") or [{}]
        )
        debug_info = tuple(
            model.VarDebugInfo(
                entry["name"], self.source_info(entry.get("source_info")), self.place(entry["place"])
            )
            for entry in payload.get("var_debug_info") or ()
        )
        annotations = tuple(
            model.CanonicalUserTypeAnnotation(
                entry["user_ty"], self.span(entry.get("span")), self.ty(entry["inferred_ty"])
            )
            for entry in payload.get("user_type_annotations") or ()
        )
        yield_ty = payload.get("yield_ty")
        return model.Body(
            basic_blocks=blocks,
            local_decls=locals_,
            source_scopes=scopes,
            arg_count=int(payload.get("arg_count", 0)),
            var_debug_info=debug_info,
            user_type_annotations=annotations,
            yield_ty=self.ty(yield_ty) if yield_ty is not None else None,
            generator_layout=payload.get("generator_layout"),
            span=self.span(payload.get("span")),
        )


__all__ = ["Program", "load_program", "program_from_json"]
