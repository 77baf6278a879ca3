"""Render IR bodies into the textual dump format."""

from __future__ import annotations

import io
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional, TextIO, Tuple, Union

from .allocations import AllocationPrinter
from .context import DumpContext
from .errors import MirDumpBug
from .ir.model import (
    AdtAggregate,
    Aggregate,
    Body,
    ClosureAggregate,
    Constant,
    GeneratorAggregate,
    Location,
    Mutability,
    SourceInfo,
    Statement,
    Terminator,
    Ty,
    walk,
)
from .items import DefId, ItemKind, MirSource

INDENT = "    "
# Column at which the comments after statements start.
ALIGN = 40
OUTERMOST_SOURCE_SCOPE = 0


class PassWhere:
    """Point in a dump at which a :class:`DumpHook` may add text."""


@dataclass(frozen=True)
class BeforeCFG(PassWhere):
    """Nothing of the body has been written yet."""


@dataclass(frozen=True)
class AfterCFG(PassWhere):
    """The body and its allocations are written; this is right before EOF."""


@dataclass(frozen=True)
class BeforeBlock(PassWhere):
    block: int


@dataclass(frozen=True)
class BeforeLocation(PassWhere):
    location: Location


@dataclass(frozen=True)
class AfterLocation(PassWhere):
    location: Location


@dataclass(frozen=True)
class AfterTerminator(PassWhere):
    """The terminator is written but the closing ``}`` of the block is not."""

    block: int


class DumpHook:
    """Lets a pass add its own annotations to a dump.

    :meth:`emit` is called synchronously at every :class:`PassWhere` point
    with the stream the dump is written to.  The base class writes nothing.
    """

    def emit(self, where: PassWhere, out: TextIO) -> None:
        return None


class CallbackHook(DumpHook):
    """Adapt a plain ``callback(where, out)`` function to :class:`DumpHook`."""

    def __init__(self, callback: Callable[[PassWhere, TextIO], None]) -> None:
        self._callback = callback

    def emit(self, where: PassWhere, out: TextIO) -> None:
        self._callback(where, out)


NO_HOOK = DumpHook()


def user_type_index(index: int) -> str:
    return f"UserType({index})"


def _pretty_list(types: Tuple[Ty, ...]) -> str:
    if not types:
        return "[]"
    lines = ["["]
    lines.extend(f"{INDENT}{ty}," for ty in types)
    lines.append("]")
    return "\n".join(lines)


def extra_comments(ctx: DumpContext, node: object) -> Iterator[str]:
    """Yield the auxiliary comment lines for a statement or terminator.

    The one-line form of a statement hides nested details such as the span of
    a constant or the item a closure was created from; these lines bring them
    back.  Nodes are visited children first.
    """

    for item in walk(node):
        if isinstance(item, Constant):
            literal = item.literal
            yield "ty::Const"
            yield f"+ ty: {literal.ty}"
            yield f"+ val: {literal.describe_val()}"
            yield "mir::Constant"
            yield f"+ span: {ctx.source_map.span_to_string(item.span)}"
            if item.user_ty is not None:
                yield f"+ user_ty: {user_type_index(item.user_ty)}"
            yield f"+ literal: {literal.describe()}"
        elif isinstance(item, Aggregate):
            kind = item.kind
            if isinstance(kind, ClosureAggregate):
                yield "closure"
                yield f"+ def_id: {kind.def_id.describe()}"
                yield from f"+ substs: {_pretty_list(kind.substs)}".split("\n")
            elif isinstance(kind, GeneratorAggregate):
                yield "generator"
                yield f"+ def_id: {kind.def_id.describe()}"
                yield from f"+ substs: {_pretty_list(kind.substs)}".split("\n")
                yield f"+ movability: {kind.movability.value}"
            elif isinstance(kind, AdtAggregate) and kind.user_ty is not None:
                yield "adt"
                yield f"+ user_ty: {user_type_index(kind.user_ty)}"


def build_scope_tree(body: Body) -> Dict[int, List[int]]:
    """Map every scope to its children, checking that scope 0 is the only root."""

    tree: Dict[int, List[int]] = {}
    for index, scope in enumerate(body.source_scopes):
        if scope.parent_scope is not None:
            if index == OUTERMOST_SOURCE_SCOPE:
                raise MirDumpBug("the outermost source scope must not have a parent")
            tree.setdefault(scope.parent_scope, []).append(index)
        elif index != OUTERMOST_SOURCE_SCOPE:
            raise MirDumpBug(f"scope {index} has no parent but is not the outermost scope")
    return tree


class MirWriter:
    """Write bodies to ``out``, calling ``hook`` at every extension point."""

    def __init__(
        self, ctx: DumpContext, out: TextIO, hook: Optional[DumpHook] = None
    ) -> None:
        self.ctx = ctx
        self.out = out
        self.hook = hook or NO_HOOK

    def comment(self, source_info: SourceInfo) -> str:
        span = self.ctx.source_map.span_to_string(source_info.span)
        return f"scope {source_info.scope} at {span}"

    # ------------------------------------------------------------------
    # whole bodies
    # ------------------------------------------------------------------
    def write_dump_body(self, source: MirSource, body: Body) -> None:
        self.hook.emit(BeforeCFG(), self.out)
        self.write_user_type_annotations(body)
        self.write_fn(source, body)
        self.hook.emit(AfterCFG(), self.out)

    def write_fn(self, source: MirSource, body: Body) -> None:
        self.write_intro(source, body)
        count = len(body.basic_blocks)
        for block in range(count):
            self.hook.emit(BeforeBlock(block), self.out)
            self.write_basic_block(block, body)
            if block + 1 != count:
                self.out.write("\n")
        self.out.write("}\n")

        printer = AllocationPrinter(self.ctx.allocations, self.ctx.items, self.ctx.data_layout)
        printer.write_allocations(body, self.out)

    def write_intro(self, source: MirSource, body: Body) -> None:
        """Write the signature and the locals, nested by scope."""

        self.write_sig(source, body)
        self.out.write("{\n")
        scope_tree = build_scope_tree(body)
        self.write_scope_tree(body, scope_tree, OUTERMOST_SOURCE_SCOPE, 1)
        # Empty line before the first block.
        self.out.write("\n")

    def write_sig(self, source: MirSource, body: Body) -> None:
        items = self.ctx.items
        def_id = source.def_id
        kind = items.def_kind(def_id)
        is_function = kind is not None and kind.is_function_like

        if source.promoted is not None:
            self.out.write(f"{source.describe_promoted()} in ")
        elif kind in (ItemKind.CONST, ItemKind.ASSOC_CONST):
            self.out.write("const ")
        elif kind is ItemKind.STATIC:
            self.out.write("static mut " if items.is_mutable_static(def_id) else "static ")
        elif is_function:
            self.out.write("fn ")
        elif kind is not None:
            # Anonymous constants have no kind; anything else is a bug upstream.
            raise MirDumpBug(f"unexpected item kind {kind.value} for {def_id}")

        self.out.write(def_id.path_str())

        if source.promoted is None and is_function:
            args = ", ".join(
                f"_{arg}: {body.local_decls[arg].ty}" for arg in body.args_iter()
            )
            self.out.write(f"({args}) -> {body.return_ty}")
        else:
            if body.arg_count != 0:
                raise MirDumpBug(f"{def_id} is not a function but has {body.arg_count} arguments")
            self.out.write(f": {body.return_ty} =")

        if body.yield_ty is not None:
            self.out.write("\n")
            self.out.write(f"yields {body.yield_ty}\n")

        # The opening brace follows.
        self.out.write(" ")

    def write_user_type_annotations(self, body: Body) -> None:
        annotations = body.user_type_annotations
        if not annotations:
            return
        self.out.write("| User Type Annotations\n")
        for index, annotation in enumerate(annotations):
            span = self.ctx.source_map.span_to_string(annotation.span)
            self.out.write(f"| {index}: {annotation.user_ty} at {span}\n")
        self.out.write("|\n")

    # ------------------------------------------------------------------
    # scopes
    # ------------------------------------------------------------------
    def write_scope_tree(
        self,
        body: Body,
        scope_tree: Dict[int, List[int]],
        parent: int,
        depth: int,
    ) -> None:
        indent = " " * (depth * len(INDENT))

        for info in body.var_debug_info:
            if info.source_info.scope != parent:
                continue
            line = f"{indent}debug {info.name} => {info.place.describe()};"
            self.out.write(f"{line:<{ALIGN}} // in {self.comment(info.source_info)}\n")

        for local, decl in enumerate(body.local_decls):
            # Arguments are part of the signature.
            if body.is_arg(local) or decl.source_info.scope != parent:
                continue
            mutability = "mut " if decl.mutability is Mutability.MUT else ""
            line = f"{indent}let {mutability}_{local}: {decl.ty}"
            line += "".join(f" as {projection.describe()}" for projection in decl.user_ty)
            line += ";"
            name = " return place" if local == 0 else ""
            self.out.write(f"{line:<{ALIGN}} //{name} in {self.comment(decl.source_info)}\n")

        for child in scope_tree.get(parent, ()):
            if body.source_scopes[child].parent_scope != parent:
                raise MirDumpBug(f"scope {child} is listed under {parent} but has another parent")
            self.out.write(f"{indent}scope {child} {{\n")
            self.write_scope_tree(body, scope_tree, child, depth + 1)
            self.out.write(f"{indent}}}\n")

    # ------------------------------------------------------------------
    # blocks
    # ------------------------------------------------------------------
    def write_basic_block(self, block: int, body: Body) -> None:
        data = body.basic_blocks[block]
        cleanup = " (cleanup)" if data.is_cleanup else ""
        self.out.write(f"{INDENT}bb{block}{cleanup}: {{\n")

        location = Location(block, 0)
        for statement in data.statements:
            self._write_located(statement, location)
            location = Location(block, location.statement_index + 1)

        self._write_located(data.terminator, location)
        self.hook.emit(AfterTerminator(block), self.out)
        self.out.write(f"{INDENT}}}\n")

    def _write_located(self, node: Union[Statement, Terminator], location: Location) -> None:
        self.hook.emit(BeforeLocation(location), self.out)
        line = f"{INDENT}{INDENT}{node.describe()};"
        self.out.write(
            f"{line:<{ALIGN}} // {location.describe()}: {self.comment(node.source_info)}\n"
        )
        for extra in extra_comments(self.ctx, node):
            self.out.write(f"{'':<{ALIGN}} // {extra}\n")
        self.hook.emit(AfterLocation(location), self.out)


def render_mir(
    ctx: DumpContext,
    source: MirSource,
    body: Body,
    hook: Optional[DumpHook] = None,
) -> str:
    """Return the dump of ``body`` without the file header."""

    buffer = io.StringIO()
    MirWriter(ctx, buffer, hook).write_dump_body(source, body)
    return buffer.getvalue()


def dump_mir_def_ids(ctx: DumpContext, single: Optional[DefId] = None) -> List[DefId]:
    if single is not None:
        return [single]
    return ctx.items.mir_keys()


def write_mir_pretty(ctx: DumpContext, out: TextIO, single: Optional[DefId] = None) -> None:
    """Write every item that has a body, each followed by its promoted constants."""

    out.write("// WARNING: This output format is intended for human consumers only\n")
    out.write("// and is subject to change without notice. Knock yourself out.\n")

    writer = MirWriter(ctx, out)
    for position, def_id in enumerate(dump_mir_def_ids(ctx, single)):
        if position:
            out.write("\n")
        writer.write_fn(MirSource.item(def_id), ctx.items.optimized_mir(def_id))
        for index, promoted in enumerate(ctx.items.promoted_mir(def_id)):
            out.write("\n")
            writer.write_fn(MirSource(def_id, promoted=index), promoted)


__all__ = [
    "INDENT",
    "ALIGN",
    "PassWhere",
    "BeforeCFG",
    "AfterCFG",
    "BeforeBlock",
    "BeforeLocation",
    "AfterLocation",
    "AfterTerminator",
    "DumpHook",
    "CallbackHook",
    "NO_HOOK",
    "extra_comments",
    "build_scope_tree",
    "MirWriter",
    "render_mir",
    "dump_mir_def_ids",
    "write_mir_pretty",
]
