"""Dataclasses describing the control-flow-graph IR consumed by the printer."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, is_dataclass
from enum import Enum
from typing import Iterator, List, Optional, Tuple, Union

from ..interpret import AllocId, Allocation, ConstValue, ScalarInt
from ..items import DefId
from ..source_map import DUMMY_SPAN, Span

_SIGNED_INTS = {"i8", "i16", "i32", "i64", "i128", "isize"}
_UNSIGNED_INTS = {"u8", "u16", "u32", "u64", "u128", "usize"}


class Mutability(Enum):
    NOT = "not"
    MUT = "mut"


class BorrowKind(Enum):
    SHARED = ""
    SHALLOW = "shallow "
    UNIQUE = "uniq "
    MUT = "mut "


class BinOp(Enum):
    ADD = "Add"
    SUB = "Sub"
    MUL = "Mul"
    DIV = "Div"
    REM = "Rem"
    BIT_XOR = "BitXor"
    BIT_AND = "BitAnd"
    BIT_OR = "BitOr"
    SHL = "Shl"
    SHR = "Shr"
    EQ = "Eq"
    LT = "Lt"
    LE = "Le"
    NE = "Ne"
    GE = "Ge"
    GT = "Gt"
    OFFSET = "Offset"


class UnOp(Enum):
    NOT = "Not"
    NEG = "Neg"


class NullOp(Enum):
    SIZE_OF = "SizeOf"
    BOX = "Box"


class Movability(Enum):
    STATIC = "Static"
    MOVABLE = "Movable"


@dataclass(frozen=True, order=True)
class Location:
    """Position of a statement; ``statement_index`` past the end is the terminator."""

    block: int
    statement_index: int

    def describe(self) -> str:
        return f"bb{self.block}[{self.statement_index}]"


@dataclass(frozen=True)
class SourceInfo:
    span: Span = DUMMY_SPAN
    scope: int = 0


# ----------------------------------------------------------------------
# types and constants
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class Ty:
    """A type, kept as its display text plus any constants it embeds."""

    name: str
    consts: Tuple["Const", ...] = ()

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Unevaluated:
    """Constant that still names the item (or promoted) it comes from."""

    def_id: DefId
    promoted: Optional[int] = None

    def alloc_ids(self) -> Iterator[AllocId]:
        return iter(())

    def describe(self) -> str:
        promoted = f"Some(promoted[{self.promoted}])" if self.promoted is not None else "None"
        return f"Unevaluated({self.def_id.describe()}, {promoted})"

    def path(self) -> str:
        if self.promoted is None:
            return str(self.def_id)
        return f"{self.def_id}::promoted[{self.promoted}]"


@dataclass(frozen=True)
class Const:
    """Type-level constant: a type plus a value or an unevaluated reference."""

    ty: Ty
    val: Union[ConstValue, Unevaluated]

    def describe_val(self) -> str:
        if isinstance(self.val, Unevaluated):
            return self.val.describe()
        return f"Value({self.val.describe()})"

    def describe(self) -> str:
        return f"Const {{ ty: {self.ty}, val: {self.describe_val()} }}"

    def pretty(self) -> str:
        val = self.val
        name = self.ty.name
        if isinstance(val, Unevaluated):
            return val.path()
        if isinstance(val, ScalarInt):
            if name == "()" and val.size == 0:
                return "()"
            if name == "bool" and val.bits in (0, 1):
                return "true" if val.bits else "false"
            if name == "char":
                return repr(chr(val.bits))
            if name in _UNSIGNED_INTS:
                return f"{val.bits}_{name}"
            if name in _SIGNED_INTS:
                bits = val.size * 8
                value = val.bits - (1 << bits) if val.bits >> (bits - 1) else val.bits
                return f"{value}_{name}"
        return f"{{{val.describe()}: {name}}}"


@dataclass(frozen=True)
class UserTypeProjection:
    base: int
    projs: Tuple[str, ...] = ()

    def describe(self) -> str:
        return (
            f"UserTypeProjection {{ base: UserType({self.base}), "
            f"projs: [{', '.join(self.projs)}] }}"
        )


@dataclass(frozen=True)
class CanonicalUserTypeAnnotation:
    user_ty: str
    span: Span
    inferred_ty: Ty


@dataclass(frozen=True)
class Constant:
    """Constant operand: literal plus the span and annotation it came with."""

    span: Span
    literal: Const
    user_ty: Optional[int] = None

    def describe(self) -> str:
        return f"const {self.literal.pretty()}"


# ----------------------------------------------------------------------
# places and operands
# ----------------------------------------------------------------------


class ProjectionElem:
    def wrap(self, inner: str) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class Deref(ProjectionElem):
    def wrap(self, inner: str) -> str:
        return f"(*{inner})"


@dataclass(frozen=True)
class Field(ProjectionElem):
    index: int
    ty: Ty

    def wrap(self, inner: str) -> str:
        return f"({inner}.{self.index}: {self.ty})"


@dataclass(frozen=True)
class Index(ProjectionElem):
    local: int

    def wrap(self, inner: str) -> str:
        return f"{inner}[_{self.local}]"


@dataclass(frozen=True)
class ConstantIndex(ProjectionElem):
    offset: int
    min_length: int
    from_end: bool = False

    def wrap(self, inner: str) -> str:
        sign = "-" if self.from_end else ""
        return f"{inner}[{sign}{self.offset} of {self.min_length}]"


@dataclass(frozen=True)
class Subslice(ProjectionElem):
    start: int
    end: int
    from_end: bool = True

    def wrap(self, inner: str) -> str:
        if not self.from_end:
            return f"{inner}[{self.start}..{self.end}]"
        if self.end == 0:
            return f"{inner}[{self.start}:]"
        if self.start == 0:
            return f"{inner}[:-{self.end}]"
        return f"{inner}[{self.start}:-{self.end}]"


@dataclass(frozen=True)
class Downcast(ProjectionElem):
    variant_index: int
    name: Optional[str] = None

    def wrap(self, inner: str) -> str:
        if self.name is not None:
            return f"({inner} as {self.name})"
        return f"({inner} as variant#{self.variant_index})"


@dataclass(frozen=True)
class Place:
    local: int
    projection: Tuple[ProjectionElem, ...] = ()

    def describe(self) -> str:
        rendered = f"_{self.local}"
        for elem in self.projection:
            rendered = elem.wrap(rendered)
        return rendered


@dataclass(frozen=True)
class Copy:
    place: Place

    def describe(self) -> str:
        return self.place.describe()


@dataclass(frozen=True)
class Move:
    place: Place

    def describe(self) -> str:
        return f"move {self.place.describe()}"


Operand = Union[Copy, Move, Constant]


def _join(operands: Tuple[Operand, ...]) -> str:
    return ", ".join(operand.describe() for operand in operands)


# ----------------------------------------------------------------------
# rvalues
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class Use:
    operand: Operand

    def describe(self) -> str:
        return self.operand.describe()


@dataclass(frozen=True)
class Repeat:
    operand: Operand
    count: int

    def describe(self) -> str:
        return f"[{self.operand.describe()}; {self.count}]"


@dataclass(frozen=True)
class Ref:
    place: Place
    kind: BorrowKind = BorrowKind.SHARED
    region: str = ""

    def describe(self) -> str:
        region = f"{self.region} " if self.region else ""
        return f"&{region}{self.kind.value}{self.place.describe()}"


@dataclass(frozen=True)
class AddressOf:
    place: Place
    mutability: Mutability = Mutability.NOT

    def describe(self) -> str:
        kind = "mut" if self.mutability is Mutability.MUT else "const"
        return f"&raw {kind} {self.place.describe()}"


@dataclass(frozen=True)
class Len:
    place: Place

    def describe(self) -> str:
        return f"Len({self.place.describe()})"


@dataclass(frozen=True)
class Cast:
    operand: Operand
    ty: Ty
    kind: str = "Misc"

    def describe(self) -> str:
        return f"{self.operand.describe()} as {self.ty} ({self.kind})"


@dataclass(frozen=True)
class BinaryOp:
    op: BinOp
    lhs: Operand
    rhs: Operand

    def describe(self) -> str:
        return f"{self.op.value}({self.lhs.describe()}, {self.rhs.describe()})"


@dataclass(frozen=True)
class CheckedBinaryOp:
    op: BinOp
    lhs: Operand
    rhs: Operand

    def describe(self) -> str:
        return f"Checked{self.op.value}({self.lhs.describe()}, {self.rhs.describe()})"


@dataclass(frozen=True)
class UnaryOp:
    op: UnOp
    operand: Operand

    def describe(self) -> str:
        return f"{self.op.value}({self.operand.describe()})"


@dataclass(frozen=True)
class Discriminant:
    place: Place

    def describe(self) -> str:
        return f"discriminant({self.place.describe()})"


@dataclass(frozen=True)
class NullaryOp:
    op: NullOp
    ty: Ty

    def describe(self) -> str:
        return f"{self.op.value}({self.ty})"


@dataclass(frozen=True)
class ArrayAggregate:
    ty: Ty

    def describe(self, operands: Tuple[Operand, ...]) -> str:
        return f"[{_join(operands)}]"


@dataclass(frozen=True)
class TupleAggregate:
    def describe(self, operands: Tuple[Operand, ...]) -> str:
        if len(operands) == 1:
            return f"({operands[0].describe()},)"
        return f"({_join(operands)})"


@dataclass(frozen=True)
class AdtAggregate:
    """ADT construction; ``field_names`` is ``None`` for tuple-like variants."""

    path: str
    variant: Optional[str] = None
    field_names: Optional[Tuple[str, ...]] = None
    user_ty: Optional[int] = None

    def describe(self, operands: Tuple[Operand, ...]) -> str:
        name = f"{self.path}::{self.variant}" if self.variant else self.path
        if self.field_names is not None:
            pairs = ", ".join(
                f"{field_name}: {operand.describe()}"
                for field_name, operand in zip(self.field_names, operands)
            )
            return f"{name} {{ {pairs} }}"
        if not operands:
            return name
        return f"{name}({_join(operands)})"


@dataclass(frozen=True)
class ClosureAggregate:
    def_id: DefId
    substs: Tuple[Ty, ...] = ()

    def describe(self, operands: Tuple[Operand, ...]) -> str:
        head = f"[closure@{self.def_id}]"
        return f"{head} {{ {_join(operands)} }}" if operands else head


@dataclass(frozen=True)
class GeneratorAggregate:
    def_id: DefId
    substs: Tuple[Ty, ...] = ()
    movability: Movability = Movability.MOVABLE

    def describe(self, operands: Tuple[Operand, ...]) -> str:
        head = f"[generator@{self.def_id} ({self.movability.value})]"
        return f"{head} {{ {_join(operands)} }}" if operands else head


AggregateKind = Union[
    ArrayAggregate, TupleAggregate, AdtAggregate, ClosureAggregate, GeneratorAggregate
]


@dataclass(frozen=True)
class Aggregate:
    kind: AggregateKind
    operands: Tuple[Operand, ...] = ()

    def describe(self) -> str:
        return self.kind.describe(self.operands)


Rvalue = Union[
    Use,
    Repeat,
    Ref,
    AddressOf,
    Len,
    Cast,
    BinaryOp,
    CheckedBinaryOp,
    UnaryOp,
    Discriminant,
    NullaryOp,
    Aggregate,
]


# ----------------------------------------------------------------------
# statements
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class Assign:
    place: Place
    rvalue: Rvalue

    def describe(self) -> str:
        return f"{self.place.describe()} = {self.rvalue.describe()}"


@dataclass(frozen=True)
class FakeRead:
    cause: str
    place: Place

    def describe(self) -> str:
        return f"FakeRead({self.cause}, {self.place.describe()})"


@dataclass(frozen=True)
class SetDiscriminant:
    place: Place
    variant_index: int

    def describe(self) -> str:
        return f"discriminant({self.place.describe()}) = {self.variant_index}"


@dataclass(frozen=True)
class StorageLive:
    local: int

    def describe(self) -> str:
        return f"StorageLive(_{self.local})"


@dataclass(frozen=True)
class StorageDead:
    local: int

    def describe(self) -> str:
        return f"StorageDead(_{self.local})"


@dataclass(frozen=True)
class Retag:
    place: Place
    kind: str = ""

    def describe(self) -> str:
        prefix = f"[{self.kind}] " if self.kind else ""
        return f"Retag({prefix}{self.place.describe()})"


@dataclass(frozen=True)
class AscribeUserType:
    place: Place
    variance: str
    projection: UserTypeProjection

    def describe(self) -> str:
        return (
            f"AscribeUserType({self.place.describe()}, {self.variance}, "
            f"{self.projection.describe()})"
        )


@dataclass(frozen=True)
class Nop:
    def describe(self) -> str:
        return "nop"


StatementKind = Union[
    Assign,
    FakeRead,
    SetDiscriminant,
    StorageLive,
    StorageDead,
    Retag,
    AscribeUserType,
    Nop,
]


@dataclass(frozen=True)
class Statement:
    source_info: SourceInfo
    kind: StatementKind

    def describe(self) -> str:
        return self.kind.describe()


# ----------------------------------------------------------------------
# terminators
# ----------------------------------------------------------------------


class TerminatorKind:
    """Base class; subclasses supply the head text and labelled successors."""

    def head(self) -> str:
        raise NotImplementedError

    def successor_labels(self) -> List[Tuple[str, int]]:
        return []

    def describe(self) -> str:
        head = self.head()
        successors = self.successor_labels()
        if not successors:
            return head
        if len(successors) == 1:
            return f"{head} -> bb{successors[0][1]}"
        rendered = ", ".join(f"{label}: bb{target}" for label, target in successors)
        return f"{head} -> [{rendered}]"


def _return_unwind(target: Optional[int], unwind: Optional[int]) -> List[Tuple[str, int]]:
    labels: List[Tuple[str, int]] = []
    if target is not None:
        labels.append(("return", target))
    if unwind is not None:
        labels.append(("unwind", unwind))
    return labels


@dataclass(frozen=True)
class Goto(TerminatorKind):
    target: int

    def head(self) -> str:
        return "goto"

    def successor_labels(self) -> List[Tuple[str, int]]:
        return [("", self.target)]


@dataclass(frozen=True)
class SwitchInt(TerminatorKind):
    """``targets`` has one entry per value plus the trailing ``otherwise`` edge."""

    discr: Operand
    switch_ty: Ty
    values: Tuple[int, ...]
    targets: Tuple[int, ...]

    def __post_init__(self) -> None:
        if len(self.targets) != len(self.values) + 1:
            raise ValueError("switchInt needs one target per value plus an otherwise target")

    def head(self) -> str:
        return f"switchInt({self.discr.describe()})"

    def _value_label(self, value: int) -> str:
        if self.switch_ty.name == "bool" and value in (0, 1):
            return "true" if value else "false"
        return f"{value}_{self.switch_ty}"

    def successor_labels(self) -> List[Tuple[str, int]]:
        labels = [
            (self._value_label(value), target)
            for value, target in zip(self.values, self.targets)
        ]
        labels.append(("otherwise", self.targets[-1]))
        return labels


@dataclass(frozen=True)
class Resume(TerminatorKind):
    def head(self) -> str:
        return "resume"


@dataclass(frozen=True)
class Abort(TerminatorKind):
    def head(self) -> str:
        return "abort"


@dataclass(frozen=True)
class Return(TerminatorKind):
    def head(self) -> str:
        return "return"


@dataclass(frozen=True)
class Unreachable(TerminatorKind):
    def head(self) -> str:
        return "unreachable"


@dataclass(frozen=True)
class GeneratorDrop(TerminatorKind):
    def head(self) -> str:
        return "generator_drop"


@dataclass(frozen=True)
class Drop(TerminatorKind):
    place: Place
    target: int
    unwind: Optional[int] = None

    def head(self) -> str:
        return f"drop({self.place.describe()})"

    def successor_labels(self) -> List[Tuple[str, int]]:
        return _return_unwind(self.target, self.unwind)


@dataclass(frozen=True)
class DropAndReplace(TerminatorKind):
    place: Place
    value: Operand
    target: int
    unwind: Optional[int] = None

    def head(self) -> str:
        return f"replace({self.place.describe()} <- {self.value.describe()})"

    def successor_labels(self) -> List[Tuple[str, int]]:
        return _return_unwind(self.target, self.unwind)


@dataclass(frozen=True)
class Call(TerminatorKind):
    func: Operand
    args: Tuple[Operand, ...] = ()
    destination: Optional[Place] = None
    target: Optional[int] = None
    cleanup: Optional[int] = None

    def head(self) -> str:
        call = f"{self.func.describe()}({_join(self.args)})"
        if self.destination is None:
            return call
        return f"{self.destination.describe()} = {call}"

    def successor_labels(self) -> List[Tuple[str, int]]:
        return _return_unwind(self.target, self.cleanup)


@dataclass(frozen=True)
class Assert(TerminatorKind):
    cond: Operand
    expected: bool
    msg: str
    target: int
    cleanup: Optional[int] = None

    def head(self) -> str:
        negate = "" if self.expected else "!"
        return f'assert({negate}{self.cond.describe()}, "{self.msg}")'

    def successor_labels(self) -> List[Tuple[str, int]]:
        if self.cleanup is None:
            return [("", self.target)]
        return [("success", self.target), ("unwind", self.cleanup)]


@dataclass(frozen=True)
class Yield(TerminatorKind):
    value: Operand
    resume: int
    resume_arg: Place
    drop: Optional[int] = None

    def head(self) -> str:
        return f"{self.resume_arg.describe()} = yield({self.value.describe()})"

    def successor_labels(self) -> List[Tuple[str, int]]:
        labels = [("resume", self.resume)]
        if self.drop is not None:
            labels.append(("drop", self.drop))
        return labels


@dataclass(frozen=True)
class FalseEdges(TerminatorKind):
    real_target: int
    imaginary_target: int

    def head(self) -> str:
        return "falseEdges"

    def successor_labels(self) -> List[Tuple[str, int]]:
        return [("real", self.real_target), ("imaginary", self.imaginary_target)]


@dataclass(frozen=True)
class FalseUnwind(TerminatorKind):
    real_target: int
    unwind: Optional[int] = None

    def head(self) -> str:
        return "falseUnwind"

    def successor_labels(self) -> List[Tuple[str, int]]:
        labels = [("real", self.real_target)]
        if self.unwind is not None:
            labels.append(("cleanup", self.unwind))
        return labels


@dataclass(frozen=True)
class Terminator:
    source_info: SourceInfo
    kind: TerminatorKind

    def describe(self) -> str:
        return self.kind.describe()


# ----------------------------------------------------------------------
# bodies
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class BasicBlockData:
    statements: Tuple[Statement, ...]
    terminator: Terminator
    is_cleanup: bool = False


@dataclass(frozen=True)
class LocalDecl:
    ty: Ty
    source_info: SourceInfo = field(default_factory=SourceInfo)
    mutability: Mutability = Mutability.MUT
    user_ty: Tuple[UserTypeProjection, ...] = ()


@dataclass(frozen=True)
class SourceScopeData:
    span: Span = DUMMY_SPAN
    parent_scope: Optional[int] = None


@dataclass(frozen=True)
class VarDebugInfo:
    name: str
    source_info: SourceInfo
    place: Place


@dataclass(frozen=True)
class Body:
    """IR of one item.

    Local 0 is the return place and locals ``1..=arg_count`` are the
    arguments.  Scope 0 is the outermost scope and the only one without a
    parent.
    """

    basic_blocks: Tuple[BasicBlockData, ...]
    local_decls: Tuple[LocalDecl, ...]
    source_scopes: Tuple[SourceScopeData, ...] = (SourceScopeData(),)
    arg_count: int = 0
    var_debug_info: Tuple[VarDebugInfo, ...] = ()
    user_type_annotations: Tuple[CanonicalUserTypeAnnotation, ...] = ()
    yield_ty: Optional[Ty] = None
    generator_layout: Optional[str] = None
    span: Span = DUMMY_SPAN

    def __post_init__(self) -> None:
        if not self.local_decls:
            raise ValueError("a body needs at least the return place local")
        if self.arg_count >= len(self.local_decls):
            raise ValueError("arg_count exceeds the number of declared locals")

    @property
    def return_ty(self) -> Ty:
        return self.local_decls[0].ty

    def args_iter(self) -> range:
        return range(1, self.arg_count + 1)

    def is_arg(self, local: int) -> bool:
        return 1 <= local <= self.arg_count


# Leaves of the structural walk: nothing inside them can hold a constant.
_WALK_LEAVES = (Allocation, AllocId, DefId, Span)


def walk(node: object) -> Iterator[object]:
    """Yield every dataclass node reachable from ``node``, children first."""

    if isinstance(node, (tuple, list)):
        for item in node:
            yield from walk(item)
        return
    if not is_dataclass(node) or isinstance(node, type):
        return
    if isinstance(node, _WALK_LEAVES):
        yield node
        return
    for item in fields(node):
        yield from walk(getattr(node, item.name))
    yield node


__all__ = [
    "Mutability",
    "BorrowKind",
    "BinOp",
    "UnOp",
    "NullOp",
    "Movability",
    "Location",
    "SourceInfo",
    "Ty",
    "Unevaluated",
    "Const",
    "UserTypeProjection",
    "CanonicalUserTypeAnnotation",
    "Constant",
    "ProjectionElem",
    "Deref",
    "Field",
    "Index",
    "ConstantIndex",
    "Subslice",
    "Downcast",
    "Place",
    "Copy",
    "Move",
    "Operand",
    "Use",
    "Repeat",
    "Ref",
    "AddressOf",
    "Len",
    "Cast",
    "BinaryOp",
    "CheckedBinaryOp",
    "UnaryOp",
    "Discriminant",
    "NullaryOp",
    "ArrayAggregate",
    "TupleAggregate",
    "AdtAggregate",
    "ClosureAggregate",
    "GeneratorAggregate",
    "Aggregate",
    "Rvalue",
    "Assign",
    "FakeRead",
    "SetDiscriminant",
    "StorageLive",
    "StorageDead",
    "Retag",
    "AscribeUserType",
    "Nop",
    "Statement",
    "TerminatorKind",
    "Goto",
    "SwitchInt",
    "Resume",
    "Abort",
    "Return",
    "Unreachable",
    "GeneratorDrop",
    "Drop",
    "DropAndReplace",
    "Call",
    "Assert",
    "Yield",
    "FalseEdges",
    "FalseUnwind",
    "Terminator",
    "BasicBlockData",
    "LocalDecl",
    "SourceScopeData",
    "VarDebugInfo",
    "Body",
    "walk",
]
