import io

import pytest

from mirdump.allocations import AllocationPrinter, alloc_ids_in_body, collect_alloc_ids
from mirdump.errors import MirDumpBug
from mirdump.interpret import (
    AllocId,
    Allocation,
    AllocationDirectory,
    ByRef,
    DataLayout,
    FunctionAlloc,
    MemoryAlloc,
    ScalarInt,
    ScalarPtr,
    Slice,
    StaticAlloc,
)
from mirdump.ir.model import (
    Assign,
    BasicBlockData,
    Body,
    Const,
    Constant,
    LocalDecl,
    Place,
    Return,
    SourceInfo,
    Statement,
    Terminator,
    Ty,
    Use,
)
from mirdump.items import DefId, ItemInfo, ItemKind, ItemTable
from mirdump.source_map import DUMMY_SPAN


def _make_body(*values) -> Body:
    statements = tuple(
        Statement(
            SourceInfo(),
            Assign(Place(0), Use(Constant(DUMMY_SPAN, Const(Ty("*const u8"), value)))),
        )
        for value in values
    )
    block = BasicBlockData(statements, Terminator(SourceInfo(), Return()))
    return Body((block,), (LocalDecl(Ty("*const u8")),))


def _pointer_to(target: int) -> Allocation:
    return Allocation.from_bytes(bytes(8), relocations={0: AllocId(target)})


def _write(body: Body, directory: AllocationDirectory, items: ItemTable = None) -> str:
    out = io.StringIO()
    AllocationPrinter(directory, items or ItemTable(), DataLayout()).write_allocations(body, out)
    return out.getvalue()


_POINTER_LINE = "    ╾──────alloc{}+0───────╼" + " " * 24 + " │ ╾──────╼\n"


def test_alloc_ids_in_body_finds_direct_references() -> None:
    body = _make_body(ScalarPtr(AllocId(4)), ScalarInt(1, 8), ByRef(_pointer_to(2)))

    assert alloc_ids_in_body(body) == [AllocId(4), AllocId(2)]


def test_slice_payload_relocations_are_collected() -> None:
    directory = AllocationDirectory()
    directory.set(AllocId(9), FunctionAlloc("callee"))
    body = _make_body(Slice(_pointer_to(9), 0, 8))

    assert alloc_ids_in_body(body) == [AllocId(9)]
    assert collect_alloc_ids(body, directory) == [AllocId(9)]
    assert _write(body, directory) == "\nalloc9 (fn: callee)\n"


def test_collector_follows_relocations_and_terminates_on_cycles() -> None:
    directory = AllocationDirectory()
    directory.set(AllocId(0), MemoryAlloc(_pointer_to(1)))
    directory.set(AllocId(1), MemoryAlloc(_pointer_to(0)))

    body = _make_body(ScalarPtr(AllocId(0)))

    assert collect_alloc_ids(body, directory) == [AllocId(0), AllocId(1)]


def test_collector_does_not_look_into_functions_or_statics() -> None:
    directory = AllocationDirectory()
    directory.set(AllocId(0), FunctionAlloc("foo"))
    directory.set(AllocId(1), StaticAlloc(DefId.parse("FOO")))

    body = _make_body(ScalarPtr(AllocId(1)), ScalarPtr(AllocId(0)))

    assert collect_alloc_ids(body, directory) == [AllocId(0), AllocId(1)]


def test_body_without_allocations_writes_nothing() -> None:
    assert _write(_make_body(ScalarInt(5, 4)), AllocationDirectory()) == ""


def test_deallocated_and_function_entries() -> None:
    directory = AllocationDirectory()
    directory.set(AllocId(1), FunctionAlloc("foo::<i32>"))

    rendered = _write(_make_body(ScalarPtr(AllocId(3)), ScalarPtr(AllocId(1))), directory)

    assert rendered == "\nalloc1 (fn: foo::<i32>)\n\nalloc3 (deallocated)\n"


def test_memory_entries_print_their_targets_afterwards() -> None:
    directory = AllocationDirectory()
    directory.set(AllocId(0), MemoryAlloc(_pointer_to(1)))
    directory.set(AllocId(1), FunctionAlloc("bar"))

    rendered = _write(_make_body(ScalarPtr(AllocId(0))), directory)

    assert rendered == (
        "\nalloc0 (size: 8, align: 1) {\n" + _POINTER_LINE.format(1) + "}\n"
        "\nalloc1 (fn: bar)\n"
    )


def test_cyclic_memory_is_printed_once_per_allocation() -> None:
    directory = AllocationDirectory()
    directory.set(AllocId(0), MemoryAlloc(_pointer_to(1)))
    directory.set(AllocId(1), MemoryAlloc(_pointer_to(0)))

    rendered = _write(_make_body(ScalarPtr(AllocId(1))), directory)

    assert rendered.count("\nalloc0 (") == 1
    assert rendered.count("\nalloc1 (") == 1
    assert rendered.index("\nalloc0 (") < rendered.index("\nalloc1 (")


def _static_fixture(**info) -> tuple:
    def_id = DefId.parse("FOO")
    items = ItemTable()
    items.register(ItemInfo(def_id, ItemKind.STATIC, **info))
    directory = AllocationDirectory()
    directory.set(AllocId(0), StaticAlloc(def_id))
    return _make_body(ScalarPtr(AllocId(0))), directory, items


def test_static_entry_prints_its_initializer() -> None:
    body, directory, items = _static_fixture(initializer=ByRef(Allocation(b"*")))

    rendered = _write(body, directory, items)

    assert rendered == "\nalloc0 (static: FOO, size: 1, align: 1) {\n    2a" + " " * 45 + " │ *\n}\n"


def test_static_initializer_relocations_are_followed() -> None:
    body, directory, items = _static_fixture(initializer=ByRef(_pointer_to(5)))
    directory.set(AllocId(5), FunctionAlloc("baz"))

    rendered = _write(body, directory, items)

    assert rendered.endswith("}\n\nalloc5 (fn: baz)\n")


def test_static_with_failed_initializer() -> None:
    body, directory, items = _static_fixture(initializer_error="overflow")

    rendered = _write(body, directory, items)

    assert rendered == "\nalloc0 (static: FOO, error during initializer evaluation)\n"


def test_extern_static() -> None:
    body, directory, items = _static_fixture(foreign=True)

    assert _write(body, directory, items) == "\nalloc0 (extern static: FOO)\n"


def test_static_with_scalar_initializer_is_a_bug() -> None:
    body, directory, items = _static_fixture(initializer=ScalarInt(1, 4))

    with pytest.raises(MirDumpBug):
        _write(body, directory, items)
