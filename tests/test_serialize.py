import json
from pathlib import Path

import pytest

from mirdump.interpret import AllocId, Endian, FunctionAlloc, MemoryAlloc, StaticAlloc
from mirdump.ir import load_program, program_from_json
from mirdump.ir.model import Assign, Call, Constant, Deref, Field, Place, Ref, SwitchInt, Ty
from mirdump.items import DefId, ItemKind, MirSource
from mirdump.printer import render_mir


def _make_program() -> dict:
    return {
        "data_layout": {"pointer_size": 8, "endian": "little"},
        "allocations": [
            {
                "id": 0,
                "kind": "memory",
                "bytes": "6869000000000000" + "0000000000000000",
                "align": 8,
                "undefined": [3],
                "relocations": {"8": 1},
            },
            {"id": 1, "kind": "fn", "instance": "helper"},
            {"id": 2, "kind": "static", "path": "GREETING"},
            {"id": 3, "kind": "deallocated"},
        ],
        "items": [
            {
                "path": "main",
                "kind": "fn",
                "body": {
                    "arg_count": 1,
                    "locals": [
                        {"ty": "()"},
                        {"ty": "&u8", "mutable": False, "source_info": {"scope": 0}},
                        {"ty": "u8"},
                    ],
                    "scopes": [{"span": ["src/main.rs", 1, 1, 4, 2]}],
                    "var_debug_info": [{"name": "x", "place": "_1"}],
                    "blocks": [
                        {
                            "statements": [
                                {
                                    "kind": "assign",
                                    "place": "_2",
                                    "rvalue": {
                                        "kind": "use",
                                        "operand": {
                                            "kind": "copy",
                                            "place": {"local": 1, "projection": [{"kind": "deref"}]},
                                        },
                                    },
                                    "source_info": {"span": ["src/main.rs", 2, 5, 2, 12]},
                                }
                            ],
                            "terminator": {
                                "kind": "switch_int",
                                "discr": {"kind": "copy", "place": "_2"},
                                "switch_ty": "u8",
                                "values": [0],
                                "targets": [1, 2],
                            },
                        },
                        {
                            "terminator": {
                                "kind": "call",
                                "func": {
                                    "kind": "const",
                                    "literal": {
                                        "ty": "fn() {helper}",
                                        "val": {"kind": "ptr", "alloc": 0},
                                    },
                                },
                                "destination": "_0",
                                "target": 2,
                            }
                        },
                        {"terminator": {"kind": "return"}},
                    ],
                },
                "promoted": [
                    {
                        "locals": [{"ty": "&u8"}],
                        "blocks": [
                            {
                                "statements": [
                                    {
                                        "kind": "assign",
                                        "place": "_0",
                                        "rvalue": {
                                            "kind": "ref",
                                            "place": {
                                                "local": 0,
                                                "projection": [
                                                    {"kind": "field", "index": 0, "ty": "u8"}
                                                ],
                                            },
                                        },
                                    }
                                ],
                                "terminator": {"kind": "return"},
                            }
                        ],
                    }
                ],
            },
            {
                "path": "GREETING",
                "kind": "static",
                "initializer": {
                    "kind": "by_ref",
                    "alloc": {"bytes": "6869"},
                },
            },
            {"path": "helper", "kind": "fn"},
        ],
    }


def test_program_items_are_loaded_in_order() -> None:
    program = program_from_json(_make_program())

    assert [info.def_id.path_str() for info in program.items] == ["main", "GREETING", "helper"]
    assert program.items[0].kind is ItemKind.FN
    assert program.items[1].kind is ItemKind.STATIC
    assert program.context.items.mir_keys() == [DefId.parse("main")]
    assert len(program.items[0].promoted) == 1


def test_allocations_are_registered() -> None:
    directory = program_from_json(_make_program()).context.allocations

    memory = directory.get(AllocId(0))
    assert isinstance(memory, MemoryAlloc)
    assert memory.allocation.align == 8
    assert memory.allocation.relocations == {8: AllocId(1)}
    assert not memory.allocation.is_defined(3)
    assert directory.get(AllocId(1)) == FunctionAlloc("helper")
    assert directory.get(AllocId(2)) == StaticAlloc(DefId.parse("GREETING"))
    assert AllocId(3) not in directory
    assert directory.reserve() == AllocId(4)


def test_body_nodes_are_decoded() -> None:
    body = program_from_json(_make_program()).items[0].body

    statement = body.basic_blocks[0].statements[0]
    assert isinstance(statement.kind, Assign)
    assert statement.kind.place == Place(2)
    assert statement.kind.rvalue.operand.place.projection == (Deref(),)
    assert statement.source_info.span.lo_line == 2

    switch = body.basic_blocks[0].terminator.kind
    assert isinstance(switch, SwitchInt)
    assert switch.describe() == "switchInt(_2) -> [0_u8: bb1, otherwise: bb2]"

    call = body.basic_blocks[1].terminator.kind
    assert isinstance(call, Call)
    assert isinstance(call.func, Constant)
    assert call.func.literal.val.alloc_id == AllocId(0)

    promoted = program_from_json(_make_program()).items[0].promoted[0]
    rvalue = promoted.basic_blocks[0].statements[0].kind.rvalue
    assert isinstance(rvalue, Ref)
    assert rvalue.place.projection == (Field(0, Ty("u8")),)
    assert rvalue.describe() == "&(_0.0: u8)"


def test_loaded_program_renders_with_allocations() -> None:
    program = program_from_json(_make_program())
    main = program.items[0]

    rendered = render_mir(program.context, MirSource.item(main.def_id), main.body)

    assert rendered.startswith("fn main(_1: &u8) -> () {\n")
    assert f"{'    debug x => _1;':<40} // in scope 0 at no-location\n" in rendered
    assert "\nalloc0 (size: 16, align: 8) {\n" in rendered
    assert "    68 69 00 __ 00 00 00 00 ╾──────alloc1+0───────╼ │ hi.░....╾──────╼\n" in rendered
    assert rendered.endswith("\nalloc1 (fn: helper)\n")


def test_data_layout_is_read() -> None:
    payload = _make_program()
    payload["data_layout"] = {"pointer_size": 4, "endian": "big"}

    layout = program_from_json(payload).context.data_layout

    assert layout.pointer_size == 4
    assert layout.endian is Endian.BIG


def test_unknown_statement_kind_is_rejected() -> None:
    payload = _make_program()
    payload["items"][0]["body"]["blocks"][0]["statements"][0]["kind"] = "teleport"

    with pytest.raises(ValueError, match="teleport"):
        program_from_json(payload)


def test_unknown_allocation_kind_is_rejected() -> None:
    payload = _make_program()
    payload["allocations"].append({"id": 9, "kind": "vtable"})

    with pytest.raises(ValueError, match="vtable"):
        program_from_json(payload)


def test_invalid_place_shorthand_is_rejected() -> None:
    payload = _make_program()
    payload["items"][0]["body"]["var_debug_info"][0]["place"] = "x"

    with pytest.raises(ValueError):
        program_from_json(payload)


def test_load_program_reads_file(tmp_path: Path) -> None:
    path = tmp_path / "program.json"
    path.write_text(json.dumps(_make_program()), "utf-8")

    program = load_program(path)

    assert len(program.items) == 3
