from pathlib import Path

import pytest

from mirdump.context import DumpContext, DumpOptions
from mirdump.dump import dump_mir
from mirdump.ir.model import BasicBlockData, Body, LocalDecl, Return, SourceInfo, Terminator, Ty
from mirdump.items import DefId, ItemInfo, ItemKind, MirSource


def _make_body(**extra) -> Body:
    block = BasicBlockData((), Terminator(SourceInfo(), Return()))
    return Body((block,), (LocalDecl(Ty("()")),), **extra)


def _make_context(tmp_path: Path, filters, **options) -> DumpContext:
    ctx = DumpContext(options=DumpOptions(filter=filters, dump_dir=tmp_path / "mir_dump", **options))
    ctx.items.register(ItemInfo(DefId.parse("main"), ItemKind.FN, body=_make_body()))
    return ctx


def test_dump_is_skipped_without_filter(tmp_path: Path) -> None:
    ctx = _make_context(tmp_path, None)

    path = dump_mir(ctx, 3, "SimplifyCfg", "before", MirSource.item(DefId.parse("main")), _make_body())

    assert path is None
    assert not (tmp_path / "mir_dump").exists()


def test_dump_is_skipped_when_filter_does_not_match(tmp_path: Path) -> None:
    ctx = _make_context(tmp_path, "nll|foo")

    assert dump_mir(ctx, 3, "SimplifyCfg", 0, MirSource.item(DefId.parse("main")), _make_body()) is None


def test_dump_writes_header_and_body(tmp_path: Path) -> None:
    ctx = _make_context(tmp_path, "Simplify")
    body = _make_body()

    path = dump_mir(ctx, 3, "SimplifyCfg", "before", MirSource.item(DefId.parse("main")), body)

    assert path == tmp_path / "mir_dump" / "rustc.main.3.SimplifyCfg.before.mir"
    text = path.read_text("utf-8")
    assert text.startswith("// MIR for `main` before SimplifyCfg\n\nfn main() -> () {\n")
    assert text.endswith("    }\n}\n")


def test_promoted_dump_header_and_file_name(tmp_path: Path) -> None:
    ctx = _make_context(tmp_path, "all", exclude_pass_number=True)
    source = MirSource(DefId.parse("main"), promoted=1)

    path = dump_mir(ctx, 3, "nll", 0, source, _make_body())

    assert path.name == "rustc.main-1.nll.0.mir"
    text = path.read_text("utf-8")
    assert text.startswith("// MIR for `main::promoted[1]` 0 nll\n\npromoted[1] in main: () = {\n")


def test_generator_layout_is_written_in_the_header(tmp_path: Path) -> None:
    ctx = _make_context(tmp_path, "all")
    body = _make_body(generator_layout="GeneratorLayout { field_tys: [] }")

    path = dump_mir(ctx, None, "nll", 0, MirSource.item(DefId.parse("main")), body)

    assert path.name == "rustc.main.-------.nll.0.mir"
    lines = path.read_text("utf-8").splitlines()
    assert lines[:3] == [
        "// MIR for `main` 0 nll",
        "// generator_layout = GeneratorLayout { field_tys: [] }",
        "",
    ]


def test_unwritable_dump_directory_raises(tmp_path: Path) -> None:
    blocker = tmp_path / "mir_dump"
    blocker.write_text("not a directory", "utf-8")
    ctx = _make_context(tmp_path, "all")

    with pytest.raises(OSError):
        dump_mir(ctx, 0, "nll", 0, MirSource.item(DefId.parse("main")), _make_body())
