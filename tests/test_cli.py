import json
import subprocess
import sys
from pathlib import Path

SCRIPT = Path(__file__).resolve().parents[1] / "mir_dump.py"


def _write_program(base: Path) -> Path:
    payload = {
        "allocations": [{"id": 0, "kind": "memory", "bytes": "414243"}],
        "items": [
            {
                "path": "main",
                "kind": "fn",
                "body": {
                    "locals": [{"ty": "*const u8"}],
                    "blocks": [
                        {
                            "statements": [
                                {
                                    "kind": "assign",
                                    "place": "_0",
                                    "rvalue": {
                                        "kind": "use",
                                        "operand": {
                                            "kind": "const",
                                            "span": ["/work/src/main.rs", 3, 5, 3, 9],
                                            "literal": {
                                                "ty": "*const u8",
                                                "val": {"kind": "ptr", "alloc": 0},
                                            },
                                        },
                                    },
                                }
                            ],
                            "terminator": {"kind": "return"},
                        }
                    ],
                },
                "promoted": [
                    {"locals": [{"ty": "u8"}], "blocks": [{"terminator": {"kind": "return"}}]}
                ],
            },
            {"path": "helper", "kind": "fn"},
        ],
    }
    path = base / "program.json"
    path.write_text(json.dumps(payload, indent=2), "utf-8")
    return path


def _run(*arguments: str) -> subprocess.CompletedProcess:
    return subprocess.run(
        [sys.executable, str(SCRIPT), *arguments],
        capture_output=True,
        text=True,
    )


def test_cli_writes_dump_files(tmp_path: Path) -> None:
    program = _write_program(tmp_path)
    dump_dir = tmp_path / "dumps"

    result = _run(
        str(program),
        "--dump-mir-dir",
        str(dump_dir),
        "--pass-num",
        "4",
        "--pass-name",
        "SimplifyCfg",
        "--disambiguator",
        "after",
    )

    assert result.returncode == 0, result.stderr
    main_dump = dump_dir / "rustc.main.4.SimplifyCfg.after.mir"
    promoted_dump = dump_dir / "rustc.main-0.4.SimplifyCfg.after.mir"
    assert f"mir written to {main_dump}" in result.stdout
    assert f"mir written to {promoted_dump}" in result.stdout

    text = main_dump.read_text("utf-8")
    assert text.startswith("// MIR for `main` after SimplifyCfg\n\nfn main() -> *const u8 {\n")
    assert "+ span: /work/src/main.rs:3:5: 3:9" in text
    assert "\nalloc0 (size: 3, align: 1) {\n    41 42 43" in text


def test_cli_filter_can_select_nothing(tmp_path: Path) -> None:
    program = _write_program(tmp_path)
    dump_dir = tmp_path / "dumps"

    result = _run(str(program), "--dump-mir-dir", str(dump_dir), "--dump-mir", "nll")

    assert result.returncode == 0, result.stderr
    assert result.stdout == ""
    assert not dump_dir.exists()


def test_cli_pretty_output_with_remapped_paths(tmp_path: Path) -> None:
    program = _write_program(tmp_path)
    out_path = tmp_path / "pretty.mir"

    result = _run(
        str(program),
        "--pretty",
        "--out",
        str(out_path),
        "--remap-path-prefix",
        "/work/=",
    )

    assert result.returncode == 0, result.stderr
    text = out_path.read_text("utf-8")
    assert text.startswith("// WARNING: This output format is intended for human consumers only\n")
    assert "+ span: src/main.rs:3:5: 3:9" in text
    assert "promoted[0] in main: u8 = {" in text


def test_cli_pretty_single_item_to_stdout(tmp_path: Path) -> None:
    program = _write_program(tmp_path)

    result = _run(str(program), "--pretty", "--item", "main")

    assert result.returncode == 0, result.stderr
    assert "fn main() -> *const u8 {" in result.stdout


def test_cli_reports_failed_dumps(tmp_path: Path) -> None:
    program = _write_program(tmp_path)
    blocker = tmp_path / "dumps"
    blocker.write_text("not a directory", "utf-8")

    result = _run(str(program), "--dump-mir-dir", str(blocker))

    assert result.returncode == 1
    assert "failed to dump main" in result.stderr


def test_cli_rejects_missing_and_invalid_inputs(tmp_path: Path) -> None:
    missing = _run(str(tmp_path / "absent.json"))
    assert missing.returncode != 0
    assert "missing input file" in missing.stderr

    broken = tmp_path / "broken.json"
    broken.write_text(json.dumps({"items": [{"path": "main", "kind": "widget"}]}), "utf-8")
    invalid = _run(str(broken))
    assert invalid.returncode != 0
    assert "unknown item kind" in invalid.stderr

    unknown = _run(str(_write_program(tmp_path)), "--item", "nope")
    assert unknown.returncode != 0
    assert "unknown item: nope" in unknown.stderr
