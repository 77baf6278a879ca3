#!/usr/bin/env python3
"""Command-line interface for writing MIR dumps of a JSON program."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from mirdump import (
    DataLayout,
    DumpOptions,
    Endian,
    ItemInfo,
    MirSource,
    Program,
    SourceMap,
    dump_mir,
    load_program,
    write_mir_pretty,
)

logger = logging.getLogger("mir_dump")


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("program", type=Path, help="JSON document describing the program")
    parser.add_argument(
        "--pretty",
        action="store_true",
        help="Write every body to a single stream instead of per-pass dump files",
    )
    parser.add_argument(
        "--out",
        type=Path,
        default=None,
        help="Destination of --pretty output (defaults to stdout)",
    )
    parser.add_argument("--item", default=None, help="Restrict output to the item with this path")
    parser.add_argument(
        "--dump-mir",
        dest="dump_filter",
        default="all",
        help="Filter selecting which passes and items are dumped",
    )
    parser.add_argument(
        "--dump-mir-dir",
        type=Path,
        default=Path("mir_dump"),
        help="Directory that receives the dump files",
    )
    parser.add_argument(
        "--dump-mir-exclude-pass-number",
        action="store_true",
        help="Leave the pass number out of dump file names",
    )
    parser.add_argument("--pass-num", default=None, help="Pass number recorded in file names")
    parser.add_argument("--pass-name", default="loaded", help="Name of the pass being dumped")
    parser.add_argument("--disambiguator", default="0", help="Distinguishes before/after dumps")
    parser.add_argument(
        "--remap-path-prefix",
        action="append",
        default=[],
        metavar="FROM=TO",
        help="Rewrite source paths starting with FROM to start with TO",
    )
    parser.add_argument(
        "--pointer-size",
        type=int,
        choices=(2, 4, 8),
        default=None,
        help="Override the pointer size recorded in the program",
    )
    parser.add_argument(
        "--big-endian",
        action="store_true",
        help="Decode pointers stored in allocations as big-endian",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("MIR_DUMP_LOG", "WARNING"),
        help="Logging level (default: $MIR_DUMP_LOG or WARNING)",
    )
    return parser.parse_args(argv)


def build_source_map(remaps: Sequence[str]) -> SourceMap:
    source_map = SourceMap()
    for entry in remaps:
        prefix, sep, replacement = entry.partition("=")
        if not sep or not prefix:
            raise SystemExit(f"invalid --remap-path-prefix value: {entry!r}")
        source_map.add_remap(prefix, replacement)
    return source_map


def select_items(items: Sequence[ItemInfo], path: Optional[str]) -> List[ItemInfo]:
    if path is None:
        return list(items)
    selected = [info for info in items if info.def_id.path_str() == path]
    if not selected:
        raise SystemExit(f"unknown item: {path}")
    return selected


def run_dumps(args: argparse.Namespace, program: Program, items: Sequence[ItemInfo]) -> int:
    """Dump every body of ``items``; return the number of failed dumps."""

    ctx = program.context
    failures = 0
    for info in items:
        if info.body is None:
            continue
        sources = [(MirSource.item(info.def_id), info.body)]
        sources.extend(
            (MirSource(info.def_id, promoted=index), promoted)
            for index, promoted in enumerate(info.promoted)
        )
        for source, body in sources:
            try:
                path = dump_mir(
                    ctx, args.pass_num, args.pass_name, args.disambiguator, source, body
                )
            except OSError as exc:
                logger.warning("failed to dump %s: %s", source.def_id, exc)
                failures += 1
                continue
            if path is not None:
                print(f"mir written to {path}")
    return failures


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    _configure_logging(args.log_level)

    if not args.program.exists():
        raise SystemExit(f"missing input file: {args.program}")

    options = DumpOptions(
        filter=args.dump_filter,
        dump_dir=args.dump_mir_dir,
        exclude_pass_number=args.dump_mir_exclude_pass_number,
    )
    try:
        program = load_program(args.program, options, build_source_map(args.remap_path_prefix))
    except ValueError as exc:
        raise SystemExit(f"invalid program {args.program}: {exc}") from exc

    ctx = program.context
    if args.pointer_size is not None or args.big_endian:
        ctx.data_layout = DataLayout(
            pointer_size=args.pointer_size or ctx.data_layout.pointer_size,
            endian=Endian.BIG if args.big_endian else ctx.data_layout.endian,
        )

    items = select_items(program.items, args.item)

    if args.pretty:
        single = items[0].def_id if args.item is not None else None
        if single is not None and items[0].body is None:
            raise SystemExit(f"item has no body: {args.item}")
        if args.out is None:
            write_mir_pretty(ctx, sys.stdout, single)
        else:
            with args.out.open("w", encoding="utf-8") as out:
                write_mir_pretty(ctx, out, single)
            print(f"mir written to {args.out}")
        return

    if run_dumps(args, program, items):
        raise SystemExit(1)


if __name__ == "__main__":
    main()
