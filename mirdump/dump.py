"""Entry point used by passes to dump the body they just produced."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, TextIO

from .context import DumpContext
from .filters import dump_enabled
from .ir.model import Body
from .items import MirSource
from .paths import create_dump_file, dump_path
from .printer import DumpHook, MirWriter

logger = logging.getLogger(__name__)


def dump_mir(
    ctx: DumpContext,
    pass_num: Optional[object],
    pass_name: str,
    disambiguator: object,
    source: MirSource,
    body: Body,
    hook: Optional[DumpHook] = None,
) -> Optional[Path]:
    """Dump ``body`` if the configured filter selects ``pass_name`` or the item.

    The dump lands in ``rustc.<item>.<pass_num>.<pass_name>.<disambiguator>.mir``
    under the dump directory and its path is returned; ``None`` means the
    filter rejected the pair.  ``OSError`` from creating or writing the file
    propagates; a partially written file may be left behind.
    """

    node_path = source.def_id.path_str()
    if not dump_enabled(ctx.options.filter, pass_name, node_path):
        logger.debug("skipping dump of %s after %s", node_path, pass_name)
        return None
    return dump_matched_mir_node(ctx, pass_num, pass_name, disambiguator, source, body, hook)


def dump_matched_mir_node(
    ctx: DumpContext,
    pass_num: Optional[object],
    pass_name: str,
    disambiguator: object,
    source: MirSource,
    body: Body,
    hook: Optional[DumpHook] = None,
) -> Path:
    path = dump_path(ctx.options, "mir", pass_num, pass_name, disambiguator, source)
    logger.debug("dumping %s after %s to %s", source.def_id, pass_name, path)
    with create_dump_file(path) as out:
        write_dump_header(out, source, body, pass_name, disambiguator)
        MirWriter(ctx, out, hook).write_dump_body(source, body)
    return path


def write_dump_header(
    out: TextIO,
    source: MirSource,
    body: Body,
    pass_name: str,
    disambiguator: object,
) -> None:
    out.write(f"// MIR for `{source.def_id.path_str()}")
    promoted = source.describe_promoted()
    out.write("`" if promoted is None else f"::{promoted}`")
    out.write(f" {disambiguator} {pass_name}\n")
    if body.generator_layout is not None:
        out.write(f"// generator_layout = {body.generator_layout}\n")
    out.write("\n")


__all__ = ["dump_mir", "dump_matched_mir_node", "write_dump_header"]
