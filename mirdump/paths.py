"""Output file naming for dumps."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, TextIO

from .context import DumpOptions
from .items import MirSource

_SHIM_REPLACEMENTS = {":": "_", "<": "_", ">": "_"}


def shim_disambiguator(shim_ty: Optional[str]) -> str:
    """Make a type name usable in a file name.

    All drop-glue shims share one item identity, so the type they drop is
    appended to keep their file names apart.
    """

    if shim_ty is None:
        return ""
    filtered = "".join(
        _SHIM_REPLACEMENTS.get(char, char) for char in shim_ty if char != " "
    )
    return f".{filtered}"


def build_dump_path(
    dump_dir: Path,
    item_name: str,
    promoted: Optional[int],
    shim_ty: Optional[str],
    pass_num: Optional[object],
    exclude_pass_num: bool,
    pass_name: str,
    disambiguator: object,
    extension: str,
) -> Path:
    """Return ``dump_dir/rustc.<item><shim><promotion><passnum>.<pass>.<disambiguator>.<ext>``."""

    promotion_id = f"-{promoted}" if promoted is not None else ""
    if exclude_pass_num:
        pass_segment = ""
    elif pass_num is None:
        pass_segment = ".-------"
    else:
        pass_segment = f".{pass_num}"

    file_name = (
        f"rustc.{item_name}{shim_disambiguator(shim_ty)}{promotion_id}{pass_segment}"
        f".{pass_name}.{disambiguator}.{extension}"
    )
    return Path(dump_dir) / file_name


def dump_path(
    options: DumpOptions,
    extension: str,
    pass_num: Optional[object],
    pass_name: str,
    disambiguator: object,
    source: MirSource,
) -> Path:
    return build_dump_path(
        options.dump_dir,
        source.def_id.filename_friendly(),
        source.promoted,
        source.shim_ty,
        pass_num,
        options.exclude_pass_number,
        pass_name,
        disambiguator,
        extension,
    )


def create_dump_file(path: Path) -> TextIO:
    """Open ``path`` for writing, creating missing parent directories."""

    path.parent.mkdir(parents=True, exist_ok=True)
    return path.open("w", encoding="utf-8")


__all__ = ["shim_disambiguator", "build_dump_path", "dump_path", "create_dump_file"]
