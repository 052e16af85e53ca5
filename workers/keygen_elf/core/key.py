"""
Symbol-store keys — request flags, the key value type, and the builder.

Index layout::

    <file name, lower-case>/<prefix>-<build id hex>/<leaf>

*leaf* repeats the lower-cased file name for identity keys and is the
fixed ``_.debug`` name for debug-file keys.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Flag
from typing import Iterable, List, Optional


class KeyTypeFlags(Flag):
    """Key categories a caller can request, combinable with ``|``."""

    NONE = 0
    IDENTITY_KEY = 1
    SYMBOL_KEY = 2
    CLR_KEYS = 4
    ALL = IDENTITY_KEY | SYMBOL_KEY | CLR_KEYS


# CLI / API names, in emission order
FLAG_NAMES: dict[str, KeyTypeFlags] = {
    "identity": KeyTypeFlags.IDENTITY_KEY,
    "symbol": KeyTypeFlags.SYMBOL_KEY,
    "clr": KeyTypeFlags.CLR_KEYS,
}


def parse_flags(names: Iterable[str]) -> KeyTypeFlags:
    """Combine flag names (``identity``, ``symbol``, ``clr``) into KeyTypeFlags."""
    flags = KeyTypeFlags.NONE
    for name in names:
        key = name.strip().lower()
        if key not in FLAG_NAMES:
            raise ValueError(
                f"Unknown key type {name!r}; expected one of {list(FLAG_NAMES)}"
            )
        flags |= FLAG_NAMES[key]
    return flags


def flag_names(flags: KeyTypeFlags) -> List[str]:
    return [name for name, flag in FLAG_NAMES.items() if flag in flags]


@dataclass(frozen=True)
class SymbolStoreKey:
    """
    A store index path plus the logical file it resolves to.

    ``is_clr_special_file`` marks runtime companion files that clients
    should only accept from a trusted store; it does not take part in
    equality.
    """

    index: str
    full_path_name: str
    is_clr_special_file: bool = field(default=False, compare=False)


def to_hex_string(data: bytes) -> str:
    return data.hex()


def get_file_name(path: str) -> str:
    """Last path component; both ``/`` and ``\\`` count as separators."""
    return path.replace("\\", "/").rsplit("/", 1)[-1]


def get_extension(path: str) -> str:
    """
    Extension of the last path component, including the dot.

    ``libfoo.so.dbg`` → ``.dbg``; a trailing dot or no dot → ``""``.
    """
    name = get_file_name(path)
    dot = name.rfind(".")
    if dot < 0 or dot == len(name) - 1:
        return ""
    return name[dot:]


def build_key(
    path: str,
    prefix: Optional[str],
    build_id: bytes,
    leaf: Optional[str] = None,
    clr_special_file: bool = False,
) -> SymbolStoreKey:
    """
    Build the key for *path* under *prefix* and *build_id*.

    The first index component is always the lower-cased file name of
    *path*; *leaf* defaults to that same name.
    """
    file_name = get_file_name(path).lower()
    id_hex = to_hex_string(build_id)
    id_part = f"{prefix}-{id_hex}" if prefix else id_hex
    index = f"{file_name}/{id_part}/{leaf or file_name}"
    return SymbolStoreKey(
        index=index,
        full_path_name=path,
        is_clr_special_file=clr_special_file,
    )


_INVALID_INDEX_CHARS = re.compile(r"[\\\x00-\x1f\x7f]")


def is_key_valid(index: str) -> bool:
    """
    True if *index* is safe to use as a store path.

    Exactly three non-empty ``/``-separated components, none of them
    ``.`` or ``..``, and no backslash or control characters.
    """
    if not index or _INVALID_INDEX_CHARS.search(index):
        return False
    parts = index.split("/")
    if len(parts) != 3:
        return False
    return all(part and part not in (".", "..") for part in parts)
