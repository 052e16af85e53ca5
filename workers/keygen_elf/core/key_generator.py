"""
ELF key generator — derive symbol-store keys from an ELF binary.

Key shapes (``<id>`` is the lower-case hex GNU build-id)::

    identity   libfoo.so/elf-buildid-<id>/libfoo.so
    symbol     libfoo.so.dbg/elf-buildid-sym-<id>/_.debug
    coreclr    libsos.so/elf-buildid-coreclr-<id>/libsos.so

The CoreCLR companion modules are built together with ``libcoreclr.so``
and share its build-id, so their keys are derived from the core module
alone.

Keys are produced lazily; every ``get_keys`` call returns a fresh
iterator.
"""
from __future__ import annotations

import logging
from typing import BinaryIO, Iterator, Optional, Union

from keygen_elf.core.elf_view import ElfHeaderType, ElfView
from keygen_elf.core.key import (
    KeyTypeFlags,
    SymbolStoreKey,
    build_key,
    get_extension,
    get_file_name,
    to_hex_string,
)

logger = logging.getLogger(__name__)

Logger = Union[logging.Logger, logging.LoggerAdapter]

# ── Store conventions ────────────────────────────────────────────────

SYMBOL_FILE_EXTENSION = ".dbg"
IDENTITY_PREFIX = "elf-buildid"
SYMBOL_PREFIX = "elf-buildid-sym"
CORECLR_PREFIX = "elf-buildid-coreclr"
DEBUG_FILE_LEAF = "_.debug"
DEBUG_LINK_SECTION = ".gnu_debuglink"
BUILD_ID_LENGTH = 20

CORECLR_FILE_NAME = "libcoreclr.so"

# Emission order for CLR_KEYS
CORECLR_SPECIAL_FILES: tuple[str, ...] = (
    "libmscordaccore.so",
    "libmscordbi.so",
    "libsos.so",
    "SOS.NETCore.dll",
)
CORECLR_SPECIAL_FILE_SET: frozenset[str] = frozenset(CORECLR_SPECIAL_FILES)

ELIGIBLE_HEADER_TYPES: frozenset[ElfHeaderType] = frozenset({
    ElfHeaderType.EXECUTABLE,
    ElfHeaderType.SHARED,
})


def is_symbol_file(path: str) -> bool:
    """True if *path* names a stripped debug file (``.dbg`` extension)."""
    return get_extension(path) == SYMBOL_FILE_EXTENSION


def get_keys(
    flags: KeyTypeFlags,
    path: str,
    build_id: bytes,
    symbol_file: bool,
    symbol_file_name: Optional[str],
) -> Iterator[SymbolStoreKey]:
    """
    Create the ELF symbol-store keys from already-extracted fields.

    Parameters
    ----------
    flags : KeyTypeFlags
        Key categories to emit.
    path : str
        File name and path of the binary.
    build_id : bytes
        The 20-byte GNU build-id.
    symbol_file : bool
        True if *path* is itself a debug file.
    symbol_file_name : str, optional
        Debug file name from .gnu_debuglink; ``path + ".dbg"`` is used
        when absent or empty.

    Raises
    ------
    TypeError, ValueError
        On caller contract violations; raised here, before iteration.
    """
    if not isinstance(flags, KeyTypeFlags):
        raise TypeError(f"flags must be KeyTypeFlags, got {type(flags).__name__}")
    if not path:
        raise ValueError("path is required")
    if build_id is None or len(build_id) != BUILD_ID_LENGTH:
        raise ValueError(
            f"build_id must be {BUILD_ID_LENGTH} bytes, got "
            f"{None if build_id is None else len(build_id)}"
        )
    return _iter_keys(flags, path, bytes(build_id), symbol_file, symbol_file_name)


def _iter_keys(
    flags: KeyTypeFlags,
    path: str,
    build_id: bytes,
    symbol_file: bool,
    symbol_file_name: Optional[str],
) -> Iterator[SymbolStoreKey]:
    if KeyTypeFlags.IDENTITY_KEY in flags:
        if symbol_file:
            yield build_key(path, SYMBOL_PREFIX, build_id, DEBUG_FILE_LEAF)
        else:
            clr_special_file = get_file_name(path) in CORECLR_SPECIAL_FILE_SET
            yield build_key(
                path, IDENTITY_PREFIX, build_id, clr_special_file=clr_special_file
            )

    # A debug file has no companions of its own.
    if symbol_file:
        return

    if KeyTypeFlags.SYMBOL_KEY in flags:
        name = symbol_file_name or path + SYMBOL_FILE_EXTENSION
        yield build_key(name, SYMBOL_PREFIX, build_id, DEBUG_FILE_LEAF)

    if KeyTypeFlags.CLR_KEYS in flags and get_file_name(path) == CORECLR_FILE_NAME:
        for special_file in CORECLR_SPECIAL_FILES:
            yield build_key(special_file, CORECLR_PREFIX, build_id)


class ElfFileKeyGenerator:
    """
    Key generator for one ELF binary.

    Usage::

        with open_elf(path) as view:
            keys = list(ElfFileKeyGenerator(view, path).get_keys(flags))

    Ineligible binaries (not ELF, not EXEC/DYN, bad build-id) yield no
    keys; only a malformed or missing build-id is logged, at ERROR.
    """

    def __init__(self, view: ElfView, path: str, log: Optional[Logger] = None):
        if not path:
            raise ValueError("path is required")
        self._view = view
        self._path = path
        self._log = log if log is not None else logger
        self._debug_link: Optional[str] = None
        self._debug_link_read = False

    @classmethod
    def from_stream(
        cls,
        stream: BinaryIO,
        file_name: str,
        log: Optional[Logger] = None,
    ) -> "ElfFileKeyGenerator":
        return cls(ElfView.from_stream(stream), file_name, log)

    @property
    def path(self) -> str:
        return self._path

    @property
    def view(self) -> ElfView:
        return self._view

    def is_valid(self) -> bool:
        return (
            self._view.is_valid()
            and self._view.header_type in ELIGIBLE_HEADER_TYPES
        )

    def get_keys(self, flags: KeyTypeFlags) -> Iterator[SymbolStoreKey]:
        if not self.is_valid():
            return

        build_id = self._view.build_id
        if build_id is None or len(build_id) != BUILD_ID_LENGTH:
            self._log.error(
                "Invalid ELF BuildID '%s' for %s",
                "<null>" if build_id is None else to_hex_string(build_id),
                self._path,
            )
            return

        symbol_file = is_symbol_file(self._path)
        symbol_file_name = None
        if not symbol_file and KeyTypeFlags.SYMBOL_KEY in flags:
            symbol_file_name = self.debug_link_name()

        yield from get_keys(flags, self._path, build_id, symbol_file, symbol_file_name)

    def debug_link_name(self) -> Optional[str]:
        """
        File name recorded in .gnu_debuglink, or None.

        Unreadable section contents are logged at DEBUG and treated as
        absent so the ``.dbg`` fallback name applies.  The section is read
        at most once per generator.
        """
        if not self._debug_link_read:
            self._debug_link = self._read_debug_link()
            self._debug_link_read = True
        return self._debug_link

    def _read_debug_link(self) -> Optional[str]:
        section = self._view.find_section_by_name(DEBUG_LINK_SECTION)
        if section is None:
            return None

        name, error = section.read_cstring(0)
        if error is not None:
            self._log.debug(
                "ELF %s section in %s: %s", DEBUG_LINK_SECTION, self._path, error
            )
            return None
        return name or None
