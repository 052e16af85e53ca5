"""
ELF view — the narrow pyelftools-backed surface the key generator reads.

Responsibilities:
  - Open a binary stream as an ELF file and report whether it parsed.
  - Classify the header type (EXEC / DYN / REL / CORE).
  - Read the GNU build-id from .note.gnu.build-id, falling back to
    PT_NOTE segments when the section is missing.
  - Look up sections by name and read NUL-terminated strings from them.

Decode failures are returned as values (None or an error string), never
raised to the caller.
"""
from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from enum import Enum, unique
from pathlib import Path
from typing import BinaryIO, Iterable, Iterator, Optional, Tuple

from elftools.common.exceptions import ELFError
from elftools.construct.core import ConstructError
from elftools.elf.elffile import ELFFile
from elftools.elf.sections import NoteSection, Section

logger = logging.getLogger(__name__)

BUILD_ID_SECTION = ".note.gnu.build-id"

# pyelftools reports corrupt headers and notes as more than ELFError: raw
# construct errors, out-of-range seeks and oversized reads.
DECODE_ERRORS = (ELFError, ConstructError, ValueError, OverflowError, MemoryError)

_UNREAD = object()


@unique
class ElfHeaderType(str, Enum):
    NONE = "NONE"
    RELOCATABLE = "RELOCATABLE"
    EXECUTABLE = "EXECUTABLE"
    SHARED = "SHARED"
    CORE = "CORE"
    OTHER = "OTHER"


_E_TYPES = {
    "ET_NONE": ElfHeaderType.NONE,
    "ET_REL": ElfHeaderType.RELOCATABLE,
    "ET_EXEC": ElfHeaderType.EXECUTABLE,
    "ET_DYN": ElfHeaderType.SHARED,
    "ET_CORE": ElfHeaderType.CORE,
}


def _build_id_from_notes(notes: Iterable[dict]) -> Optional[bytes]:
    for note in notes:
        if note["n_type"] == "NT_GNU_BUILD_ID" and note["n_name"] == "GNU":
            # pyelftools hex-encodes the desc field of build-id notes
            return bytes.fromhex(note["n_desc"])
    return None


def _stream_size(stream: BinaryIO) -> Optional[int]:
    try:
        pos = stream.tell()
        size = stream.seek(0, os.SEEK_END)
        stream.seek(pos)
    except (OSError, ValueError):
        return None
    return size


def _read_build_id(elffile: ELFFile) -> Optional[bytes]:
    section = elffile.get_section_by_name(BUILD_ID_SECTION)
    if isinstance(section, NoteSection):
        try:
            build_id = _build_id_from_notes(section.iter_notes())
        except DECODE_ERRORS as e:
            logger.debug("Unreadable %s section: %s", BUILD_ID_SECTION, e)
            build_id = None
        if build_id is not None:
            return build_id

    for segment in elffile.iter_segments():
        if segment["p_type"] == "PT_NOTE":
            build_id = _build_id_from_notes(segment.iter_notes())
            if build_id is not None:
                return build_id
    return None


class ElfSection:
    """A named ELF section whose contents can be read as C strings."""

    def __init__(self, section: Section, file_size: Optional[int] = None):
        self._section = section
        self._file_size = file_size

    @property
    def name(self) -> str:
        return self._section.name

    def read_cstring(self, offset: int = 0) -> Tuple[Optional[str], Optional[str]]:
        """
        Read a NUL-terminated UTF-8 string starting at *offset*.

        Returns
        -------
        (value, error_message)
            value is None when the read failed; error_message says why
            and is None on success.
        """
        start = self._section["sh_offset"]
        size = self._section["sh_size"]
        if self._file_size is not None and start + size > self._file_size:
            return None, (
                f"section data [{start:#x}, +{size:#x}) past end of file "
                f"({self._file_size} bytes)"
            )

        try:
            data = self._section.data()
        except DECODE_ERRORS as e:
            return None, f"cannot read section data: {e}"

        if offset < 0 or offset >= len(data):
            return None, (
                f"offset {offset:#x} outside section data ({len(data)} bytes)"
            )

        end = data.find(b"\x00", offset)
        if end < 0:
            return None, f"no NUL terminator after offset {offset:#x}"

        try:
            return data[offset:end].decode("utf-8"), None
        except UnicodeDecodeError as e:
            return None, f"undecodable string at offset {offset:#x}: {e}"


class ElfView:
    """
    Read-only view over a parsed ELF file.

    An invalid view (the stream did not parse as ELF) answers every query
    with its "absent" value, so callers only need ``is_valid()`` as a gate.
    The underlying stream must stay open while the view is in use because
    pyelftools reads section data lazily.
    """

    def __init__(self, elffile: Optional[ELFFile], error: Optional[str] = None):
        self._elffile = elffile
        self.error = error
        self._build_id = _UNREAD
        self._file_size = _stream_size(elffile.stream) if elffile is not None else None

    @classmethod
    def from_stream(cls, stream: BinaryIO) -> "ElfView":
        try:
            return cls(ELFFile(stream))
        except DECODE_ERRORS as e:
            return cls(None, error=str(e) or type(e).__name__)

    def is_valid(self) -> bool:
        return self._elffile is not None

    @property
    def header_type(self) -> ElfHeaderType:
        if self._elffile is None:
            return ElfHeaderType.NONE
        return _E_TYPES.get(self._elffile.header["e_type"], ElfHeaderType.OTHER)

    @property
    def build_id(self) -> Optional[bytes]:
        """
        Raw GNU build-id bytes, or None when absent or unreadable.

        The notes are parsed once per view.
        """
        if self._elffile is None:
            return None
        if self._build_id is _UNREAD:
            try:
                self._build_id = _read_build_id(self._elffile)
            except DECODE_ERRORS as e:
                logger.debug("Unreadable build-id note: %s", e)
                self._build_id = None
        return self._build_id

    def find_section_by_name(self, name: str) -> Optional[ElfSection]:
        if self._elffile is None:
            return None
        try:
            section = self._elffile.get_section_by_name(name)
        except DECODE_ERRORS as e:
            logger.debug("Section lookup for %s failed: %s", name, e)
            return None
        if section is None:
            return None
        return ElfSection(section, self._file_size)


@contextmanager
def open_elf(path: str | Path) -> Iterator[ElfView]:
    """Open *path* and yield an ElfView; the file closes on exit."""
    with open(path, "rb") as f:
        yield ElfView.from_stream(f)
