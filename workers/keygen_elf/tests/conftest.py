"""
Shared pytest fixtures for keygen_elf tests.

ELF images are assembled in pure Python (ELF64, little-endian) so every
branch is reachable deterministically: header type, build-id length,
.gnu_debuglink present / malformed / out of bounds, and a build-id note
reachable only through a PT_NOTE segment.

A gcc-built shared library with a split .dbg companion is also provided
for an end-to-end check.  Those tests are skipped when gcc or objcopy
are not available, or the toolchain does not produce ELF.
"""
import shutil
import struct
import subprocess
import textwrap
from pathlib import Path
from typing import Callable, Dict, Optional

import pytest

ET_REL = 1
ET_EXEC = 2
ET_DYN = 3
ET_CORE = 4

_SHT_PROGBITS = 1
_SHT_STRTAB = 3
_SHT_NOTE = 7
_PT_NOTE = 4
_NT_GNU_BUILD_ID = 3
_EM_X86_64 = 62

_EHDR_SIZE = 64
_PHDR_SIZE = 56
_SHDR_SIZE = 64

BUILD_ID_AA = b"\xaa" * 20
BUILD_ID_BB = b"\xbb" * 20
HUGE_OFFSET = 0xFFFFFFFFFFFFFF00
HEX_AA = "aa" * 20
HEX_BB = "bb" * 20


def _align(n: int, a: int) -> int:
    return (n + a - 1) & ~(a - 1)


def _pad(data: bytes, a: int = 4) -> bytes:
    return data + b"\x00" * (_align(len(data), a) - len(data))


def build_id_note(build_id: bytes) -> bytes:
    """One NT_GNU_BUILD_ID note with owner "GNU"."""
    name = b"GNU\x00"
    header = struct.pack("<III", len(name), len(build_id), _NT_GNU_BUILD_ID)
    return header + name + _pad(build_id)


def debuglink_contents(name: str, crc: int = 0) -> bytes:
    """.gnu_debuglink payload: file name, NUL, pad to 4, CRC32."""
    return _pad(name.encode() + b"\x00") + struct.pack("<I", crc)


def elf_image(
    e_type: int = ET_DYN,
    build_id: Optional[bytes] = BUILD_ID_AA,
    debuglink: Optional[str] = None,
    debuglink_raw: Optional[bytes] = None,
    debuglink_out_of_bounds: bool = False,
    note_section_name: str = ".note.gnu.build-id",
    note_segment: bool = False,
    shdr_overrides: Optional[Dict[str, Dict[str, int]]] = None,
) -> bytes:
    """
    Assemble a minimal ELF64 image with the requested sections.

    *shdr_overrides* maps a section name to raw header fields
    (``sh_offset``, ``sh_size``) written in place of the real ones.
    """
    shdr_overrides = shdr_overrides or {}
    sections = []   # (name, sh_type, data)
    if build_id is not None:
        sections.append((note_section_name, _SHT_NOTE, build_id_note(build_id)))
    if debuglink is not None:
        debuglink_raw = debuglink_contents(debuglink)
    if debuglink_raw is not None:
        sections.append((".gnu_debuglink", _SHT_PROGBITS, debuglink_raw))

    names = b"\x00"
    name_offsets = []
    for name, _, _ in sections:
        name_offsets.append(len(names))
        names += name.encode() + b"\x00"
    name_offsets.append(len(names))
    names += b".shstrtab\x00"
    sections.append((".shstrtab", _SHT_STRTAB, names))

    phnum = 1 if note_segment and build_id is not None else 0

    # Section payloads, 8-aligned, right after the headers
    body = bytearray()
    offset = _EHDR_SIZE + phnum * _PHDR_SIZE
    data_offsets = []
    for _, _, data in sections:
        aligned = _align(offset, 8)
        body += b"\x00" * (aligned - offset)
        data_offsets.append(aligned)
        body += data
        offset = aligned + len(data)

    shoff = _align(offset, 8)
    body += b"\x00" * (shoff - offset)
    shnum = len(sections) + 1
    file_end = shoff + shnum * _SHDR_SIZE

    shdrs = bytearray(_SHDR_SIZE)   # SHN_UNDEF
    for i, (name, sh_type, data) in enumerate(sections):
        sh_offset = data_offsets[i]
        if name == ".gnu_debuglink" and debuglink_out_of_bounds:
            sh_offset = file_end + 0x1000
        sh_size = len(data)
        override = shdr_overrides.get(name, {})
        sh_offset = override.get("sh_offset", sh_offset)
        sh_size = override.get("sh_size", sh_size)
        shdrs += struct.pack(
            "<IIQQQQIIQQ",
            name_offsets[i], sh_type, 0, 0, sh_offset, sh_size,
            0, 0, 1 if sh_type == _SHT_STRTAB else 4, 0,
        )

    phdrs = b""
    if phnum:
        note = sections[0][2]
        phdrs = struct.pack(
            "<IIQQQQQQ",
            _PT_NOTE, 4, data_offsets[0], 0, 0, len(note), len(note), 4,
        )

    ident = b"\x7fELF" + bytes([2, 1, 1, 0]) + b"\x00" * 8
    ehdr = ident + struct.pack(
        "<HHIQQQIHHHHHH",
        e_type, _EM_X86_64, 1,
        0,                                  # e_entry
        _EHDR_SIZE if phnum else 0,         # e_phoff
        shoff,
        0,                                  # e_flags
        _EHDR_SIZE, _PHDR_SIZE, phnum,
        _SHDR_SIZE, shnum, len(sections),   # e_shstrndx → .shstrtab
    )
    return ehdr + phdrs + bytes(body) + bytes(shdrs)


@pytest.fixture
def write_elf(tmp_path) -> Callable[..., Path]:
    """Factory: write_elf("libfoo.so", **elf_image_kwargs) → path."""

    def _write(name: str, **kwargs) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(elf_image(**kwargs))
        return path

    return _write


@pytest.fixture
def not_elf(tmp_path) -> Path:
    """A file that is not an ELF binary."""
    p = tmp_path / "not_an_elf.so"
    p.write_bytes(b"This is not an ELF file.\x00\x00\x00")
    return p


# ── gcc-built fixtures ───────────────────────────────────────────────

LIB_C = textwrap.dedent("""\
    int keygen_answer(int x) {
        return x * 42;
    }
""")


@pytest.fixture(scope="session")
def gcc_shared_lib(tmp_path_factory) -> Path:
    """
    libfoo.so built with a SHA-1 build-id, split into libfoo.so (with a
    .gnu_debuglink to libfoo.so.dbg) and libfoo.so.dbg.
    """
    if shutil.which("gcc") is None or shutil.which("objcopy") is None:
        pytest.skip("gcc/objcopy not available - install binutils and gcc")

    d = tmp_path_factory.mktemp("gcc_fixtures")
    src = d / "libfoo.c"
    src.write_text(LIB_C)

    try:
        subprocess.run(
            ["gcc", "-shared", "-fPIC", "-g", "-Wl,--build-id=sha1",
             str(src), "-o", "libfoo.so"],
            cwd=d, check=True, capture_output=True, timeout=30,
        )
        subprocess.run(
            ["objcopy", "--only-keep-debug", "libfoo.so", "libfoo.so.dbg"],
            cwd=d, check=True, capture_output=True, timeout=10,
        )
        subprocess.run(
            ["objcopy", "--strip-debug", "--add-gnu-debuglink=libfoo.so.dbg",
             "libfoo.so"],
            cwd=d, check=True, capture_output=True, timeout=10,
        )
    except (subprocess.CalledProcessError, subprocess.TimeoutExpired):
        pytest.skip("toolchain cannot build a split ELF shared library here")

    lib = d / "libfoo.so"
    if lib.read_bytes()[:4] != b"\x7fELF":
        pytest.skip("gcc does not produce ELF binaries on this platform")
    return lib
