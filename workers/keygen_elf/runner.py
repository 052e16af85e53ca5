"""
Keygen runner — top-level orchestration: files / directories → report.

This module ties the ELF view, binary gate, key generator and IO together
into a single ``run_keygen`` function that can be called from the API
endpoint or from a CLI.  One unreadable or malformed file never aborts a
scan; it becomes a REJECT entry.
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Iterable, List, Optional

from keygen_elf.core.elf_view import open_elf
from keygen_elf.core.key import KeyTypeFlags, flag_names, to_hex_string
from keygen_elf.core.key_generator import ElfFileKeyGenerator, is_symbol_file
from keygen_elf.io.schema import BinaryKeysEntry, KeygenReport, KeyModel
from keygen_elf.io.writer import write_report
from keygen_elf.policy.profile import KeygenProfile
from keygen_elf.policy.verdict import BinaryRejectReason, Verdict, gate_binary

logger = logging.getLogger(__name__)


def expand_inputs(paths: Iterable[str | Path], profile: KeygenProfile) -> List[Path]:
    """Replace each directory with the files under it, sorted; keep files as given."""
    files: List[Path] = []
    for raw in paths:
        p = Path(raw)
        if p.is_dir():
            children = p.rglob("*") if profile.recurse else p.iterdir()
            files.extend(sorted(c for c in children if c.is_file()))
        else:
            files.append(p)
    return files


def derive_binary_keys(
    path: Path,
    flags: KeyTypeFlags,
    profile: KeygenProfile,
) -> BinaryKeysEntry:
    """Derive the keys for one file; read failures become a REJECT entry."""
    try:
        if path.stat().st_size > profile.max_file_size:
            logger.info("Skipping %s: larger than %d bytes", path, profile.max_file_size)
            return BinaryKeysEntry(
                path=str(path),
                verdict=Verdict.REJECT.value,
                reasons=[BinaryRejectReason.FILE_TOO_LARGE.value],
            )

        with open_elf(path) as view:
            # The view parses the build-id once; gate, generator and
            # entry all read the cached value.
            verdict, reasons = gate_binary(view)
            generator = ElfFileKeyGenerator(view, str(path))
            keys = [KeyModel.from_key(k) for k in generator.get_keys(flags)]

            if not view.is_valid():
                return BinaryKeysEntry(
                    path=str(path), verdict=verdict.value, reasons=reasons
                )

            build_id = view.build_id
            symbol_file = is_symbol_file(str(path))
            debug_link = None
            if not symbol_file and KeyTypeFlags.SYMBOL_KEY in flags:
                debug_link = generator.debug_link_name()
            return BinaryKeysEntry(
                path=str(path),
                verdict=verdict.value,
                reasons=reasons,
                header_type=view.header_type.value,
                build_id=to_hex_string(build_id) if build_id is not None else None,
                is_symbol_file=symbol_file,
                debug_link=debug_link,
                keys=keys,
            )

    except Exception as e:
        # Any read or parse failure → binary-level REJECT; the scan goes on
        logger.warning("Cannot read %s: %s: %s", path, type(e).__name__, e)
        return BinaryKeysEntry(
            path=str(path),
            verdict=Verdict.REJECT.value,
            reasons=[BinaryRejectReason.READ_ERROR.value],
        )


def run_keygen(
    paths: Iterable[str | Path],
    flags: Optional[KeyTypeFlags] = None,
    profile: Optional[KeygenProfile] = None,
    output_dir: Optional[Path] = None,
) -> KeygenReport:
    """
    Derive symbol-store keys for every ELF file under *paths*.

    Parameters
    ----------
    paths : iterable of str or Path
        Files and/or directories to scan.
    flags : KeyTypeFlags, optional
        Key categories to emit.  Defaults to ``profile.default_flags``.
    profile : KeygenProfile, optional
        Scan profile.  Defaults to KeygenProfile.v0().
    output_dir : Path, optional
        Directory to write keygen_report.json.  If None, nothing is
        written to disk (useful for API responses).

    Returns
    -------
    KeygenReport
    """
    if profile is None:
        profile = KeygenProfile.v0()
    if flags is None:
        flags = profile.default_flags

    report = KeygenReport(profile_id=profile.profile_id, flags=flag_names(flags))
    counts = report.counts

    for path in expand_inputs(paths, profile):
        entry = derive_binary_keys(path, flags, profile)
        report.binaries.append(entry)

        counts.binaries += 1
        if entry.verdict == Verdict.ACCEPT.value:
            counts.accept += 1
        else:
            counts.reject += 1
        counts.keys += len(entry.keys)
        counts.invalid_keys += sum(1 for k in entry.keys if not k.valid)

    logger.info(
        "Derived %d keys from %d binaries (%d rejected)",
        counts.keys, counts.binaries, counts.reject,
    )

    if output_dir:
        write_report(report, output_dir)

    return report


def main():
    """CLI entry point for keygen_elf."""
    parser = argparse.ArgumentParser(
        description="keygen_elf — symbol-store keys for ELF binaries",
    )
    parser.add_argument(
        "inputs",
        nargs="+",
        help="ELF files or directories to scan",
    )
    parser.add_argument(
        "--identity",
        action="store_true",
        help="Emit the key for the binary itself",
    )
    parser.add_argument(
        "--symbol",
        action="store_true",
        help="Emit the key for the binary's .dbg companion",
    )
    parser.add_argument(
        "--clr",
        action="store_true",
        help="Emit CoreCLR companion module keys for libcoreclr.so",
    )
    parser.add_argument(
        "-o", "--output-dir",
        type=Path,
        default=None,
        help="Directory to write keygen_report.json",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    for p in args.inputs:
        if not Path(p).exists():
            logger.error("File not found: %s", p)
            sys.exit(1)

    flags = KeyTypeFlags.NONE
    if args.identity:
        flags |= KeyTypeFlags.IDENTITY_KEY
    if args.symbol:
        flags |= KeyTypeFlags.SYMBOL_KEY
    if args.clr:
        flags |= KeyTypeFlags.CLR_KEYS

    report = run_keygen(
        args.inputs,
        flags=flags or None,
        output_dir=args.output_dir,
    )

    for entry in report.binaries:
        for key in entry.keys:
            print(f"{key.index}\t{key.full_path_name}")

    print(f"Binaries: {report.counts.binaries} "
          f"(accept={report.counts.accept}, reject={report.counts.reject})")
    print(f"Keys: {report.counts.keys}")

    if args.output_dir:
        print(f"Report written to: {args.output_dir}")


if __name__ == "__main__":
    main()
