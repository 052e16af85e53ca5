"""
Profile — batch knobs for the key generator runner.

The key shapes themselves are a store contract and live in
``core.key_generator``; the profile only covers how a scan is driven.
"""
from __future__ import annotations

from dataclasses import dataclass

from keygen_elf.core.key import KeyTypeFlags


@dataclass(frozen=True)
class KeygenProfile:
    """Scan settings for ``run_keygen``."""

    profile_id: str
    default_flags: KeyTypeFlags = KeyTypeFlags.IDENTITY_KEY | KeyTypeFlags.SYMBOL_KEY
    recurse: bool = True
    max_file_size: int = 1 << 30   # bytes; larger files are skipped

    @classmethod
    def v0(cls) -> KeygenProfile:
        """The single supported profile: identity + symbol keys, recursive."""
        return cls(profile_id="elf-buildid-v0")
