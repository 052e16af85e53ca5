"""
Schema — Pydantic models for the keygen JSON report.

One output per run: keygen_report.json, with a per-binary entry listing
the derived keys or the reject reasons.

Runtime contract fields (present in every output):
  package_name, keygen_version, profile_id, schema_version.
"""
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field

from keygen_elf import KEYGEN_VERSION, PACKAGE_NAME, SCHEMA_VERSION
from keygen_elf.core.key import SymbolStoreKey, is_key_valid


class KeyModel(BaseModel):
    """One symbol-store key."""

    index: str
    full_path_name: str
    is_clr_special_file: bool = False
    valid: bool = True        # index passes is_key_valid()

    @classmethod
    def from_key(cls, key: SymbolStoreKey) -> "KeyModel":
        return cls(
            index=key.index,
            full_path_name=key.full_path_name,
            is_clr_special_file=key.is_clr_special_file,
            valid=is_key_valid(key.index),
        )


class BinaryKeysEntry(BaseModel):
    """Keys (or reject reasons) for one scanned file."""

    path: str
    verdict: str              # ACCEPT | REJECT
    reasons: List[str] = Field(default_factory=list)

    header_type: Optional[str] = None
    build_id: Optional[str] = None      # lower-case hex
    is_symbol_file: bool = False
    debug_link: Optional[str] = None

    keys: List[KeyModel] = Field(default_factory=list)


class KeyCounts(BaseModel):
    binaries: int = 0
    accept: int = 0
    reject: int = 0
    keys: int = 0
    invalid_keys: int = 0


class KeygenReport(BaseModel):
    """Run summary — keygen_report.json."""

    package_name: str = PACKAGE_NAME
    keygen_version: str = KEYGEN_VERSION
    schema_version: str = SCHEMA_VERSION
    profile_id: str

    flags: List[str] = Field(default_factory=list)
    binaries: List[BinaryKeysEntry] = Field(default_factory=list)
    counts: KeyCounts = Field(default_factory=KeyCounts)

    timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
