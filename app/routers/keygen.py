"""
Keygen Router
Symbol-store keys for ELF binaries.

Runs the keygen_elf package over files under the symbol root, or derives
keys directly from a build-id supplied by the caller.
"""
import logging
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from app.config import settings
from keygen_elf import KEYGEN_VERSION, PACKAGE_NAME, SCHEMA_VERSION  # type: ignore
from keygen_elf.core.key import flag_names, parse_flags  # type: ignore
from keygen_elf.core.key_generator import get_keys, is_symbol_file  # type: ignore
from keygen_elf.io.schema import KeygenReport, KeyModel  # type: ignore
from keygen_elf.runner import run_keygen  # type: ignore

logger = logging.getLogger(__name__)


# =============================================================================
# Request/Response Models
# =============================================================================

class KeygenRunRequest(BaseModel):
    """Request to scan binaries for keys."""
    paths: List[str] = Field(
        default_factory=list,
        description="Files or directories to scan; defaults to SYMBOL_ROOT",
    )
    flags: List[str] = Field(
        default_factory=lambda: ["identity", "symbol"],
        description="Key types: identity, symbol, clr",
    )
    write_outputs: bool = Field(
        False,
        description="Write keygen_report.json under KEYGEN_OUTPUT_ROOT",
    )


class KeysRequest(BaseModel):
    """Request to derive keys from already-extracted binary fields."""
    path: str = Field(..., min_length=1, description="Binary file name or path")
    build_id: str = Field(
        ...,
        description="GNU build-id, 40 hex digits",
        pattern=r"^[0-9a-fA-F]{40}$",
    )
    flags: List[str] = Field(default_factory=lambda: ["identity", "symbol"])
    symbol_file: Optional[bool] = Field(
        None,
        description="Whether path is a debug file; inferred from .dbg if omitted",
    )
    symbol_file_name: Optional[str] = Field(
        None,
        description="Debug file name from .gnu_debuglink",
    )


class KeysResponse(BaseModel):
    """Keys derived for one binary."""
    package_name: str = PACKAGE_NAME
    keygen_version: str = KEYGEN_VERSION
    schema_version: str = SCHEMA_VERSION
    flags: List[str]
    keys: List[KeyModel] = Field(default_factory=list)


# =============================================================================
# Router
# =============================================================================

router = APIRouter()


@router.post(
    "/run",
    response_model=KeygenReport,
    status_code=status.HTTP_200_OK,
    summary="Derive symbol-store keys for ELF files on disk",
)
async def run_keygen_endpoint(request: KeygenRunRequest):
    """
    Scan the requested paths (or ``SYMBOL_ROOT``) and derive the keys for
    every ELF binary found.  Non-ELF and ineligible files appear in the
    report as REJECT entries with reasons.
    """
    try:
        flags = parse_flags(request.flags)
    except ValueError as e:
        raise HTTPException(
            status_code=422,
            detail=str(e),
        )

    paths = request.paths or [settings.SYMBOL_ROOT]
    for p in paths:
        if not Path(p).exists():
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Path not found: {p}",
            )

    output_dir = Path(settings.KEYGEN_OUTPUT_ROOT) if request.write_outputs else None
    report = run_keygen(paths, flags=flags, output_dir=output_dir)

    logger.info(
        "Keygen run over %d path(s): %d keys, %d rejected",
        len(paths), report.counts.keys, report.counts.reject,
    )
    return report


@router.post(
    "/keys",
    response_model=KeysResponse,
    status_code=status.HTTP_200_OK,
    summary="Derive symbol-store keys from a build-id",
)
async def derive_keys_endpoint(request: KeysRequest):
    """
    Derive keys without touching any file: the caller supplies the path,
    the build-id and optionally the .gnu_debuglink name.
    """
    try:
        flags = parse_flags(request.flags)
    except ValueError as e:
        raise HTTPException(
            status_code=422,
            detail=str(e),
        )

    symbol_file = request.symbol_file
    if symbol_file is None:
        symbol_file = is_symbol_file(request.path)

    keys = get_keys(
        flags,
        request.path,
        bytes.fromhex(request.build_id),
        symbol_file,
        request.symbol_file_name,
    )
    return KeysResponse(
        flags=flag_names(flags),
        keys=[KeyModel.from_key(k) for k in keys],
    )
