"""
Verdict — binary-level ACCEPT / REJECT with reason enums.

The key generator itself yields nothing for an ineligible binary; the
gate explains *why*, for reports.  Policy reads the ElfView but never
parses bytes.
"""
from enum import Enum, unique
from typing import List, Tuple

from keygen_elf.core.elf_view import ElfView
from keygen_elf.core.key_generator import BUILD_ID_LENGTH, ELIGIBLE_HEADER_TYPES


@unique
class Verdict(str, Enum):
    ACCEPT = "ACCEPT"
    REJECT = "REJECT"


@unique
class BinaryRejectReason(str, Enum):
    NOT_ELF = "NOT_ELF"
    UNSUPPORTED_HEADER_TYPE = "UNSUPPORTED_HEADER_TYPE"
    BUILD_ID_MISSING = "BUILD_ID_MISSING"
    BUILD_ID_MALFORMED = "BUILD_ID_MALFORMED"
    READ_ERROR = "READ_ERROR"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"


def gate_binary(view: ElfView) -> Tuple[Verdict, List[str]]:
    """
    Evaluate whether *view* can produce keys.

    Returns (Verdict, list_of_reason_strings).
    Any single reject reason → REJECT.
    """
    if not view.is_valid():
        return Verdict.REJECT, [BinaryRejectReason.NOT_ELF.value]

    reasons: List[str] = []

    if view.header_type not in ELIGIBLE_HEADER_TYPES:
        reasons.append(BinaryRejectReason.UNSUPPORTED_HEADER_TYPE.value)

    build_id = view.build_id
    if build_id is None:
        reasons.append(BinaryRejectReason.BUILD_ID_MISSING.value)
    elif len(build_id) != BUILD_ID_LENGTH:
        reasons.append(BinaryRejectReason.BUILD_ID_MALFORMED.value)

    if reasons:
        return Verdict.REJECT, reasons
    return Verdict.ACCEPT, []
