"""
Writer — serialize the keygen report to JSON.

Filesystem layout:
    <output_dir>/keygen_report.json
"""
import json
from pathlib import Path

from keygen_elf.io.schema import KeygenReport

REPORT_FILE_NAME = "keygen_report.json"


def write_report(report: KeygenReport, output_dir: Path) -> Path:
    """
    Write keygen_report.json into *output_dir*.

    Creates *output_dir* if it does not exist.
    Returns the report file path.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    report_path = output_dir / REPORT_FILE_NAME
    report_path.write_text(
        json.dumps(
            report.model_dump(mode="json"),
            indent=2,
            sort_keys=True,
        )
        + "\n"
    )
    return report_path
