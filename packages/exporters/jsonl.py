"""Write findings as JSON Lines records."""
from __future__ import annotations

import json
from pathlib import Path

from packages.schema.models import ScanResult


def write_jsonl(path: Path, result: ScanResult, catalogue_version: str) -> None:
    """Write one record per finding, in report order."""

    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        for report in result.rules:
            for finding in report.findings:
                record = {
                    "finding": finding.model_dump(),
                    "risk": report.rule.risk,
                    "rule": report.rule.display_name,
                    "catalogue": f"{result.language}@{catalogue_version}",
                }
                handle.write(json.dumps(record, ensure_ascii=False) + "\n")


__all__ = ["write_jsonl"]
