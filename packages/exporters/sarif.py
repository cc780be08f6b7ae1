"""SARIF exporter for negative-pattern findings."""
from __future__ import annotations

from typing import Dict, List

from packages.schema.models import RuleReport, ScanResult


_LEVEL_MAP = {
    "medium": "note",
    "high": "warning",
    "critical": "error",
}


def to_sarif(
    result: ScanResult,
    *,
    tool_name: str = "negpat",
    tool_version: str = "0.1.0",
) -> Dict[str, object]:
    return {
        "version": "2.1.0",
        "$schema": "https://json.schemastore.org/sarif-2.1.0.json",
        "runs": [
            {
                "tool": {
                    "driver": {
                        "name": tool_name,
                        "version": tool_version,
                        "rules": [_build_rule(report) for report in result.rules],
                    }
                },
                "results": _build_results(result.rules),
                "properties": {
                    "language": result.language,
                    "status": result.status.value,
                },
            }
        ],
    }


def _build_rule(report: RuleReport) -> Dict[str, object]:
    rule = report.rule
    return {
        "id": rule.id,
        "name": rule.display_name,
        "shortDescription": {"text": rule.display_name},
        "fullDescription": {"text": rule.rule_text.strip()},
        "properties": {
            "risk": rule.risk,
            "language": rule.language,
        },
    }


def _build_results(reports: List[RuleReport]) -> List[Dict[str, object]]:
    results: List[Dict[str, object]] = []
    for report in reports:
        level = _LEVEL_MAP.get(report.rule.risk, "warning")
        for finding in report.findings:
            results.append(
                {
                    "ruleId": finding.rule_id,
                    "level": level,
                    "message": {"text": report.rule.display_name},
                    "locations": [
                        {
                            "physicalLocation": {
                                "artifactLocation": {"uri": finding.file},
                                "region": {
                                    "startLine": finding.line,
                                    "endLine": finding.end_line,
                                    "snippet": {"text": finding.snippet},
                                },
                            }
                        }
                    ],
                }
            )
    return results


__all__ = ["to_sarif"]
