"""Render the mitigation document as Markdown."""
from __future__ import annotations

from pathlib import Path
from typing import List, Sequence

from packages.schema.models import Finding, RuleReport, ScanResult, status_message

MITIGATION_FILENAME = "NEGATIVE_PATTERNS_MITIGATION.md"
DEFAULT_MAX_LISTED = 50
MAX_EXAMPLES = 3

_FENCE_LANGUAGE = {
    "python": "python",
    "javascript": "javascript",
    "typescript": "typescript",
    "go": "go",
    "java": "java",
}


def render_mitigation(result: ScanResult, *, max_listed: int = DEFAULT_MAX_LISTED) -> str:
    """Build the mitigation document for ``result``.

    Snippets are copied from findings verbatim; nothing is synthesised.
    """

    fence = _FENCE_LANGUAGE.get(result.language or "", "")
    lines: List[str] = [
        "# Negative Patterns Mitigation",
        "",
        f"- Language: `{result.language}`",
        f"- Files scanned: {result.files_scanned}",
        f"- Findings: {result.total_findings}",
        f"- Status: {status_message(result)}",
    ]
    if result.detection.ambiguous:
        lines.append(
            f"- Language tie between {', '.join(result.detection.tied)}; "
            f"`{result.language}` was selected."
        )
    lines.append("")

    if not result.with_findings:
        lines.extend(["No negative patterns were found.", ""])

    for report in result.with_findings:
        lines.extend(_render_rule(report, fence, max_listed))

    clean = result.clean_rules
    if clean:
        lines.extend(["## Patterns not found", ""])
        for report in clean:
            lines.append(f"- {report.rule.display_name} (`{report.rule.id}`)")
        lines.append("")

    if result.skipped:
        lines.extend(["## Skipped files", ""])
        for item in result.skipped:
            lines.append(f"- `{item.file}`: {item.reason}")
        lines.append("")

    return "\n".join(lines).rstrip("\n") + "\n"


def _render_rule(report: RuleReport, fence: str, max_listed: int) -> List[str]:
    rule = report.rule
    lines = [
        f"## {rule.display_name} (`{rule.id}`)",
        "",
        f"**Risk:** {rule.risk.capitalize()}  ",
        f"**Occurrences:** {report.count}",
        "",
    ]
    if rule.rule_text:
        lines.extend([rule.rule_text.rstrip("\n"), ""])
    if rule.before_example:
        lines.extend(["### Before", "", f"```{fence}", rule.before_example.rstrip("\n"), "```", ""])
    if rule.after_example:
        lines.extend(["### After", "", f"```{fence}", rule.after_example.rstrip("\n"), "```", ""])

    lines.extend(["### Example from your code", ""])
    for finding in report.findings[:MAX_EXAMPLES]:
        lines.extend([f"`{finding.location}`", "", f"```{fence}", finding.snippet, "```", ""])

    lines.extend(["### Affected locations", ""])
    lines.extend(_location_list(report.findings, max_listed))
    lines.append("")
    return lines


def _location_list(findings: Sequence[Finding], max_listed: int) -> List[str]:
    shown = findings if max_listed <= 0 else findings[:max_listed]
    lines = [f"- `{finding.location}`" for finding in shown]
    omitted = len(findings) - len(shown)
    if omitted:
        lines.append(f"- ... {omitted} more location(s) omitted (list capped at {max_listed})")
    return lines


def write_mitigation(root: Path, text: str) -> Path:
    """Overwrite the mitigation document in ``root``."""

    path = Path(root) / MITIGATION_FILENAME
    with path.open("w", encoding="utf-8") as handle:
        handle.write(text)
    return path


__all__ = ["MITIGATION_FILENAME", "DEFAULT_MAX_LISTED", "render_mitigation", "write_mitigation"]
