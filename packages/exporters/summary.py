"""Console findings summary rendered with rich."""
from __future__ import annotations

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from packages.exporters.markdown import DEFAULT_MAX_LISTED
from packages.schema.models import RuleReport, ScanResult, ScanStatus, status_message

RISK_COLORS = {
    "critical": "bold red",
    "high": "red",
    "medium": "yellow",
}

_STATUS_COLORS = {
    ScanStatus.FINDINGS: "red",
    ScanStatus.CLEAN: "green",
    ScanStatus.PARTIAL: "yellow",
    ScanStatus.NO_LANGUAGE: "yellow",
    ScanStatus.NO_RULES: "yellow",
}


def print_summary(console: Console, result: ScanResult, *, max_listed: int = DEFAULT_MAX_LISTED) -> None:
    _print_header(console, result)

    if result.status is ScanStatus.NO_LANGUAGE or result.status is ScanStatus.NO_RULES:
        _print_status(console, result)
        return

    for report in result.with_findings:
        _print_rule(console, report, max_listed)

    clean = result.clean_rules
    if clean:
        console.print("[bold]Patterns not found[/bold]")
        for report in clean:
            console.print(f"  [green]✓[/green] {report.rule.display_name} [dim]({report.rule.id})[/dim]")
        console.print()

    if result.skipped:
        console.print(f"[bold yellow]Skipped files ({len(result.skipped)})[/bold yellow]")
        for item in result.skipped:
            console.print(f"  {escape(item.file)} [dim]{escape(item.reason)}[/dim]")
        console.print()

    _print_status(console, result)


def _print_header(console: Console, result: ScanResult) -> None:
    detection = result.detection
    counts = ", ".join(f"{name}={count}" for name, count in detection.counts.items()) or "none"
    body = [
        f"[bold]Language:[/bold] {result.language or 'none'}",
        f"[bold]Files per language:[/bold] {counts}",
        f"[bold]Files scanned:[/bold] {result.files_scanned}",
        f"[bold]Findings:[/bold] {result.total_findings} across {len(result.with_findings)} pattern(s)",
    ]
    if detection.ambiguous:
        body.append(
            f"[yellow]Tie between {', '.join(detection.tied)}; selected {result.language}[/yellow]"
        )
    console.print(Panel("\n".join(body), title="Negative pattern scan", border_style="cyan", expand=False))


def _print_rule(console: Console, report: RuleReport, max_listed: int) -> None:
    rule = report.rule
    color = RISK_COLORS.get(rule.risk, "white")
    table = Table(
        title=f"[{color}]{rule.display_name}[/{color}] ({rule.id}) - {rule.risk.upper()} - {report.count} occurrence(s)",
        title_justify="left",
        show_header=True,
        header_style="bold",
        box=None,
        padding=(0, 1),
    )
    table.add_column("Location")
    table.add_column("Snippet", overflow="fold")

    shown = report.findings if max_listed <= 0 else report.findings[:max_listed]
    for finding in shown:
        first_line = finding.snippet.split("\n", 1)[0].strip()
        table.add_row(escape(finding.location), escape(first_line[:80]))
    console.print(table)

    omitted = report.count - len(shown)
    if omitted:
        console.print(f"  [dim]... {omitted} more location(s) omitted (list capped at {max_listed})[/dim]")
    console.print()


def _print_status(console: Console, result: ScanResult) -> None:
    color = _STATUS_COLORS.get(result.status, "white")
    console.print(f"[{color}]{escape(status_message(result))}[/{color}]")


__all__ = ["RISK_COLORS", "print_summary"]
