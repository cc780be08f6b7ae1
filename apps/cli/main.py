"""Typer CLI entrypoint for negative-pattern scans."""
from __future__ import annotations

import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence

import typer
from rich.console import Console

from negpat.version import __version__
from packages.catalogue.loader import CATALOGUE_VERSION, CatalogueError
from packages.exporters.jsonl import write_jsonl
from packages.exporters.markdown import DEFAULT_MAX_LISTED, render_mitigation, write_mitigation
from packages.exporters.sarif import to_sarif
from packages.exporters.summary import print_summary
from packages.scanner.pipeline import ScanCancelled, ScanConfigError, run_scan
from packages.schema.models import ScanResult, status_message

app = typer.Typer(add_completion=False)
console = Console()

_LOG = logging.getLogger(__name__)

_VALID_FORMATS = {"markdown", "json", "sarif"}


class DebugLogger:
    """JSONL debug trace writer used during CLI runs."""

    def __init__(self, path: Optional[Path]):
        self._handle = None
        if path is not None:
            path.parent.mkdir(parents=True, exist_ok=True)
            self._handle = path.open("w", encoding="utf-8")

    @property
    def enabled(self) -> bool:
        return self._handle is not None

    def log(self, event: str, payload: Optional[dict] = None, **extra: object) -> None:
        if not self._handle:
            return
        entry: dict[str, object] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event": event,
        }
        if payload:
            entry.update(payload)
        if extra:
            entry.update(extra)
        self._handle.write(json.dumps(entry, ensure_ascii=False) + "\n")
        self._handle.flush()

    def close(self) -> None:
        if self._handle:
            self._handle.close()
            self._handle = None


def _normalize_formats(values: Sequence[str]) -> List[str]:
    normalized = []
    for value in values:
        fmt = value.lower()
        if fmt not in _VALID_FORMATS:
            raise typer.BadParameter(
                f"Unsupported format '{value}'. Choose from {sorted(_VALID_FORMATS)}"
            )
        if fmt not in normalized:
            normalized.append(fmt)
    return normalized


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"negpat {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )


@app.command()
def scan(
    path: Path = typer.Option(Path("."), "--path", help="Repository root to scan"),
    language: Optional[str] = typer.Option(
        None,
        "--language",
        help="Skip detection and scan as this language",
    ),
    format: List[str] = typer.Option(
        ["markdown"], "--format", help="Repeatable option: markdown, json, sarif"
    ),
    out: Path = typer.Option(
        Path("artifacts/negpat"),
        "--out",
        help="Directory for json/sarif exports",
    ),
    workers: Optional[int] = typer.Option(
        None,
        "--workers",
        min=1,
        envvar="NEGPAT_WORKERS",
        help="Worker threads for file matching (1 runs serially)",
    ),
    max_listed: int = typer.Option(
        DEFAULT_MAX_LISTED,
        "--max-listed",
        help="Locations listed per pattern before the list is capped (0 lists all)",
    ),
    fail_on_findings: bool = typer.Option(
        False,
        "--fail-on-findings",
        help="Exit with code 1 when any finding is reported",
    ),
    debug_log: Optional[Path] = typer.Option(
        None,
        "--debug-log",
        help="Write debug trace JSONL to this path",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit",
    ),
) -> None:
    """Scan a repository for negative coding patterns and write a mitigation document."""

    _configure_logging(verbose)
    debug = DebugLogger(debug_log)

    try:
        formats = _normalize_formats(format)
        console.log(f"Starting scan: path={path} language={language or 'auto'} formats={formats}")
        debug.log("start", {
            "path": str(path),
            "language": language,
            "formats": formats,
            "workers": workers,
        })

        cancel = threading.Event()
        try:
            result = run_scan(path, language, workers=workers, cancel=cancel)
        except FileNotFoundError as exc:
            console.print(f"[red]{exc}[/]")
            debug.log("error", {"stage": "scan", "message": str(exc)})
            raise typer.Exit(code=2) from exc
        except ScanConfigError as exc:
            console.print(f"[red]Invalid configuration: {exc}[/]")
            debug.log("error", {"stage": "config", "message": str(exc)})
            raise typer.Exit(code=2) from exc
        except CatalogueError as exc:
            console.print(f"[red]Rule catalogue is invalid: {exc}[/]")
            debug.log("error", {"stage": "catalogue", "message": str(exc)})
            raise typer.Exit(code=2) from exc
        except KeyboardInterrupt as exc:
            cancel.set()
            console.print("\n[yellow]Scan interrupted; partial results discarded.[/]")
            debug.log("exit", {"code": 130, "reason": "interrupted"})
            raise typer.Exit(code=130) from exc
        except ScanCancelled as exc:
            console.print(f"[yellow]{exc}[/]")
            debug.log("exit", {"code": 130, "reason": "cancelled"})
            raise typer.Exit(code=130) from exc

        debug.log("detection", result.detection.model_dump())
        if result.language:
            debug.log("catalogue", {
                "language": result.language,
                "version": CATALOGUE_VERSION,
                "rules": [report.rule.id for report in result.rules],
            })
        debug.log("scan_complete", {
            "language": result.language,
            "status": result.status.value,
            "files_scanned": result.files_scanned,
            "findings": result.total_findings,
            "skipped": [item.model_dump() for item in result.skipped],
        })

        print_summary(console, result, max_listed=max_listed)

        if not result.writes_report:
            debug.log("exit", {"code": 0, "status": result.status.value})
            raise typer.Exit(code=0)

        markdown = render_mitigation(result, max_listed=max_listed)
        try:
            report_path = write_mitigation(path, markdown)
        except OSError as exc:
            console.print(f"[red]Could not write mitigation document: {exc}[/]")
            console.print(markdown, markup=False, highlight=False)
            debug.log("error", {"stage": "write_report", "message": str(exc)})
            raise typer.Exit(code=2) from exc
        console.print(f"Mitigation document written to {report_path}")

        outputs = _export_results(result, formats=formats, out=out)
        debug.log("exports", {"paths": {k: str(v) for k, v in outputs.items()}, "report": str(report_path)})

        if fail_on_findings and result.total_findings:
            debug.log("exit", {"code": 1, "findings": result.total_findings})
            raise typer.Exit(code=1)

        debug.log("exit", {"code": 0, "status": result.status.value})
        raise typer.Exit(code=0)

    finally:
        debug.close()


def _export_results(
    result: ScanResult,
    *,
    formats: Sequence[str],
    out: Path,
) -> dict[str, Path]:
    fmt_set = set(formats) - {"markdown"}
    outputs: dict[str, Path] = {}
    if not fmt_set:
        return outputs

    out.mkdir(parents=True, exist_ok=True)

    if "sarif" in fmt_set:
        sarif_path = out / "negpat.sarif"
        with sarif_path.open("w", encoding="utf-8") as handle:
            json.dump(to_sarif(result, tool_version=__version__), handle, indent=2)
            handle.write("\n")
        outputs["sarif"] = sarif_path

    if "json" in fmt_set:
        json_path = out / "negpat.jsonl"
        write_jsonl(json_path, result, CATALOGUE_VERSION)
        outputs["json"] = json_path

    _LOG.debug("Exports written: %s (%s)", outputs, status_message(result))
    return outputs


if __name__ == "__main__":  # pragma: no cover - manual execution
    app()
