"""Linear scan pipeline: detect, load catalogue, match files, aggregate."""
from __future__ import annotations

import logging
import os
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from packages.catalogue.loader import load_rules
from packages.detector.language import LANGUAGE_EXTENSIONS, detect_language
from packages.matcher.engine import CompiledRule, compile_rule, match_file
from packages.schema.models import (
    Finding,
    Rule,
    RuleReport,
    ScanResult,
    ScanStatus,
    SkippedFile,
)
from packages.walker.files import (
    DEFAULT_MAX_FILE_BYTES,
    list_source_files,
    read_text,
    relative_path,
)

_LOG = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int, int], None]
UnitOutcome = Union[Tuple[Finding, ...], SkippedFile]


class ScanCancelled(RuntimeError):
    """Raised when a scan is aborted; partial results are discarded."""


class ScanConfigError(ValueError):
    """Raised when an environment setting cannot be used."""


def _env_int(name: str) -> Optional[int]:
    configured = os.environ.get(name)
    if not configured:
        return None
    try:
        return int(configured)
    except ValueError as exc:
        raise ScanConfigError(f"{name} must be an integer, got {configured!r}") from exc


def default_workers() -> int:
    configured = _env_int("NEGPAT_WORKERS")
    if configured is not None:
        return max(1, configured)
    return min(8, (os.cpu_count() or 1))


def default_max_file_bytes() -> int:
    configured = _env_int("NEGPAT_MAX_FILE_BYTES")
    return configured if configured is not None else DEFAULT_MAX_FILE_BYTES


def run_scan(
    root: Union[str, Path],
    language: Optional[str] = None,
    *,
    workers: Optional[int] = None,
    cancel: Optional[threading.Event] = None,
    max_file_bytes: Optional[int] = None,
    progress: Optional[ProgressCallback] = None,
) -> ScanResult:
    """Scan ``root`` and return an immutable, deterministically ordered result.

    ``language`` overrides detection. Unusable environment settings raise
    ``ScanConfigError`` and catalogue errors surface before any file is
    read. Setting ``cancel`` stops dispatching work and raises
    ``ScanCancelled``.
    """

    root_path = Path(root)
    if not root_path.is_dir():
        raise FileNotFoundError(f"Scan target not found: {root}")

    limit = max_file_bytes if max_file_bytes is not None else default_max_file_bytes()
    pool_size = workers if workers is not None else default_workers()

    detection = detect_language(root_path)
    selected = language or detection.language
    if selected is None:
        return ScanResult(
            root=str(root_path),
            detection=detection,
            status=ScanStatus.NO_LANGUAGE,
        )

    rules = load_rules(selected)
    if not rules:
        return ScanResult(
            root=str(root_path),
            detection=detection,
            language=selected,
            status=ScanStatus.NO_RULES,
        )

    compiled = [compile_rule(rule) for rule in rules]
    extensions = LANGUAGE_EXTENSIONS.get(selected, frozenset())
    files = list_source_files(root_path, extensions)
    _LOG.info("Scanning %d %s file(s) with %d rule(s)", len(files), selected, len(compiled))

    outcomes = _dispatch(root_path, files, compiled, limit, pool_size, cancel, progress)

    findings: List[Finding] = []
    skipped: List[SkippedFile] = []
    for outcome in outcomes:
        if isinstance(outcome, SkippedFile):
            skipped.append(outcome)
        else:
            findings.extend(outcome)

    reports = aggregate(rules, findings)
    skipped.sort(key=lambda item: item.file)
    return ScanResult(
        root=str(root_path),
        detection=detection,
        language=selected,
        status=_status_for(reports, skipped),
        rules=reports,
        skipped=skipped,
        files_scanned=len(files) - len(skipped),
    )


def scan_file(
    root: Path,
    path: Path,
    compiled: Sequence[CompiledRule],
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES,
) -> UnitOutcome:
    """Apply every eligible rule to one file."""

    rel_path = relative_path(root, path)
    eligible = [rule for rule in compiled if rule.applies_to(rel_path)]
    if not eligible:
        return ()
    try:
        text = read_text(path, max_file_bytes)
    except OSError as exc:
        _LOG.warning("Skipping %s: %s", rel_path, exc)
        return SkippedFile(file=rel_path, reason=str(exc))

    findings: List[Finding] = []
    for rule in eligible:
        findings.extend(match_file(rule, rel_path, text))
    return tuple(findings)


def aggregate(rules: Iterable[Rule], findings: Iterable[Finding]) -> List[RuleReport]:
    """Group findings by rule and order by risk, count, then rule id."""

    grouped: Dict[str, List[Finding]] = {}
    for finding in findings:
        grouped.setdefault(finding.rule_id, []).append(finding)

    reports = [
        RuleReport(
            rule=rule,
            findings=sorted(
                grouped.get(rule.id, []),
                key=lambda f: (f.file, f.line, f.end_line),
            ),
        )
        for rule in rules
    ]
    reports.sort(key=lambda report: (-report.rule.rank, -report.count, report.rule.id))
    return reports


def _dispatch(
    root: Path,
    files: Sequence[Path],
    compiled: Sequence[CompiledRule],
    max_file_bytes: int,
    workers: int,
    cancel: Optional[threading.Event],
    progress: Optional[ProgressCallback],
) -> List[UnitOutcome]:
    total = len(files)
    outcomes: List[UnitOutcome] = []

    if workers <= 1 or total <= 1:
        for index, path in enumerate(files):
            _raise_if_cancelled(cancel)
            outcomes.append(scan_file(root, path, compiled, max_file_bytes))
            if progress:
                progress(relative_path(root, path), index, total)
        _raise_if_cancelled(cancel)
        return outcomes

    pending: Dict[Future, Path] = {}
    queue = iter(files)
    completed = 0
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="negpat") as executor:
        try:
            for path in queue:
                pending[executor.submit(scan_file, root, path, compiled, max_file_bytes)] = path
                if len(pending) >= workers * 2:
                    break
            while pending:
                _raise_if_cancelled(cancel)
                done, _ = wait(pending, timeout=0.1, return_when=FIRST_COMPLETED)
                for future in done:
                    path = pending.pop(future)
                    outcomes.append(future.result())
                    if progress:
                        progress(relative_path(root, path), completed, total)
                    completed += 1
                    if cancel is None or not cancel.is_set():
                        next_path = next(queue, None)
                        if next_path is not None:
                            pending[executor.submit(
                                scan_file, root, next_path, compiled, max_file_bytes
                            )] = next_path
            _raise_if_cancelled(cancel)
        except ScanCancelled:
            for future in pending:
                future.cancel()
            raise
    return outcomes


def _raise_if_cancelled(cancel: Optional[threading.Event]) -> None:
    if cancel is not None and cancel.is_set():
        raise ScanCancelled("Scan cancelled; partial results discarded")


def _status_for(reports: Sequence[RuleReport], skipped: Sequence[SkippedFile]) -> ScanStatus:
    if skipped:
        return ScanStatus.PARTIAL
    if any(not report.clean for report in reports):
        return ScanStatus.FINDINGS
    return ScanStatus.CLEAN


__all__ = [
    "ScanCancelled",
    "ScanConfigError",
    "aggregate",
    "default_max_file_bytes",
    "default_workers",
    "run_scan",
    "scan_file",
]
