"""Core schema models shared across the detector, matcher, pipeline, and exporters."""
from __future__ import annotations

from enum import Enum
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

Risk = Literal["critical", "high", "medium"]
Language = Literal["python", "javascript", "typescript", "go", "java"]
ExclusionKind = Literal[
    "line_contains",
    "line_matches",
    "path_matches",
    "preceding_line_matches",
    "following_line_matches",
    "scope_contains",
]

RISK_RANK: Dict[str, int] = {"critical": 3, "high": 2, "medium": 1}

# Hard cap on the number of lines a multi-line rule may span.
MAX_WINDOW_LINES = 20
DEFAULT_WINDOW_LINES = 8


class Exclusion(BaseModel):
    """Heuristic that suppresses an otherwise matching candidate."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: ExclusionKind
    value: str = Field(min_length=1)
    scope_start: Optional[str] = None
    description: str = ""

    @model_validator(mode="after")
    def _scope_needs_start(self) -> "Exclusion":
        if self.kind == "scope_contains" and not self.scope_start:
            raise ValueError("scope_contains exclusions require scope_start")
        return self


class Rule(BaseModel):
    """Language-scoped detection definition loaded from the catalogue."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(min_length=1)
    display_name: str
    risk: Risk
    language: Language
    file_globs: List[str] = Field(min_length=1)
    pattern: str = Field(min_length=1)
    multiline: bool = False
    window: int = Field(default=DEFAULT_WINDOW_LINES, ge=2, le=MAX_WINDOW_LINES)
    exclusions: List[Exclusion] = Field(default_factory=list)
    before_example: str = ""
    after_example: str = ""
    rule_text: str = ""

    @property
    def rank(self) -> int:
        return RISK_RANK[self.risk]


class Finding(BaseModel):
    """One confirmed, non-excluded match of a rule."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    rule_id: str
    file: str
    line: int = Field(ge=1)
    end_line: int = Field(ge=1)
    snippet: str
    language: Language

    @model_validator(mode="after")
    def _range_is_ordered(self) -> "Finding":
        if self.end_line < self.line:
            raise ValueError("end_line must not precede line")
        return self

    @property
    def location(self) -> str:
        if self.end_line != self.line:
            return f"{self.file}:{self.line}-{self.end_line}"
        return f"{self.file}:{self.line}"


class SkippedFile(BaseModel):
    """A file the scan could not read."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    file: str
    reason: str


class RuleReport(BaseModel):
    """A rule together with its confirmed findings for one run."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    rule: Rule
    findings: List[Finding] = Field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.findings)

    @property
    def clean(self) -> bool:
        return not self.findings


class LanguageDetection(BaseModel):
    """Outcome of dominant-language detection."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    language: Optional[Language] = None
    counts: Dict[str, int] = Field(default_factory=dict)
    tied: List[str] = Field(default_factory=list)
    markers: List[str] = Field(default_factory=list)

    @property
    def ambiguous(self) -> bool:
        return bool(self.tied)


class ScanStatus(str, Enum):
    FINDINGS = "findings"
    CLEAN = "clean"
    PARTIAL = "partial"
    NO_LANGUAGE = "no-language"
    NO_RULES = "no-rules"


class ScanResult(BaseModel):
    """Aggregate of one scan-and-report cycle."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    root: str
    detection: LanguageDetection
    language: Optional[str] = None
    status: ScanStatus
    rules: List[RuleReport] = Field(default_factory=list)
    skipped: List[SkippedFile] = Field(default_factory=list)
    files_scanned: int = 0

    @property
    def findings(self) -> List[Finding]:
        return [finding for report in self.rules for finding in report.findings]

    @property
    def total_findings(self) -> int:
        return sum(report.count for report in self.rules)

    @property
    def with_findings(self) -> List[RuleReport]:
        return [report for report in self.rules if not report.clean]

    @property
    def clean_rules(self) -> List[RuleReport]:
        return [report for report in self.rules if report.clean]

    @property
    def writes_report(self) -> bool:
        return self.status not in (ScanStatus.NO_LANGUAGE, ScanStatus.NO_RULES)


def status_message(result: ScanResult) -> str:
    """Human-readable description of the run's terminal state."""

    if result.status is ScanStatus.NO_LANGUAGE:
        return "No supported language detected; nothing was scanned."
    if result.status is ScanStatus.NO_RULES:
        return f"No rule catalogue is defined for '{result.language}'; scanned with zero rules."
    if result.status is ScanStatus.PARTIAL:
        return (
            f"Scan finished with {len(result.skipped)} skipped file(s); "
            f"{result.total_findings} finding(s) across {len(result.with_findings)} pattern(s)."
        )
    if result.status is ScanStatus.FINDINGS:
        return (
            f"Scan complete: {result.total_findings} finding(s) across "
            f"{len(result.with_findings)} pattern(s)."
        )
    return f"Scan complete: no negative patterns found in {result.files_scanned} file(s)."
