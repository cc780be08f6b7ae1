"""Evaluate catalogue rules against file content.

Single-line rules are searched line by line. Multi-line rules are anchored
at the start of each line and matched against a window of at most
``rule.window`` lines (never more than ``MAX_WINDOW_LINES``), so a match can
never run across the whole file.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Pattern, Sequence, Tuple

from packages.schema.models import MAX_WINDOW_LINES, Exclusion, Finding, Rule
from packages.walker.files import matches_globs

_LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompiledExclusion:
    kind: str
    value: str
    regex: Optional[Pattern[str]]
    scope_start: Optional[Pattern[str]]


@dataclass(frozen=True)
class CompiledRule:
    """A rule with its expressions compiled once per run and shared read-only."""

    rule: Rule
    pattern: Pattern[str]
    exclusions: Tuple[CompiledExclusion, ...]

    @property
    def window(self) -> int:
        return min(self.rule.window, MAX_WINDOW_LINES)

    def applies_to(self, rel_path: str) -> bool:
        return matches_globs(rel_path, self.rule.file_globs)


def compile_rule(rule: Rule) -> CompiledRule:
    return CompiledRule(
        rule=rule,
        pattern=re.compile(rule.pattern),
        exclusions=tuple(_compile_exclusion(exc) for exc in rule.exclusions),
    )


def _compile_exclusion(exclusion: Exclusion) -> CompiledExclusion:
    regex = None if exclusion.kind == "line_contains" else re.compile(exclusion.value)
    scope = re.compile(exclusion.scope_start) if exclusion.scope_start else None
    return CompiledExclusion(
        kind=exclusion.kind,
        value=exclusion.value,
        regex=regex,
        scope_start=scope,
    )


def match_file(compiled: CompiledRule, rel_path: str, text: str) -> List[Finding]:
    """Return confirmed findings of ``compiled`` in one file's content."""

    lines = split_lines(text)
    findings: List[Finding] = []
    for start, end in candidate_ranges(compiled, lines):
        if is_excluded(compiled, rel_path, lines, start, end):
            continue
        findings.append(
            Finding(
                rule_id=compiled.rule.id,
                file=rel_path,
                line=start + 1,
                end_line=end + 1,
                snippet="\n".join(lines[start:end + 1]),
                language=compiled.rule.language,
            )
        )
    return findings


def split_lines(text: str) -> List[str]:
    """Split on newline characters only, so form feeds and Unicode line
    separators stay inside their physical line."""

    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return lines


def candidate_ranges(compiled: CompiledRule, lines: Sequence[str]) -> List[Tuple[int, int]]:
    """Zero-based inclusive ``(start, end)`` line ranges of raw matches."""

    ranges: List[Tuple[int, int]] = []
    if not compiled.rule.multiline:
        for index, line in enumerate(lines):
            if compiled.pattern.search(line):
                ranges.append((index, index))
        return ranges

    window = compiled.window
    for index in range(len(lines)):
        chunk = "\n".join(lines[index:index + window])
        match = compiled.pattern.match(chunk)
        if match is None:
            continue
        consumed = chunk[:match.end()].rstrip("\n")
        ranges.append((index, index + consumed.count("\n")))
    return ranges


def is_excluded(
    compiled: CompiledRule,
    rel_path: str,
    lines: Sequence[str],
    start: int,
    end: int,
) -> bool:
    # First matching exclusion wins; the rest are not evaluated.
    for exclusion in compiled.exclusions:
        if _exclusion_hits(exclusion, rel_path, lines, start, end):
            _LOG.debug(
                "%s:%d suppressed for %s by %s",
                rel_path,
                start + 1,
                compiled.rule.id,
                exclusion.kind,
            )
            return True
    return False


def _exclusion_hits(
    exclusion: CompiledExclusion,
    rel_path: str,
    lines: Sequence[str],
    start: int,
    end: int,
) -> bool:
    kind = exclusion.kind
    if kind == "line_contains":
        return any(exclusion.value in line for line in lines[start:end + 1])
    if kind == "line_matches":
        return any(exclusion.regex.search(line) for line in lines[start:end + 1])
    if kind == "path_matches":
        return exclusion.regex.search(rel_path) is not None
    if kind == "preceding_line_matches":
        neighbour = _nearest_non_blank(lines, start - 1, -1)
        return neighbour is not None and exclusion.regex.search(neighbour) is not None
    if kind == "following_line_matches":
        neighbour = _nearest_non_blank(lines, end + 1, 1)
        return neighbour is not None and exclusion.regex.search(neighbour) is not None
    if kind == "scope_contains":
        scope = _enclosing_scope(lines, start, exclusion.scope_start)
        return any(exclusion.regex.search(line) for line in scope)
    raise ValueError(f"Unknown exclusion kind '{kind}'")


def _nearest_non_blank(lines: Sequence[str], index: int, step: int) -> Optional[str]:
    while 0 <= index < len(lines):
        if lines[index].strip():
            return lines[index]
        index += step
    return None


def _enclosing_scope(lines: Sequence[str], start: int, scope_start: Pattern[str]) -> Sequence[str]:
    """Lines from the nearest block header at or above ``start`` to the next header."""

    top = 0
    for index in range(start, -1, -1):
        if scope_start.search(lines[index]):
            top = index
            break
    bottom = len(lines)
    for index in range(max(start, top) + 1, len(lines)):
        if scope_start.search(lines[index]):
            bottom = index
            break
    return lines[top:bottom]


__all__ = [
    "CompiledRule",
    "CompiledExclusion",
    "compile_rule",
    "match_file",
    "candidate_ranges",
    "split_lines",
    "is_excluded",
]
