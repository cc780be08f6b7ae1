"""Dominant-language detection by extension counts and marker files."""
from __future__ import annotations

import logging
from collections import Counter
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional

from packages.schema.models import LanguageDetection
from packages.walker.files import iter_files

_LOG = logging.getLogger(__name__)

LANGUAGE_EXTENSIONS: Dict[str, FrozenSet[str]] = {
    "python": frozenset({".py", ".pyw"}),
    "javascript": frozenset({".js", ".jsx", ".mjs", ".cjs"}),
    "typescript": frozenset({".ts", ".tsx", ".mts", ".cts"}),
    "go": frozenset({".go"}),
    "java": frozenset({".java"}),
}

MARKER_FILES: Dict[str, FrozenSet[str]] = {
    "python": frozenset({"pyproject.toml", "setup.py", "setup.cfg", "requirements.txt", "Pipfile"}),
    "javascript": frozenset({"package.json"}),
    "typescript": frozenset({"tsconfig.json"}),
    "go": frozenset({"go.mod"}),
    "java": frozenset({"pom.xml", "build.gradle", "build.gradle.kts"}),
}

_SUFFIX_TO_LANGUAGE = {
    suffix: language
    for language, suffixes in LANGUAGE_EXTENSIONS.items()
    for suffix in suffixes
}


def language_for_path(path: Path) -> Optional[str]:
    return _SUFFIX_TO_LANGUAGE.get(path.suffix.lower())


def detect_language(root: Path) -> LanguageDetection:
    """Pick the single dominant language under ``root``.

    The language with the strictly highest file count wins. On a tie, a
    language whose marker file sits at the root is preferred when it is the
    only tied language with one; otherwise the lexicographically smallest
    name is chosen. Ties are always reported through ``tied``.
    """

    root = Path(root)
    counts: Counter[str] = Counter()
    for path in iter_files(root, _SUFFIX_TO_LANGUAGE.keys()):
        language = language_for_path(path)
        if language is not None:
            counts[language] += 1

    markers = _present_markers(root)
    ordered_counts = {name: counts[name] for name in sorted(counts)}

    if not counts:
        _LOG.info("No recognised source files under %s", root)
        return LanguageDetection(language=None, counts={}, markers=sorted(markers))

    top = max(counts.values())
    leaders = sorted(name for name, count in counts.items() if count == top)
    if len(leaders) == 1:
        return LanguageDetection(
            language=leaders[0],
            counts=ordered_counts,
            markers=sorted(markers),
        )

    with_marker = [name for name in leaders if _has_marker(name, markers)]
    selected = with_marker[0] if len(with_marker) == 1 else leaders[0]
    _LOG.warning(
        "Language tie between %s (%d files each); selected %s",
        ", ".join(leaders),
        top,
        selected,
    )
    return LanguageDetection(
        language=selected,
        counts=ordered_counts,
        tied=leaders,
        markers=sorted(markers),
    )


def _present_markers(root: Path) -> List[str]:
    known = set().union(*MARKER_FILES.values())
    if not root.is_dir():
        return []
    return [name for name in known if (root / name).is_file()]


def _has_marker(language: str, markers: List[str]) -> bool:
    return any(name in MARKER_FILES.get(language, ()) for name in markers)


__all__ = ["LANGUAGE_EXTENSIONS", "MARKER_FILES", "detect_language", "language_for_path"]
