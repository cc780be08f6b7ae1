"""Enumerate candidate source files and read their content."""
from __future__ import annotations

import fnmatch
import logging
import os
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence

_LOG = logging.getLogger(__name__)

SKIP_DIRS = frozenset({
    ".git",
    ".hg",
    ".svn",
    ".idea",
    ".vscode",
    "node_modules",
    "bower_components",
    "__pycache__",
    ".pytest_cache",
    ".mypy_cache",
    ".tox",
    ".venv",
    "venv",
    "dist",
    "build",
    "target",
    "vendor",
    ".next",
    "coverage",
})

DEFAULT_MAX_FILE_BYTES = 2 * 1024 * 1024


def iter_files(root: Path, extensions: Optional[Iterable[str]] = None) -> Iterator[Path]:
    """Yield files under ``root`` whose suffix is in ``extensions`` (all files when ``None``)."""

    wanted = {ext.lower() for ext in extensions} if extensions is not None else None
    for dirpath, dirnames, filenames in os.walk(root, followlinks=False):
        # Prune in place so os.walk never descends into skipped trees
        dirnames[:] = sorted(
            d for d in dirnames
            if d not in SKIP_DIRS and not is_virtualenv(Path(dirpath) / d)
        )
        for name in sorted(filenames):
            if wanted is not None and Path(name).suffix.lower() not in wanted:
                continue
            yield Path(dirpath) / name


def is_virtualenv(path: Path) -> bool:
    """A virtual environment of any name carries a ``pyvenv.cfg`` at its root."""

    return (path / "pyvenv.cfg").is_file()


def list_source_files(root: Path, extensions: Iterable[str]) -> List[Path]:
    """Return the fixed, sorted file set a scan operates on."""

    return sorted(iter_files(root, extensions), key=lambda p: relative_path(root, p))


def relative_path(root: Path, path: Path) -> str:
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return path.as_posix()


def matches_globs(rel_path: str, globs: Sequence[str]) -> bool:
    """True when the file name or relative path matches one of ``globs``."""

    name = rel_path.rsplit("/", 1)[-1]
    return any(
        fnmatch.fnmatchcase(name, pattern) or fnmatch.fnmatchcase(rel_path, pattern)
        for pattern in globs
    )


def read_text(path: Path, max_bytes: int = DEFAULT_MAX_FILE_BYTES) -> str:
    """Read ``path`` as UTF-8, replacing undecodable bytes.

    Raises ``OSError`` when the file cannot be read or exceeds ``max_bytes``.
    """

    size = path.stat().st_size
    if size > max_bytes:
        raise OSError(f"file exceeds {max_bytes} bytes ({size} bytes)")
    with path.open("r", encoding="utf-8", errors="replace") as handle:
        return handle.read()


__all__ = [
    "SKIP_DIRS",
    "DEFAULT_MAX_FILE_BYTES",
    "iter_files",
    "is_virtualenv",
    "list_source_files",
    "relative_path",
    "matches_globs",
    "read_text",
]
