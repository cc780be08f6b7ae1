"""Load the static, versioned rule catalogue shipped as YAML package data."""
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Dict, List

import yaml
from pydantic import ValidationError

from packages.schema.models import Rule

_LOG = logging.getLogger(__name__)

_RULES_DIR = Path(__file__).with_name("rules")
CATALOGUE_VERSION = "1"


class CatalogueError(ValueError):
    """Raised when a catalogue entry is malformed."""


def available_languages() -> List[str]:
    return sorted(path.stem for path in _RULES_DIR.glob("*.yaml"))


def load_rules(language: str) -> List[Rule]:
    """Return the ordered rules for ``language``; ``[]`` when none are defined.

    Every regex in the catalogue is compiled here so a broken rule fails the
    run before any file is scanned.
    """

    if language not in available_languages():
        _LOG.info("No rule catalogue for language '%s'", language)
        return []

    path = _RULES_DIR / f"{language}.yaml"
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise CatalogueError(f"{path.name}: invalid YAML: {exc}") from exc

    entries = raw.get("rules") if isinstance(raw, dict) else None
    if not isinstance(entries, list):
        raise CatalogueError(f"{path.name}: expected a top-level 'rules' list")

    rules: List[Rule] = []
    seen: set[str] = set()
    for index, entry in enumerate(entries):
        rule = _build_rule(path.name, index, entry, language)
        if rule.id in seen:
            raise CatalogueError(f"{path.name}: duplicate rule id '{rule.id}'")
        seen.add(rule.id)
        rules.append(rule)
    return rules


def _build_rule(source: str, index: int, entry: Any, language: str) -> Rule:
    if not isinstance(entry, dict):
        raise CatalogueError(f"{source}: rule #{index} is not a mapping")

    data: Dict[str, Any] = {"language": language, **entry}
    try:
        rule = Rule.model_validate(data)
    except ValidationError as exc:
        raise CatalogueError(f"{source}: rule #{index} ({entry.get('id', '?')}): {exc}") from exc

    if rule.language != language:
        raise CatalogueError(
            f"{source}: rule '{rule.id}' declares language '{rule.language}'"
        )

    _check_regex(source, rule.id, "pattern", rule.pattern)
    for position, exclusion in enumerate(rule.exclusions):
        if exclusion.kind != "line_contains":
            _check_regex(source, rule.id, f"exclusions[{position}].value", exclusion.value)
        if exclusion.scope_start:
            _check_regex(source, rule.id, f"exclusions[{position}].scope_start", exclusion.scope_start)
    return rule


def _check_regex(source: str, rule_id: str, field: str, expression: str) -> None:
    try:
        re.compile(expression)
    except re.error as exc:
        raise CatalogueError(f"{source}: rule '{rule_id}' {field}: {exc}") from exc


__all__ = ["CATALOGUE_VERSION", "CatalogueError", "available_languages", "load_rules"]
