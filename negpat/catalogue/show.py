"""CLI helper to list and validate the shipped rule catalogues."""
from __future__ import annotations

import argparse
import sys
from typing import List

from packages.catalogue.loader import CatalogueError, available_languages, load_rules


def show_catalogue(language: str) -> int:
    """Print the rules for ``language`` after validating them."""

    try:
        rules = load_rules(language)
    except CatalogueError as exc:
        print(f"[negpat] Catalogue for '{language}' is invalid: {exc}", file=sys.stderr)
        return 1

    if not rules:
        print(
            f"[negpat] No rule catalogue for '{language}'. "
            f"Available: {', '.join(available_languages())}",
            file=sys.stderr,
        )
        return 3

    print(f"[negpat] {language}: {len(rules)} rule(s)")
    for rule in rules:
        mode = f"multiline/{rule.window}" if rule.multiline else "line"
        print(
            f"  {rule.id:<28} {rule.risk:<9} {mode:<12} "
            f"{len(rule.exclusions)} exclusion(s)  {rule.display_name}"
        )
    return 0


def main(argv: List[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="List and validate negpat rule catalogues")
    parser.add_argument("language", nargs="?", default=None, help="Language to show (default: all)")
    args = parser.parse_args(argv)

    languages = [args.language] if args.language else available_languages()
    worst = 0
    for language in languages:
        worst = max(worst, show_catalogue(language))
    return worst


if __name__ == "__main__":
    raise SystemExit(main())
