#!/usr/bin/env python3

"""Helper entrypoint for a CI action step that invokes a negpat scan."""
import os
import shlex
import subprocess
import sys


def _get_env(name: str) -> str:
    value = os.environ.get(name)
    if value is None:
        raise KeyError(f"Missing required environment variable: {name}")
    return value


def build_command() -> list:
    formats = [f.strip() for f in os.environ.get("FORMATS", "").split(',') if f.strip()]
    cmd = ["negpat", "--path", _get_env("INPUT_PATH")]
    language = os.environ.get("INPUT_LANGUAGE", "").strip()
    if language:
        cmd.extend(["--language", language])
    out = os.environ.get("INPUT_OUT", "").strip()
    if out:
        cmd.extend(["--out", out])
    for fmt in formats:
        cmd.extend(["--format", fmt])
    if os.environ.get("INPUT_FAIL_ON_FINDINGS", "").lower() in ("1", "true", "yes"):
        cmd.append("--fail-on-findings")
    return cmd


def main() -> int:
    cmd = build_command()
    print("Running:", " ".join(shlex.quote(part) for part in cmd))
    return subprocess.call(cmd)


if __name__ == "__main__":
    exit_code = main()
    if exit_code not in (0, 1):
        sys.exit(exit_code)
