import json

from rich.console import Console

from packages.exporters.jsonl import write_jsonl
from packages.exporters.markdown import MITIGATION_FILENAME, render_mitigation, write_mitigation
from packages.exporters.sarif import to_sarif
from packages.exporters.summary import print_summary
from packages.schema.models import (
    Finding,
    LanguageDetection,
    Rule,
    RuleReport,
    ScanResult,
    ScanStatus,
    SkippedFile,
)


SECRET_SNIPPET = 'DB_PASSWORD = "s3cr3t-prod-value"'
AWAIT_SNIPPET = "    for user_id in user_ids:\n        await fetch(user_id)"


def _rule(rule_id: str, risk: str, display_name: str) -> Rule:
    return Rule(
        id=rule_id,
        display_name=display_name,
        risk=risk,
        language="python",
        file_globs=["*.py"],
        pattern="x",
        before_example="bad()\n",
        after_example="good()\n",
        rule_text="Do the good thing.\n",
    )


def sample_result(*, secret_count: int = 1, tied=None, skipped=None) -> ScanResult:
    secrets = [
        Finding(
            rule_id="hardcoded-secrets",
            file=f"app/config{index}.py",
            line=1,
            end_line=1,
            snippet=SECRET_SNIPPET,
            language="python",
        )
        for index in range(secret_count)
    ]
    awaits = [
        Finding(
            rule_id="sequential-await",
            file="app/users.py",
            line=4,
            end_line=5,
            snippet=AWAIT_SNIPPET,
            language="python",
        )
    ]
    return ScanResult(
        root="/repo",
        detection=LanguageDetection(language="python", counts={"python": 3}, tied=tied or []),
        language="python",
        status=ScanStatus.PARTIAL if skipped else ScanStatus.FINDINGS,
        rules=[
            RuleReport(rule=_rule("hardcoded-secrets", "critical", "Hardcoded Secrets"), findings=secrets),
            RuleReport(rule=_rule("sequential-await", "high", "Sequential Awaits in Loop"), findings=awaits),
            RuleReport(rule=_rule("debug-print", "medium", "Debug Print Statements")),
        ],
        skipped=skipped or [],
        files_scanned=3,
    )


def clean_result() -> ScanResult:
    return ScanResult(
        root="/repo",
        detection=LanguageDetection(language="python", counts={"python": 1}),
        language="python",
        status=ScanStatus.CLEAN,
        rules=[RuleReport(rule=_rule("debug-print", "medium", "Debug Print Statements"))],
        files_scanned=1,
    )


def test_markdown_sections_follow_report_order() -> None:
    text = render_mitigation(sample_result())

    assert text.startswith("# Negative Patterns Mitigation\n")
    secrets_at = text.index("## Hardcoded Secrets (`hardcoded-secrets`)")
    await_at = text.index("## Sequential Awaits in Loop (`sequential-await`)")
    clean_at = text.index("## Patterns not found")
    assert secrets_at < await_at < clean_at
    assert "- Debug Print Statements (`debug-print`)" in text
    assert "**Risk:** Critical" in text
    assert "### Before" in text and "### After" in text


def test_markdown_quotes_snippets_verbatim() -> None:
    text = render_mitigation(sample_result())

    assert f"```python\n{SECRET_SNIPPET}\n```" in text
    assert f"```python\n{AWAIT_SNIPPET}\n```" in text
    assert "`app/users.py:4-5`" in text


def test_markdown_states_location_cap() -> None:
    text = render_mitigation(sample_result(secret_count=5), max_listed=2)

    assert "- `app/config0.py:1`" in text
    assert "- `app/config1.py:1`" in text
    assert "- `app/config2.py:1`" not in text.split("### Affected locations")[1]
    assert "- ... 3 more location(s) omitted (list capped at 2)" in text


def test_markdown_lists_everything_when_uncapped() -> None:
    text = render_mitigation(sample_result(secret_count=5), max_listed=0)

    assert "omitted" not in text
    assert "- `app/config4.py:1`" in text


def test_markdown_reports_tie_and_skips() -> None:
    text = render_mitigation(
        sample_result(
            tied=["go", "python"],
            skipped=[SkippedFile(file="app/huge.py", reason="file exceeds 10 bytes")],
        )
    )

    assert "Language tie between go, python; `python` was selected." in text
    assert "## Skipped files" in text
    assert "- `app/huge.py`: file exceeds 10 bytes" in text


def test_markdown_clean_scan() -> None:
    text = render_mitigation(clean_result())

    assert "No negative patterns were found." in text
    assert "## Patterns not found" in text


def test_write_mitigation_overwrites(tmp_path) -> None:
    (tmp_path / MITIGATION_FILENAME).write_text("stale")

    path = write_mitigation(tmp_path, "fresh\n")

    assert path == tmp_path / MITIGATION_FILENAME
    assert path.read_text() == "fresh\n"


def test_sarif_export() -> None:
    payload = to_sarif(sample_result(), tool_version="9.9.9")

    run = payload["runs"][0]
    assert run["tool"]["driver"]["version"] == "9.9.9"
    assert [rule["id"] for rule in run["tool"]["driver"]["rules"]] == [
        "hardcoded-secrets",
        "sequential-await",
        "debug-print",
    ]
    levels = {result["ruleId"]: result["level"] for result in run["results"]}
    assert levels == {"hardcoded-secrets": "error", "sequential-await": "warning"}
    region = run["results"][1]["locations"][0]["physicalLocation"]["region"]
    assert region == {"startLine": 4, "endLine": 5, "snippet": {"text": AWAIT_SNIPPET}}
    assert run["properties"] == {"language": "python", "status": "findings"}


def test_jsonl_export(tmp_path) -> None:
    path = tmp_path / "out" / "negpat.jsonl"

    write_jsonl(path, sample_result(secret_count=2), "1")

    records = [json.loads(line) for line in path.read_text().splitlines()]
    assert len(records) == 3
    assert records[0]["catalogue"] == "python@1"
    assert records[0]["risk"] == "critical"
    assert records[0]["finding"]["file"] == "app/config0.py"
    assert records[2]["finding"]["end_line"] == 5


def test_console_summary_mentions_cap_and_status() -> None:
    console = Console(record=True, width=160)

    print_summary(console, sample_result(secret_count=4), max_listed=1)

    output = console.export_text()
    assert "Negative pattern scan" in output
    assert "Hardcoded Secrets" in output
    assert "3 more location(s) omitted (list capped at 1)" in output
    assert "Patterns not found" in output
    assert "Debug Print Statements" in output
    assert "5 finding(s) across 2 pattern(s)" in output
