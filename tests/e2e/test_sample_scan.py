import json
from pathlib import Path

from typer.testing import CliRunner

from apps.cli.main import app
from packages.exporters.markdown import MITIGATION_FILENAME


SAMPLE_FILES = {
    "pyproject.toml": "[project]\nname = \"sample\"\n",
    "app/__init__.py": "",
    "app/settings.py": (
        "import os\n"
        "\n"
        'DATABASE_PASSWORD = "s3cr3t-prod-password"\n'
        'API_TOKEN = os.environ["API_TOKEN"]\n'
        'SIGNING_SECRET = "changeme-later"\n'
    ),
    "app/users.py": (
        "import asyncio\n"
        "\n"
        "\n"
        "async def load_users(client, user_ids):\n"
        "    users = []\n"
        "    for user_id in user_ids:\n"
        "        users.append(await client.fetch(user_id))\n"
        "    return users\n"
        "\n"
        "\n"
        "async def load_all(client, user_ids):\n"
        "    first = await asyncio.gather(*(client.fetch(u) for u in user_ids[:5]))\n"
        "    for user_id in user_ids[5:]:\n"
        "        first.append(await client.fetch(user_id))\n"
        "    return first\n"
    ),
    "app/jobs.py": (
        "import logging\n"
        "\n"
        "logger = logging.getLogger(__name__)\n"
        "\n"
        "\n"
        "def sync(items):\n"
        "    for item in items:\n"
        "        try:\n"
        "            item.save()\n"
        "        except Exception:\n"
        "            pass\n"
        "\n"
        "\n"
        "def sync_logged(items):\n"
        "    try:\n"
        "        items.flush()\n"
        "    except Exception:\n"
        '        logger.exception("flush failed")\n'
    ),
    "tests/test_settings.py": 'PASSWORD = "fixture-password-123"\nprint("debug")\n',
    "node_modules/pkg/index.js": 'const apiKey = "sk_live_51HxQ2abc";\n',
}


def build_sample_repo(root: Path) -> Path:
    for rel, content in SAMPLE_FILES.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return root


def test_sample_repo_scan(tmp_path):
    repo = build_sample_repo(tmp_path / "repo")
    out_dir = tmp_path / "out"
    runner = CliRunner()

    result = runner.invoke(
        app,
        ["--path", str(repo), "--out", str(out_dir), "--format", "json", "--fail-on-findings"],
    )

    # Findings present -> exit code 1
    assert result.exit_code == 1, result.stdout

    records = [json.loads(line) for line in (out_dir / "negpat.jsonl").read_text().splitlines()]
    locations = [(r["finding"]["rule_id"], r["finding"]["file"], r["finding"]["line"]) for r in records]
    assert locations == [
        ("hardcoded-secrets", "app/settings.py", 3),
        ("sequential-await", "app/users.py", 6),
        ("swallowed-exception", "app/jobs.py", 10),
        ("broad-exception-catch", "app/jobs.py", 10),
    ]

    report = (repo / MITIGATION_FILENAME).read_text()
    assert "`app/users.py:6-7`" in report
    assert "        users.append(await client.fetch(user_id))" in report
    assert "## Patterns not found" in report


def test_repeated_scans_write_identical_reports(tmp_path):
    repo = build_sample_repo(tmp_path / "repo")
    runner = CliRunner()

    first = runner.invoke(app, ["--path", str(repo), "--workers", "1"])
    assert first.exit_code == 0, first.stdout
    serial_report = (repo / MITIGATION_FILENAME).read_bytes()

    second = runner.invoke(app, ["--path", str(repo), "--workers", "4"])
    assert second.exit_code == 0, second.stdout

    assert (repo / MITIGATION_FILENAME).read_bytes() == serial_report


def test_empty_repository_writes_no_report(tmp_path):
    runner = CliRunner()

    result = runner.invoke(app, ["--path", str(tmp_path)])

    assert result.exit_code == 0
    assert not (tmp_path / MITIGATION_FILENAME).exists()
