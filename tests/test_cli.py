from __future__ import annotations

import json
from pathlib import Path

import pytest

from todosync.cli import main


@pytest.fixture
def project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("TODOSYNC_MOCK", "1")
    src = tmp_path / "code"
    src.mkdir()
    (src / "app.py").write_text("def f():\n    # TODO: validate input\n    return 1\n", encoding="utf-8")
    (src / "util.py").write_text("# FIXME: slow path\n", encoding="utf-8")
    config = tmp_path / "todosync.config.yaml"
    config.write_text(
        "version: 1\nsource:\n  root: code\n  extensions: [.py]\ngithub:\n  repo: acme/widgets\n",
        encoding="utf-8",
    )
    return config


def test_scan_json(project, capsys):
    rc = main(["scan", "--config", str(project), "--json"])

    assert rc == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["files_scanned"] == 2
    assert [(a["file"], a["line"], a["type"]) for a in payload["annotations"]] == [
        ("app.py", 2, "TODO"),
        ("util.py", 1, "FIXME"),
    ]


def test_scan_text(project, capsys):
    rc = main(["scan", "--config", str(project)])

    out = capsys.readouterr().out
    assert rc == 0
    assert "app.py:2 TODO: validate input" in out
    assert "[scan] 2 annotation(s) in 2 file(s)" in out


def test_plan_json_in_mock_mode(project, capsys):
    rc = main(["plan", "--config", str(project), "--json"])

    assert rc == 0
    plan = json.loads(capsys.readouterr().out)
    assert plan["summary"]["create"] == 2
    assert plan["in_sync"] is False


def test_sync_writes_summary_json(project, tmp_path, capsys):
    out_path = tmp_path / "out" / "summary.json"

    rc = main(["--quiet", "sync", "--config", str(project), "--summary-json", str(out_path)])

    assert rc == 0
    summary = json.loads(out_path.read_text(encoding="utf-8"))
    assert summary["totals"]["created"] == 2
    assert "[sync] totals" in capsys.readouterr().out


def test_sync_dry_run_lists_intended_actions(project, capsys):
    rc = main(["sync", "--config", str(project), "--dry-run"])

    out = capsys.readouterr().out
    assert rc == 0
    assert "would create: app.py:2" in out
    assert "Sync Summary (dry run)" in out


def test_missing_explicit_config_is_fatal(tmp_path, capsys):
    rc = main(["scan", "--config", str(tmp_path / "missing.yaml")])

    assert rc == 2
    assert "not found" in capsys.readouterr().err


def test_unconfigured_repo_outside_mock_mode_is_fatal(project, monkeypatch, capsys):
    monkeypatch.delenv("TODOSYNC_MOCK", raising=False)
    project.write_text(
        "source:\n  root: code\nenvironment:\n  load_dotenv: false\n", encoding="utf-8"
    )

    rc = main(["sync", "--config", str(project)])

    assert rc == 2
    assert "not configured" in capsys.readouterr().err


def test_root_override(project, tmp_path, capsys):
    other = tmp_path / "other"
    other.mkdir()
    (other / "x.py").write_text("# TODO: elsewhere\n", encoding="utf-8")

    rc = main(["scan", "--config", str(project), "--root", str(other), "--json"])

    assert rc == 0
    [ann] = json.loads(capsys.readouterr().out)["annotations"]
    assert ann["content"] == "elsewhere"


def test_plan_json_keeps_duplicate_warnings_off_stdout(project, capsys):
    (project.parent / "code" / "both.py").write_text("x = 1  # TODO: x FIXME: y\n", encoding="utf-8")

    rc = main(["plan", "--config", str(project), "--json"])

    captured = capsys.readouterr()
    assert rc == 0
    plan = json.loads(captured.out)
    assert plan["summary"]["duplicates"] == 1
    assert "duplicate annotation key ignored" in captured.err


def test_scan_json_keeps_extraction_errors_off_stdout(project, capsys):
    (project.parent / "code" / "gone.py").symlink_to(project.parent / "missing.py")

    rc = main(["scan", "--config", str(project), "--json"])

    captured = capsys.readouterr()
    assert rc == 1
    payload = json.loads(captured.out)
    assert [f["file"] for f in payload["extraction_failures"]] == ["gone.py"]
    assert "extraction_failed" in captured.err
