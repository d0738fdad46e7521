from __future__ import annotations

import json
import logging
from argparse import Namespace
from pathlib import Path
from typing import Iterator

import pytest
import yaml

import streakbot.__main__ as cli
from streakbot.errors import PublishError
from streakbot.state.models import RunOutcome


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path: Path, monkeypatch) -> Iterator[None]:
    monkeypatch.setenv("STREAKBOT_DISABLE_DOTENV", "1")
    monkeypatch.setenv("STREAKBOT_CONFIG", str(tmp_path / "absent.yaml"))
    monkeypatch.delenv("TARGET_USER", raising=False)
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    yield
    root = logging.getLogger("streakbot")
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()


def _write_config(tmp_path: Path) -> Path:
    path = tmp_path / "config.yaml"
    payload = {
        "github": {"target_user": "octocat"},
        "state": {"directory": str(tmp_path)},
        "publish": {"enabled": False},
    }
    path.write_text(yaml.safe_dump(payload, sort_keys=False), encoding="utf-8")
    return path


class _FakeEngine:
    def __init__(self, result: RunOutcome | Exception) -> None:
        self.result = result
        self.calls: list[dict] = []

    def run(self, *, date: str | None = None, dry_run: bool = False) -> RunOutcome:
        self.calls.append({"date": date, "dry_run": dry_run})
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


def test_parser_accepts_run_flags() -> None:
    parser = cli._build_parser()
    args = parser.parse_args(["run", "--config", "cfg.yaml", "--date", "2025-11-24", "--dry-run"])
    assert args.command == "run"
    assert args.config_path == "cfg.yaml"
    assert args.date == "2025-11-24"
    assert args.dry_run is True


def test_parser_rejects_malformed_date() -> None:
    parser = cli._build_parser()
    with pytest.raises(SystemExit):
        parser.parse_args(["check", "--date", "24/11/2025"])


def test_run_prints_outcome_and_exits_zero(tmp_path: Path, monkeypatch, capsys) -> None:
    cfg_path = _write_config(tmp_path)
    engine = _FakeEngine(
        RunOutcome(
            action="incremented",
            date="2025-11-24",
            counter_before=2,
            counter_after=3,
            commit_message="auto commit 3day",
            published=True,
        )
    )
    monkeypatch.setattr(cli, "_build_engine", lambda config, client: engine)

    rc = cli._cmd_run(Namespace(config_path=str(cfg_path), date="2025-11-24", dry_run=False))
    output = capsys.readouterr().out
    assert rc == 0
    assert engine.calls == [{"date": "2025-11-24", "dry_run": False}]
    assert "Counter:  2 -> 3" in output
    assert "Commit:   auto commit 3day" in output


def test_run_returns_nonzero_on_publish_failure(tmp_path: Path, monkeypatch) -> None:
    cfg_path = _write_config(tmp_path)
    engine = _FakeEngine(PublishError("git push", returncode=1, stderr="rejected"))
    monkeypatch.setattr(cli, "_build_engine", lambda config, client: engine)

    rc = cli._cmd_run(Namespace(config_path=str(cfg_path), date=None, dry_run=False))
    assert rc == 1


def test_run_returns_nonzero_on_state_write_failure(tmp_path: Path, monkeypatch) -> None:
    cfg_path = _write_config(tmp_path)
    engine = _FakeEngine(PermissionError("counter.txt is read-only"))
    monkeypatch.setattr(cli, "_build_engine", lambda config, client: engine)

    rc = cli._cmd_run(Namespace(config_path=str(cfg_path), date=None, dry_run=False))
    assert rc == 1


def test_status_reports_counter_and_paths(tmp_path: Path, capsys) -> None:
    cfg_path = _write_config(tmp_path)
    (tmp_path / "counter.txt").write_text("4", encoding="utf-8")
    (tmp_path / ".last-run").write_text("2025-11-24\n", encoding="utf-8")

    rc = cli._cmd_status(Namespace(config_path=str(cfg_path)))
    output = capsys.readouterr().out
    assert rc == 0
    assert "Target user:   octocat" in output
    assert "Counter:       4" in output
    assert "Last run:      2025-11-24" in output
    assert "Config load note:" not in output


def test_diagnostics_prints_json(tmp_path: Path, capsys) -> None:
    cfg_path = _write_config(tmp_path)
    rc = cli._cmd_diagnostics(Namespace(config_path=str(cfg_path)))
    payload = json.loads(capsys.readouterr().out)
    assert rc == 0
    assert payload["service"] == "streakbot"
    assert payload["readiness"]["github"]["authenticated"] is False
    assert payload["readiness"]["publish"]["enabled"] is False
    assert payload["state"]["counter"] == 0
    assert payload["config"]["detection"]["strategies"] == ["events", "repositories"]


def test_version_command(capsys) -> None:
    assert cli._cmd_version() == 0
    assert capsys.readouterr().out.startswith("streakbot ")
