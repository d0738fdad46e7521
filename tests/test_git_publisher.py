from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

import streakbot.publishing.git_publisher as git_publisher
from streakbot.config import PublishConfig
from streakbot.errors import PublishError
from streakbot.publishing.git_publisher import GitPublisher


class _FakeGit:
    def __init__(self, failures: dict[tuple[str, ...], int] | None = None) -> None:
        self.failures = failures or {}
        self.commands: list[list[str]] = []

    def __call__(self, command, **kwargs):  # type: ignore[no-untyped-def]
        self.commands.append(list(command))
        rc = 0
        for prefix, code in self.failures.items():
            if tuple(command[: len(prefix)]) == prefix:
                rc = code
        return subprocess.CompletedProcess(command, rc, "", "boom" if rc else "")


def _state_files(tmp_path: Path) -> list[Path]:
    counter = tmp_path / "counter.txt"
    counter.write_text("3", encoding="utf-8")
    log = tmp_path / "logs" / "commit-log.md"
    log.parent.mkdir()
    log.write_text("# Auto Commit Log\n\n- 2025-11-24: auto commit 3day\n", encoding="utf-8")
    return [counter, log, tmp_path / ".last-run"]


def test_publish_runs_git_steps_in_order(tmp_path: Path, monkeypatch) -> None:
    fake = _FakeGit()
    monkeypatch.setattr(git_publisher.subprocess, "run", fake)
    publisher = GitPublisher(PublishConfig(), repo_directory=tmp_path)

    publisher.publish("auto commit 3day", _state_files(tmp_path))

    assert fake.commands == [
        ["git", "config", "user.name", "GitHub Actions Bot"],
        ["git", "config", "user.email", "actions@github.com"],
        ["git", "add", "--", "counter.txt", str(Path("logs") / "commit-log.md")],
        [
            "git",
            "commit",
            "-m",
            "auto commit 3day",
            "--",
            "counter.txt",
            str(Path("logs") / "commit-log.md"),
        ],
        ["git", "pull", "--rebase"],
        ["git", "push"],
    ]


def test_publish_targets_configured_remote_and_branch(tmp_path: Path, monkeypatch) -> None:
    fake = _FakeGit()
    monkeypatch.setattr(git_publisher.subprocess, "run", fake)
    config = PublishConfig(remote="origin", branch="main", pull_before_push=False)
    publisher = GitPublisher(config, repo_directory=tmp_path)

    publisher.publish("auto commit 1day", _state_files(tmp_path))

    assert ["git", "pull", "--rebase", "origin", "main"] not in fake.commands
    assert fake.commands[-1] == ["git", "push", "origin", "main"]


def test_failed_pull_is_aborted_and_push_still_attempted(tmp_path: Path, monkeypatch) -> None:
    fake = _FakeGit({("git", "pull"): 1})
    monkeypatch.setattr(git_publisher.subprocess, "run", fake)
    publisher = GitPublisher(PublishConfig(), repo_directory=tmp_path)

    publisher.publish("auto commit 1day", _state_files(tmp_path))

    assert ["git", "rebase", "--abort"] in fake.commands
    assert fake.commands[-1] == ["git", "push"]


def test_push_failure_raises(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(git_publisher.subprocess, "run", _FakeGit({("git", "push"): 1}))
    publisher = GitPublisher(PublishConfig(), repo_directory=tmp_path)

    with pytest.raises(PublishError) as excinfo:
        publisher.publish("auto commit 1day", _state_files(tmp_path))
    assert excinfo.value.label == "git push"
    assert excinfo.value.returncode == 1


def test_commit_failure_stops_before_push(tmp_path: Path, monkeypatch) -> None:
    fake = _FakeGit({("git", "commit"): 1})
    monkeypatch.setattr(git_publisher.subprocess, "run", fake)
    publisher = GitPublisher(PublishConfig(), repo_directory=tmp_path)

    with pytest.raises(PublishError):
        publisher.publish("auto commit 1day", _state_files(tmp_path))
    assert ["git", "push"] not in fake.commands


def test_missing_git_binary_raises(tmp_path: Path, monkeypatch) -> None:
    def _missing(command, **kwargs):  # type: ignore[no-untyped-def]
        raise FileNotFoundError(command[0])

    monkeypatch.setattr(git_publisher.subprocess, "run", _missing)
    publisher = GitPublisher(PublishConfig(), repo_directory=tmp_path)

    with pytest.raises(PublishError) as excinfo:
        publisher.publish("auto commit 1day", _state_files(tmp_path))
    assert excinfo.value.returncode == 127


def test_commit_is_limited_to_the_state_files(tmp_path: Path, monkeypatch) -> None:
    fake = _FakeGit()
    monkeypatch.setattr(git_publisher.subprocess, "run", fake)
    publisher = GitPublisher(PublishConfig(), repo_directory=tmp_path)
    files = _state_files(tmp_path)
    (tmp_path / ".last-run").write_text("2025-11-24\n", encoding="utf-8")

    publisher.publish("auto commit 3day", files)

    commit = next(command for command in fake.commands if command[:2] == ["git", "commit"])
    assert commit[commit.index("--") + 1 :] == [
        "counter.txt",
        str(Path("logs") / "commit-log.md"),
        ".last-run",
    ]
