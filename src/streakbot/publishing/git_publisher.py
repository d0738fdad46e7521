from __future__ import annotations

import shlex
import subprocess
from pathlib import Path

from streakbot.config import PublishConfig
from streakbot.errors import PublishError
from streakbot.logging_setup import get_logger


class GitPublisher:
    """Commit the state files and push them with the git CLI."""

    def __init__(self, config: PublishConfig, *, repo_directory: Path) -> None:
        self.config = config
        self.repo_directory = repo_directory
        self.logger = get_logger(__name__)

    def _run_capture(self, command: list[str]) -> tuple[int, str, str]:
        self.logger.debug("-> %s", shlex.join(command))
        try:
            completed = subprocess.run(
                command,
                cwd=self.repo_directory,
                check=False,
                capture_output=True,
                text=True,
            )
        except FileNotFoundError:
            return 127, "", f"Command not found: {command[0]}"
        return completed.returncode, completed.stdout.strip(), completed.stderr.strip()

    def _run_or_fail(self, command: list[str], *, label: str) -> str:
        rc, stdout, stderr = self._run_capture(command)
        if rc != 0:
            raise PublishError(label, returncode=rc, stderr=stderr or stdout)
        return stdout

    def _relative(self, path: Path) -> str:
        try:
            return str(path.resolve().relative_to(self.repo_directory.resolve()))
        except ValueError:
            return str(path)

    def _synchronize(self) -> None:
        command = ["git", "pull", "--rebase"]
        if self.config.remote:
            command.append(self.config.remote)
            if self.config.branch:
                command.append(self.config.branch)
        rc, _stdout, stderr = self._run_capture(command)
        if rc == 0:
            return
        self.logger.warning("git pull --rebase failed (exit %d), pushing anyway: %s", rc, stderr)
        abort_rc, _stdout, _stderr = self._run_capture(["git", "rebase", "--abort"])
        if abort_rc == 0:
            self.logger.info("Aborted the interrupted rebase.")

    def publish(self, message: str, files: list[Path]) -> None:
        self.logger.info("Configuring git identity (%s).", self.config.committer_name)
        self._run_or_fail(
            ["git", "config", "user.name", self.config.committer_name],
            label="git config user.name",
        )
        self._run_or_fail(
            ["git", "config", "user.email", self.config.committer_email],
            label="git config user.email",
        )

        paths = [self._relative(path) for path in files if path.exists()]
        if not paths:
            raise PublishError("git add", returncode=1, stderr="no state files to stage")
        self.logger.info("Staging %s.", ", ".join(paths))
        self._run_or_fail(["git", "add", "--", *paths], label="git add")

        self.logger.info("Committing: %r", message)
        self._run_or_fail(["git", "commit", "-m", message, "--", *paths], label="git commit")

        if self.config.pull_before_push:
            self._synchronize()

        push = ["git", "push"]
        if self.config.remote:
            push.append(self.config.remote)
            if self.config.branch:
                push.append(self.config.branch)
        self.logger.info("Pushing (%s).", shlex.join(push))
        self._run_or_fail(push, label="git push")
        self.logger.info("Push complete.")
