from __future__ import annotations

import re
from pathlib import Path

from streakbot.config import StateConfig
from streakbot.logging_setup import get_logger
from streakbot.state.models import StreakState

DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _read_text(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError):
        return None


class StreakStateStore:
    """Flat-file persistence for the streak counter, last-run marker and audit log.

    Reads never fail the caller: a missing or corrupt file yields the default
    value. Counter and marker writes raise on I/O errors. Audit log appends are
    best-effort and only log a warning when they fail.
    """

    def __init__(self, config: StateConfig) -> None:
        self.config = config
        self.logger = get_logger(__name__)

    @property
    def counter_path(self) -> Path:
        return self.config.counter_path

    @property
    def log_path(self) -> Path:
        return self.config.log_path

    @property
    def last_run_path(self) -> Path:
        return self.config.last_run_path

    def tracked_files(self) -> list[Path]:
        return [self.counter_path, self.log_path, self.last_run_path]

    def read_counter(self) -> int:
        content = _read_text(self.counter_path)
        if content is None:
            self.logger.info("Counter file %s missing, starting from 0.", self.counter_path)
            return 0
        try:
            value = int(content)
        except ValueError:
            self.logger.warning(
                "Counter file %s is not an integer (%r), treating as 0.",
                self.counter_path,
                content[:40],
            )
            return 0
        if value < 0:
            self.logger.warning("Counter file %s holds %d, treating as 0.", self.counter_path, value)
            return 0
        return value

    def write_counter(self, value: int) -> None:
        if value < 0:
            raise ValueError(f"Counter must be non-negative, got {value}.")
        self.counter_path.parent.mkdir(parents=True, exist_ok=True)
        self.counter_path.write_text(str(value), encoding="utf-8")
        self.logger.info("Counter saved: %d", value)

    def read_last_run_date(self) -> str | None:
        content = _read_text(self.last_run_path)
        if not content:
            return None
        if not DATE_RE.match(content):
            self.logger.warning(
                "Last-run marker %s is malformed (%r), ignoring it.",
                self.last_run_path,
                content[:40],
            )
            return None
        return content

    def write_last_run_date(self, date: str) -> None:
        self.last_run_path.parent.mkdir(parents=True, exist_ok=True)
        self.last_run_path.write_text(f"{date}\n", encoding="utf-8")
        self.logger.debug("Last-run marker saved: %s", date)

    def append_log(self, date: str, message: str) -> bool:
        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            if not self.log_path.exists():
                self.log_path.write_text(f"{self.config.log_header}\n\n", encoding="utf-8")
            with self.log_path.open("a", encoding="utf-8") as f:
                f.write(f"- {date}: {message}\n")
        except OSError as exc:
            self.logger.warning("Audit log write failed (%s): %s", self.log_path, exc)
            return False
        self.logger.info("Audit log entry: %s", message)
        return True

    def load(self) -> StreakState:
        return StreakState(
            counter=self.read_counter(),
            last_run_date=self.read_last_run_date(),
        )

    def save(self, state: StreakState) -> None:
        self.write_counter(state.counter)
        if state.last_run_date:
            self.write_last_run_date(state.last_run_date)
