from __future__ import annotations


class StreakbotError(Exception):
    """Base class for errors raised by streakbot."""


class ActivitySourceError(StreakbotError):
    """A query against the activity source failed as a whole."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PublishError(StreakbotError):
    """A git step of the publisher failed."""

    def __init__(self, label: str, *, returncode: int, stderr: str = "") -> None:
        detail = f" ({stderr})" if stderr else ""
        super().__init__(f"{label} failed with exit code {returncode}{detail}.")
        self.label = label
        self.returncode = returncode
        self.stderr = stderr
