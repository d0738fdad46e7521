from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from streakbot.activity.models import ActivityEvidence

RunAction = Literal["already-processed", "reset", "unchanged", "incremented"]


@dataclass(frozen=True)
class StreakState:
    counter: int = 0
    last_run_date: str | None = None


@dataclass(frozen=True)
class RunOutcome:
    action: RunAction
    date: str
    counter_before: int
    counter_after: int
    commit_message: str | None = None
    evidence: ActivityEvidence | None = None
    published: bool = False
    dry_run: bool = False
