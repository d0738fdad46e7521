from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Callable, Protocol
from zoneinfo import ZoneInfo

from streakbot.activity.models import ActivityEvidence
from streakbot.config import AppConfig
from streakbot.logging_setup import get_logger
from streakbot.state.models import RunOutcome, StreakState
from streakbot.state.store import StreakStateStore


class Classifier(Protocol):
    def classify(self, user: str, date: str) -> ActivityEvidence:
        ...


class Publisher(Protocol):
    def publish(self, message: str, files: list[Path]) -> None:
        ...


def increment_message(counter: int) -> str:
    return f"auto commit {counter}day"


def reset_message(previous: int) -> str:
    return f"auto commit reset {previous} to 0"


def reset_log_entry(previous: int) -> str:
    return f"Manual commit detected. Counter reset from {previous} to 0."


def today_in(timezone_name: str) -> str:
    return datetime.now(ZoneInfo(timezone_name)).date().isoformat()


class StreakDecisionEngine:
    """One run of the streak bot: resolve today, classify, update state, publish.

    The last-run marker makes a second run on the same day, or a run for any
    earlier day, a no-op. State is
    written before publishing and any write or publish failure propagates to
    the caller.
    """

    def __init__(
        self,
        *,
        config: AppConfig,
        store: StreakStateStore,
        classifier: Classifier,
        publisher: Publisher | None,
        clock: Callable[[], str] | None = None,
    ) -> None:
        self.config = config
        self.store = store
        self.classifier = classifier
        self.publisher = publisher
        self.clock = clock or (lambda: today_in(config.runtime.timezone))
        self.logger = get_logger(__name__)

    @property
    def target_user(self) -> str:
        return self.config.github.target_user

    def run(self, *, date: str | None = None, dry_run: bool = False) -> RunOutcome:
        today = date or self.clock()
        state = self.store.load()
        self.logger.info(
            "Run for %s on %s (counter=%d, last_run=%s, token=%s).",
            self.target_user,
            today,
            state.counter,
            state.last_run_date or "never",
            "yes" if self.config.github.token else "no",
        )

        # ISO dates order lexically; the marker never moves backwards.
        if state.last_run_date and today <= state.last_run_date:
            self.logger.info(
                "Already processed through %s, nothing to do for %s.",
                state.last_run_date,
                today,
            )
            return RunOutcome(
                action="already-processed",
                date=today,
                counter_before=state.counter,
                counter_after=state.counter,
                dry_run=dry_run,
            )

        evidence = self.classifier.classify(self.target_user, today)
        if evidence.has_manual_activity:
            return self._reset(today, state, evidence, dry_run=dry_run)
        return self._increment(today, state, evidence, dry_run=dry_run)

    def _reset(
        self,
        today: str,
        state: StreakState,
        evidence: ActivityEvidence,
        *,
        dry_run: bool,
    ) -> RunOutcome:
        if state.counter == 0:
            self.logger.info("Manual activity on %s and counter already 0.", today)
            return RunOutcome(
                action="unchanged",
                date=today,
                counter_before=0,
                counter_after=0,
                evidence=evidence,
                dry_run=dry_run,
            )

        previous = state.counter
        message = reset_message(previous)
        self.logger.info("Manual activity on %s, resetting counter %d -> 0.", today, previous)
        published = self._apply(
            today,
            StreakState(counter=0, last_run_date=today),
            log_entry=reset_log_entry(previous),
            commit_message=message,
            dry_run=dry_run,
        )
        return RunOutcome(
            action="reset",
            date=today,
            counter_before=previous,
            counter_after=0,
            commit_message=message,
            evidence=evidence,
            published=published,
            dry_run=dry_run,
        )

    def _increment(
        self,
        today: str,
        state: StreakState,
        evidence: ActivityEvidence,
        *,
        dry_run: bool,
    ) -> RunOutcome:
        counter = state.counter + 1
        message = increment_message(counter)
        self.logger.info("No manual activity on %s, counter %d -> %d.", today, state.counter, counter)
        published = self._apply(
            today,
            StreakState(counter=counter, last_run_date=today),
            log_entry=message,
            commit_message=message,
            dry_run=dry_run,
        )
        return RunOutcome(
            action="incremented",
            date=today,
            counter_before=state.counter,
            counter_after=counter,
            commit_message=message,
            evidence=evidence,
            published=published,
            dry_run=dry_run,
        )

    def _apply(
        self,
        today: str,
        new_state: StreakState,
        *,
        log_entry: str,
        commit_message: str,
        dry_run: bool,
    ) -> bool:
        if dry_run:
            self.logger.info("Dry run: would write counter=%d and commit %r.", new_state.counter, commit_message)
            return False

        self.store.save(new_state)
        self.store.append_log(today, log_entry)

        if self.publisher is None:
            self.logger.info("Publishing disabled, state written only.")
            return False
        self.publisher.publish(commit_message, self.store.tracked_files())
        return True
