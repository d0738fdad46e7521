from __future__ import annotations

from streakbot.activity.models import ActivityEvidence, CommitRecord
from streakbot.activity.strategies import ActivityStrategy
from streakbot.errors import ActivitySourceError
from streakbot.logging_setup import get_logger


class ActivityClassifier:
    """Decide whether a user made a manual commit on a given date.

    Strategies are tried in order and the first one that finds a manual
    commit wins. A strategy that raises `ActivitySourceError` is skipped. If
    no strategy completes, or classification breaks unexpectedly, the verdict
    is the fail-safe "manual activity present" so no commit gets fabricated
    on top of real work.
    """

    def __init__(self, *, strategies: list[ActivityStrategy]) -> None:
        self.strategies = list(strategies)
        self.logger = get_logger(__name__)

    def has_manual_activity(self, user: str, date: str) -> bool:
        return self.classify(user, date).has_manual_activity

    def classify(self, user: str, date: str) -> ActivityEvidence:
        try:
            return self._classify(user, date)
        except Exception:
            self.logger.exception("Activity classification broke for %s on %s.", user, date)
            return self._fail_safe(date, ["unexpected classification error"])

    def _classify(self, user: str, date: str) -> ActivityEvidence:
        self.logger.info("Checking %s for manual commits on %s.", user, date)
        completed: list[str] = []
        failures: list[str] = []
        commits: list[CommitRecord] = []
        notes: list[str] = []

        for strategy in self.strategies:
            try:
                evidence = strategy.classify(user, date)
            except ActivitySourceError as exc:
                self.logger.warning("Strategy %s failed: %s", strategy.name, exc)
                failures.append(f"{strategy.name}: {exc}")
                continue
            if evidence.has_manual_activity:
                self.logger.info("Manual commit found by %s.", strategy.name)
                return evidence
            self.logger.info("No manual commit found by %s.", strategy.name)
            completed.append(strategy.name)
            commits.extend(evidence.source_commits)
            notes.extend(evidence.notes)

        if not completed:
            return self._fail_safe(date, failures)

        if commits:
            self.logger.info("%d commit(s) on %s, all automated.", len(commits), date)
        return ActivityEvidence(
            date=date,
            has_manual_activity=False,
            source_commits=commits,
            strategy=",".join(completed),
            notes=notes + failures,
        )

    def _fail_safe(self, date: str, reasons: list[str]) -> ActivityEvidence:
        self.logger.warning(
            "No activity source could be read; assuming manual activity on %s.", date
        )
        return ActivityEvidence(
            date=date,
            has_manual_activity=True,
            strategy="fail-safe",
            fail_safe=True,
            notes=list(reasons),
        )
