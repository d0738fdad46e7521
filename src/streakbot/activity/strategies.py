from __future__ import annotations

from datetime import date as date_type
from datetime import datetime, time, timezone
from typing import Any, Protocol
from zoneinfo import ZoneInfo

from streakbot.activity.github_client import GitHubClient
from streakbot.activity.models import ActivityEvidence, CommitRecord
from streakbot.config import AppConfig, StrategyName
from streakbot.errors import ActivitySourceError
from streakbot.logging_setup import get_logger

SKIPPABLE_REPO_STATUSES = {404, 409, 451}


def is_automated_message(message: str, marker: str = "auto commit") -> bool:
    return marker.lower() in message.lower()


def parse_timestamp(value: str) -> datetime | None:
    text = value.strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def local_date(value: str, tz: ZoneInfo) -> str | None:
    parsed = parse_timestamp(value)
    if parsed is None:
        return None
    return parsed.astimezone(tz).date().isoformat()


def day_window(date: str, tz: ZoneInfo) -> tuple[str, str]:
    """Return the `[00:00:00, 23:59:59]` window of `date` in `tz` as UTC ISO strings."""
    day = date_type.fromisoformat(date)
    start = datetime.combine(day, time(0, 0, 0), tzinfo=tz).astimezone(timezone.utc)
    end = datetime.combine(day, time(23, 59, 59), tzinfo=tz).astimezone(timezone.utc)
    return (
        start.strftime("%Y-%m-%dT%H:%M:%SZ"),
        end.strftime("%Y-%m-%dT%H:%M:%SZ"),
    )


class ActivityStrategy(Protocol):
    name: str

    def classify(self, user: str, date: str) -> ActivityEvidence:
        ...


class _GitHubStrategy:
    name = ""

    def __init__(self, *, client: GitHubClient, marker: str, timezone_name: str) -> None:
        self.client = client
        self.marker = marker
        self.tz = ZoneInfo(timezone_name)
        self.logger = get_logger(__name__)

    def _record(self, repository: str, message: str, timestamp: str) -> CommitRecord:
        record = CommitRecord(
            repository=repository,
            message=message,
            timestamp=timestamp,
            automated=is_automated_message(message, self.marker),
        )
        self.logger.info(
            "[%s] %s %s: %r (%s)",
            self.name,
            timestamp,
            repository,
            record.headline,
            "automated" if record.automated else "manual",
        )
        return record

    def _commit_payload_record(self, repository: str, item: dict[str, Any]) -> CommitRecord:
        commit = item.get("commit") or {}
        committer = commit.get("committer") or commit.get("author") or {}
        return self._record(
            repository,
            str(commit.get("message") or ""),
            str(committer.get("date") or ""),
        )

    def _commits_for_repository(self, full_name: str, user: str, date: str) -> list[CommitRecord]:
        since, until = day_window(date, self.tz)
        items = self.client.list_commits(full_name, author=user, since=since, until=until)
        return [self._commit_payload_record(full_name, item) for item in items]

    def _evidence(
        self,
        date: str,
        commits: list[CommitRecord],
        notes: list[str],
    ) -> ActivityEvidence:
        return ActivityEvidence(
            date=date,
            has_manual_activity=any(not commit.automated for commit in commits),
            source_commits=list(commits),
            strategy=self.name,
            notes=list(notes),
        )


class PublicEventsStrategy(_GitHubStrategy):
    """Inspect push events among the user's most recent public events.

    Push events whose embedded commit list is empty are re-queried through the
    repository commit listing for the same day. A re-query answered with
    404/409/451 is noted and skipped; any other failure leaves a known push
    unreadable, so the whole strategy fails.
    """

    name = "events"

    def classify(self, user: str, date: str) -> ActivityEvidence:
        events = self.client.list_public_events(user)
        pushes = [event for event in events if event.get("type") == "PushEvent"]
        self.logger.info(
            "[events] fetched %d event(s), %d push event(s).", len(events), len(pushes)
        )

        commits: list[CommitRecord] = []
        notes: list[str] = []
        todays_pushes = 0
        for event in pushes:
            created_at = str(event.get("created_at") or "")
            if local_date(created_at, self.tz) != date:
                continue
            todays_pushes += 1
            repository = str((event.get("repo") or {}).get("name") or "")
            payload = event.get("payload") or {}
            embedded = payload.get("commits") or []

            if embedded:
                records = [
                    self._record(repository, str(item.get("message") or ""), created_at)
                    for item in embedded
                    if isinstance(item, dict)
                ]
            elif repository:
                self.logger.info(
                    "[events] push to %s at %s has no embedded commits, re-querying.",
                    repository,
                    created_at,
                )
                try:
                    records = self._commits_for_repository(repository, user, date)
                except ActivitySourceError as exc:
                    if exc.status_code not in SKIPPABLE_REPO_STATUSES:
                        raise ActivitySourceError(
                            f"re-query of {repository} failed: {exc}",
                            status_code=exc.status_code,
                        ) from exc
                    self.logger.info("[events] re-query of %s skipped: %s", repository, exc)
                    notes.append(f"re-query skipped for {repository}: {exc}")
                    continue
            else:
                self.logger.debug(
                    "[events] push at %s has no commits and no repository, skipping.",
                    created_at,
                )
                continue

            commits.extend(records)
            if any(not record.automated for record in records):
                return self._evidence(date, commits, notes)

        self.logger.info(
            "[events] %s: %d push event(s), %d commit(s), none manual.",
            date,
            todays_pushes,
            len(commits),
        )
        return self._evidence(date, commits, notes)


class CommitSearchStrategy(_GitHubStrategy):
    name = "search"

    def classify(self, user: str, date: str) -> ActivityEvidence:
        payload = self.client.search_commits(user, date)
        items = payload.get("items") or []
        self.logger.info(
            "[search] author:%s committer-date:%s matched %s commit(s).",
            user,
            date,
            payload.get("total_count", len(items)),
        )
        commits: list[CommitRecord] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            repository = str((item.get("repository") or {}).get("full_name") or "")
            record = self._commit_payload_record(repository, item)
            commits.append(record)
            if not record.automated:
                break
        return self._evidence(date, commits, [])


class RepositoryCommitsStrategy(_GitHubStrategy):
    """List the user's most recently pushed repositories and their commits for the day.

    Only 404/409/451 answers for a single repository are skipped. Any other
    per-repository failure, or every queried repository being skipped, fails
    the strategy.
    """

    name = "repositories"

    def __init__(
        self,
        *,
        client: GitHubClient,
        marker: str,
        timezone_name: str,
        max_repositories: int,
        include_private: bool,
    ) -> None:
        super().__init__(client=client, marker=marker, timezone_name=timezone_name)
        self.max_repositories = max_repositories
        self.include_private = include_private

    def classify(self, user: str, date: str) -> ActivityEvidence:
        repos = self.client.list_repositories(
            user,
            limit=self.max_repositories,
            include_private=self.include_private,
        )
        self.logger.info("[repositories] checking up to %d repositories.", len(repos))
        window_start = parse_timestamp(day_window(date, self.tz)[0])

        commits: list[CommitRecord] = []
        notes: list[str] = []
        queried = 0
        skipped = 0
        for repo in repos:
            full_name = str(repo.get("full_name") or "")
            if not full_name:
                continue
            pushed_at = parse_timestamp(str(repo.get("pushed_at") or ""))
            if pushed_at is not None and window_start is not None and pushed_at < window_start:
                # sorted by push time, so everything after this is older too
                self.logger.debug("[repositories] %s last pushed %s, stopping.", full_name, pushed_at)
                break
            queried += 1
            try:
                records = self._commits_for_repository(full_name, user, date)
            except ActivitySourceError as exc:
                if exc.status_code not in SKIPPABLE_REPO_STATUSES:
                    raise ActivitySourceError(
                        f"commit listing for {full_name} failed: {exc}",
                        status_code=exc.status_code,
                    ) from exc
                self.logger.info("[repositories] skipping %s: %s", full_name, exc)
                notes.append(f"skipped {full_name}: {exc}")
                skipped += 1
                continue
            commits.extend(records)
            if any(not record.automated for record in records):
                break

        if queried and skipped == queried:
            raise ActivitySourceError(
                f"none of the {queried} repository commit listing(s) could be read"
            )
        return self._evidence(date, commits, notes)


def build_strategies(config: AppConfig, client: GitHubClient) -> list[ActivityStrategy]:
    marker = config.detection.automation_marker
    timezone_name = config.runtime.timezone
    factories: dict[StrategyName, Any] = {
        "events": lambda: PublicEventsStrategy(
            client=client, marker=marker, timezone_name=timezone_name
        ),
        "search": lambda: CommitSearchStrategy(
            client=client, marker=marker, timezone_name=timezone_name
        ),
        "repositories": lambda: RepositoryCommitsStrategy(
            client=client,
            marker=marker,
            timezone_name=timezone_name,
            max_repositories=config.detection.max_repositories,
            include_private=config.detection.include_private_repositories,
        ),
    }
    return [factories[name]() for name in config.detection.strategies]
