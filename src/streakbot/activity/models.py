from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class CommitRecord:
    repository: str
    message: str
    timestamp: str
    automated: bool

    @property
    def headline(self) -> str:
        lines = self.message.strip().splitlines()
        return lines[0] if lines else ""


@dataclass(frozen=True)
class ActivityEvidence:
    date: str
    has_manual_activity: bool
    source_commits: list[CommitRecord] = field(default_factory=list)
    strategy: str = ""
    fail_safe: bool = False
    notes: list[str] = field(default_factory=list)

    @property
    def manual_commits(self) -> list[CommitRecord]:
        return [commit for commit in self.source_commits if not commit.automated]

    @property
    def automated_commits(self) -> list[CommitRecord]:
        return [commit for commit in self.source_commits if commit.automated]
