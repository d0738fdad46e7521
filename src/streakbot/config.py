from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

try:
    from dotenv import load_dotenv
except Exception:  # pragma: no cover - optional at runtime
    load_dotenv = None  # type: ignore[assignment]


ENV_REF_PATTERN = re.compile(r"^\$\{ENV:([A-Z0-9_]+)\}$")
DEFAULT_TARGET_USER = "Jucy92"

StrategyName = Literal["events", "search", "repositories"]


class StrictConfigModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class GitHubConfig(StrictConfigModel):
    api_url: str = "https://api.github.com"
    token: str | None = None
    target_user: str = DEFAULT_TARGET_USER
    timeout_seconds: float = 30.0
    events_page_size: int = Field(default=100, ge=1, le=100)
    search_page_size: int = Field(default=100, ge=1, le=100)

    @field_validator("api_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        trimmed = value.strip().rstrip("/")
        if not trimmed:
            raise ValueError("github.api_url must not be empty.")
        return trimmed

    @field_validator("target_user")
    @classmethod
    def _target_user_non_empty(cls, value: str) -> str:
        trimmed = value.strip()
        if not trimmed:
            raise ValueError("github.target_user must not be empty.")
        return trimmed

    @field_validator("token")
    @classmethod
    def _blank_token_is_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        trimmed = value.strip()
        return trimmed or None


class DetectionConfig(StrictConfigModel):
    strategies: list[StrategyName] = Field(
        default_factory=lambda: ["events", "repositories"]
    )
    automation_marker: str = "auto commit"
    include_private_repositories: bool = False
    max_repositories: int = Field(default=30, ge=1)

    @field_validator("strategies")
    @classmethod
    def _validate_strategies(cls, value: list[StrategyName]) -> list[StrategyName]:
        if not value:
            raise ValueError("detection.strategies must list at least one strategy.")
        duplicates = sorted({name for name in value if value.count(name) > 1})
        if duplicates:
            raise ValueError(f"detection.strategies has duplicates: {duplicates}")
        return value

    @field_validator("automation_marker")
    @classmethod
    def _marker_non_empty(cls, value: str) -> str:
        trimmed = value.strip().lower()
        if not trimmed:
            raise ValueError("detection.automation_marker must not be empty.")
        return trimmed


class StateConfig(StrictConfigModel):
    directory: Path = Path(".")
    counter_file: str = "counter.txt"
    log_file: str = "logs/commit-log.md"
    last_run_file: str = ".last-run"
    log_header: str = "# Auto Commit Log"

    @property
    def counter_path(self) -> Path:
        return self.directory / self.counter_file

    @property
    def log_path(self) -> Path:
        return self.directory / self.log_file

    @property
    def last_run_path(self) -> Path:
        return self.directory / self.last_run_file


class PublishConfig(StrictConfigModel):
    enabled: bool = True
    committer_name: str = "GitHub Actions Bot"
    committer_email: str = "actions@github.com"
    remote: str | None = None
    branch: str | None = None
    pull_before_push: bool = True
    repo_directory: Path | None = None

    @field_validator("branch")
    @classmethod
    def _branch_needs_remote(
        cls, value: str | None, info: ValidationInfo
    ) -> str | None:
        if value and not (info.data.get("remote") or "").strip():
            raise ValueError("publish.branch requires publish.remote.")
        return value


class LoggingConfig(StrictConfigModel):
    level: Literal["ERROR", "WARNING", "INFO", "DEBUG", "TRACE"] = "INFO"
    output: Literal["console", "file", "both"] = "console"
    directory: Path = Path("./data/logs")
    filename: str = "streakbot.log"
    daily_rotation: bool = True
    retention_days: int = 14
    utc: bool = True


class RuntimeConfig(StrictConfigModel):
    timezone: str = "UTC"

    @field_validator("timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        timezone_name = value.strip()
        if not timezone_name:
            raise ValueError("runtime.timezone must not be empty.")
        try:
            ZoneInfo(timezone_name)
        except ZoneInfoNotFoundError as exc:
            raise ValueError(
                f"Unknown timezone '{timezone_name}'. Use an IANA timezone name."
            ) from exc
        return timezone_name


class AppConfig(StrictConfigModel):
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    detection: DetectionConfig = Field(default_factory=DetectionConfig)
    state: StateConfig = Field(default_factory=StateConfig)
    publish: PublishConfig = Field(default_factory=PublishConfig)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def repo_directory(self) -> Path:
        return self.publish.repo_directory or self.state.directory


def _expand_env_refs(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _expand_env_refs(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand_env_refs(v) for v in value]
    if isinstance(value, str):
        match = ENV_REF_PATTERN.match(value.strip())
        if match:
            return os.getenv(match.group(1))
    return value


def _maybe_load_dotenv() -> None:
    disabled = os.getenv("STREAKBOT_DISABLE_DOTENV", "").strip().lower() in {
        "1",
        "true",
        "yes",
        "on",
    }
    if disabled or load_dotenv is None:
        return
    dotenv_path = Path(os.getenv("STREAKBOT_DOTENV_PATH", ".env"))
    if dotenv_path.exists():
        load_dotenv(dotenv_path=dotenv_path, override=False)


def _apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    # TARGET_USER and GITHUB_TOKEN are what CI workflows export.
    github = dict(raw.get("github") or {})
    target_user = os.getenv("TARGET_USER", "").strip()
    if target_user:
        github["target_user"] = target_user
    token = os.getenv("GITHUB_TOKEN", "").strip()
    if token:
        github["token"] = token
    if github:
        raw = dict(raw)
        raw["github"] = github
    return raw


def default_config_path() -> Path:
    return Path(os.getenv("STREAKBOT_CONFIG", "config.yaml"))


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Build the app config from YAML, `.env` and the process environment.

    An explicitly requested file must exist. When no path is given and the
    default file is absent the built-in defaults are used, so a bare CI job
    only needs `TARGET_USER` and `GITHUB_TOKEN`.
    """
    _maybe_load_dotenv()
    path = Path(config_path) if config_path else default_config_path()
    raw: dict[str, Any] = {}
    if path.exists():
        with path.open("r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f)
        if loaded is None:
            raise ValueError(f"Config file is empty: {path}")
        if not isinstance(loaded, dict):
            raise TypeError(f"Config root must be a YAML mapping/object: {path}")
        expanded = _expand_env_refs(loaded)
        raw = dict(expanded) if isinstance(expanded, dict) else {}
    elif config_path:
        raise FileNotFoundError(
            f"Config file not found: {path}. "
            "Provide STREAKBOT_CONFIG or create config.yaml."
        )
    return AppConfig.model_validate(_apply_env_overrides(raw))
