from __future__ import annotations

import shutil
from datetime import datetime, timezone
from typing import Any

from streakbot import __version__
from streakbot.config import AppConfig
from streakbot.state.store import StreakStateStore


def readiness_payload(config: AppConfig) -> dict[str, Any]:
    git_ready = shutil.which("git") is not None or not config.publish.enabled
    repo_ready = (config.repo_directory / ".git").exists() or not config.publish.enabled
    return {
        "status": "ready" if (git_ready and repo_ready) else "degraded",
        "github": {
            "authenticated": bool(config.github.token),
            "target_user": config.github.target_user,
        },
        "publish": {
            "enabled": config.publish.enabled,
            "git_available": git_ready,
            "repository": repo_ready,
        },
    }


def diagnostics_payload(config: AppConfig, store: StreakStateStore) -> dict[str, Any]:
    state = store.load()
    return {
        "service": "streakbot",
        "version": __version__,
        "readiness": readiness_payload(config),
        "state": {
            "counter": state.counter,
            "last_run_date": state.last_run_date,
            "files": {str(path): path.exists() for path in store.tracked_files()},
        },
        "config": {
            "github": {
                "api_url": config.github.api_url,
                "timeout_seconds": config.github.timeout_seconds,
                "events_page_size": config.github.events_page_size,
            },
            "detection": {
                "strategies": list(config.detection.strategies),
                "automation_marker": config.detection.automation_marker,
                "include_private_repositories": config.detection.include_private_repositories,
                "max_repositories": config.detection.max_repositories,
            },
            "publish": {
                "remote": config.publish.remote,
                "branch": config.publish.branch,
                "pull_before_push": config.publish.pull_before_push,
                "repo_directory": str(config.repo_directory),
            },
            "runtime": {"timezone": config.runtime.timezone},
            "logging": {
                "level": config.logging.level,
                "output": config.logging.output,
                "directory": str(config.logging.directory),
                "filename": config.logging.filename,
            },
        },
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
