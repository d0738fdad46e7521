from __future__ import annotations

from typing import Any

import httpx

from streakbot import __version__
from streakbot.config import GitHubConfig
from streakbot.errors import ActivitySourceError
from streakbot.logging_setup import TRACE_LEVEL, get_logger

API_VERSION = "2022-11-28"
REPOS_PAGE_SIZE = 100
COMMITS_PAGE_SIZE = 100


class GitHubClient:
    """Thin synchronous wrapper over the GitHub REST endpoints the strategies need."""

    def __init__(
        self,
        config: GitHubConfig,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.config = config
        self.logger = get_logger(__name__)
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
            "User-Agent": f"streakbot/{__version__}",
        }
        if config.token:
            headers["Authorization"] = f"Bearer {config.token}"
        self._client = httpx.Client(
            base_url=config.api_url,
            headers=headers,
            timeout=config.timeout_seconds,
            transport=transport,
        )

    @property
    def authenticated(self) -> bool:
        return bool(self.config.token)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> GitHubClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        self.logger.log(TRACE_LEVEL, "GET %s params=%s", path, params)
        try:
            response = self._client.get(path, params=params)
        except httpx.HTTPError as exc:
            raise ActivitySourceError(
                f"GET {path} failed: {exc.__class__.__name__}: {exc}"
            ) from exc
        if response.status_code >= 400:
            raise ActivitySourceError(
                f"GET {path} returned HTTP {response.status_code}: {self._error_message(response)}",
                status_code=response.status_code,
            )
        remaining = response.headers.get("x-ratelimit-remaining")
        if remaining is not None:
            self.logger.debug("GitHub rate limit remaining=%s after %s", remaining, path)
        try:
            return response.json()
        except ValueError as exc:
            raise ActivitySourceError(f"GET {path} returned invalid JSON.") from exc

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            return response.text[:200]
        if isinstance(payload, dict) and isinstance(payload.get("message"), str):
            return payload["message"]
        return str(payload)[:200]

    @staticmethod
    def _expect_list(payload: Any, path: str) -> list[dict[str, Any]]:
        if not isinstance(payload, list):
            raise ActivitySourceError(f"GET {path} returned {type(payload).__name__}, expected list.")
        return [item for item in payload if isinstance(item, dict)]

    def list_public_events(self, username: str) -> list[dict[str, Any]]:
        path = f"/users/{username}/events/public"
        payload = self._get(path, {"per_page": self.config.events_page_size})
        return self._expect_list(payload, path)

    def search_commits(self, username: str, date: str) -> dict[str, Any]:
        path = "/search/commits"
        payload = self._get(
            path,
            {
                "q": f"author:{username} committer-date:{date}",
                "per_page": self.config.search_page_size,
                "sort": "committer-date",
                "order": "desc",
            },
        )
        if not isinstance(payload, dict):
            raise ActivitySourceError(f"GET {path} returned {type(payload).__name__}, expected object.")
        return payload

    def list_repositories(
        self,
        username: str,
        *,
        limit: int,
        include_private: bool = False,
    ) -> list[dict[str, Any]]:
        if include_private and self.authenticated:
            path = "/user/repos"
            params: dict[str, Any] = {
                "affiliation": "owner,collaborator,organization_member",
                "sort": "pushed",
                "direction": "desc",
            }
        else:
            path = f"/users/{username}/repos"
            params = {"type": "owner", "sort": "pushed", "direction": "desc"}

        repos: list[dict[str, Any]] = []
        page = 1
        while len(repos) < limit:
            page_params = dict(params, per_page=REPOS_PAGE_SIZE, page=page)
            batch = self._expect_list(self._get(path, page_params), path)
            repos.extend(batch)
            if len(batch) < REPOS_PAGE_SIZE:
                break
            page += 1
        return repos[:limit]

    def list_commits(
        self,
        full_name: str,
        *,
        author: str,
        since: str,
        until: str,
    ) -> list[dict[str, Any]]:
        path = f"/repos/{full_name}/commits"
        payload = self._get(
            path,
            {
                "author": author,
                "since": since,
                "until": until,
                "per_page": COMMITS_PAGE_SIZE,
            },
        )
        return self._expect_list(payload, path)
