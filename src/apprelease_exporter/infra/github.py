from __future__ import annotations

from typing import Any, Optional
from urllib.parse import quote

import requests

from ..core.domain.exceptions import ConfigurationError, ReleaseSourceError
from .http import build_session


GITHUB_API_URL = "https://api.github.com"
GITHUB_ACCEPT = "application/vnd.github+json"

# GitHub caps per_page at 100
MAX_PER_PAGE = 100


class GitHubClient:
    """Thin GitHub REST v3 client for release and tag discovery."""

    def __init__(
        self,
        *,
        token: Optional[str] = None,
        base_url: str = GITHUB_API_URL,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._session = session or build_session(accept=GITHUB_ACCEPT, token=token)
        self._has_token = bool(token)

    def ping(self) -> None:
        """Check the configured token against the API root.

        Raises:
            ConfigurationError: If a token is set but the API rejects it
        """
        if not self._has_token:
            return
        try:
            self._get("/")
        except ReleaseSourceError as e:
            raise ConfigurationError(f"GitHub personal access token check failed: {e}") from e

    def list_releases(self, owner: str, repository: str, *, per_page: int) -> list[dict[str, Any]]:
        return self._get_list(f"/repos/{self._slug(owner, repository)}/releases", per_page=per_page)

    def list_tags(self, owner: str, repository: str, *, per_page: int) -> list[dict[str, Any]]:
        return self._get_list(f"/repos/{self._slug(owner, repository)}/tags", per_page=per_page)

    def get_commit(self, owner: str, repository: str, sha: str) -> dict[str, Any]:
        data = self._get(f"/repos/{self._slug(owner, repository)}/commits/{quote(sha, safe='')}")
        if not isinstance(data, dict):
            raise ReleaseSourceError(f"unexpected commit payload for {owner}/{repository}@{sha}")
        return data

    @staticmethod
    def _slug(owner: str, repository: str) -> str:
        return f"{quote(owner, safe='')}/{quote(repository, safe='')}"

    def _get_list(self, path: str, *, per_page: int) -> list[dict[str, Any]]:
        params = {"per_page": max(1, min(per_page, MAX_PER_PAGE)), "page": 1}
        data = self._get(path, params=params)
        if not isinstance(data, list):
            raise ReleaseSourceError(f"expected a list from {path}")
        return [item for item in data if isinstance(item, dict)]

    def _get(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        """GET a JSON document.

        Raises:
            ReleaseSourceError: On network errors, non-200 status or invalid JSON
        """
        url = f"{self._base_url}{path}"
        try:
            response = self._session.get(url, params=params, timeout=self._timeout)
        except requests.RequestException as e:
            raise ReleaseSourceError(f"request to {url} failed: {e}") from e
        if response.status_code != 200:
            raise ReleaseSourceError(
                f"unexpected status {response.status_code} from {url}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise ReleaseSourceError(f"invalid JSON from {url}: {e}") from e
