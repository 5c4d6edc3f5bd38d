from __future__ import annotations

import base64
import re
import threading
from typing import Any, Optional
from urllib.parse import urljoin, urlparse

import requests

from ..core.domain.exceptions import RegistryError
from .http import build_session


# --- Manifest Media Types ---
MANIFEST_V1_TYPE = "application/vnd.docker.distribution.manifest.v1+json"
MANIFEST_V1_SIGNED_TYPE = "application/vnd.docker.distribution.manifest.v1+prettyjws"
MANIFEST_V2_SCHEMA2_TYPE = "application/vnd.docker.distribution.manifest.v2+json"
MANIFEST_LIST_V2_TYPE = "application/vnd.docker.distribution.manifest.list.v2+json"
OCI_MANIFEST_V1_TYPE = "application/vnd.oci.image.manifest.v1+json"
OCI_INDEX_V1_TYPE = "application/vnd.oci.image.index.v1+json"

ACCEPT_MANIFEST = ", ".join([
    MANIFEST_V2_SCHEMA2_TYPE,
    OCI_MANIFEST_V1_TYPE,
    MANIFEST_LIST_V2_TYPE,
    OCI_INDEX_V1_TYPE,
    MANIFEST_V1_SIGNED_TYPE,
    MANIFEST_V1_TYPE,
])

DOCKER_HUB_HOSTS = frozenset({"registry-1.docker.io", "index.docker.io", "registry.hub.docker.com", "docker.io"})

TAGS_PAGE_SIZE = 100

_CHALLENGE_PARAM = re.compile(r'(\w+)="([^"]*)"')


def parse_challenge(header: str) -> tuple[str, dict[str, str]]:
    """Split a ``WWW-Authenticate`` header into (scheme, params)."""
    scheme, _, rest = header.strip().partition(" ")
    return scheme.lower(), dict(_CHALLENGE_PARAM.findall(rest))


class DockerRegistryClient:
    """Minimal Docker Registry HTTP API v2 client.

    Answers bearer-token and basic auth challenges on demand and caches one
    authorization header per repository.
    """

    def __init__(
        self,
        *,
        url: str,
        username: str = "",
        password: str = "",
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._base_url = url.rstrip("/") + "/"
        self._username = username
        self._password = password
        self._timeout = timeout
        self._session = session or build_session()
        self._auth_headers: dict[str, str] = {}
        self._lock = threading.Lock()

    @property
    def is_docker_hub(self) -> bool:
        return (urlparse(self._base_url).hostname or "") in DOCKER_HUB_HOSTS

    def repository_path(self, image: str) -> str:
        image = image.strip("/")
        if self.is_docker_hub and "/" not in image:
            return f"library/{image}"
        return image

    def tags(self, image: str) -> list[str]:
        repo = self.repository_path(image)
        url: Optional[str] = urljoin(self._base_url, f"v2/{repo}/tags/list?n={TAGS_PAGE_SIZE}")
        tags: list[str] = []
        while url:
            response = self._get(url, repo=repo)
            data = self._json(response, url)
            tags.extend(t for t in data.get("tags") or [] if isinstance(t, str))
            next_link = response.links.get("next", {}).get("url")
            url = urljoin(url, next_link) if next_link else None
        return tags

    def manifest_history(self, image: str, tag: str) -> list[Any]:
        repo = self.repository_path(image)
        manifest = self._manifest(repo, tag)

        if manifest.get("schemaVersion") == 1:
            return [h.get("v1Compatibility") for h in manifest.get("history") or [] if isinstance(h, dict)]

        if manifest.get("manifests"):
            digest = self._pick_platform(manifest["manifests"])
            if digest is None:
                return []
            manifest = self._manifest(repo, digest)

        config_digest = (manifest.get("config") or {}).get("digest")
        if not config_digest:
            return []
        blob_url = urljoin(self._base_url, f"v2/{repo}/blobs/{config_digest}")
        config = self._json(self._get(blob_url, repo=repo), blob_url)

        history: list[Any] = [h for h in config.get("history") or [] if isinstance(h, dict) and h.get("created")]
        if config.get("created"):
            history.append({"created": config["created"]})
        return history

    def _manifest(self, repo: str, reference: str) -> dict[str, Any]:
        url = urljoin(self._base_url, f"v2/{repo}/manifests/{reference}")
        return self._json(self._get(url, repo=repo, accept=ACCEPT_MANIFEST), url)

    @staticmethod
    def _pick_platform(manifests: list[Any]) -> Optional[str]:
        entries = [m for m in manifests if isinstance(m, dict) and m.get("digest")]
        for entry in entries:
            platform = entry.get("platform") or {}
            if platform.get("os") == "linux" and platform.get("architecture") == "amd64":
                return entry["digest"]
        return entries[0]["digest"] if entries else None

    def _get(self, url: str, *, repo: str, accept: Optional[str] = None) -> requests.Response:
        """GET with registry authentication.

        Raises:
            RegistryError: On network errors or non-200 responses
        """
        response = self._request(url, repo=repo, accept=accept)
        if response.status_code == 401 and "WWW-Authenticate" in response.headers:
            self._authenticate(repo, response.headers["WWW-Authenticate"])
            response = self._request(url, repo=repo, accept=accept)
        if response.status_code != 200:
            raise RegistryError(
                f"unexpected status {response.status_code} from {url}",
                status_code=response.status_code,
            )
        return response

    def _request(self, url: str, *, repo: str, accept: Optional[str]) -> requests.Response:
        headers: dict[str, str] = {}
        if accept:
            headers["Accept"] = accept
        with self._lock:
            authorization = self._auth_headers.get(repo)
        if authorization:
            headers["Authorization"] = authorization
        try:
            return self._session.get(url, headers=headers, timeout=self._timeout)
        except requests.RequestException as e:
            raise RegistryError(f"request to {url} failed: {e}") from e

    def _authenticate(self, repo: str, challenge: str) -> None:
        scheme, params = parse_challenge(challenge)
        if scheme == "basic":
            if not self._username:
                raise RegistryError("registry requires credentials", status_code=401)
            credentials = f"{self._username}:{self._password}".encode("utf-8")
            basic = "Basic " + base64.b64encode(credentials).decode("ascii")
            with self._lock:
                self._auth_headers[repo] = basic
            return
        if scheme != "bearer" or "realm" not in params:
            raise RegistryError(f"unsupported auth challenge: {challenge}", status_code=401)

        query = {"service": params.get("service", "")}
        query["scope"] = params.get("scope") or f"repository:{repo}:pull"
        auth = (self._username, self._password) if self._username else None
        try:
            response = self._session.get(params["realm"], params=query, auth=auth, timeout=self._timeout)
        except requests.RequestException as e:
            raise RegistryError(f"token request failed: {e}") from e
        if response.status_code != 200:
            raise RegistryError(
                f"token request returned status {response.status_code}",
                status_code=response.status_code,
            )
        token_info = self._json(response, params["realm"])
        token = token_info.get("token") or token_info.get("access_token")
        if not token:
            raise RegistryError("token response without 'token' or 'access_token'")
        with self._lock:
            self._auth_headers[repo] = f"Bearer {token}"

    @staticmethod
    def _json(response: requests.Response, url: str) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise RegistryError(f"invalid JSON from {url}: {e}") from e
        if not isinstance(data, dict):
            raise RegistryError(f"unexpected payload from {url}")
        return data


class RegistryClientPool:
    """One registry client per registry URL, shared by all projects."""

    def __init__(self, *, timeout: float = 30.0) -> None:
        self._timeout = timeout
        self._clients: dict[str, DockerRegistryClient] = {}
        self._lock = threading.Lock()

    def client_for(self, url: str, username: str, password: str) -> DockerRegistryClient:
        with self._lock:
            client = self._clients.get(url)
            if client is None:
                client = DockerRegistryClient(
                    url=url,
                    username=username,
                    password=password,
                    timeout=self._timeout,
                )
                self._clients[url] = client
            return client
