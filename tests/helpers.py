import json
from pathlib import Path
from typing import Any, Optional


def mark_by_dir(items, base_dir, marker):
    base = Path(base_dir).resolve()
    for item in items:
        # pytest 7/8: item.path on newer versions, item.fspath on older ones
        p = getattr(item, "path", None)
        p = Path(p) if p is not None else Path(str(getattr(item, "fspath")))
        try:
            p.resolve().relative_to(base)
        except ValueError:
            continue
        item.add_marker(marker)


class FakeLogger:
    """Records (level, message, fields) tuples instead of emitting."""

    def __init__(self):
        self.records: list[tuple[str, str, dict]] = []

    def debug(self, message: str, **fields) -> None:
        self.records.append(("debug", message, fields))

    def info(self, message: str, **fields) -> None:
        self.records.append(("info", message, fields))

    def warning(self, message: str, **fields) -> None:
        self.records.append(("warning", message, fields))

    def error(self, message: str, exc_info: bool = False, **fields) -> None:
        self.records.append(("error", message, fields))

    def exception(self, message: str, **fields) -> None:
        self.records.append(("exception", message, fields))

    def messages(self, level: Optional[str] = None) -> list[str]:
        return [m for lvl, m, _ in self.records if level is None or lvl == level]


class FakeResponse:
    def __init__(
        self,
        status_code: int = 200,
        payload: Any = None,
        *,
        headers: Optional[dict] = None,
        links: Optional[dict] = None,
        text: Optional[str] = None,
    ):
        self.status_code = status_code
        self._payload = payload
        self.headers = headers or {}
        self.links = links or {}
        self.text = text if text is not None else json.dumps(payload)

    def json(self):
        if self._payload is None and self.text:
            return json.loads(self.text)
        return self._payload


class FakeSession:
    """Serves canned responses by URL prefix and records every request."""

    def __init__(self, routes: Optional[dict] = None):
        self.routes: dict[str, Any] = dict(routes or {})
        self.requests: list[dict] = []
        self.headers: dict[str, str] = {}

    def get(self, url, params=None, headers=None, auth=None, timeout=None):
        self.requests.append({"url": url, "params": params, "headers": headers or {}, "auth": auth})
        for prefix in sorted(self.routes, key=len, reverse=True):
            if url.startswith(prefix):
                response = self.routes[prefix]
                if isinstance(response, list):
                    response = response.pop(0) if len(response) > 1 else response[0]
                if isinstance(response, Exception):
                    raise response
                return response
        return FakeResponse(404, {"message": "not found"})
