from __future__ import annotations

from typing import Optional

import requests


VERSION = "0.3.0"
USER_AGENT = f"apprelease-exporter/{VERSION}"


def build_session(*, accept: Optional[str] = None, token: Optional[str] = None) -> requests.Session:
    """Create a requests session with the exporter's default headers."""
    session = requests.Session()
    session.headers["User-Agent"] = USER_AGENT
    if accept:
        session.headers["Accept"] = accept
    if token:
        session.headers["Authorization"] = f"Bearer {token}"
    return session
