"""Domain exceptions for apprelease_exporter."""

from __future__ import annotations


class AppReleaseError(Exception):
    """Base class for all exporter errors."""


class ConfigurationError(AppReleaseError):
    """Raised when settings or the project file cannot be loaded.

    Configuration errors are fatal at startup; everything else is scoped to a
    single project or a single vulnerability fetch.
    """

    def __init__(self, message: str, *, path: str | None = None) -> None:
        self.path = path
        if path is not None:
            message = f"{message} (path={path})"
        super().__init__(message)


class UpstreamError(AppReleaseError):
    """Raised when a remote API call fails (network error or bad status)."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class RegistryError(UpstreamError):
    """Container registry request failed."""


class ReleaseSourceError(UpstreamError):
    """Source hosting (GitHub) request failed."""


class CommitLookupError(ReleaseSourceError):
    """Resolving a tag's commit failed in tags mode.

    Aborts the whole project for the cycle instead of skipping the tag.
    """

    def __init__(self, tag: str, message: str, *, status_code: int | None = None) -> None:
        self.tag = tag
        super().__init__(f"commit lookup for tag {tag} failed: {message}", status_code=status_code)


class CveFetchError(UpstreamError):
    """Vulnerability search request failed."""


class CollectionCancelledError(AppReleaseError):
    """Raised inside collectors when the process stop signal is set."""
