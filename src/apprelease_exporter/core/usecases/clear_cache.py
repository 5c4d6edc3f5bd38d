from __future__ import annotations

from ..ports import CveCachePort, LoggerPort


class ClearCacheUseCase:
    def __init__(self, *, cache: CveCachePort, logger: LoggerPort) -> None:
        self._cache = cache
        self._logger = logger

    def execute(self) -> int:
        """Remove every cached CVE report.

        Returns:
            Number of removed cache files
        """
        removed = self._cache.clear_all()
        self._logger.info(f"removed {removed} cached cve reports", removed=removed)
        return removed
