from __future__ import annotations

import json
import os
import tempfile
import time
from datetime import timedelta
from pathlib import Path
from typing import Any, Optional

from ..core.ports import LoggerPort


class CveReportCache:
    """File-backed cache of raw vulnerability search payloads.

    One JSON file per vendor/product. Read and write failures are logged and
    reported as a miss so collection can continue against the remote API.
    """

    def __init__(
        self,
        *,
        cache_dir: Path,
        ttl: timedelta,
        logger: LoggerPort,
        enabled: bool = True,
    ) -> None:
        self._cache_dir = Path(cache_dir)
        self._ttl = ttl
        self._logger = logger
        self._enabled = enabled

    @property
    def enabled(self) -> bool:
        return self._enabled

    def path_for(self, vendor: str, product: str) -> Path:
        """Deterministic, lower-cased file path for a vendor/product pair."""
        safe_vendor = vendor.lower().replace("/", "_").replace(os.sep, "_")
        safe_product = product.lower().replace("/", "_").replace(os.sep, "_")
        return self._cache_dir / f"cve-{safe_vendor}_{safe_product}.json"

    def load(self, vendor: str, product: str, *, ignore_ttl: bool = False) -> Optional[Any]:
        """Return the cached payload, or None on a miss.

        Args:
            vendor: CVE vendor
            product: CVE product
            ignore_ttl: Accept the file regardless of its age (stale fallback)
        """
        if not self._enabled:
            return None
        path = self.path_for(vendor, product)
        try:
            if not path.exists():
                return None
            if not ignore_ttl:
                age = time.time() - path.stat().st_mtime
                if age > self._ttl.total_seconds():
                    return None
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            self._logger.warning(
                "cve_cache_read_failed",
                path=str(path),
                error=str(e),
            )
            return None

    def store(self, vendor: str, product: str, payload: Any) -> None:
        if not self._enabled:
            return
        path = self.path_for(vendor, product)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".cve-", suffix=".tmp", dir=path.parent)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(payload, fh, ensure_ascii=False)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except (OSError, TypeError, ValueError) as e:
            self._logger.warning(
                "cve_cache_write_failed",
                path=str(path),
                error=str(e),
            )

    def clear_all(self) -> int:
        """Remove every cached report.

        Returns:
            Number of files removed
        """
        if not self._cache_dir.exists():
            return 0
        removed = 0
        for path in self._cache_dir.glob("cve-*.json"):
            path.unlink(missing_ok=True)
            removed += 1
        return removed
