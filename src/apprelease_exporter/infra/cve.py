from __future__ import annotations

from typing import Any, Optional
from urllib.parse import quote

import requests

from ..core.domain.exceptions import CveFetchError
from ..core.ports import CveCachePort, LoggerPort
from ..core.services.cve_report import CveReport
from .http import build_session


class CveClient:
    """Client for a cve-search instance with cache fallback.

    Lookup order for a vendor/product pair:
    1. fresh cache file (age within TTL)
    2. remote ``/api/search/{vendor}/{product}``, persisted on success
    3. stale cache file, only if the remote call failed
    4. no report at all (logged, not an error)
    """

    def __init__(
        self,
        *,
        base_url: Optional[str],
        cache: CveCachePort,
        logger: LoggerPort,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._base_url = (base_url or "").rstrip("/")
        self._cache = cache
        self._logger = logger
        self._timeout = timeout
        self._session = session or build_session(accept="application/json")

    @property
    def enabled(self) -> bool:
        return bool(self._base_url)

    def fetch_report(self, vendor: str, product: str) -> Optional[CveReport]:
        payload = self._cache.load(vendor, product)
        if payload is not None:
            report = self._parse(payload, vendor, product, source="cache")
            if report is not None:
                return report

        try:
            payload = self._fetch_remote(vendor, product)
        except CveFetchError as e:
            self._logger.warning(
                f"cve report for {vendor}/{product} failed: {e}",
                vendor=vendor,
                product=product,
                error=str(e),
            )
            return self._stale_fallback(vendor, product)

        report = self._parse(payload, vendor, product, source="remote")
        if report is None:
            return self._stale_fallback(vendor, product)
        self._cache.store(vendor, product, payload)
        return report

    def _fetch_remote(self, vendor: str, product: str) -> Any:
        """GET the search endpoint.

        Raises:
            CveFetchError: On network errors, non-200 status or invalid JSON
        """
        url = f"{self._base_url}/api/search/{quote(vendor, safe='')}/{quote(product, safe='')}"
        try:
            response = self._session.get(url, timeout=self._timeout)
        except requests.RequestException as e:
            raise CveFetchError(str(e)) from e
        if response.status_code != 200:
            raise CveFetchError(
                f"unexpected status {response.status_code} from {url}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise CveFetchError(f"invalid JSON from {url}: {e}") from e

    def _stale_fallback(self, vendor: str, product: str) -> Optional[CveReport]:
        payload = self._cache.load(vendor, product, ignore_ttl=True)
        if payload is None:
            self._logger.warning(
                f"no cve report available for {vendor}/{product}, skipping enrichment",
                vendor=vendor,
                product=product,
            )
            return None
        self._logger.info(
            f"using stale cached cve report for {vendor}/{product}",
            vendor=vendor,
            product=product,
        )
        return self._parse(payload, vendor, product, source="stale-cache")

    def _parse(self, payload: Any, vendor: str, product: str, *, source: str) -> Optional[CveReport]:
        try:
            return CveReport.from_payload(payload, vendor=vendor, product=product, logger=self._logger)
        except (TypeError, ValueError) as e:
            self._logger.error(
                "cve_report_parse_failed",
                vendor=vendor,
                product=product,
                source=source,
                error=str(e),
            )
            return None
