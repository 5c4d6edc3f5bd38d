from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

from ..domain.models import CveAccess, CveEntry, CveImpact

if TYPE_CHECKING:
    from ..ports import LoggerPort


# cpe:2.3:a:<vendor>:<product>:<version>:<qualifier>:...
VENDOR_FIELD = 3
PRODUCT_FIELD = 4
VERSION_FIELD = 5
QUALIFIER_FIELD = 6

IDENTIFIER_KEYS = (
    "vulnerable_product",
    "vulnerable_configuration",
    "vulnerable_configuration_cpe_2_2",
)

ACCEPTED_QUALIFIERS = frozenset({"", "*", "-"})


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _entry_from_record(record: dict[str, Any]) -> CveEntry:
    access = record.get("access") or {}
    impact = record.get("impact") or {}
    if not isinstance(access, dict) or not isinstance(impact, dict):
        raise ValueError("access/impact must be objects")
    record_id = record.get("id")
    if not record_id:
        raise ValueError("record without id")
    return CveEntry(
        id=str(record_id),
        cvss=float(record.get("cvss") or 0.0),
        cwe=_text(record.get("cwe")),
        vector=_text(record.get("cvss-vector")),
        access=CveAccess(
            authentication=_text(access.get("authentication")),
            complexity=_text(access.get("complexity")),
            vector=_text(access.get("vector")),
        ),
        impact=CveImpact(
            availability=_text(impact.get("availability")),
            confidentiality=_text(impact.get("confidentiality")),
            integrity=_text(impact.get("integrity")),
        ),
    )


def _identifiers(record: dict[str, Any]) -> list[str]:
    identifiers: list[str] = []
    for key in IDENTIFIER_KEYS:
        items = record.get(key) or []
        if not isinstance(items, list):
            raise ValueError(f"{key} must be a list, got {type(items).__name__}")
        for item in items:
            if isinstance(item, dict):
                item = item.get("id")
            if isinstance(item, str):
                identifiers.append(item)
    return identifiers


class CveReport:
    """Vulnerability records of one vendor/product, indexed by version.

    Built once per fetch (from the remote API or a cache file) and never
    mutated afterwards.
    """

    def __init__(self, vendor: str, product: str, index: dict[str, dict[str, CveEntry]]) -> None:
        self.vendor = vendor
        self.product = product
        self._index = index

    @classmethod
    def from_payload(
        cls,
        payload: Any,
        *,
        vendor: str,
        product: str,
        logger: Optional["LoggerPort"] = None,
    ) -> "CveReport":
        """Parse a cve-search ``/api/search`` payload.

        A record is indexed under a version only when vendor and product
        match case-insensitively and the qualifier field is empty, ``*`` or
        ``-``. Duplicates across identifier lists collapse by record id.

        Raises:
            ValueError: If the payload has no result list at all
        """
        if isinstance(payload, dict):
            results = payload.get("results")
        else:
            results = payload
        if not isinstance(results, list):
            raise ValueError("cve payload has no result list")

        want_vendor = vendor.lower()
        want_product = product.lower()
        index: dict[str, dict[str, CveEntry]] = {}

        for position, record in enumerate(results):
            try:
                if not isinstance(record, dict):
                    raise ValueError(f"expected object, got {type(record).__name__}")
                entry = _entry_from_record(record)
                identifiers = _identifiers(record)
            except (TypeError, ValueError) as e:
                if logger is not None:
                    logger.warning(
                        "cve_record_skipped",
                        vendor=vendor,
                        product=product,
                        position=position,
                        error=str(e),
                    )
                continue

            for identifier in identifiers:
                fields = identifier.split(":")
                if len(fields) <= VERSION_FIELD:
                    continue
                if fields[VENDOR_FIELD].lower() != want_vendor:
                    continue
                if fields[PRODUCT_FIELD].lower() != want_product:
                    continue
                qualifier = fields[QUALIFIER_FIELD] if len(fields) > QUALIFIER_FIELD else ""
                if qualifier not in ACCEPTED_QUALIFIERS:
                    continue
                version = fields[VERSION_FIELD].lower()
                index.setdefault(version, {})[entry.id] = entry

        return cls(vendor, product, index)

    def get_report_by_version(self, version: str) -> list[CveEntry]:
        return list(self._index.get(version.lower(), {}).values())

    @property
    def versions(self) -> list[str]:
        return sorted(self._index)

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._index.values())
