from __future__ import annotations

from .cve_report import CveReport

__all__ = [
    "CveReport",
]
