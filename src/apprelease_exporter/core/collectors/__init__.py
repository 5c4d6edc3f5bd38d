from __future__ import annotations

from .base import SourceCollector
from .registry import RegistryCollector
from .release import ReleaseCollector
from .stats import StatsCollector

__all__ = [
    "SourceCollector",
    "RegistryCollector",
    "ReleaseCollector",
    "StatsCollector",
]
