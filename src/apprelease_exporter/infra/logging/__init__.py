from __future__ import annotations

from .logger import ExporterLogger
from .handlers import build_json_console_handler, build_human_console_handler, build_json_file_handler
from .formatters import JSONFormatter, HumanReadableFormatter

__all__ = [
    "ExporterLogger",
    "build_json_console_handler",
    "build_human_console_handler",
    "build_json_file_handler",
    "JSONFormatter",
    "HumanReadableFormatter",
]
