from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from dependency_injector.resources import Resource

from .handlers import build_human_console_handler, build_json_console_handler, build_json_file_handler


# HTTP client libraries whose records join the exporter's handlers in debug mode
_LIBRARY_LOGGERS = ("urllib3",)


class ExporterLogger(Resource):
    """Structured logger for the exporter.

    Extra keyword arguments on every call become structured fields of the
    record (JSON keys, or ``key=value`` pairs on the console).
    """

    def init(
        self,
        *,
        logger_name: str = "apprelease_exporter",
        debug: bool = False,
        verbose: bool = False,
        json_output: bool = False,
        log_file: Optional[Path] = None,
    ) -> "ExporterLogger":
        """Configure handlers and level.

        Args:
            logger_name: Logger name
            debug: DEBUG level, including HTTP library output
            verbose: DEBUG level for the exporter's own per-version events
            json_output: Emit JSON lines instead of human-readable text
            log_file: Optional additional JSONL file

        Returns:
            Self for dependency_injector Resource pattern
        """
        level = logging.DEBUG if (debug or verbose) else logging.INFO

        self._logger = logging.getLogger(logger_name)
        self._logger.setLevel(level)
        self._logger.propagate = False

        self._logger.handlers.clear()
        self._handlers: list[logging.Handler] = []

        if json_output:
            self._handlers.append(build_json_console_handler(level=level))
        else:
            self._handlers.append(build_human_console_handler(level=level))
        if log_file is not None:
            self._handlers.append(build_json_file_handler(log_file, level=level))
        for handler in self._handlers:
            self._logger.addHandler(handler)

        self._library_loggers: list[logging.Logger] = []
        if debug:
            for name in _LIBRARY_LOGGERS:
                lib = logging.getLogger(name)
                lib.setLevel(logging.DEBUG)
                for handler in self._handlers:
                    lib.addHandler(handler)
                self._library_loggers.append(lib)

        return self

    def shutdown(self, resource: "ExporterLogger") -> None:
        """Flush and detach all handlers."""
        for lib in self._library_loggers:
            for handler in self._handlers:
                lib.removeHandler(handler)
        for handler in self._handlers:
            handler.flush()
            handler.close()
        self._logger.handlers.clear()

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def debug(self, message: str, **kwargs) -> None:
        """Log debug message with optional extra fields."""
        if kwargs:
            self._logger.debug(message, extra=kwargs)
        else:
            self._logger.debug(message)

    def info(self, message: str, **kwargs) -> None:
        """Log info message with optional extra fields."""
        if kwargs:
            self._logger.info(message, extra=kwargs)
        else:
            self._logger.info(message)

    def warning(self, message: str, **kwargs) -> None:
        """Log warning message with optional extra fields."""
        if kwargs:
            self._logger.warning(message, extra=kwargs)
        else:
            self._logger.warning(message)

    def error(self, message: str, exc_info: bool = False, **kwargs) -> None:
        """Log error message with optional extra fields and exception info."""
        if kwargs:
            self._logger.error(message, extra=kwargs, exc_info=exc_info)
        else:
            self._logger.error(message, exc_info=exc_info)

    def exception(self, message: str, **kwargs) -> None:
        """Log exception with traceback and optional extra fields."""
        if kwargs:
            self._logger.exception(message, extra=kwargs)
        else:
            self._logger.exception(message)
