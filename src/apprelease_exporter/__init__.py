from .app.main import serve, collect_once, clear_cache

__all__ = [
    "serve",
    "collect_once",
    "clear_cache",
]

# stdlib logging defaults: attach NullHandler to prevent 'No handler' warnings
import logging
_logger = logging.getLogger(__name__)
_logger.addHandler(logging.NullHandler())
