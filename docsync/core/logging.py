"""Logging for docsync.

Provides a ``ContextualLogger`` that carries structured dimensions (connector id,
connector type, component, ...) on every record, and a ``LoggerConfigurator``
that wires handlers once per process. ``LOG_FORMAT=json`` switches output to
one JSON object per line via python-json-logger.
"""

import logging
import sys
from typing import Any, Dict, MutableMapping, Optional, Tuple

from pythonjsonlogger.json import JsonFormatter

from docsync.core.config import settings

_ROOT_LOGGER_NAME = "docsync"


class ContextualLogger(logging.LoggerAdapter):
    """Logger adapter that attaches a fixed set of dimensions to each record."""

    def __init__(self, logger: logging.Logger, dimensions: Optional[Dict[str, Any]] = None):
        """Initialize the adapter.

        Args:
            logger: The underlying stdlib logger
            dimensions: Key/value pairs merged into every record
        """
        super().__init__(logger, {})
        self.dimensions: Dict[str, Any] = dict(dimensions or {})

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> Tuple[Any, MutableMapping[str, Any]]:
        """Merge dimensions into the record's ``extra`` mapping."""
        extra = dict(self.dimensions)
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = {"dimensions": extra}
        return msg, kwargs

    def with_context(self, **dimensions: Any) -> "ContextualLogger":
        """Return a new logger with additional dimensions.

        Example:
            logger.with_context(connector_id=cid).info("Sync started")
        """
        merged = {**self.dimensions, **dimensions}
        return ContextualLogger(self.logger, merged)


class _TextFormatter(logging.Formatter):
    """Human readable formatter that appends dimensions as ``key=value`` pairs."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        dimensions = getattr(record, "dimensions", None)
        if not dimensions:
            return base
        rendered = " ".join(f"{key}={value}" for key, value in sorted(dimensions.items()))
        return f"{base} [{rendered}]"


class LoggerConfigurator:
    """Configures handlers for the docsync logger hierarchy."""

    _configured = False

    @classmethod
    def configure_root(cls, level: Optional[str] = None, fmt: Optional[str] = None) -> None:
        """Install a single stream handler on the ``docsync`` logger.

        Safe to call repeatedly; only the first call installs handlers unless
        an explicit level or format is passed.
        """
        if cls._configured and level is None and fmt is None:
            return

        root = logging.getLogger(_ROOT_LOGGER_NAME)
        root.setLevel((level or settings.LOG_LEVEL).upper())

        handler = logging.StreamHandler(sys.stderr)
        if (fmt or settings.LOG_FORMAT) == "json":
            handler.setFormatter(
                JsonFormatter("%(asctime)s %(levelname)s %(name)s %(message)s")
            )
        else:
            handler.setFormatter(
                _TextFormatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s")
            )

        root.handlers = [handler]
        root.propagate = False
        cls._configured = True

    @classmethod
    def configure_logger(
        cls, name: str, dimensions: Optional[Dict[str, Any]] = None
    ) -> ContextualLogger:
        """Build a contextual logger under the ``docsync`` hierarchy.

        Args:
            name: Logger name (``docsync.`` is prefixed if missing)
            dimensions: Dimensions carried on every record

        Returns:
            ContextualLogger
        """
        cls.configure_root()
        if not name.startswith(_ROOT_LOGGER_NAME):
            name = f"{_ROOT_LOGGER_NAME}.{name}"
        return ContextualLogger(logging.getLogger(name), dimensions)


logger = LoggerConfigurator.configure_logger(_ROOT_LOGGER_NAME)
