"""Logging setup for PropBrain: plain text or one JSON object per line."""
from __future__ import annotations

import json
import logging
import sys
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional

TEXT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Promoted from record attributes to top-level JSON keys
CONTEXT_FIELDS = ("user_id", "session_id", "folder_id", "property_id")

NOISY_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine", "openai", "anthropic")


class JSONFormatter(logging.Formatter):
    """Render records as JSON so workspace events can be grepped by folder or session."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "where": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        payload.update(
            {name: getattr(record, name) for name in CONTEXT_FIELDS if hasattr(record, name)}
        )
        call = getattr(record, "external_call", None)
        if call is not None:
            payload["external_call"] = call
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class ContextLogger(logging.LoggerAdapter):
    """
    Adapter that stamps the same ids onto every record.

    The domain services build one per actor, so a folder deletion or an
    intake commit can be traced back to the user who did it.
    """

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple[str, Dict[str, Any]]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    json_format: bool = False,
) -> None:
    """Install stdout (and optionally file) handlers on the root logger."""
    formatter: logging.Formatter = (
        JSONFormatter() if json_format else logging.Formatter(TEXT_LOG_FORMAT, DATE_FORMAT)
    )

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(level=level, handlers=handlers, force=True)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def get_context_logger(name: str, **context: Any) -> ContextLogger:
    """Logger whose records carry ``context`` (user_id, folder_id, ...)."""
    return ContextLogger(logging.getLogger(name), context)


@contextmanager
def external_call(
    logger: logging.Logger,
    service: str,
    operation: str,
    **extra: Any,
) -> Iterator[None]:
    """
    Time a call to a geocoder, preview or LLM provider and log the outcome.

    The call counts as failed when an exception leaves the block; the
    exception is re-raised untouched.

        with external_call(LOGGER, "geocoder", "search", address=query):
            feature = self._search(query)
    """
    started = time.perf_counter()
    ok = False
    try:
        yield
        ok = True
    finally:
        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        details = {"service": service, "operation": operation, "ok": ok, "elapsed_ms": elapsed_ms, **extra}
        if ok:
            logger.info(f"{service}.{operation} ok in {elapsed_ms}ms", extra={"external_call": details})
        else:
            logger.warning(f"{service}.{operation} failed after {elapsed_ms}ms", extra={"external_call": details})


__all__ = [
    "setup_logging",
    "get_logger",
    "get_context_logger",
    "external_call",
    "JSONFormatter",
    "ContextLogger",
]
