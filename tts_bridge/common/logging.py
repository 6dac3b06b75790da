"""Structured logging for the bridge.

Every record, whether it comes from structlog or a stdlib logger such as
uvicorn's, goes through one ``ProcessorFormatter`` on the root handler and is
rendered as a single JSON line (or a coloured console line when developing).
"""

from __future__ import annotations

import logging
import sys
from typing import IO, Any

import structlog

# chatty third-party loggers kept at WARNING regardless of the service level
_NOISY_LOGGERS = ("httpx", "httpcore")


def _resolve_level(level: str) -> int:
    mapping = logging.getLevelNamesMapping()
    return mapping.get((level or "").upper(), logging.INFO)


class _ServiceStamp:
    """Add ``service`` to every event that does not already carry one."""

    def __init__(self, service_name: str | None) -> None:
        self.service_name = service_name

    def __call__(self, _: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        if self.service_name:
            event_dict.setdefault("service", self.service_name)
        return event_dict


def configure_logging(
    level: str = "INFO",
    *,
    json_logs: bool = True,
    service_name: str | None = None,
    stream: IO[str] | None = None,
) -> None:
    """Route structlog and stdlib logging to one handler.

    Args:
        level: Level name; unknown names fall back to INFO.
        json_logs: Render JSON lines instead of console output.
        service_name: Value stamped into the ``service`` field.
        stream: Destination, ``sys.stdout`` by default. Tests pass a StringIO.
    """
    numeric_level = _resolve_level(level)
    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )
    pre_chain = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", key="timestamp"),
        _ServiceStamp(service_name),
        structlog.processors.dict_tracebacks,
    ]

    handler = logging.StreamHandler(stream if stream is not None else sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(numeric_level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str, *, correlation_id: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a logger, bound to ``correlation_id`` when one is given."""
    logger = structlog.stdlib.get_logger(name)
    if correlation_id:
        logger = logger.bind(correlation_id=correlation_id)
    return logger


__all__ = ["configure_logging", "get_logger"]
