"""
Structured logging with session/turn correlation.

Every event logged through ``get_logger`` carries the current ``session_id``
and ``turn_id`` so a turn can be followed from the user append through
generation, moderation and persistence. Message text is never logged; callers
pass lengths and ids instead.
"""

import logging
import time
from contextvars import ContextVar
from typing import Any, Dict, List, Optional

import structlog
from structlog.stdlib import LoggerFactory

session_id_var: ContextVar[Optional[str]] = ContextVar("session_id", default=None)
turn_id_var: ContextVar[Optional[str]] = ContextVar("turn_id", default=None)


def _correlation() -> Dict[str, str]:
    context = {}
    if session_id := session_id_var.get():
        context["session_id"] = session_id
    if turn_id := turn_id_var.get():
        context["turn_id"] = turn_id
    return context


class StructuredLogger:
    """structlog wrapper that stamps correlation ids onto each event."""

    def __init__(self, name: str):
        self.name = name
        self.logger = structlog.get_logger(name)

    def _log(self, level: str, message: str, **kwargs: Any) -> None:
        getattr(self.logger, level)(message, **_correlation(), **kwargs)

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log("debug", message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log("info", message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log("warning", message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._log("error", message, **kwargs)

    def log_processing_step(
        self,
        step: str,
        component: str,
        duration_ms: Optional[float] = None,
        **kwargs: Any,
    ) -> None:
        """Log one pipeline step, optionally with its duration."""
        if duration_ms is not None:
            kwargs["duration_ms"] = round(duration_ms, 2)
        self._log(
            "info",
            f"Processing step: {step}",
            step=step,
            component=component,
            **kwargs,
        )

    def log_safety_event(
        self, event_type: str, category: str, content: str, **kwargs: Any
    ) -> None:
        """Log a moderation outcome. Only the content length is recorded."""
        self._log(
            "warning",
            f"Safety event: {event_type}",
            event_type=event_type,
            category=category,
            content_length=len(content),
            **kwargs,
        )


def get_logger(name: str) -> StructuredLogger:
    return StructuredLogger(name)


def set_request_context(
    session_id: Optional[str] = None,
    turn_id: Optional[str] = None,
) -> None:
    """Bind correlation ids for the current task."""
    if session_id:
        session_id_var.set(session_id)
    if turn_id:
        turn_id_var.set(turn_id)


def clear_request_context() -> None:
    session_id_var.set(None)
    turn_id_var.set(None)


def configure_logging(level: str = "INFO", json_format: bool = True) -> None:
    """Configure structlog over the standard library logging backend."""
    processors: List[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="ISO", utc=True),
    ]
    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    numeric_level = getattr(logging, level.upper(), logging.INFO)
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    logging.basicConfig(level=numeric_level, format="%(message)s")


class ProcessingTimer:
    """Times a block and logs it as a processing step on exit."""

    def __init__(
        self, logger: StructuredLogger, step: str, component: str, **kwargs: Any
    ):
        self.logger = logger
        self.step = step
        self.component = component
        self.kwargs = kwargs
        self.duration_ms: Optional[float] = None
        self._started: Optional[float] = None

    def __enter__(self) -> "ProcessingTimer":
        self._started = time.perf_counter()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._started is None:
            return
        self.duration_ms = (time.perf_counter() - self._started) * 1000
        self.logger.log_processing_step(
            self.step,
            self.component,
            duration_ms=self.duration_ms,
            status="success" if exc_type is None else "error",
            **self.kwargs,
        )


configure_logging()
