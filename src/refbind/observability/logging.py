"""Structured logging setup with JSON-lines output and session correlation.

Records pass through a bounded queue to a listener thread that writes one
JSON object per line. Correlation fields bound with :func:`correlation_scope`
(for example the decode ``session_id``) are copied onto every record emitted
inside the scope. ``structlog`` decision events are routed into the same
stdlib logger tree by :func:`configure_decision_logging`.
"""

from __future__ import annotations

import atexit
import contextvars
import json
import logging
import logging.handlers
import math
import queue
import threading
import time
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Final, cast

import structlog

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]

_CorrelationState = tuple[tuple[str, str], ...]

# Attributes every LogRecord carries; anything else arrived through ``extra``.
_RECORD_ATTRIBUTES: Final[frozenset[str]] = frozenset(vars(logging.makeLogRecord({}))) | {
    "asctime",
    "correlation",
    "message",
}

_CORRELATION: contextvars.ContextVar[_CorrelationState] = contextvars.ContextVar(
    "refbind_correlation", default=()
)

_ACTIVE_LOCK = threading.Lock()
_ACTIVE: StructuredLoggingHandle | None = None
_ATEXIT_HOOKED = False

__all__ = [
    "LoggingConfig",
    "StructuredLoggingHandle",
    "configure_decision_logging",
    "correlation_scope",
    "get_correlation_context",
    "reset_correlation_fields",
    "set_correlation_fields",
    "setup_logging",
    "setup_structured_logging",
    "shutdown_logging",
]


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Where and how the JSON-lines sink writes."""

    base_log_dir: Path | str = Path("logs")
    logger_name: str = "refbind"
    level: int | str = "INFO"
    queue_size: int = 4096
    log_filename: str = "refbind.jsonl"
    log_to_stdout: bool = False

    @classmethod
    def from_section(
        cls,
        section: Mapping[str, object],
        *,
        log_dir: Path | str | None = None,
        logger_name: str = "refbind",
    ) -> LoggingConfig:
        level = section.get("log_level", "INFO")
        base = log_dir if log_dir is not None else section.get("log_dir", "logs")
        return cls(
            base_log_dir=base if isinstance(base, (Path, str)) else "logs",
            logger_name=logger_name,
            level=level if isinstance(level, (int, str)) else "INFO",
            log_to_stdout=bool(section.get("log_to_stdout", False)),
        )


def setup_logging(
    config: Mapping[str, object] | None = None,
    *,
    log_dir: Path | str | None = None,
    logger_name: str = "refbind",
) -> logging.Logger:
    """Configure logging from an effective config or its ``observability`` section.

    Installs the JSON-lines sink and routes structlog decision events into it.
    ``log_dir`` overrides the configured directory.
    """
    payload: Mapping[str, object] = config or {}
    section = payload.get("observability", payload)
    handle = setup_structured_logging(
        LoggingConfig.from_section(
            section if isinstance(section, Mapping) else {},
            log_dir=log_dir,
            logger_name=logger_name,
        )
    )
    configure_decision_logging()
    return handle.logger


def configure_decision_logging() -> None:
    """Route ``structlog`` decision events into the stdlib logger tree.

    Events keep their key/value pairs; they reach the JSON-lines sink under
    ``fields`` with the event name as the message.
    """
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.stdlib.render_to_log_kwargs,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


class _DroppingQueueHandler(logging.handlers.QueueHandler):
    """Queue handler that counts and discards records once the queue is full."""

    def __init__(self, log_queue: queue.Queue[object]) -> None:
        super().__init__(log_queue)
        self._dropped_lock = threading.Lock()
        self._dropped = 0

    @property
    def dropped(self) -> int:
        with self._dropped_lock:
            return self._dropped

    def prepare(self, record: logging.LogRecord) -> logging.LogRecord:
        # Correlation is captured on the emitting thread, not the listener.
        bound = _CORRELATION.get()
        if bound:
            record.correlation = dict(bound)
        return cast("logging.LogRecord", super().prepare(record))

    def enqueue(self, record: logging.LogRecord) -> None:
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            with self._dropped_lock:
                self._dropped += 1


class _JsonLineFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=UTC)
        line: dict[str, JSONValue] = {
            "timestamp": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        correlation = getattr(record, "correlation", None)
        if isinstance(correlation, Mapping):
            line.update(
                (key, value)
                for key, value in sorted(correlation.items())
                if isinstance(key, str) and isinstance(value, str)
            )
        extra = {
            key: value
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRIBUTES and not key.startswith("_")
        }
        if extra:
            line["fields"] = _to_json(extra)
        if record.exc_info is not None:
            line["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            line["stack"] = str(record.stack_info)
        return json.dumps(line, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


class StructuredLoggingHandle:
    """Owns the queue, listener thread and sinks of one logging setup."""

    def __init__(
        self,
        logger: logging.Logger,
        log_path: Path,
        queue_handler: _DroppingQueueHandler,
        listener: logging.handlers.QueueListener,
    ) -> None:
        self.logger = logger
        self.log_path = log_path
        self._queue_handler = queue_handler
        self._listener = listener
        self._lock = threading.Lock()
        self._closed = False

    @property
    def dropped_records(self) -> int:
        return self._queue_handler.dropped

    @property
    def is_shutdown(self) -> bool:
        return self._closed

    def flush(self, *, timeout_seconds: float = 2.0) -> None:
        """Wait for the listener to drain the queue, then flush the sinks."""
        pending = cast("queue.Queue[object]", self._queue_handler.queue)
        deadline = time.monotonic() + max(timeout_seconds, 0.0)
        while pending.unfinished_tasks and time.monotonic() < deadline:
            time.sleep(0.01)
        for sink in self._listener.handlers:
            sink.flush()

    def shutdown(self, *, timeout_seconds: float = 2.0) -> None:
        with self._lock:
            if self._closed:
                return
            self.flush(timeout_seconds=timeout_seconds)
            self._listener.stop()
            self.logger.removeHandler(self._queue_handler)
            self._queue_handler.close()
            for sink in self._listener.handlers:
                sink.close()
            self._closed = True


def setup_structured_logging(config: LoggingConfig) -> StructuredLoggingHandle:
    """Install a queue-backed JSON-lines sink under ``config.base_log_dir``.

    Any previously active setup is shut down first.
    """
    level = _parse_log_level(config.level)
    queue_size = _positive_int(config.queue_size, "queue_size")
    logger_name = _non_empty(config.logger_name, "logger_name")
    log_filename = _non_empty(config.log_filename, "log_filename")
    if Path(log_filename).name != log_filename:
        raise ValueError("log_filename must not contain path separators")

    previous = _replace_active(None)
    if previous is not None:
        previous.shutdown()

    log_dir = Path(config.base_log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / log_filename

    sinks: list[logging.Handler] = [logging.FileHandler(log_path, encoding="utf-8")]
    if config.log_to_stdout:
        sinks.append(logging.StreamHandler())
    formatter = _JsonLineFormatter()
    for sink in sinks:
        sink.setLevel(level)
        sink.setFormatter(formatter)

    logger = logging.getLogger(logger_name)
    for stale in list(logger.handlers):
        logger.removeHandler(stale)
        stale.close()
    logger.setLevel(level)
    logger.propagate = False

    queue_handler = _DroppingQueueHandler(queue.Queue(maxsize=queue_size))
    queue_handler.setLevel(level)
    listener = logging.handlers.QueueListener(
        queue_handler.queue, *sinks, respect_handler_level=True
    )
    listener.start()
    logger.addHandler(queue_handler)

    handle = StructuredLoggingHandle(logger, log_path, queue_handler, listener)
    _replace_active(handle)
    _hook_atexit()
    return handle


def shutdown_logging(
    handle: StructuredLoggingHandle | None = None,
    *,
    timeout_seconds: float = 2.0,
) -> None:
    """Stop the listener and close the sinks of ``handle`` or the active setup."""
    global _ACTIVE
    with _ACTIVE_LOCK:
        target = handle if handle is not None else _ACTIVE
    if target is None:
        return
    target.shutdown(timeout_seconds=timeout_seconds)
    with _ACTIVE_LOCK:
        if _ACTIVE is target:
            _ACTIVE = None


def get_correlation_context() -> dict[str, str]:
    return dict(_CORRELATION.get())


def set_correlation_fields(**fields: str | None) -> contextvars.Token[_CorrelationState]:
    """Bind (or, with ``None``, unbind) correlation fields; returns a reset token."""
    bound = dict(_CORRELATION.get())
    for raw_key, value in fields.items():
        key = raw_key.strip()
        if not key:
            raise ValueError("correlation key must be non-empty")
        if value is None:
            bound.pop(key, None)
        elif isinstance(value, str) and value.strip():
            bound[key] = value.strip()
        else:
            raise ValueError(f"correlation value for {key!r} must be a non-empty string")
    return _CORRELATION.set(tuple(bound.items()))


def reset_correlation_fields(token: contextvars.Token[_CorrelationState]) -> None:
    _CORRELATION.reset(token)


@contextmanager
def correlation_scope(**fields: str | None) -> Iterator[None]:
    """Bind correlation fields for log records emitted inside the block."""
    token = set_correlation_fields(**fields)
    try:
        yield
    finally:
        reset_correlation_fields(token)


def _replace_active(handle: StructuredLoggingHandle | None) -> StructuredLoggingHandle | None:
    global _ACTIVE
    with _ACTIVE_LOCK:
        previous, _ACTIVE = _ACTIVE, handle
    return previous


def _hook_atexit() -> None:
    global _ATEXIT_HOOKED
    with _ACTIVE_LOCK:
        if not _ATEXIT_HOOKED:
            atexit.register(shutdown_logging)
            _ATEXIT_HOOKED = True


def _positive_int(value: object, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an int")
    if value <= 0:
        raise ValueError(f"{name} must be > 0")
    return value


def _non_empty(value: object, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{name} must be a non-empty string")
    return value.strip()


def _parse_log_level(value: int | str) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        resolved = logging.getLevelName(value.strip().upper())
        if isinstance(resolved, int):
            return resolved
    raise ValueError(f"unknown log level: {value!r}")


def _to_json(value: object) -> JSONValue:
    if value is None or isinstance(value, (str, bool, int)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else str(value)
    if isinstance(value, Mapping):
        return {str(key): _to_json(value[key]) for key in sorted(value, key=str)}
    if isinstance(value, (set, frozenset)):
        return [_to_json(item) for item in sorted(value, key=str)]
    if isinstance(value, (list, tuple)):
        return [_to_json(item) for item in value]
    return str(value)
