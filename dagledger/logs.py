"""Structured JSON logging with per-module child loggers and fan-out writers."""

from __future__ import annotations

import json
import threading
from datetime import datetime
from enum import Enum
from typing import Any, BinaryIO, Callable, Mapping, Optional

LOGGER_WAVELET = "wavelet"
LOGGER_WEBSOCKET = "ws"

KEY_MODULE = "mod"
KEY_EVENT = "event"

MODULE_NODE = "node"
MODULE_NETWORK = "network"
MODULE_ACCOUNTS = "accounts"
MODULE_CONSENSUS = "consensus"
MODULE_CONTRACT = "contract"
MODULE_SYNC = "sync"
MODULE_STAKE = "stake"
MODULE_TX = "tx"
MODULE_METRICS = "metrics"

LEVEL_FIELD = "level"
TIMESTAMP_FIELD = "time"
MESSAGE_FIELD = "message"
CALLER_FIELD = "caller"
ERROR_FIELD = "error"


class Level(str, Enum):
    """Severity of a log event."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class MultiWriter:
    """Writes every chunk of bytes to each registered writer."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._writers: dict[str, Any] = {}

    def set_writer(self, key: str, writer: Any) -> None:
        """Register ``writer`` under ``key``, replacing any previous one."""
        with self._lock:
            self._writers[key] = writer

    def write(self, data: bytes) -> int:
        """Write ``data`` to all writers; raise OSError on a short write."""
        with self._lock:
            writers = list(self._writers.values())
        for writer in writers:
            written = writer.write(data)
            if written is not None and written != len(data):
                raise OSError("short write")
        return len(data)


def _now() -> datetime:
    return datetime.now().astimezone()


def _encode(key: str, value: Any) -> Any:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    if isinstance(value, BaseException):
        return str(value)
    return value


class Logger:
    """A logger that emits one JSON object per event to a writer."""

    def __init__(
        self,
        writer: Any,
        fields: Optional[Mapping[str, Any]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._writer = writer
        self._fields = dict(fields or {})
        self._clock = clock or _now

    def bind(self, **kwargs: Any) -> "Logger":
        """Return a child logger carrying additional context fields."""
        return Logger(self._writer, {**self._fields, **kwargs}, self._clock)

    def event(self, level: Any, message: str, **kwargs: Any) -> None:
        """Emit an event; a ``level`` of None records no level."""
        record: dict[str, Any] = {}
        if level is not None:
            record[LEVEL_FIELD] = level.value if isinstance(level, Level) else str(level)
        for source in (self._fields, kwargs):
            for key, value in source.items():
                if key == ERROR_FIELD and value is None:
                    continue
                record[key] = _encode(key, value)
        record[TIMESTAMP_FIELD] = self._clock().isoformat(timespec="seconds")
        if message:
            record[MESSAGE_FIELD] = message
        line = json.dumps(record, separators=(",", ":"), default=str) + "\n"
        self._writer.write(line.encode("utf-8"))

    def debug(self, message: str, **kwargs: Any) -> None:
        self.event(Level.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self.event(Level.INFO, message, **kwargs)

    def warn(self, message: str, **kwargs: Any) -> None:
        self.event(Level.WARN, message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self.event(Level.ERROR, message, **kwargs)


_output = MultiWriter()
_root = Logger(_output)

_node = _root.bind(**{KEY_MODULE: MODULE_NODE})
_network = _root.bind(**{KEY_MODULE: MODULE_NETWORK})
_accounts = _root.bind(**{KEY_MODULE: MODULE_ACCOUNTS})
_consensus = _root.bind(**{KEY_MODULE: MODULE_CONSENSUS})
_contract = _root.bind(**{KEY_MODULE: MODULE_CONTRACT})
_syncer = _root.bind(**{KEY_MODULE: MODULE_SYNC})
_stake = _root.bind(**{KEY_MODULE: MODULE_STAKE})
_tx = _root.bind(**{KEY_MODULE: MODULE_TX})
_metrics = _root.bind(**{KEY_MODULE: MODULE_METRICS})


def set_writer(key: str, writer: Any) -> None:
    """Register a destination for all log output."""
    _output.set_writer(key, writer)


def _with_event(logger: Logger, event: str) -> Logger:
    return logger.bind(**{KEY_EVENT: event})


def node() -> Logger:
    return _node


def network(event: str) -> Logger:
    return _with_event(_network, event)


def accounts(event: str) -> Logger:
    return _with_event(_accounts, event)


def contracts(event: str) -> Logger:
    return _with_event(_contract, event)


def tx(event: str) -> Logger:
    return _with_event(_tx, event)


def consensus(event: str) -> Logger:
    return _with_event(_consensus, event)


def stake(event: str) -> Logger:
    return _with_event(_stake, event)


def sync(event: str) -> Logger:
    return _with_event(_syncer, event)


def metrics() -> Logger:
    return _metrics


def log_event_tx(event: str, transaction: Any, *args: Any) -> None:
    """Log a transaction event; any exception among ``args`` is recorded as the error."""
    fields: dict[str, Any] = {
        "tx_id": bytes(transaction.id),
        "sender_id": bytes(transaction.sender),
        "creator_id": bytes(transaction.creator),
        "depth": int(transaction.depth),
        "tag": int(transaction.tag),
    }
    for other in args:
        if isinstance(other, BaseException):
            fields[ERROR_FIELD] = other
    tx(event).event(None, "", **fields)