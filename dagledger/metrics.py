"""Counters, rate meters and latency timers for ledger activity."""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, Optional

from .logs import metrics as metrics_logger

Clock = Callable[[], float]


class Meter:
    """Counts events and reports their mean rate since creation."""

    def __init__(self, clock: Clock = time.monotonic) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._start = clock()
        self._count = 0
        self._stopped = False

    def mark(self, n: int) -> None:
        """Record ``n`` events; ignored once the meter is stopped."""
        with self._lock:
            if not self._stopped:
                self._count += n

    def count(self) -> int:
        with self._lock:
            return self._count

    def rate_mean(self) -> float:
        """Events per second since the meter was created."""
        with self._lock:
            elapsed = self._clock() - self._start
            return self._count / elapsed if elapsed > 0 else 0.0

    def stop(self) -> None:
        with self._lock:
            self._stopped = True


class Timer:
    """Records durations in seconds, and meters how often they occur."""

    def __init__(self, clock: Clock = time.monotonic) -> None:
        self._lock = threading.Lock()
        self._meter = Meter(clock)
        self._samples = 0
        self._total = 0.0
        self._min: Optional[float] = None
        self._max: Optional[float] = None

    def time(self, func: Callable[[], Any]) -> Any:
        """Call ``func``, record how long it took, and return its result."""
        began = time.perf_counter()
        try:
            return func()
        finally:
            self.update(time.perf_counter() - began)

    def update(self, seconds: float) -> None:
        """Record one duration."""
        with self._lock:
            self._samples += 1
            self._total += seconds
            self._min = seconds if self._min is None else min(self._min, seconds)
            self._max = seconds if self._max is None else max(self._max, seconds)
        self._meter.mark(1)

    def max(self) -> float:
        with self._lock:
            return self._max if self._max is not None else 0.0

    def min(self) -> float:
        with self._lock:
            return self._min if self._min is not None else 0.0

    def mean(self) -> float:
        with self._lock:
            return self._total / self._samples if self._samples else 0.0

    def stop(self) -> None:
        self._meter.stop()


class Metrics:
    """The ledger's metrics registry, optionally reported periodically to the log.

    With an ``interval`` in seconds, a background thread logs a report that often
    until ``stop()`` is called; with None, reports are made only on request.
    """

    def __init__(self, interval: Optional[float] = 1.0, clock: Clock = time.monotonic) -> None:
        self.queried = Meter(clock)
        self.gossiped_tx = Meter(clock)
        self.received_tx = Meter(clock)
        self.accepted_tx = Meter(clock)
        self.downloaded_tx = Meter(clock)
        self.query_latency = Timer(clock)

        self.registry: dict[str, Any] = {
            "round.queried": self.queried,
            "tx.gossiped": self.gossiped_tx,
            "tx.received": self.received_tx,
            "tx.accepted": self.accepted_tx,
            "tx.downloaded": self.downloaded_tx,
            "query.latency": self.query_latency,
        }

        self._stopping = threading.Event()
        self._reporter: Optional[threading.Thread] = None
        if interval is not None:
            self._reporter = threading.Thread(
                target=self._report_every, args=(interval,), daemon=True
            )
            self._reporter.start()

    def _report_every(self, interval: float) -> None:
        while not self._stopping.wait(interval):
            self.report()

    def report(self) -> dict[str, Any]:
        """Log the current values and return them."""
        fields: dict[str, Any] = {
            "round.queried": self.queried.count(),
            "tx.gossiped": self.gossiped_tx.count(),
            "tx.received": self.received_tx.count(),
            "tx.accepted": self.accepted_tx.count(),
            "tx.downloaded": self.downloaded_tx.count(),
            "rps.queried": self.queried.rate_mean(),
            "tps.gossiped": self.gossiped_tx.rate_mean(),
            "tps.received": self.received_tx.rate_mean(),
            "tps.accepted": self.accepted_tx.rate_mean(),
            "tps.downloaded": self.downloaded_tx.rate_mean(),
            "query.latency.max.ms": self.query_latency.max() * 1000.0,
            "query.latency.min.ms": self.query_latency.min() * 1000.0,
            "query.latency.mean.ms": self.query_latency.mean() * 1000.0,
        }
        metrics_logger().info("Updated metrics.", **fields)
        return fields

    def stop(self) -> None:
        """Stop all meters and the periodic reporter."""
        self._stopping.set()
        for metric in self.registry.values():
            metric.stop()
        if self._reporter is not None and self._reporter is not threading.current_thread():
            self._reporter.join(timeout=1.0)