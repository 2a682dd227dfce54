"""Latency measurement around store and upstream calls."""

import logging
import time
from typing import Awaitable, Callable, TypeVar

import structlog

from auth_broker.metrics import store_latency_seconds

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Telemetry:
    """Records how long wrapped calls take, tagged with where the request landed.

    ``location`` is the edge/region serving the request and ``country`` the
    client's country as reported by the edge, when available. Recording never
    changes the outcome of the wrapped call: its result is returned and its
    exception re-raised untouched, and the duration is recorded either way.
    """

    def __init__(self, location: str = "", country: str = "") -> None:
        self.location = location or "unknown"
        self.country = country or "unknown"

    async def with_latency(self, name: str, fn: Callable[[], Awaitable[T]]) -> T:
        start = time.perf_counter()
        outcome = "error"
        try:
            result = await fn()
            outcome = "ok"
            return result
        finally:
            self._record(name, time.perf_counter() - start, outcome)

    def _record(self, name: str, duration: float, outcome: str) -> None:
        try:
            store_latency_seconds.labels(
                operation=name,
                location=self.location,
                country=self.country,
                outcome=outcome,
            ).observe(duration)
            structlog.get_logger().info(
                "latency",
                operation=name,
                location=self.location,
                country=self.country,
                outcome=outcome,
                duration_ms=round(duration * 1000, 2),
            )
        except Exception as e:
            logger.warning("Failed to record latency for %s: %s", name, e)
