"""Per-port health events and the thread-safe reporter that counts them."""

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

logger = logging.getLogger(__name__)


class EventKind(Enum):
    PORT_OPENED = "port_opened"
    PORT_FAILED = "port_failed"
    LINE_CAPTURED = "line_captured"
    LINE_DROPPED = "line_dropped"
    READ_ERROR = "read_error"
    PORT_CLOSED = "port_closed"


@dataclass(frozen=True)
class PortEvent:
    kind: EventKind
    port: str
    detail: str = ""


class EventReporter(Protocol):
    def report(self, event: PortEvent) -> None: ...


_COUNTER_FOR_KIND = {
    EventKind.PORT_OPENED: "opened",
    EventKind.PORT_FAILED: "failed",
    EventKind.LINE_CAPTURED: "lines_captured",
    EventKind.LINE_DROPPED: "lines_dropped",
    EventKind.READ_ERROR: "read_errors",
    EventKind.PORT_CLOSED: "closed",
}


def _empty_counters() -> dict[str, int]:
    return {name: 0 for name in _COUNTER_FOR_KIND.values()}


class HealthReporter:
    """Counts events per port and logs everything except captured lines."""

    def __init__(self):
        self._lock = threading.Lock()
        self._ports: dict[str, dict[str, int]] = defaultdict(_empty_counters)

    def report(self, event: PortEvent) -> None:
        with self._lock:
            self._ports[event.port][_COUNTER_FOR_KIND[event.kind]] += 1

        if event.kind is EventKind.PORT_OPENED:
            logger.info("Opened %s %s", event.port, event.detail)
        elif event.kind is EventKind.PORT_FAILED:
            logger.error("Port %s failed to open: %s", event.port, event.detail)
        elif event.kind is EventKind.LINE_DROPPED:
            logger.debug("Dropped undecodable line from %s: %s", event.port, event.detail)
        elif event.kind is EventKind.READ_ERROR:
            logger.warning("Read error on %s: %s", event.port, event.detail)
        elif event.kind is EventKind.PORT_CLOSED:
            logger.info("Closed %s", event.port)

    def snapshot(self) -> dict[str, dict[str, int]]:
        """Return a point-in-time copy of the per-port counters."""
        with self._lock:
            return {port: dict(counters) for port, counters in self._ports.items()}

    def log_summary(self):
        for port, c in sorted(self.snapshot().items()):
            logger.info(
                "%s: captured=%d dropped=%d read_errors=%d open_failures=%d",
                port, c["lines_captured"], c["lines_dropped"],
                c["read_errors"], c["failed"],
            )


class StatsReporter:
    """Background thread that periodically logs HealthReporter snapshots."""

    def __init__(self, health: HealthReporter, interval: float,
                 shutdown_event: threading.Event):
        self._health = health
        self._interval = interval
        self._shutdown = shutdown_event
        self._thread: threading.Thread | None = None

    def start(self):
        self._thread = threading.Thread(target=self._report_loop, daemon=True)
        self._thread.start()

    def stop(self):
        if self._thread:
            self._thread.join(timeout=5)

    def _report_loop(self):
        while not self._shutdown.wait(self._interval):
            for port, c in sorted(self._health.snapshot().items()):
                logger.info("[stats] %s captured=%d dropped=%d",
                            port, c["lines_captured"], c["lines_dropped"])
