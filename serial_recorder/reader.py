"""PortReader: one thread per serial port, forwarding decoded lines to the channel."""

import logging
import threading
from typing import Callable

from serial_recorder.channel import Sender
from serial_recorder.config import DEFAULT_MAX_LINE_LENGTH, PortSpec
from serial_recorder.errors import PortOpenError
from serial_recorder.events import EventKind, EventReporter, PortEvent
from serial_recorder.models import CapturedLine

logger = logging.getLogger(__name__)


class PortReader(threading.Thread):
    """Opens its port once and reads until end-of-input, a read error, or stop.

    The opener returns an object with ``readline()`` and ``close()``.
    ``readline()`` may return a partial line (read timeout), ``b""`` (nothing
    arrived) or ``None`` (end of input), and raises ``OSError`` on a read
    error. An open failure ends only this reader. A line longer than
    ``max_line_length`` bytes is dropped whole, including any part of it that
    arrives after the limit is crossed.
    """

    def __init__(self, spec: PortSpec, sender: Sender, opener: Callable,
                 reporter: EventReporter, stop_event: threading.Event,
                 read_timeout: float = 0.5,
                 max_line_length: int = DEFAULT_MAX_LINE_LENGTH):
        super().__init__(name=f"reader-{spec.identifier}", daemon=True)
        self._spec = spec
        self._sender = sender
        self._opener = opener
        self._reporter = reporter
        self._stop_event = stop_event
        self._read_timeout = read_timeout
        self._max_line_length = max_line_length
        self._pending = b""
        self._discarding = False   # inside an overlong line, skip to the next newline
        self._lines_sent = 0

    @property
    def spec(self) -> PortSpec:
        return self._spec

    @property
    def lines_sent(self) -> int:
        return self._lines_sent

    def _report(self, kind: EventKind, detail: str = ""):
        self._reporter.report(PortEvent(kind, self._spec.identifier, detail))

    def run(self):
        try:
            try:
                transport = self._opener(self._spec, self._read_timeout)
            except (PortOpenError, OSError) as e:
                self._report(EventKind.PORT_FAILED, getattr(e, "reason", str(e)))
                return

            self._report(EventKind.PORT_OPENED, f"at {self._spec.baud_rate} baud")
            try:
                self._read_loop(transport)
            finally:
                try:
                    transport.close()
                except OSError as e:
                    logger.debug("Error closing %s: %s", self._spec.identifier, e)
                self._report(EventKind.PORT_CLOSED)
        finally:
            self._sender.close()

    def _read_loop(self, transport):
        while not self._stop_event.is_set():
            try:
                chunk = transport.readline()
            except OSError as e:
                self._report(EventKind.READ_ERROR, str(e))
                return

            if chunk is None:
                break
            if not chunk:
                continue

            # Keep the unterminated tail until a later read completes it.
            *lines, self._pending = (self._pending + chunk).split(b"\n")
            for raw in lines:
                if self._discarding:
                    self._discarding = False
                    continue
                if len(raw) > self._max_line_length:
                    self._drop_overlong()
                    continue
                if not self._emit(raw):
                    return

            if len(self._pending) > self._max_line_length:
                if not self._discarding:
                    self._drop_overlong()
                self._discarding = True
                self._pending = b""

        if self._pending and not self._discarding:
            raw, self._pending = self._pending, b""
            self._emit(raw)

    def _drop_overlong(self):
        self._report(EventKind.LINE_DROPPED,
                     f"line exceeds {self._max_line_length} bytes")

    def _emit(self, raw: bytes) -> bool:
        """Decode and forward one line. Returns False once the channel refuses sends."""
        if raw.endswith(b"\r"):
            raw = raw[:-1]
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            self._report(EventKind.LINE_DROPPED, str(e))
            return True

        if not self._sender.send(CapturedLine(self._spec.identifier, text)):
            logger.debug("Channel closed, %s stops forwarding", self._spec.identifier)
            return False
        self._lines_sent += 1
        self._report(EventKind.LINE_CAPTURED)
        return True
