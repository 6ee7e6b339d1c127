"""Pipeline: wires port readers, the fan-in channel, and the aggregating writer."""

import logging
import threading
import time
from typing import Callable

from serial_recorder.channel import FanInChannel
from serial_recorder.config import Config, validate
from serial_recorder.events import EventReporter, HealthReporter, StatsReporter
from serial_recorder.models import PipelineState
from serial_recorder.reader import PortReader
from serial_recorder.store import RecordStore
from serial_recorder.transport import open_serial_port
from serial_recorder.writer import AggregatingWriter

logger = logging.getLogger(__name__)


class Pipeline:
    """Owns the channel, spawns one reader thread per port, and drives the writer.

    Lifecycle: STARTING -> RUNNING -> DRAINING -> STOPPED. The pipeline drains
    once every reader has exited (end of input, read error, open failure, or
    a stop request) and stops when the writer has consumed everything queued.
    """

    def __init__(self, config: Config, opener: Callable | None = None,
                 reporter: EventReporter | None = None, time_func=None,
                 stop_event: threading.Event | None = None):
        validate(config)
        self._config = config
        self._opener = opener or open_serial_port
        self._reporter = reporter or HealthReporter()
        self._time_func = time_func or time.time
        self._stop = stop_event or threading.Event()
        self._state = PipelineState.STARTING
        self._channel: FanInChannel | None = None
        self._store: RecordStore | None = None
        self._writer: AggregatingWriter | None = None
        self._readers: list[PortReader] = []
        self._stats_shutdown = threading.Event()
        self._stats: StatsReporter | None = None
        self._force_timer: threading.Timer | None = None

    @property
    def state(self) -> PipelineState:
        if self._state is PipelineState.RUNNING and self._channel.closed:
            return PipelineState.DRAINING
        return self._state

    @property
    def output_path(self) -> str | None:
        return self._store.path if self._store else None

    @property
    def readers(self) -> list[PortReader]:
        return list(self._readers)

    @property
    def reporter(self) -> EventReporter:
        return self._reporter

    @property
    def stop_event(self) -> threading.Event:
        return self._stop

    def start(self) -> str:
        """Create the store and spawn readers. Returns the output file path."""
        if self._store is not None:
            raise RuntimeError("Pipeline already started")

        self._store = RecordStore(
            self._config.directory,
            int(self._time_func()),
            self._config.record_format,
            self._config.fsync,
        )
        self._channel = FanInChannel()
        own_sender = self._channel.sender()

        for spec in self._config.ports:
            reader = PortReader(
                spec, self._channel.sender(), self._opener, self._reporter,
                self._stop, self._config.read_timeout, self._config.max_line_length,
            )
            self._readers.append(reader)
            reader.start()
        logger.info("Started %d port reader(s)", len(self._readers))

        # Without this the channel would never report end-of-stream.
        own_sender.close()

        self._writer = AggregatingWriter(self._channel, self._store, self._time_func)
        self._state = PipelineState.RUNNING

        if self._config.stats_interval > 0 and isinstance(self._reporter, HealthReporter):
            self._stats = StatsReporter(
                self._reporter, self._config.stats_interval, self._stats_shutdown)
            self._stats.start()
        return self._store.path

    def run(self) -> int:
        """Run the writer to completion. Returns the number of records written."""
        if self._store is None:
            self.start()

        try:
            written = self._writer.run()
        finally:
            self._state = PipelineState.STOPPED
            self._stats_shutdown.set()
            if self._stats:
                self._stats.stop()

        for reader in self._readers:
            reader.join(timeout=self._config.read_timeout)
        if isinstance(self._reporter, HealthReporter):
            self._reporter.log_summary()
        logger.info("Pipeline stopped, %d records written", written)
        return written

    def stop(self, timeout: float | None = None):
        """Ask readers to finish. Safe to call from a signal handler.

        If readers are still alive after ``timeout`` seconds the channel is
        force-closed so the writer can finish with what is already queued.
        The timer is armed even when the stop event was already set by a host.
        """
        if not self._stop.is_set():
            logger.info("Stop requested, draining")
            self._stop.set()
        if timeout is not None and self._force_timer is None:
            self._force_timer = threading.Timer(timeout, self._force_close)
            self._force_timer.daemon = True
            self._force_timer.start()

    def _force_close(self):
        stuck = [r.spec.identifier for r in self._readers if r.is_alive()]
        if stuck and self._channel is not None:
            logger.warning("Readers did not stop in time: %s", ", ".join(stuck))
            self._channel.close()
