"""AggregatingWriter: the single consumer that turns captured lines into records."""

import logging
import time

from serial_recorder.channel import FanInChannel
from serial_recorder.models import CapturedLine, Record
from serial_recorder.store import RecordStore

logger = logging.getLogger(__name__)


class AggregatingWriter:
    def __init__(self, channel: FanInChannel, store: RecordStore, time_func=None):
        self._channel = channel
        self._store = store
        self._time_func = time_func or time.time
        self._records_written = 0

    @property
    def records_written(self) -> int:
        return self._records_written

    def run(self) -> int:
        """Consume until end-of-stream, then close the store. Returns records written."""
        try:
            for item in self._channel:
                self._write(item)
        finally:
            self._store.close()
        logger.info("Writer finished: %d records in %s",
                    self._records_written, self._store.path)
        return self._records_written

    def _write(self, item: CapturedLine):
        # Stamped at dequeue, so timestamps follow arrival order.
        record = Record(
            timestamp=int(self._time_func()),
            source_identifier=item.source_identifier,
            text=item.text,
        )
        self._store.append(record)
        self._records_written += 1
