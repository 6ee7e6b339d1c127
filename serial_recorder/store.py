"""Append-only record file, one per run, named by the run's start timestamp."""

import csv
import logging
import os

from serial_recorder.errors import StoreCreationError
from serial_recorder.models import Record

logger = logging.getLogger(__name__)


def format_plain(record: Record) -> str:
    """``<ts>,<port>,<text>`` with no escaping; commas in text are not quoted."""
    return f"{record.timestamp},{record.source_identifier},{record.text}\n"


class RecordStore:
    """Exclusively owned by the aggregating writer, so no locking."""

    def __init__(self, directory: str, start_time: int, record_format: str = "plain",
                 fsync: bool = False):
        self._fsync = fsync
        self._record_format = record_format
        try:
            os.makedirs(directory, exist_ok=True)
        except OSError as e:
            raise StoreCreationError(directory, str(e)) from e

        self._path, self._file = self._create(directory, start_time)
        self._csv = csv.writer(self._file, lineterminator="\n") if record_format == "csv" else None
        logger.info("Created output store %s (format=%s)", self._path, record_format)

    @staticmethod
    def _create(directory: str, start_time: int):
        """Create the file exclusively, adding -1, -2, ... if the name is taken."""
        suffix = 0
        while True:
            name = f"{start_time}.csv" if suffix == 0 else f"{start_time}-{suffix}.csv"
            path = os.path.join(directory, name)
            try:
                return path, open(path, "x", encoding="utf-8", newline="")
            except FileExistsError:
                suffix += 1
            except OSError as e:
                raise StoreCreationError(path, str(e)) from e

    @property
    def path(self) -> str:
        return self._path

    @property
    def closed(self) -> bool:
        return self._file is None

    def append(self, record: Record):
        if self._file is None:
            raise ValueError(f"Store {self._path} is closed")

        if self._csv is not None:
            self._csv.writerow([record.timestamp, record.source_identifier, record.text])
        else:
            self._file.write(format_plain(record))
        self._file.flush()
        if self._fsync:
            os.fsync(self._file.fileno())

    def close(self):
        if self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
