"""Data carried through the capture pipeline."""

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class CapturedLine:
    source_identifier: str   # port the line was read from
    text: str                # decoded line, terminator stripped


@dataclass(frozen=True)
class Record:
    timestamp: int           # seconds since epoch, stamped at dequeue
    source_identifier: str
    text: str


class PipelineState(Enum):
    STARTING = "starting"
    RUNNING = "running"
    DRAINING = "draining"
    STOPPED = "stopped"
