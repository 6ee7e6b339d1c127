"""Serial transport: opens a named port (or pyserial URL) and reads raw lines."""

import logging

import serial

from serial_recorder.config import PortSpec
from serial_recorder.errors import PortOpenError

logger = logging.getLogger(__name__)


class SerialTransport:
    """Thin wrapper over an open ``serial.Serial``.

    ``readline()`` returns the bytes read up to and including ``\\n``. When the
    read timeout expires first it returns whatever arrived, possibly ``b""``.
    pyserial signals a disconnected device by raising ``SerialException``,
    which is an ``OSError``.
    """

    def __init__(self, ser: serial.Serial):
        self._serial = ser

    def readline(self) -> bytes:
        return self._serial.readline()

    def close(self):
        self._serial.close()


def open_serial_port(spec: PortSpec, read_timeout: float) -> SerialTransport:
    """Open ``spec`` once. Raises PortOpenError on any failure."""
    try:
        ser = serial.serial_for_url(
            spec.identifier, baudrate=spec.baud_rate, timeout=read_timeout,
        )
    except (serial.SerialException, ValueError, OSError) as e:
        raise PortOpenError(spec.identifier, str(e)) from e
    logger.debug("Opened %s at %d baud", spec.identifier, spec.baud_rate)
    return SerialTransport(ser)
