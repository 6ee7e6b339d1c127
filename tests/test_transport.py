"""Tests for the pyserial transport, using pyserial's loop:// URL handler."""

import pytest

from serial_recorder.config import PortSpec
from serial_recorder.errors import PortOpenError
from serial_recorder.transport import SerialTransport, open_serial_port


class TestOpenSerialPort:
    def test_loopback_url(self):
        transport = open_serial_port(PortSpec("loop://", 9600), read_timeout=0.1)
        try:
            assert isinstance(transport, SerialTransport)
            transport._serial.write(b"hello\n")
            assert transport.readline() == b"hello\n"
        finally:
            transport.close()

    def test_timeout_returns_empty(self):
        transport = open_serial_port(PortSpec("loop://", 9600), read_timeout=0.05)
        try:
            assert transport.readline() == b""
        finally:
            transport.close()

    def test_missing_device(self, tmp_path):
        missing = str(tmp_path / "ttyUSB-missing")
        with pytest.raises(PortOpenError) as exc:
            open_serial_port(PortSpec(missing, 19200), read_timeout=0.1)
        assert exc.value.identifier == missing
        assert missing in str(exc.value)

    def test_unknown_url_scheme(self):
        with pytest.raises(PortOpenError):
            open_serial_port(PortSpec("bogus://nowhere", 19200), read_timeout=0.1)
