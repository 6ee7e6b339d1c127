"""Tests for the command-line entry point."""

import os
import signal

import pytest

from serial_recorder import pipeline as pipeline_module
from serial_recorder.main import build_cli_parser, main
from serial_recorder.pipeline import Pipeline

ENV_VARS = ("OUTPUT_DIR", "DEFAULT_BAUD", "RECORD_FORMAT", "FSYNC",
            "READ_TIMEOUT", "STATS_INTERVAL", "MAX_LINE_LENGTH", "LOG_LEVEL")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ENV_VARS:
        monkeypatch.delenv(key, raising=False)


class TestCliParser:
    def test_repeatable_port(self):
        args = build_cli_parser().parse_args(
            ["-d", "out", "-p", "/dev/ttyUSB0", "--port", "/dev/ttyUSB1,9600"])
        assert args.ports == ["/dev/ttyUSB0", "/dev/ttyUSB1,9600"]
        assert args.directory == "out"

    def test_unset_options_are_none(self):
        args = build_cli_parser().parse_args([])
        assert args.default_baud is None
        assert args.fsync is None
        assert args.ports is None

    def test_help_exits_zero(self):
        with pytest.raises(SystemExit) as exc:
            main(["--help"])
        assert exc.value.code == 0


class TestConfigurationExit:
    def test_missing_ports(self, tmp_path, capsys):
        out_dir = tmp_path / "out"
        assert main(["-d", str(out_dir)]) == 1
        assert "At least one --port" in capsys.readouterr().err
        assert not out_dir.exists()

    def test_too_many_ports(self, tmp_path, capsys):
        out_dir = tmp_path / "out"
        argv = ["-d", str(out_dir)]
        for i in range(9):
            argv += ["-p", f"/dev/ttyUSB{i}"]
        assert main(argv) == 1
        assert "Maximum 8 ports" in capsys.readouterr().err
        assert not out_dir.exists()

    def test_bad_default_baud(self, tmp_path):
        assert main(["-d", str(tmp_path), "-b", "fast", "-p", "A"]) == 1

    def test_store_creation_error(self, tmp_path, capsys):
        blocker = tmp_path / "file"
        blocker.write_text("")
        assert main(["-d", str(blocker / "sub"), "-p", "A"]) == 1
        assert "Cannot create output store" in capsys.readouterr().err


class TestRecording:
    def test_records_lines_and_prints_path(self, tmp_path, capsys, monkeypatch,
                                           make_opener, fake_transport, lines):
        opener = make_opener({
            "A": fake_transport(lines("x1", "x2")),
            "B": fake_transport(lines("y1")),
        })
        monkeypatch.setattr(pipeline_module, "open_serial_port", opener)
        out_dir = tmp_path / "out"

        assert main(["-d", str(out_dir), "-p", "A,9600", "-p", "B"]) == 0

        files = os.listdir(out_dir)
        assert len(files) == 1
        path = os.path.join(str(out_dir), files[0])
        assert f"Recording to {path}" in capsys.readouterr().out

        with open(path) as f:
            rows = [line.split(",", 2)[1:] for line in f.read().splitlines()]
        assert sorted(rows) == [["A", "x1"], ["A", "x2"], ["B", "y1"]]
        assert sorted((s.identifier, s.baud_rate) for s in opener.calls) == [
            ("A", 9600), ("B", 19200)]


class TestSignalHandling:
    def test_handlers_restored_after_config_error(self, tmp_path):
        before = signal.getsignal(signal.SIGINT)
        assert main(["-d", str(tmp_path)]) == 1
        assert signal.getsignal(signal.SIGINT) is before

    def test_interrupt_during_startup_stops_cleanly(self, tmp_path, monkeypatch,
                                                    make_opener, silent_transport):
        opener = make_opener({"A": silent_transport(), "B": silent_transport()})
        monkeypatch.setattr(pipeline_module, "open_serial_port", opener)
        original_start = Pipeline.start

        def start_after_interrupt(self):
            signal.raise_signal(signal.SIGINT)
            return original_start(self)

        monkeypatch.setattr(Pipeline, "start", start_after_interrupt)
        before = signal.getsignal(signal.SIGINT)

        assert main(["-d", str(tmp_path / "out"), "-p", "A", "-p", "B"]) == 0
        assert signal.getsignal(signal.SIGINT) is before
