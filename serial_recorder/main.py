#!/usr/bin/env python3
"""Serial Recorder entry point."""

import argparse
import logging
import signal
import sys
import threading

from serial_recorder.config import RECORD_FORMATS, load_config, load_yaml_config
from serial_recorder.errors import ConfigurationError, StoreCreationError
from serial_recorder.pipeline import Pipeline

logger = logging.getLogger(__name__)

SHUTDOWN_TIMEOUT = 5.0


def build_cli_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="serial-recorder",
        description="Record lines from several serial ports into one timestamped CSV file",
    )
    parser.add_argument(
        "-d", "--directory", default=None,
        help="Output directory for the CSV file (required)",
    )
    parser.add_argument(
        "-b", "--default-baud", dest="default_baud", default=None,
        help="Default baud rate (default: 19200)",
    )
    parser.add_argument(
        "-p", "--port", dest="ports", action="append", default=None,
        metavar="PORT[,BAUD]",
        help="Serial port to read from, e.g. /dev/ttyUSB0 or /dev/ttyUSB0,9600. "
             "Can be specified up to 8 times",
    )
    parser.add_argument(
        "-c", "--config", default=None,
        help="Path to YAML config file",
    )
    parser.add_argument(
        "--format", dest="record_format", choices=RECORD_FORMATS, default=None,
        help="Record layout: plain (no quoting, default) or csv (quoted fields)",
    )
    parser.add_argument(
        "--fsync", action="store_true", default=None,
        help="fsync the output file after every record",
    )
    parser.add_argument(
        "--read-timeout", dest="read_timeout", default=None,
        help="Seconds a port read may block before checking for shutdown (default: 0.5)",
    )
    parser.add_argument(
        "--stats-interval", dest="stats_interval", default=None,
        help="Log per-port counters every N seconds (default: 0, disabled)",
    )
    parser.add_argument(
        "--max-line-length", dest="max_line_length", default=None,
        help="Drop lines longer than this many bytes (default: 65536)",
    )
    parser.add_argument(
        "--log-level", dest="log_level", default=None,
        help="Logging level (default: INFO)",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [serial-recorder] %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    parser = build_cli_parser()
    args = parser.parse_args(argv)

    shutdown_event = threading.Event()
    pipeline = None

    def _signal_handler(sig, frame):
        logger.info("Shutdown signal received (signal %d), stopping...", sig)
        if pipeline is None:
            shutdown_event.set()
        else:
            pipeline.stop(timeout=SHUTDOWN_TIMEOUT)

    previous = {
        sig: signal.signal(sig, _signal_handler)
        for sig in (signal.SIGINT, signal.SIGTERM)
    }
    try:
        try:
            config = load_config(args, load_yaml_config(args.config))
            logging.getLogger().setLevel(config.log_level)
            started = Pipeline(config, stop_event=shutdown_event)
            output_path = started.start()
        except ConfigurationError as e:
            print(f"Error: {e}", file=sys.stderr)
            parser.print_usage(sys.stderr)
            return 1
        except StoreCreationError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

        pipeline = started
        # A signal during startup only set the event; arm the force-close timer now.
        if shutdown_event.is_set():
            pipeline.stop(timeout=SHUTDOWN_TIMEOUT)

        print(f"Recording to {output_path} (Ctrl+C to stop)", flush=True)
        pipeline.run()
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
    return 0


if __name__ == "__main__":
    sys.exit(main())
