"""Configuration loading from CLI args, env vars, and an optional YAML file."""

import logging
import os
from dataclasses import dataclass

import yaml

from serial_recorder.errors import ConfigurationError

logger = logging.getLogger(__name__)

MAX_PORTS = 8
DEFAULT_BAUD = 19200
DEFAULT_MAX_LINE_LENGTH = 65536
RECORD_FORMATS = ("plain", "csv")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes")


def _parse_int(name: str, value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Invalid {name}: {value!r}") from None


def _parse_float(name: str, value) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Invalid {name}: {value!r}") from None


@dataclass(frozen=True)
class PortSpec:
    identifier: str
    baud_rate: int = DEFAULT_BAUD


@dataclass(frozen=True)
class Config:
    directory: str = ""
    default_baud: int = DEFAULT_BAUD
    ports: tuple[PortSpec, ...] = ()
    record_format: str = "plain"   # "plain" or "csv"
    fsync: bool = False
    read_timeout: float = 0.5      # seconds a reader may block before checking for stop
    stats_interval: float = 0.0    # 0 disables periodic health logging
    max_line_length: int = DEFAULT_MAX_LINE_LENGTH  # longer lines are dropped
    log_level: str = "INFO"


def _resolve_baud(identifier: str, raw, default_baud: int) -> tuple[int, str | None]:
    """Return (baud, warning). Unusable overrides fall back to the default."""
    try:
        baud = int(str(raw).strip())
    except ValueError:
        baud = 0
    if baud <= 0:
        return default_baud, (
            f"Invalid baud override {raw!r} for {identifier}, "
            f"using default {default_baud}"
        )
    return baud, None


def parse_port_arg(value: str, default_baud: int) -> tuple[PortSpec, str | None]:
    """Parse ``<port>`` or ``<port>,<baud>``. Only the first comma splits."""
    identifier, sep, raw_baud = value.partition(",")
    identifier = identifier.strip()
    if not sep:
        return PortSpec(identifier, default_baud), None
    baud, warning = _resolve_baud(identifier, raw_baud, default_baud)
    return PortSpec(identifier, baud), warning


def _parse_yaml_port(entry, default_baud: int) -> tuple[PortSpec, str | None]:
    if isinstance(entry, str):
        return parse_port_arg(entry, default_baud)
    if isinstance(entry, dict) and entry.get("port"):
        identifier = str(entry["port"]).strip()
        if entry.get("baud") is None:
            return PortSpec(identifier, default_baud), None
        baud, warning = _resolve_baud(identifier, entry["baud"], default_baud)
        return PortSpec(identifier, baud), warning
    raise ConfigurationError(f"Invalid port entry in config file: {entry!r}")


def load_yaml_config(path: str | None) -> dict:
    """Load settings from a YAML file. Returns empty dict if no path."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)
        return {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Cannot parse config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    logger.info("Loaded YAML config from %s", path)
    return data


def _layered(name: str, cli_args, yaml_data: dict, environ, env_key: str, default):
    """Resolve one setting: default <- YAML <- env var <- CLI arg."""
    value = yaml_data.get(name)
    if value is None:
        value = default
    if env_key in environ:
        value = environ[env_key]
    cli_value = getattr(cli_args, name, None)
    if cli_value is not None:
        value = cli_value
    return value


def load_config(cli_args, yaml_data: dict, environ=None) -> Config:
    """Build and validate Config from CLI args, env vars, and parsed YAML data."""
    env = os.environ if environ is None else environ

    default_baud = _parse_int("default baud rate", _layered(
        "default_baud", cli_args, yaml_data, env, "DEFAULT_BAUD", Config.default_baud))

    raw_ports = getattr(cli_args, "ports", None)
    if raw_ports:
        parsed = [parse_port_arg(p, default_baud) for p in raw_ports]
    else:
        yaml_ports = yaml_data.get("ports") or []
        if not isinstance(yaml_ports, list):
            raise ConfigurationError("'ports' in config file must be a list")
        parsed = [_parse_yaml_port(p, default_baud) for p in yaml_ports]

    for _, warning in parsed:
        if warning:
            logger.warning(warning)

    config = Config(
        directory=str(_layered(
            "directory", cli_args, yaml_data, env, "OUTPUT_DIR", Config.directory)),
        default_baud=default_baud,
        ports=tuple(spec for spec, _ in parsed),
        record_format=str(_layered(
            "record_format", cli_args, yaml_data, env, "RECORD_FORMAT",
            Config.record_format)).lower(),
        fsync=_parse_bool(_layered(
            "fsync", cli_args, yaml_data, env, "FSYNC", Config.fsync)),
        read_timeout=_parse_float("read timeout", _layered(
            "read_timeout", cli_args, yaml_data, env, "READ_TIMEOUT", Config.read_timeout)),
        stats_interval=_parse_float("stats interval", _layered(
            "stats_interval", cli_args, yaml_data, env, "STATS_INTERVAL",
            Config.stats_interval)),
        max_line_length=_parse_int("max line length", _layered(
            "max_line_length", cli_args, yaml_data, env, "MAX_LINE_LENGTH",
            Config.max_line_length)),
        log_level=str(_layered(
            "log_level", cli_args, yaml_data, env, "LOG_LEVEL", Config.log_level)).upper(),
    )
    validate(config)
    return config


def validate(config: Config) -> None:
    """Raise ConfigurationError if the config cannot start a recording."""
    if not config.directory:
        raise ConfigurationError("--directory is required")
    if not config.ports:
        raise ConfigurationError("At least one --port argument is required")
    if len(config.ports) > MAX_PORTS:
        raise ConfigurationError(f"Maximum {MAX_PORTS} ports supported")
    if config.default_baud <= 0:
        raise ConfigurationError(f"Invalid baud rate: {config.default_baud}")
    for spec in config.ports:
        if not spec.identifier:
            raise ConfigurationError("Port identifier must not be empty")
        if spec.baud_rate <= 0:
            raise ConfigurationError(
                f"Invalid baud rate for {spec.identifier}: {spec.baud_rate}")
    if config.record_format not in RECORD_FORMATS:
        raise ConfigurationError(
            f"Unknown record format {config.record_format!r}, "
            f"expected one of {', '.join(RECORD_FORMATS)}")
    if config.read_timeout <= 0:
        raise ConfigurationError("Read timeout must be positive")
    if config.stats_interval < 0:
        raise ConfigurationError("Stats interval must not be negative")
    if config.max_line_length <= 0:
        raise ConfigurationError("Max line length must be positive")
    if config.log_level not in LOG_LEVELS:
        raise ConfigurationError(f"Unknown log level {config.log_level!r}")
