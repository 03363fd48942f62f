"""Assistant configuration.

Loads from config.yaml if present, with environment variable overrides.
Environment variables use the pattern: BOATVOICE_<SECTION>_<KEY> (uppercase).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path

import yaml

from boatvoice.core.alerts import DEFAULT_POLICIES, SensorPolicy
from boatvoice.core.geo import DEFAULT_PORTS, LatLng, Port
from boatvoice.core.models import SensorId


@dataclass
class ServerConfig:
    """Monitoring HTTP API."""
    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 8000
    env: str = "dev"  # "dev" or "prod"


@dataclass
class NetworkConfig:
    """Instrument gateway listener."""
    host: str = "0.0.0.0"
    port: int = 8989
    announce_startup: bool = True


@dataclass
class QueueConfig:
    capacity: int = 300


@dataclass
class AlertsConfig:
    scan_interval_seconds: float = 1.0
    sensors: dict[SensorId, SensorPolicy] = field(
        default_factory=lambda: dict(DEFAULT_POLICIES))


@dataclass
class SpeechConfig:
    backend: str = "log"  # "log" or "command"
    command: list[str] = field(default_factory=lambda: ["espeak"])
    timeout_seconds: float = 30.0


@dataclass
class ShutdownConfig:
    command: list[str] = field(default_factory=list)
    grace_seconds: float = 10.0


@dataclass
class LoggingConfig:
    level: str = "info"
    format: str = "console"  # "console" or "json"


@dataclass
class AppConfig:
    server: ServerConfig = field(default_factory=ServerConfig)
    network: NetworkConfig = field(default_factory=NetworkConfig)
    queue: QueueConfig = field(default_factory=QueueConfig)
    alerts: AlertsConfig = field(default_factory=AlertsConfig)
    speech: SpeechConfig = field(default_factory=SpeechConfig)
    shutdown: ShutdownConfig = field(default_factory=ShutdownConfig)
    ports: list[Port] = field(default_factory=lambda: list(DEFAULT_PORTS))
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _apply_env_overrides(config: AppConfig) -> None:
    """Override config values from environment variables."""
    mapping = {
        "BOATVOICE_SERVER_ENABLED": lambda v: setattr(config.server, "enabled", _parse_bool(v)),
        "BOATVOICE_SERVER_HOST": lambda v: setattr(config.server, "host", v),
        "BOATVOICE_SERVER_PORT": lambda v: setattr(config.server, "port", int(v)),
        "BOATVOICE_SERVER_ENV": lambda v: setattr(config.server, "env", v),
        "BOATVOICE_NETWORK_HOST": lambda v: setattr(config.network, "host", v),
        "BOATVOICE_NETWORK_PORT": lambda v: setattr(config.network, "port", int(v)),
        "BOATVOICE_QUEUE_CAPACITY": lambda v: setattr(config.queue, "capacity", int(v)),
        "BOATVOICE_ALERTS_SCAN_INTERVAL": lambda v: setattr(config.alerts, "scan_interval_seconds", float(v)),
        "BOATVOICE_SPEECH_BACKEND": lambda v: setattr(config.speech, "backend", v),
        "BOATVOICE_SPEECH_COMMAND": lambda v: setattr(config.speech, "command", v.split()),
        "BOATVOICE_SHUTDOWN_COMMAND": lambda v: setattr(config.shutdown, "command", v.split()),
        "BOATVOICE_LOG_LEVEL": lambda v: setattr(config.logging, "level", v),
        "BOATVOICE_LOG_FORMAT": lambda v: setattr(config.logging, "format", v),
    }
    for env_key, setter in mapping.items():
        val = os.environ.get(env_key)
        if val is not None:
            setter(val)


def _check_type(value: object, type_name: str, setting: str) -> object:
    """Validate a YAML value against its dataclass annotation, converting ints to floats."""
    if type_name.endswith(" | None"):
        if value is None:
            return None
        type_name = type_name[: -len(" | None")]

    if type_name == "bool":
        ok = isinstance(value, bool)
    elif type_name == "int":
        ok = isinstance(value, int) and not isinstance(value, bool)
    elif type_name == "float":
        ok = isinstance(value, (int, float)) and not isinstance(value, bool)
        if ok:
            value = float(value)
    elif type_name == "str":
        ok = isinstance(value, str)
    elif type_name == "list[str]":
        ok = isinstance(value, list) and all(isinstance(v, str) for v in value)
    else:
        raise ValueError(f"Setting {setting} cannot be set from YAML")

    if not ok:
        raise ValueError(f"Setting {setting} must be {type_name}, got {value!r}")
    return value


def _update_section(section: object, raw: dict, name: str) -> None:
    if not isinstance(raw, dict):
        raise ValueError(f"Section {name} must be a mapping, got {raw!r}")
    known = {f.name: f.type for f in fields(section)}
    for k, v in raw.items():
        if k not in known:
            raise ValueError(f"Unknown setting {name}.{k}")
        setattr(section, k, _check_type(v, known[k], f"{name}.{k}"))


def _parse_sensor_policies(raw: dict) -> dict[SensorId, SensorPolicy]:
    """Merge per-sensor overrides (keyed by lowercase sensor name) into the defaults."""
    policies = dict(DEFAULT_POLICIES)
    known = {f.name: f.type for f in fields(SensorPolicy)}
    for name, overrides in raw.items():
        try:
            sensor = SensorId[str(name).upper()]
        except KeyError:
            raise ValueError(f"Unknown sensor in alerts.sensors: {name!r}") from None
        overrides = overrides or {}
        if not isinstance(overrides, dict):
            raise ValueError(f"alerts.sensors.{name} must be a mapping, got {overrides!r}")
        unknown = set(overrides) - known.keys()
        if unknown:
            raise ValueError(f"Unknown alert settings for {name}: {sorted(unknown)}")
        current = policies[sensor]
        merged = {
            f: _check_type(overrides[f], type_name, f"alerts.sensors.{name}.{f}")
            if f in overrides else getattr(current, f)
            for f, type_name in known.items()
        }
        policies[sensor] = SensorPolicy(**merged)
    return policies


def _parse_ports(raw: list) -> list[Port]:
    ports = []
    for entry in raw:
        try:
            ports.append(Port(str(entry["name"]),
                              LatLng(float(entry["lat"]), float(entry["lon"]))))
        except (KeyError, TypeError, ValueError):
            raise ValueError(f"Invalid port entry: {entry!r}") from None
    if not ports:
        raise ValueError("ports must list at least one port")
    return ports


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load configuration from YAML file + environment overrides."""
    config = AppConfig()

    # Try to load YAML
    if config_path is None:
        config_path = Path(os.environ.get("BOATVOICE_CONFIG", "config.yaml"))
    else:
        config_path = Path(config_path)

    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}

        for name in ("server", "network", "queue", "speech", "shutdown", "logging"):
            if name in raw:
                _update_section(getattr(config, name), raw[name] or {}, name)
        if "alerts" in raw:
            alerts = dict(raw["alerts"] or {})
            sensors = alerts.pop("sensors", None)
            _update_section(config.alerts, alerts, "alerts")
            if sensors:
                config.alerts.sensors = _parse_sensor_policies(sensors)
        if "ports" in raw:
            config.ports = _parse_ports(raw["ports"] or [])

    # Environment overrides always win
    _apply_env_overrides(config)
    return config
