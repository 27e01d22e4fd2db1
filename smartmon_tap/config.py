from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import configparser


@dataclass(frozen=True)
class SmartctlConfig:
    path: str
    timeout_s: float
    min_version: str
    min_json_version: str
    max_workers: int
    metric_prefix: str


@dataclass(frozen=True)
class PublishConfig:
    interval_s: int
    output_file: str | None


@dataclass(frozen=True)
class MqttConfig:
    enabled: bool
    host: str
    port: int
    base_topic: str
    client_id: str
    username: str | None
    password: str | None
    qos: int
    retain: bool
    tls_enabled: bool
    ca_cert: str | None
    keepalive: int


@dataclass(frozen=True)
class AppConfig:
    smartctl: SmartctlConfig
    publish: PublishConfig
    mqtt: MqttConfig


def _get_optional(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value if value else None


def _build_config(parser: configparser.ConfigParser) -> AppConfig:
    # parser.get with fallback handles missing sections
    smartctl = SmartctlConfig(
        path=parser.get("smartctl", "path", fallback="smartctl"),
        timeout_s=parser.getfloat("smartctl", "timeout_s", fallback=30.0),
        min_version=parser.get("smartctl", "min_version", fallback="6.6"),
        min_json_version=parser.get("smartctl", "min_json_version", fallback="7.0"),
        max_workers=max(1, parser.getint("smartctl", "max_workers", fallback=1)),
        metric_prefix=parser.get("smartctl", "metric_prefix", fallback="smartmon"),
    )

    publish = PublishConfig(
        interval_s=parser.getint("publish", "interval_s", fallback=60),
        output_file=_get_optional(parser.get("publish", "output_file", fallback=None)),
    )

    mqtt = MqttConfig(
        enabled=parser.getboolean("mqtt", "enabled", fallback=False),
        host=parser.get("mqtt", "host", fallback="localhost"),
        port=parser.getint("mqtt", "port", fallback=1883),
        base_topic=parser.get("mqtt", "base_topic", fallback="telemetry/smartmon"),
        client_id=parser.get("mqtt", "client_id", fallback="smartmon-tap"),
        username=_get_optional(parser.get("mqtt", "username", fallback=None)),
        password=_get_optional(parser.get("mqtt", "password", fallback=None)),
        qos=parser.getint("mqtt", "qos", fallback=0),
        retain=parser.getboolean("mqtt", "retain", fallback=False),
        tls_enabled=parser.getboolean("mqtt", "tls", fallback=False),
        ca_cert=_get_optional(parser.get("mqtt", "ca_cert", fallback=None)),
        keepalive=parser.getint("mqtt", "keepalive", fallback=60),
    )

    return AppConfig(smartctl=smartctl, publish=publish, mqtt=mqtt)


def default_config() -> AppConfig:
    return _build_config(configparser.ConfigParser())


def load_config(path: str | Path) -> AppConfig:
    parser = configparser.ConfigParser()
    read_files = parser.read(path)
    if not read_files:
        raise FileNotFoundError(f"Config file not found: {path}")
    return _build_config(parser)
