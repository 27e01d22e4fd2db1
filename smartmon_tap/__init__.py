"""smartmon-tap disk health exporter."""

from smartmon_tap.collector import CollectionResult, SmartmonCollector
from smartmon_tap.config import AppConfig, default_config, load_config
from smartmon_tap.exposition import render, write_textfile
from smartmon_tap.metrics import Measurement
from smartmon_tap.mqtt_client import MqttPublisher
from smartmon_tap.schema import validate_payload

__all__ = [
    "AppConfig",
    "CollectionResult",
    "Measurement",
    "MqttPublisher",
    "SmartmonCollector",
    "default_config",
    "load_config",
    "render",
    "validate_payload",
    "write_textfile",
]
