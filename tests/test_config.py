"""Tests for configuration loading."""
from __future__ import annotations

import pytest

from smartmon_tap.config import default_config, load_config


def test_defaults():
    config = default_config()

    assert config.smartctl.path == "smartctl"
    assert config.smartctl.timeout_s == 30.0
    assert config.smartctl.min_version == "6.6"
    assert config.smartctl.min_json_version == "7.0"
    assert config.smartctl.max_workers == 1
    assert config.smartctl.metric_prefix == "smartmon"
    assert config.publish.interval_s == 60
    assert config.publish.output_file is None
    assert config.mqtt.enabled is False
    assert config.mqtt.base_topic == "telemetry/smartmon"


def test_load_config(tmp_path):
    path = tmp_path / "smartmon.cfg"
    path.write_text(
        """
[smartctl]
path = /usr/local/sbin/smartctl
timeout_s = 12.5
max_workers = 0
metric_prefix = disk

[publish]
interval_s = 300
output_file = /var/lib/node_exporter/smartmon.prom

[mqtt]
enabled = true
host = broker.local
port = 8883
username = telemetry
password =
tls = yes
""",
        encoding="utf-8",
    )

    config = load_config(path)

    assert config.smartctl.path == "/usr/local/sbin/smartctl"
    assert config.smartctl.timeout_s == 12.5
    assert config.smartctl.max_workers == 1
    assert config.smartctl.metric_prefix == "disk"
    assert config.smartctl.min_version == "6.6"
    assert config.publish.interval_s == 300
    assert config.publish.output_file == "/var/lib/node_exporter/smartmon.prom"
    assert config.mqtt.enabled is True
    assert config.mqtt.host == "broker.local"
    assert config.mqtt.port == 8883
    assert config.mqtt.username == "telemetry"
    assert config.mqtt.password is None
    assert config.mqtt.tls_enabled is True


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "absent.cfg")
