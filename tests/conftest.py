"""Pytest configuration and shared fixtures."""
from __future__ import annotations

import pytest

from smartmon_tap.config import SmartctlConfig
from smartctl_samples import FakeRunner


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test"
    )


@pytest.fixture
def smartctl_config():
    """Create a smartctl config for testing."""
    return SmartctlConfig(
        path="smartctl",
        timeout_s=5.0,
        min_version="6.6",
        min_json_version="7.0",
        max_workers=1,
        metric_prefix="smartmon",
    )


@pytest.fixture
def fake_runner():
    """Create an empty scripted smartctl runner."""
    return FakeRunner()
