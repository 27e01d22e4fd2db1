from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
import socket
import time
from typing import Any, Callable

from smartmon_tap.capability import CapabilityDetector, FormatCapability
from smartmon_tap.config import SmartctlConfig
from smartmon_tap.devices import Device, DeviceEnumerator
from smartmon_tap.errors import DeviceCollectionError, SmartmonError
from smartmon_tap.guard import ActiveStateGuard
from smartmon_tap.metrics import Measurement, MetricNormalizer, dedupe
from smartmon_tap.parsers import DeviceParser, OutputFormat
from smartmon_tap.runner import CommandRunner

SCHEMA_NAME = "smartmon-measurements"
SCHEMA_VERSION = 1


@dataclass
class CollectionResult:
    measurements: list[Measurement] = field(default_factory=list)
    error: SmartmonError | None = None
    capability: FormatCapability | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class SmartmonCollector:
    """Runs one smartctl collection pass per call to :meth:`collect`.

    The pass detects the smartctl version, scans for devices, and for every
    device that is not in standby reads its info and vendor attributes.
    Version and scan failures abort the pass with a single error
    measurement; failures on one device only affect that device.
    """

    def __init__(
        self,
        config: SmartctlConfig,
        runner: CommandRunner | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config
        self.runner = runner or CommandRunner(config.path, timeout_s=config.timeout_s)
        self.clock = clock
        self.detector = CapabilityDetector(self.runner, config)
        self.enumerator = DeviceEnumerator(self.runner)
        self.guard = ActiveStateGuard(self.runner)
        self.normalizer = MetricNormalizer(config.metric_prefix)
        self.logger = logging.getLogger(self.__class__.__name__)

    def collect(self) -> CollectionResult:
        self.logger.debug("Starting smartctl collection pass.")
        try:
            capability = self.detector.detect()
            devices = self.enumerator.enumerate(capability)
        except SmartmonError as exc:
            self.logger.error("Collection aborted (%s): %s", exc.code, exc)
            return CollectionResult(
                measurements=[self.normalizer.collector_error(str(exc))], error=exc
            )

        output_format = (
            OutputFormat.STRUCTURED if capability.supports_structured else OutputFormat.LEGACY
        )
        parser = DeviceParser(self.runner, output_format)
        measurements = [self.normalizer.version(capability.version)]
        for device_measurements in self._collect_devices(devices, parser):
            measurements.extend(device_measurements)

        self.logger.debug(
            "Completed collection pass: %d devices, %d measurements.",
            len(devices),
            len(measurements),
        )
        return CollectionResult(measurements=dedupe(measurements), capability=capability)

    def _collect_devices(
        self, devices: list[Device], parser: DeviceParser
    ) -> list[list[Measurement]]:
        workers = min(self.config.max_workers, len(devices))
        if workers <= 1:
            return [self._collect_device(device, parser) for device in devices]
        with ThreadPoolExecutor(max_workers=workers) as executor:
            return list(
                executor.map(lambda device: self._collect_device(device, parser), devices)
            )

    def _collect_device(self, device: Device, parser: DeviceParser) -> list[Measurement]:
        if not self.guard.is_active(device):
            # Nothing else may touch a sleeping device this pass
            self.logger.debug("Device %s is in standby, skipping.", device.name)
            return [self.normalizer.active(device, False)]

        measurements = [self.normalizer.active(device, True)]
        try:
            info = parser.parse_info(device)
        except DeviceCollectionError as exc:
            self.logger.info("Error collecting device info for %s: %s", device.name, exc)
            measurements.append(self.normalizer.device_error(device, str(exc)))
            return measurements
        measurements.append(self.normalizer.last_run(device, self.clock()))
        measurements.extend(self.normalizer.device_info(device, info))

        try:
            attributes = parser.parse_attributes(device)
        except DeviceCollectionError as exc:
            self.logger.info(
                "Error collecting vendor specific attributes for %s: %s", device.name, exc
            )
            measurements.append(self.normalizer.device_error(device, str(exc)))
            return measurements
        measurements.extend(self.normalizer.attributes(device, attributes))
        return measurements


def build_payload(result: CollectionResult) -> dict[str, Any]:
    """Wrap a collection result in the JSON document published over MQTT."""
    payload: dict[str, Any] = {
        "schema": {"name": SCHEMA_NAME, "version": SCHEMA_VERSION},
        "ts": datetime.now(timezone.utc).isoformat(),
        "host": socket.gethostname(),
        "ok": result.ok,
        "measurements": [measurement.to_dict() for measurement in result.measurements],
    }
    if result.capability is not None:
        payload["smartctl"] = {
            "version": result.capability.version,
            "json_capable": result.capability.supports_structured,
        }
    if result.error is not None:
        payload["error"] = {"code": result.error.code, "message": str(result.error)}
    return payload
