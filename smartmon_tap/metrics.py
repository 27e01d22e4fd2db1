from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any, Iterable

from smartmon_tap.devices import Device
from smartmon_tap.errors import NumericFieldInvalid
from smartmon_tap.parsers import (
    IDENTITY_LABELS,
    AtaAttributes,
    AttributeRow,
    DeviceInfo,
    NvmeAttributes,
    ParsedAttributes,
    UnsupportedAttributes,
)

INFO_HELP = "Status information related to metric collection"

LabelKey = tuple[str, frozenset[tuple[str, str]]]


@dataclass(frozen=True)
class Measurement:
    name: str
    value: float
    labels: dict[str, str] = field(default_factory=dict)
    help: str = ""
    kind: str = "gauge"

    @property
    def key(self) -> LabelKey:
        return (self.name, frozenset(self.labels.items()))

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "labels": dict(self.labels),
            "value": self.value,
            "help": self.help,
            "kind": self.kind,
        }


def bool_to_metric(value: bool) -> float:
    return 1.0 if value else 0.0


def info_measurement(name: str, message: str, labels: dict[str, str] | None = None) -> Measurement:
    """Build an informational measurement (value 1) carrying ``message`` as a label."""
    merged = dict(labels or {})
    merged["info"] = message
    return Measurement(name=name, value=1.0, labels=merged, help=INFO_HELP)


def dedupe(measurements: Iterable[Measurement]) -> list[Measurement]:
    logger = logging.getLogger("MetricNormalizer")
    seen: set[LabelKey] = set()
    unique: list[Measurement] = []
    for measurement in measurements:
        if measurement.key in seen:
            logger.warning(
                "Dropping duplicate measurement %s %s", measurement.name, measurement.labels
            )
            continue
        seen.add(measurement.key)
        unique.append(measurement)
    return unique


class MetricNormalizer:
    """Maps parsed smartctl data onto ``<prefix>_*`` measurements."""

    def __init__(self, prefix: str = "smartmon") -> None:
        self.prefix = prefix
        self.logger = logging.getLogger(self.__class__.__name__)

    def _metric(self, name: str, value: float, labels: dict[str, str], help: str = "") -> Measurement:
        full_name = f"{self.prefix}_{name}"
        return Measurement(
            name=full_name,
            value=value,
            labels=labels,
            help=help or f"SMART metric {full_name}",
        )

    @staticmethod
    def common_labels(device: Device) -> dict[str, str]:
        return {"disk": device.name, "type": device.type}

    def version(self, version: str) -> Measurement:
        return self._metric(
            "version", 1.0, {"version": version}, help="version reported by smartctl -V"
        )

    def collector_error(self, message: str) -> Measurement:
        return info_measurement(f"{self.prefix}_collector_error", message)

    def user_warning(self, message: str) -> Measurement:
        return info_measurement(f"{self.prefix}_current_user_warning", message)

    def device_error(self, device: Device, message: str) -> Measurement:
        return info_measurement(
            f"{self.prefix}_device_collection_error", message, self.common_labels(device)
        )

    def active(self, device: Device, active: bool) -> Measurement:
        return self._metric(
            "device_active",
            bool_to_metric(active),
            self.common_labels(device),
            help="shows result of smartctl -n standby",
        )

    def last_run(self, device: Device, timestamp: float) -> Measurement:
        return self._metric(
            "smartctl_run",
            float(int(timestamp)),
            self.common_labels(device),
            help="contains current unix time",
        )

    def device_info(self, device: Device, info: DeviceInfo) -> list[Measurement]:
        common = self.common_labels(device)
        info_labels = dict(common)
        for key, value in info.attributes.items():
            if key not in IDENTITY_LABELS:
                info_labels[key] = value
        return [
            self._metric("device_info", 1.0, info_labels),
            self._metric("device_smart_available", bool_to_metric(info.available), dict(common)),
            self._metric("device_smart_enabled", bool_to_metric(info.enabled), dict(common)),
            self._metric("device_smart_healthy", bool_to_metric(info.healthy), dict(common)),
        ]

    def attribute_row(self, device: Device, row: AttributeRow) -> list[Measurement]:
        """Return the four measurements of one row, or raise NumericFieldInvalid."""
        fields = (
            ("value", row.current_value),
            ("worst", row.worst_value),
            ("threshold", row.threshold),
            ("raw_value", row.raw_value),
        )
        parsed: list[tuple[str, float]] = []
        for suffix, text in fields:
            try:
                parsed.append((suffix, float(text)))
            except ValueError:
                raise NumericFieldInvalid(f"{row.name} {suffix}", text) from None

        labels = self.common_labels(device)
        labels["smart_id"] = row.id
        mnemonic = row.name.lower()
        return [
            self._metric(f"{mnemonic}_{suffix}", value, dict(labels))
            for suffix, value in parsed
        ]

    def attribute_rows(self, device: Device, rows: Iterable[AttributeRow]) -> list[Measurement]:
        measurements: list[Measurement] = []
        for row in rows:
            try:
                measurements.extend(self.attribute_row(device, row))
            except NumericFieldInvalid as exc:
                self.logger.warning(
                    "Skipping attribute %s (id %s) of %s: %s", row.name, row.id, device.name, exc
                )
        return measurements

    def nvme_attributes(self, device: Device, values: dict[str, str]) -> Measurement:
        labels = self.common_labels(device)
        for key, value in values.items():
            if key not in IDENTITY_LABELS:
                labels[key] = value
        return self._metric("attributes", 1.0, labels)

    def unsupported(self, device: Device) -> Measurement:
        return info_measurement(
            f"{self.prefix}_info",
            f"no attribute parser for type {device.type}",
            self.common_labels(device),
        )

    def attributes(self, device: Device, parsed: ParsedAttributes) -> list[Measurement]:
        if isinstance(parsed, AtaAttributes):
            return self.attribute_rows(device, parsed.rows)
        if isinstance(parsed, NvmeAttributes):
            return [self.nvme_attributes(device, parsed.values)]
        if isinstance(parsed, UnsupportedAttributes):
            return [self.unsupported(device)]
        raise TypeError(f"Unexpected attribute result: {parsed!r}")
