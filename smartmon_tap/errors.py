from __future__ import annotations


class SmartmonError(Exception):
    """Base error for smartctl collection.

    Errors raised while detecting smartctl or scanning abort the whole
    collection pass; ``DeviceCollectionError`` and ``AttributeRowUnparsable``
    only affect the device or attribute row they were raised for.
    """

    code = "smartmon_error"

    def __init__(self, message: str, detail: str = "") -> None:
        super().__init__(f"{message}: {detail}" if detail else message)
        self.message = message
        self.detail = detail


class ToolUnavailable(SmartmonError):
    code = "tool_unavailable"


class VersionUnparsable(SmartmonError):
    code = "version_unparsable"


class VersionBelowMinimum(SmartmonError):
    code = "version_below_minimum"


class MalformedOutput(SmartmonError):
    code = "malformed_output"


class MissingDevicesKey(MalformedOutput):
    code = "missing_devices_key"


class DeviceCollectionError(SmartmonError):
    """Failure scoped to a single device."""

    code = "device_collection_error"


class DeviceCommandFailed(DeviceCollectionError):
    code = "device_command_failed"


class DeviceOutputMalformed(DeviceCollectionError):
    code = "device_output_malformed"


class AttributeRowUnparsable(SmartmonError):
    code = "attribute_row_unparsable"


class NumericFieldInvalid(AttributeRowUnparsable):
    code = "numeric_field_invalid"

    def __init__(self, field: str, value: str) -> None:
        super().__init__(f"Invalid numeric value for {field}", repr(value))
        self.field = field
        self.value = value
