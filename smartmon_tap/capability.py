from __future__ import annotations

from dataclasses import dataclass
import logging
import re

from smartmon_tap.config import SmartctlConfig
from smartmon_tap.errors import ToolUnavailable, VersionBelowMinimum, VersionUnparsable
from smartmon_tap.runner import CommandRunner

VERSION_ARGS: tuple[str, ...] = ("-V",)

_VERSION_RE = re.compile(r"^(\d+)(?:\.(\d+))?(?:\.(\d+))?$")


@dataclass(frozen=True)
class FormatCapability:
    supports_structured: bool
    version: str


def parse_version(version: str) -> tuple[int, int, int]:
    """Parse ``major[.minor[.patch]]`` into a comparable tuple.

    Missing components count as zero, so "7" and "7.0.0" compare equal.
    """
    match = _VERSION_RE.match(version.strip())
    if match is None:
        raise VersionUnparsable("Unable to parse smartctl version", repr(version))
    return tuple(int(part) if part else 0 for part in match.groups())  # type: ignore[return-value]


def version_at_least(version: str, minimum: str) -> bool:
    return parse_version(version) >= parse_version(minimum)


def version_from_output(output: str) -> str:
    """Return the second token of the first line of ``smartctl -V``."""
    lines = output.splitlines()
    fields = lines[0].split() if lines else []
    if len(fields) < 2:
        raise VersionUnparsable("Unable to read smartctl version", repr(output[:80]))
    return fields[1]


class CapabilityDetector:
    def __init__(self, runner: CommandRunner, config: SmartctlConfig) -> None:
        self.runner = runner
        self.min_version = config.min_version
        self.min_json_version = config.min_json_version
        self.logger = logging.getLogger(self.__class__.__name__)

    def detect(self) -> FormatCapability:
        result = self.runner.run(VERSION_ARGS)
        if result.not_found:
            raise ToolUnavailable("Unable to locate smartctl", result.error or "")
        if not result.ok and not result.output:
            raise ToolUnavailable(
                "Unable to determine installed smartctl version", result.error or ""
            )

        version = version_from_output(result.output)
        if not version_at_least(version, self.min_version):
            raise VersionBelowMinimum(
                f"Installed smartctl version {version} is lower than the required minimum",
                self.min_version,
            )
        structured = version_at_least(version, self.min_json_version)
        self.logger.debug(
            "smartctl %s detected, JSON output %s.",
            version,
            "supported" if structured else "unsupported",
        )
        return FormatCapability(supports_structured=structured, version=version)
