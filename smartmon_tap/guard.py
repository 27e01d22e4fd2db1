from __future__ import annotations

import logging

from smartmon_tap.devices import Device
from smartmon_tap.runner import CommandRunner

# -n standby makes smartctl bail out instead of spinning the disk up
ACTIVE_CHECK_ARGS: tuple[str, ...] = ("-n", "standby")


class ActiveStateGuard:
    def __init__(self, runner: CommandRunner) -> None:
        self.runner = runner
        self.logger = logging.getLogger(self.__class__.__name__)

    def is_active(self, device: Device) -> bool:
        """Return True if the device is neither sleeping nor in standby.

        Any failure of the check counts as inactive.
        """
        result = self.runner.run((*ACTIVE_CHECK_ARGS, *device.device_args()))
        if not result.ok:
            self.logger.debug(
                "Device %s treated as inactive (%s).", device.name, result.error
            )
            return False
        return True
