from __future__ import annotations

from dataclasses import dataclass
import logging
import subprocess
from typing import Sequence

from smartmon_tap.logging_utils import TRACE_LEVEL

# smartctl exit status bits 0-2 mean the command itself failed; bits 3-7
# only report disk state.
SMARTCTL_FAILURE_BITS = 0b0000_0111


@dataclass(frozen=True)
class CommandResult:
    output: str
    returncode: int | None
    error: str | None = None
    not_found: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def usable(self) -> bool:
        """Output can be parsed even though smartctl flagged disk state bits."""
        if self.ok:
            return True
        if self.returncode is None or self.returncode < 0:
            return False
        return bool(self.output) and not self.returncode & SMARTCTL_FAILURE_BITS


class CommandRunner:
    """Runs smartctl and captures its combined output."""

    def __init__(self, smartctl_path: str = "smartctl", timeout_s: float | None = None) -> None:
        self.smartctl_path = smartctl_path
        self.timeout_s = timeout_s
        self.logger = logging.getLogger(self.__class__.__name__)

    def run(self, args: Sequence[str]) -> CommandResult:
        command = [self.smartctl_path, *args]
        try:
            result = subprocess.run(
                command,
                check=False,
                text=True,
                errors="replace",
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                timeout=self.timeout_s,
            )
        except FileNotFoundError:
            self.logger.debug("Command not found: %s", command[0])
            return CommandResult(
                output="",
                returncode=None,
                error=f"command not found: {command[0]}",
                not_found=True,
            )
        except subprocess.TimeoutExpired:
            self.logger.debug(
                "Command timed out after %ss: %s", self.timeout_s, " ".join(command)
            )
            return CommandResult(
                output="",
                returncode=None,
                error=f"timed out after {self.timeout_s}s",
            )
        except OSError as exc:
            self.logger.debug("Command could not be executed: %s (%s)", command[0], exc)
            return CommandResult(output="", returncode=None, error=str(exc))

        output = result.stdout or ""
        if output:
            self.logger.log(TRACE_LEVEL, "output: %s", output.strip())
        if result.returncode != 0:
            self.logger.debug(
                "Command failed (%s): %s", result.returncode, " ".join(command)
            )
            return CommandResult(
                output=output,
                returncode=result.returncode,
                error=f"exit status {result.returncode}",
            )
        return CommandResult(output=output, returncode=0)
