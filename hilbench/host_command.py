"""Run commands on the bench host on behalf of a device.

A host command is a side effect (toggle a relay, power-cycle a board). Its
exit status is recorded for logging only and never decides a test outcome.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class HostCommandResult:
    """What happened when a host command ran."""
    argv: list[str]
    returncode: Optional[int] = None
    stdout: str = ""
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.returncode == 0


def run_host_command(command_line: str) -> HostCommandResult:
    """Split on whitespace and run the command, waiting without a timeout.

    Never raises for a failing or missing program.
    """
    argv = command_line.split()
    logger.debug("running command %s", argv)
    if not argv:
        return HostCommandResult(argv=argv, error="empty command")

    try:
        proc = subprocess.run(argv, capture_output=True)
    except OSError as e:
        logger.debug("command %s could not start: %s", argv[0], e)
        return HostCommandResult(argv=argv, error=str(e))

    stdout = proc.stdout.decode("utf-8", errors="replace")
    logger.debug("raw command output %r", proc.stdout)
    logger.debug("command output %s", stdout)
    return HostCommandResult(argv=argv, returncode=proc.returncode, stdout=stdout)
