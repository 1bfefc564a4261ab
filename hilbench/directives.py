"""
Device control protocol.

Test firmware talks to the bench with one directive per console line:

    [PASSED]                       test passed
    [FAILED<detail>]               test failed, e.g. "[FAILED: assertion X]"
    [HOST <command-line>]          run a command on the bench host
    [RUN <chip> <artifact>]        flash <artifact> onto the <chip> board

Prefixes are literal and case-sensitive. Everything else is device chatter.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from hilbench.chips import Chip
from hilbench.errors import DirectiveError

PASSED_PREFIX = "[PASSED]"
FAILED_PREFIX = "[FAILED"
HOST_PREFIX = "[HOST "
RUN_PREFIX = "[RUN "
SUFFIX = "]"


@dataclass(frozen=True)
class Passed:
    pass


@dataclass(frozen=True)
class Failed:
    detail: str


@dataclass(frozen=True)
class HostCommand:
    command: str


@dataclass(frozen=True)
class RunOnBoard:
    chip: Chip
    artifact: str


Directive = Union[Passed, Failed, HostCommand, RunOnBoard]


def _enclosed(line: str, prefix: str) -> Optional[str]:
    if line.startswith(prefix) and line.endswith(SUFFIX):
        return line[len(prefix):-len(SUFFIX)]
    return None


def parse_run(body: str) -> RunOnBoard:
    """Parse the ``<chip> <artifact>`` body of a RUN directive.

    Raises:
        UnknownChipError: If the chip token is not a supported chip.
        DirectiveError: If the artifact name is missing.
    """
    chip_token, _, artifact = body.partition(" ")
    chip = Chip.parse(chip_token)
    if not artifact:
        raise DirectiveError(f"RUN directive without artifact name: [RUN {body}]")
    return RunOnBoard(chip=chip, artifact=artifact)


def parse_directive(line: str) -> Optional[Directive]:
    """Classify one console line.

    Returns:
        The directive, or None for lines that carry no directive.

    Raises:
        UnknownChipError, DirectiveError: For a malformed RUN directive.
    """
    if line.startswith(PASSED_PREFIX):
        return Passed()
    if line.startswith(FAILED_PREFIX):
        detail = line[len(FAILED_PREFIX):]
        if detail.endswith(SUFFIX):
            detail = detail[:-len(SUFFIX)]
        return Failed(detail=detail)

    command = _enclosed(line, HOST_PREFIX)
    if command is not None:
        return HostCommand(command=command)

    body = _enclosed(line, RUN_PREFIX)
    if body is not None:
        return parse_run(body)

    return None
