"""
Flash-and-monitor engine.

Flashes one test artifact onto one board, then reads the board's console
until the firmware reports a verdict or the deadline passes. Directives the
firmware emits along the way (host commands, runs on other boards) are
executed inline, blocking the read loop while they run.

Nested runs share the wall clock with the run that requested them: the
parent's deadline is fixed when its read loop starts and is never paused,
so time spent flashing (or monitoring) another board counts against the
parent's budget.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from hilbench.board_registry import BoardRegistry
from hilbench.chips import Chip
from hilbench.config import BenchConfig
from hilbench.directives import Failed, HostCommand, Passed, RunOnBoard, parse_directive
from hilbench.discovery import TestArtifact, discover_artifacts
from hilbench.errors import BenchError, DispatchDepthError
from hilbench.host_command import HostCommandResult, run_host_command
from hilbench.interfaces import FlashingService, SerialChannel
from hilbench.models import RunOutcome

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class Deadline:
    """A fixed point on a monotonic clock."""

    def __init__(self, expires_at: float, clock: Clock = time.monotonic):
        self.expires_at = expires_at
        self._clock = clock

    @classmethod
    def after(cls, seconds: float, clock: Clock = time.monotonic) -> "Deadline":
        return cls(clock() + seconds, clock)

    def expired(self) -> bool:
        return self._clock() > self.expires_at

    def remaining(self) -> float:
        return max(0.0, self.expires_at - self._clock())


class Engine:
    """Runs artifacts on boards of a discovered bench.

    Args:
        registry: Snapshot of discovered boards.
        config: Test directories and run parameters.
        service: Flashing service used to reach the boards.
        clock: Monotonic clock for deadlines.
        host_runner: Executes ``[HOST ...]`` command lines.
        console: Sink for the human-readable result lines.
    """

    def __init__(
        self,
        registry: BoardRegistry,
        config: BenchConfig,
        service: FlashingService,
        *,
        clock: Clock = time.monotonic,
        host_runner: Callable[[str], HostCommandResult] = run_host_command,
        console: Callable[[str], None] = print,
    ):
        self.registry = registry
        self.config = config
        self.service = service
        self.clock = clock
        self.host_runner = host_runner
        self.console = console

    def run(self, chip: Chip, artifact: TestArtifact,
            recursive: bool = False, depth: int = 0) -> Optional[RunOutcome]:
        """Flash ``artifact`` onto the ``chip`` board and wait for its verdict.

        A recursive run (requested by another board) only flashes and lets
        the firmware run, returning None, unless ``monitor_nested`` is set.
        """
        indent = "  " * depth
        self.console(f"{indent}{artifact.name}")

        # Fresh session every time: flashing needs the bootloader, which the
        # previous session left when it handed the port to the console.
        session = self.service.connect(self.registry.port_for(chip))
        session.set_baud(self.config.flash_baud)
        session.write_image(artifact.image)

        if recursive and not self.config.monitor_nested:
            # Nobody listens; just let the firmware run.
            session.start()
            return None

        channel = session.into_raw_channel(self.config.console_baud, self.config.poll_interval)
        try:
            outcome = self.monitor(channel, depth=depth)
        finally:
            channel.close()

        self.console(f"{indent}{artifact.name} => {outcome.summary()}")
        return outcome

    def monitor(self, channel: SerialChannel, depth: int = 0,
                deadline: Optional[Deadline] = None) -> RunOutcome:
        """Decision loop: read and dispatch lines until a verdict or the deadline."""
        if deadline is None:
            deadline = Deadline.after(self.config.timeout, self.clock)

        while True:
            line = channel.read_line()
            if line is not None:
                logger.debug("DEVICE: %s", line)
                outcome = self.dispatch(line, depth=depth)
                if outcome is not None:
                    return outcome

            if deadline.expired():
                return RunOutcome.timeout()

    def dispatch(self, line: str, depth: int = 0) -> Optional[RunOutcome]:
        """Act on one console line; return the verdict if the line is terminal."""
        directive = parse_directive(line)

        if isinstance(directive, Passed):
            return RunOutcome.passed(line)
        if isinstance(directive, Failed):
            return RunOutcome.failed(directive.detail, line)
        if isinstance(directive, HostCommand):
            self._run_host(directive)
        elif isinstance(directive, RunOnBoard):
            self.run_on_board(directive, depth=depth)
        else:
            logger.debug("ignoring line %r", line)
        return None

    def _run_host(self, directive: HostCommand) -> None:
        result = self.host_runner(directive.command)
        # Observed for diagnostics only; the device decides the outcome.
        if not result.ok:
            logger.debug("host command %s did not succeed (exit=%s, error=%s)",
                         result.argv, result.returncode, result.error)

    def run_on_board(self, directive: RunOnBoard, depth: int = 0) -> Optional[RunOutcome]:
        """Flash (and possibly monitor) a named artifact on another board.

        Raises:
            DispatchDepthError: If nesting would exceed ``max_depth``.
            BenchError: If no test directory is configured for the chip.
        """
        if depth + 1 > self.config.max_depth:
            raise DispatchDepthError(
                f"[RUN {directive.chip} {directive.artifact}] exceeds nesting depth "
                f"{self.config.max_depth}; do the tests request each other in a cycle?"
            )

        directory = self.config.source_for(directive.chip)
        if directory is None:
            raise BenchError(
                f"[RUN {directive.chip} {directive.artifact}] requested, "
                f"but no test directory is configured for {directive.chip}"
            )

        logger.debug("Flashing %s %s", directive.chip, directive.artifact)
        artifacts = discover_artifacts(directory, directive.chip, name_filter=directive.artifact)
        if not artifacts:
            logger.warning("No artifact %r for %s in %s", directive.artifact, directive.chip, directory)
            return None

        return self.run(directive.chip, artifacts[0], recursive=True, depth=depth + 1)
