"""Bench orchestration: discover boards, run every test once per chip."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from hilbench.board_registry import BoardRegistry, discover_boards
from hilbench.chips import Chip
from hilbench.config import BenchConfig
from hilbench.discovery import discover_artifacts
from hilbench.engine import Clock, Engine
from hilbench.host_command import HostCommandResult, run_host_command
from hilbench.interfaces import FlashingService
from hilbench.models import SuiteResult, TestResult

logger = logging.getLogger(__name__)


def run_chip(engine: Engine, chip: Chip, directory: str, suite: SuiteResult) -> None:
    """Run every test artifact of one chip, in directory order."""
    engine.console("")
    engine.console(f"Running tests on {chip}")

    for artifact in discover_artifacts(directory, chip):
        t0 = time.monotonic()
        outcome = engine.run(chip, artifact)
        ms = int((time.monotonic() - t0) * 1000)
        suite.add(TestResult(
            chip=str(chip), name=artifact.name,
            status=outcome.status.value, detail=outcome.detail,
            duration_ms=ms,
        ))


def run_bench(
    config: BenchConfig,
    service: Optional[FlashingService] = None,
    registry: Optional[BoardRegistry] = None,
    *,
    clock: Optional[Clock] = None,
    host_runner: Callable[[str], HostCommandResult] = run_host_command,
    console: Callable[[str], None] = print,
) -> SuiteResult:
    """Run all configured chips that have a board on the bench.

    Args:
        config: Test directories and run parameters.
        service: Flashing service. Defaults to esptool over pyserial.
        registry: Pre-discovered boards. Discovered from ``service`` if omitted.

    Raises:
        BenchError: On any bench failure; the run is aborted.
    """
    if service is None:
        from hilbench.implementations import EsptoolFlashingService
        service = EsptoolFlashingService(boot=config.boot)
    if registry is None:
        registry = discover_boards(service)

    engine_kwargs = {"host_runner": host_runner, "console": console}
    if clock is not None:
        engine_kwargs["clock"] = clock
    engine = Engine(registry, config, service, **engine_kwargs)

    t0 = time.monotonic()
    suite = SuiteResult()
    for chip, directory in config.sources.items():
        if chip not in registry:
            logger.warning("Tests configured for %s but no %s board attached; skipping", chip, chip)
            suite.skipped_chips.append(str(chip))
            continue
        run_chip(engine, chip, directory, suite)

    suite.duration_ms = int((time.monotonic() - t0) * 1000)
    return suite
