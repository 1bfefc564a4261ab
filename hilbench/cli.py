"""
hilbench: hardware-in-the-loop test runner for Espressif boards.

Flashes every ``test*`` ELF in the directory given for a chip onto the
attached board of that chip and reports the verdict the firmware prints.

Examples:
    hilbench --esp32c3 target/riscv32imc-unknown-none-elf/debug
    hilbench --config bench.yaml --esp32s3 build/s3 -v
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from dataclasses import asdict
from typing import Any, Optional

from hilbench.chips import Chip
from hilbench.config import BenchConfig, load_config, merge_sources
from hilbench.errors import BenchError
from hilbench.runner import run_bench

logger = logging.getLogger(__name__)


def _print(obj: Any, *, json_mode: bool) -> None:
    if json_mode:
        print(json.dumps(obj, indent=2, sort_keys=True))
    else:
        if isinstance(obj, str):
            print(obj)
        else:
            print(json.dumps(obj, indent=2, sort_keys=True))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hilbench",
        description="Flash test ELFs onto attached boards and collect their verdicts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__.split("Examples:", 1)[1],
    )
    for chip in Chip:
        parser.add_argument(
            f"--{chip.value}",
            dest=chip.value,
            metavar="DIR",
            help=f"Path to {chip.display_name} ELF files",
        )
    parser.add_argument("--config", metavar="FILE", help="YAML bench file (CLI flags win)")
    parser.add_argument("--timeout", type=float, help="Per-test timeout in seconds (default: 20)")
    parser.add_argument("--max-depth", type=int, help="Maximum nesting of [RUN] directives (default: 4)")
    parser.add_argument(
        "--monitor-nested",
        action="store_true",
        default=None,
        help="Wait for a verdict from boards started by [RUN] instead of only flashing them",
    )
    parser.add_argument("--json", action="store_true", help="Print a JSON summary at the end")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log device output (DEBUG)")
    return parser


def _configure_logging(verbose: bool) -> None:
    """Configure root logging from ``-v`` or ``HILBENCH_LOG_LEVEL``.

    Raises:
        ValueError: If ``HILBENCH_LOG_LEVEL`` names no logging level.
    """
    level = "DEBUG" if verbose else os.environ.get("HILBENCH_LOG_LEVEL", "WARNING").upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ValueError(f"Invalid HILBENCH_LOG_LEVEL: {level!r}")
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_config(args: argparse.Namespace) -> BenchConfig:
    """Combine the optional bench file with command-line flags."""
    config = load_config(args.config) if args.config else BenchConfig()
    cli_sources = {
        chip: getattr(args, chip.value)
        for chip in Chip
        if getattr(args, chip.value) is not None
    }
    return config.with_overrides(
        sources=merge_sources(config.sources, cli_sources),
        timeout=args.timeout,
        max_depth=args.max_depth,
        monitor_nested=args.monitor_nested,
    )


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point for the ``hilbench`` CLI.

    Returns:
        0 if every test passed, 1 on test failures or a bench error,
        2 on a configuration error.
    """
    if argv is None:
        argv = sys.argv[1:]

    parser = _build_parser()
    args = parser.parse_args(argv)
    try:
        _configure_logging(args.verbose)
        config = build_config(args)
    except (OSError, ValueError) as e:
        _print({"error": str(e)}, json_mode=args.json)
        return 2

    if not config.sources:
        logger.warning("No test directories given; nothing to run")

    try:
        result = run_bench(config)
    except BenchError as e:
        logger.debug("Bench aborted", exc_info=True)
        _print({"error": str(e)}, json_mode=args.json)
        return 1

    if args.json:
        _print(asdict(result), json_mode=True)
    return 0 if result.ok else 1


if __name__ == "__main__":
    sys.exit(main())
