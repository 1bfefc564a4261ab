"""
hilbench - hardware-in-the-loop test runner

Flashes test binaries onto attached Espressif boards, watches their console
for verdicts and serves the host-command and cross-board requests the tests
make along the way.
"""

from .chips import Chip
from .errors import (
    BenchError,
    DiscoveryError,
    BoardNotFoundError,
    ArtifactError,
    FlashError,
    DirectiveError,
    DispatchDepthError,
    UnknownChipError,
)
from .board_registry import Board, BoardRegistry, discover_boards
from .config import BenchConfig, load_config
from .discovery import TestArtifact, discover_artifacts
from .engine import Deadline, Engine
from .models import RunOutcome, Status, SuiteResult, TestResult
from .runner import run_bench

__version__ = "0.1.0"

__all__ = [
    "Chip",
    "BenchError",
    "DiscoveryError",
    "BoardNotFoundError",
    "ArtifactError",
    "FlashError",
    "DirectiveError",
    "DispatchDepthError",
    "UnknownChipError",
    "Board",
    "BoardRegistry",
    "discover_boards",
    "BenchConfig",
    "load_config",
    "TestArtifact",
    "discover_artifacts",
    "Deadline",
    "Engine",
    "RunOutcome",
    "Status",
    "SuiteResult",
    "TestResult",
    "run_bench",
]
