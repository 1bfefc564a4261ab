"""HIL fixtures for hilbench hardware tests.

Tests skip unless pytest runs with ``--hw`` and at least one board answers.
Test directories come from ``HILBENCH_<CHIP>`` environment variables,
e.g. ``HILBENCH_ESP32C3=target/riscv32imc-unknown-none-elf/debug``.
"""

from __future__ import annotations

import os

import pytest

from hilbench.board_registry import discover_boards
from hilbench.chips import Chip
from hilbench.errors import DiscoveryError
from hilbench.implementations import EsptoolFlashingService


def pytest_collection_modifyitems(config, items):
    if config.getoption("--hw"):
        return
    skip = pytest.mark.skip(reason="needs --hw")
    for item in items:
        if "hardware" in item.keywords:
            item.add_marker(skip)


@pytest.fixture(scope="session")
def flashing_service():
    return EsptoolFlashingService()


@pytest.fixture(scope="session")
def registry(flashing_service):
    try:
        return discover_boards(flashing_service)
    except DiscoveryError as e:
        pytest.skip(f"bench not available: {e}")


@pytest.fixture(scope="session")
def sources():
    found = {}
    for chip in Chip:
        directory = os.environ.get(f"HILBENCH_{chip.value.upper()}")
        if directory:
            found[chip] = directory
    return found
