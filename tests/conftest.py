"""Shared pytest fixtures for hilbench tests."""

from __future__ import annotations

from typing import Optional

import pytest

from hilbench.chips import Chip
from hilbench.mocks import FakeBoard, FakeClock, FakeFlashingService, fake_elf


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def write_elf(tmp_path):
    """Write a fake ELF named ``name`` into ``tmp_path / subdir``."""
    def _write(name: str, subdir: str = "elfs", data: Optional[bytes] = None):
        d = tmp_path / subdir
        d.mkdir(exist_ok=True)
        p = d / name
        p.write_bytes(fake_elf(name) if data is None else data)
        return p
    return _write


@pytest.fixture
def s3_board():
    return FakeBoard(chip=Chip.ESP32S3, device="/dev/ttyACM0")


@pytest.fixture
def c3_board():
    return FakeBoard(chip=Chip.ESP32C3, device="/dev/ttyACM1")


@pytest.fixture
def service(s3_board, c3_board, clock):
    """An ESP32-S3 and an ESP32-C3; every console poll costs 10 ms."""
    return FakeFlashingService([s3_board, c3_board], clock=clock, read_cost=0.01)


def pytest_addoption(parser):
    parser.addoption(
        "--hw",
        action="store_true",
        default=False,
        help="Run hardware-in-the-loop tests (requires Espressif boards connected)",
    )
