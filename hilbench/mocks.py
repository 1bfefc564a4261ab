"""
Mock implementations for testing.

These classes implement the abstract interfaces with in-memory behavior
suitable for unit testing without hardware.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Optional

from .board_registry import Board, BoardRegistry
from .chips import Chip
from .errors import FlashError
from .interfaces import FlashingService, FlashSession, PortInfo, SerialChannel


def fake_elf(name: str) -> bytes:
    """A minimal ELF-looking image whose content identifies the test."""
    return b"\x7fELF" + name.encode()


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class MockSerialChannel(SerialChannel):
    """
    Mock console for testing.

    Replays a scripted list of lines; every read (including empty polls)
    advances the optional clock by ``read_cost`` seconds.
    """

    def __init__(self, lines: Optional[list[str]] = None,
                 clock: Optional[FakeClock] = None, read_cost: float = 0.0):
        self._lines: deque = deque(lines or [])
        self._clock = clock
        self._read_cost = read_cost
        self.reads: list[Optional[str]] = []
        self.closed = False

    def read_line(self) -> Optional[str]:
        if self._clock is not None:
            self._clock.advance(self._read_cost)
        line = self._lines.popleft() if self._lines else None
        self.reads.append(line)
        return line

    def close(self) -> None:
        self.closed = True

    # Test helper methods

    def inject_line(self, line: str) -> None:
        """Append a line to the receive script."""
        self._lines.append(line)

    @property
    def remaining(self) -> list[str]:
        return list(self._lines)


@dataclass
class FakeBoard:
    """A simulated board: chip identity plus console scripts keyed by image."""
    chip: Chip
    device: str
    scripts: dict[bytes, list[str]] = field(default_factory=dict)
    fail_identify: bool = False

    @property
    def port(self) -> PortInfo:
        return PortInfo(device=self.device, description=f"fake {self.chip}", vid=0x303A, pid=0x1001)


class FakeSession(FlashSession):
    def __init__(self, service: "FakeFlashingService", board: FakeBoard):
        self._service = service
        self._board = board
        self._image: Optional[bytes] = None

    def identify(self) -> Chip:
        self._service.events.append(("identify", self._board.device))
        if self._board.fail_identify:
            raise FlashError(f"Could not identify chip on {self._board.device}")
        return self._board.chip

    def set_baud(self, baud: int) -> None:
        self._service.events.append(("set_baud", self._board.device, baud))

    def write_image(self, elf: bytes) -> None:
        self._service.events.append(("write_image", self._board.device, elf))
        if self._service.clock is not None:
            self._service.clock.advance(self._service.flash_cost)
        self._image = elf

    def start(self) -> None:
        self._service.events.append(("start", self._board.device))

    def into_raw_channel(self, baud: int, poll_interval: float) -> SerialChannel:
        self._service.events.append(("open_channel", self._board.device, baud))
        lines = list(self._board.scripts.get(self._image, []))
        channel = MockSerialChannel(lines, clock=self._service.clock,
                                    read_cost=self._service.read_cost)
        self._service.channels.append((self._board.device, channel))
        return channel


class FakeFlashingService(FlashingService):
    """
    In-memory flashing service.

    Records every call in ``events`` so tests can assert ordering across
    boards, and keeps each opened channel in ``channels``. With a clock,
    each image write costs ``flash_cost`` seconds and each console read
    ``read_cost`` seconds.
    """

    def __init__(self, boards: Optional[list[FakeBoard]] = None,
                 extra_ports: Optional[list[PortInfo]] = None,
                 clock: Optional[FakeClock] = None, read_cost: float = 0.0,
                 flash_cost: float = 0.0):
        self.boards = list(boards or [])
        self.extra_ports = list(extra_ports or [])
        self.clock = clock
        self.read_cost = read_cost
        self.flash_cost = flash_cost
        self.events: list[tuple] = []
        self.channels: list[tuple[str, MockSerialChannel]] = []

    def list_ports(self) -> list[PortInfo]:
        return [b.port for b in self.boards] + self.extra_ports

    def connect(self, port: PortInfo) -> FlashSession:
        self.events.append(("connect", port.device))
        for board in self.boards:
            if board.device == port.device:
                return FakeSession(self, board)
        raise FlashError(f"No board answers on {port.device}")

    def registry(self) -> BoardRegistry:
        """Snapshot of all fake boards, as discovery would produce it."""
        return BoardRegistry([Board(chip=b.chip, port=b.port) for b in self.boards])

    def flashed(self) -> list[tuple[str, bytes]]:
        """(device, image) pairs in flash order."""
        return [(e[1], e[2]) for e in self.events if e[0] == "write_image"]
