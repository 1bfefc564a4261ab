"""
Interfaces for hilbench

Abstract base classes for the two capabilities the bench consumes but does
not implement: the flashing tool and the runtime serial console.
This enables dependency injection and mock-based testing without hardware.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from hilbench.chips import Chip


@dataclass(frozen=True)
class PortInfo:
    """Information about a serial port."""
    device: str
    description: str = ""
    hwid: str = ""
    vid: Optional[int] = None
    pid: Optional[int] = None

    @property
    def is_usb(self) -> bool:
        return self.vid is not None and self.pid is not None


class SerialChannel(ABC):
    """
    Line-oriented runtime console of a board.

    Implementations:
    - RealSerialChannel: Wraps pyserial for actual hardware
    - MockSerialChannel: For unit testing without hardware
    """

    @abstractmethod
    def read_line(self) -> Optional[str]:
        """Return the next complete line (without EOL), or None after a short poll."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the port."""
        pass


class FlashSession(ABC):
    """
    One flashing session on one port.

    Sessions are never reused across artifacts: each flash re-enters the
    bootloader, which a previous session may already have left.
    """

    @abstractmethod
    def identify(self) -> Chip:
        """Query the chip type of the attached board."""
        pass

    @abstractmethod
    def set_baud(self, baud: int) -> None:
        """Set the transfer baud rate for subsequent flash operations."""
        pass

    @abstractmethod
    def write_image(self, elf: bytes) -> None:
        """Write an ELF image to the board's flash."""
        pass

    @abstractmethod
    def start(self) -> None:
        """Reset the board into the flashed firmware without keeping the port."""
        pass

    @abstractmethod
    def into_raw_channel(self, baud: int, poll_interval: float) -> SerialChannel:
        """Hand the port over to the runtime console and start the firmware."""
        pass


class FlashingService(ABC):
    """
    Port enumeration and session factory.

    Implementations:
    - EsptoolFlashingService: esptool + pyserial
    - FakeFlashingService: In-memory boards for testing
    """

    @abstractmethod
    def list_ports(self) -> list[PortInfo]:
        """List serial ports present on the host."""
        pass

    @abstractmethod
    def connect(self, port: PortInfo) -> FlashSession:
        """Open a flashing session on a port."""
        pass
