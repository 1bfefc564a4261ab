"""Board registry for hilbench.

Discovers the boards attached to the bench and resolves chip types to
serial ports. The registry is an immutable snapshot taken once at start-up
and passed explicitly to everything that needs to reach a board.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, Optional

from hilbench.chips import Chip
from hilbench.errors import BenchError, BoardNotFoundError, DiscoveryError
from hilbench.interfaces import FlashingService, PortInfo

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Board:
    """A board identified on the bench."""
    chip: Chip
    port: PortInfo


class BoardRegistry:
    """Ordered, immutable chip -> port snapshot.

    Lookups resolve by first match in discovery order. A bench with two
    boards of the same chip is ambiguous; the duplicate is reported but
    never reachable.
    """

    def __init__(self, boards: list[Board] | tuple[Board, ...] = ()):
        self._boards: tuple[Board, ...] = tuple(boards)
        seen: set[Chip] = set()
        for board in self._boards:
            if board.chip in seen:
                logger.warning(
                    "Multiple %s boards attached; using the first, ignoring %s",
                    board.chip, board.port.device,
                )
            seen.add(board.chip)

    def __iter__(self) -> Iterator[Board]:
        return iter(self._boards)

    def __len__(self) -> int:
        return len(self._boards)

    def __contains__(self, chip: object) -> bool:
        return any(b.chip == chip for b in self._boards)

    def chips(self) -> list[Chip]:
        """Chips in discovery order."""
        return [b.chip for b in self._boards]

    def find(self, chip: Chip) -> Optional[Board]:
        for board in self._boards:
            if board.chip == chip:
                return board
        return None

    def port_for(self, chip: Chip) -> PortInfo:
        """Return the port of the first board with this chip.

        Raises:
            BoardNotFoundError: If no such board was discovered.
        """
        board = self.find(chip)
        if board is None:
            attached = ", ".join(str(c) for c in self.chips()) or "none"
            raise BoardNotFoundError(f"No {chip} board attached (attached: {attached})")
        return board.port


def discover_boards(service: FlashingService,
                    ports: Optional[list[PortInfo]] = None) -> BoardRegistry:
    """Identify every serial port on the host.

    Args:
        service: Flashing service used to open sessions and query identity.
        ports: Ports to probe. Defaults to ``service.list_ports()``.

    Returns:
        Registry of the identified boards in port order.

    Raises:
        DiscoveryError: No ports, a non-USB port, or a port that fails
            identification. The bench is assumed to be curated; nothing is
            skipped silently.
    """
    if ports is None:
        ports = service.list_ports()
    if not ports:
        raise DiscoveryError("No serial ports found; is a board attached?")

    boards: list[Board] = []
    for port in ports:
        if not port.is_usb:
            raise DiscoveryError(
                f"{port.device} is not a USB serial device ({port.description or port.hwid})"
            )
        try:
            chip = service.connect(port).identify()
        except BenchError as e:
            raise DiscoveryError(f"Failed to identify board on {port.device}: {e}") from e
        logger.info("Found %s on %s", chip.display_name, port.device)
        boards.append(Board(chip=chip, port=port))

    return BoardRegistry(boards)
