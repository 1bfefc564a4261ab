"""
ESP32 chip profile for hilbench.

Supports ESP32, ESP32-S2, ESP32-S3, ESP32-C2, ESP32-C3, ESP32-C6 and ESP32-H2.
Uses esptool for identification, ELF conversion and flashing.
"""

from __future__ import annotations

import logging
import os
import re
from typing import Optional

from .base import Chip, FlashCommand, ResetSequence

logger = logging.getLogger(__name__)

# Application partition offset for ESP-IDF style flash layouts.
APP_OFFSET = "0x10000"
PARTITION_TABLE_OFFSET = "0x8000"

# Second-stage bootloader offset; every other family boots from 0x0.
_BOOTLOADER_OFFSETS = {Chip.ESP32: "0x1000", Chip.ESP32S2: "0x1000"}

# "Chip is ESP32-C3 (QFN32) (revision v0.4)"   (esptool v4)
# "Chip type:          ESP32-C3 (QFN32) ..."   (esptool v5)
_CHIP_LINE = re.compile(r"Chip (?:is|type:)\s+(ESP32[-A-Z0-9]*)", re.IGNORECASE)

# Package names of the original ESP32 (ESP32-D0WD-V3, ESP32-PICO-D4, ...)
_ESP32_PACKAGES = ("ESP32-D", "ESP32-PICO", "ESP32-U4", "ESP32-S0")


def esptool_executable() -> str:
    """Return the esptool executable, overridable via ``HILBENCH_ESPTOOL``."""
    return os.environ.get("HILBENCH_ESPTOOL", "esptool")


def parse_chip_id_output(output: str) -> Optional[Chip]:
    """
    Extract the chip from ``esptool chip-id`` output.

    Returns:
        The detected Chip, or None if no chip line is present

    Raises:
        UnknownChipError: If esptool reports a chip hilbench does not support
    """
    match = _CHIP_LINE.search(output)
    if not match:
        return None
    name = match.group(1).upper()
    if name.startswith(_ESP32_PACKAGES):
        return Chip.ESP32
    for chip in Chip:
        display = chip.display_name
        if chip is Chip.ESP32 or not name.startswith(display):
            continue
        # ESP32-S2FH4 is an S2 package, ESP32-C61 is not a C6
        rest = name[len(display):]
        if not rest or not rest[0].isdigit():
            return chip
    return Chip.parse(name)


class ESP32Profile:
    """
    Profile for ESP32 family chips.

    Builds esptool invocations for one serial port. A ``None`` chip is
    only valid for identification, where esptool auto-detects.
    """

    def __init__(self, chip: Optional[Chip] = None):
        self.chip = chip

    @property
    def name(self) -> str:
        if self.chip:
            return self.chip.display_name
        return "ESP32"

    @property
    def bootloader_offset(self) -> str:
        return _BOOTLOADER_OFFSETS.get(self.chip, "0x0")

    # =========================================================================
    # Reset Sequences
    # =========================================================================

    @property
    def reset_sequences(self) -> dict[str, list[ResetSequence]]:
        """ESP32 reset sequences using DTR/RTS."""
        return {
            # Hard reset (most ESP32 boards)
            "hard_reset": [
                ResetSequence(dtr=False, rts=True, delay=0.1),
                ResetSequence(dtr=False, rts=False, delay=0.0),
            ],
            # Enter bootloader (GPIO0 low during reset)
            "bootloader": [
                ResetSequence(dtr=False, rts=True, delay=0.1),
                ResetSequence(dtr=True, rts=False, delay=0.05),
                ResetSequence(dtr=False, rts=False, delay=0.0),
            ],
        }

    # =========================================================================
    # Flash Tool Integration
    # =========================================================================

    def _chip_arg(self) -> str:
        return self.chip.value if self.chip else "auto"

    def get_chip_info_command(self, port: str, baud: int = 115200) -> FlashCommand:
        """Build esptool chip-id command."""
        return FlashCommand(
            tool=esptool_executable(),
            args=["--port", port, "--baud", str(baud), "chip-id"],
            timeout=30.0,
        )

    def get_elf2image_command(self, elf_path: str, output_path: str) -> FlashCommand:
        """Build esptool elf2image command (ELF to flashable app image)."""
        return FlashCommand(
            tool=esptool_executable(),
            args=[
                "--chip", self._chip_arg(),
                "elf2image",
                "--output", output_path,
                elf_path,
            ],
            timeout=60.0,
        )

    def get_flash_command(
        self,
        firmware_path: str,
        port: str,
        address: str = APP_OFFSET,
        baud: int = 921600,
        partitions: Optional[list[tuple[str, str]]] = None,
    ) -> FlashCommand:
        """
        Build esptool write-flash command.

        The board is left in reset-less state after writing; the console
        channel (or ``FlashSession.start``) runs the hard_reset sequence,
        so no early output is lost.

        Args:
            firmware_path: Path to the app image produced by elf2image
            port: Serial port
            address: Flash address (application offset)
            baud: Baud rate for the transfer
            partitions: Extra (address, file) pairs written in the same
                command, e.g. bootloader and partition table
        """
        args = [
            "--chip", self._chip_arg(),
            "--port", port,
            "--baud", str(baud),
            "--before", "default-reset",
            "--after", "no-reset",
            "write-flash",
            "--flash-mode", "dio",
            "--flash-size", "detect",
        ]
        # Multi-partition flash: add all addr/file pairs before the app
        for addr, fpath in partitions or []:
            args.extend([addr, fpath])
        args.extend([address, firmware_path])

        return FlashCommand(
            tool=esptool_executable(),
            args=args,
            timeout=120.0,
        )
