"""
Real implementations of interfaces for production use.

These classes wrap actual system resources (serial ports, esptool) and
implement the abstract interfaces.
"""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
import time
from typing import Optional

import serial
import serial.tools.list_ports

from hilbench.chips import Chip, ESP32Profile, FlashCommand, ResetSequence, parse_chip_id_output
from hilbench.chips.esp32 import PARTITION_TABLE_OFFSET
from hilbench.config import BootImages
from hilbench.errors import FlashError
from hilbench.interfaces import FlashingService, FlashSession, PortInfo, SerialChannel

logger = logging.getLogger(__name__)


def _run_tool(cmd: FlashCommand) -> subprocess.CompletedProcess:
    """Run a flash tool command, raising FlashError unless it succeeds."""
    cmd_list = cmd.argv
    run_env = {**os.environ, **cmd.env} if cmd.env else None
    logger.debug("Running: %s", " ".join(cmd_list))

    try:
        result = subprocess.run(
            cmd_list,
            capture_output=True,
            text=True,
            timeout=cmd.timeout,
            env=run_env,
        )
    except subprocess.TimeoutExpired as e:
        raise FlashError(f"{cmd.tool} timed out after {cmd.timeout}s") from e
    except FileNotFoundError as e:
        raise FlashError(f"Tool not found: {cmd.tool}. Install with: pip install esptool") from e

    if result.returncode != 0:
        raise FlashError(
            f"{' '.join(cmd_list)} failed ({result.returncode}): {result.stderr.strip()[:200]}"
        )
    return result


class RealSerialChannel(SerialChannel):
    """
    Runtime console using pyserial.

    Reads in short polls and buffers partial lines until their newline
    arrives, so a slow device never yields half a directive.
    """

    def __init__(self, port: str, baud: int, poll_interval: float,
                 reset: Optional[list[ResetSequence]] = None):
        self._serial = serial.Serial()
        self._serial.port = port
        self._serial.baudrate = baud
        self._serial.timeout = poll_interval
        # Keep EN/IO0 released while opening.
        self._serial.dtr = False
        self._serial.rts = False
        self._buffer = b""
        try:
            self._serial.open()
        except serial.SerialException as e:
            raise FlashError(f"Cannot open console on {port}: {e}") from e
        if reset:
            self._apply_reset(reset)

    def _apply_reset(self, sequence: list[ResetSequence]) -> None:
        for step in sequence:
            if step.dtr is not None:
                self._serial.dtr = step.dtr
            if step.rts is not None:
                self._serial.rts = step.rts
            if step.delay > 0:
                time.sleep(step.delay)

    def _take_line(self) -> Optional[str]:
        if b"\n" not in self._buffer:
            return None
        raw, self._buffer = self._buffer.split(b"\n", 1)
        return raw.rstrip(b"\r").decode("utf-8", errors="replace")

    def read_line(self) -> Optional[str]:
        line = self._take_line()
        if line is not None:
            return line
        try:
            chunk = self._serial.read(max(1, self._serial.in_waiting))
        except serial.SerialException as e:
            raise FlashError(f"Console read failed on {self._serial.port}: {e}") from e
        if chunk:
            self._buffer += chunk
        return self._take_line()

    def close(self) -> None:
        if self._serial.is_open:
            self._serial.close()


class EsptoolSession(FlashSession):
    """Flashing session backed by the esptool command line."""

    def __init__(self, port: PortInfo, identify_baud: int = 115200,
                 boot: Optional[dict[Chip, BootImages]] = None):
        self.port = port
        self._baud = identify_baud
        self._identify_baud = identify_baud
        self._boot = boot or {}
        self._chip: Optional[Chip] = None

    def identify(self) -> Chip:
        cmd = ESP32Profile().get_chip_info_command(self.port.device, baud=self._identify_baud)
        result = _run_tool(cmd)
        chip = parse_chip_id_output(result.stdout)
        if chip is None:
            raise FlashError(f"Could not identify chip on {self.port.device}")
        self._chip = chip
        return chip

    def set_baud(self, baud: int) -> None:
        self._baud = baud

    def _boot_partitions(self, profile: ESP32Profile) -> list[tuple[str, str]]:
        images = self._boot.get(profile.chip)
        if images is None:
            return []
        partitions = []
        if images.bootloader:
            partitions.append((profile.bootloader_offset, images.bootloader))
        if images.partition_table:
            partitions.append((PARTITION_TABLE_OFFSET, images.partition_table))
        return partitions

    def write_image(self, elf: bytes) -> None:
        profile = ESP32Profile(self._chip or self.identify())
        with tempfile.TemporaryDirectory(prefix="hilbench-") as tmp:
            elf_path = os.path.join(tmp, "app.elf")
            bin_path = os.path.join(tmp, "app.bin")
            with open(elf_path, "wb") as f:
                f.write(elf)
            _run_tool(profile.get_elf2image_command(elf_path, bin_path))
            _run_tool(profile.get_flash_command(
                bin_path, self.port.device, baud=self._baud,
                partitions=self._boot_partitions(profile),
            ))
        logger.debug("Flashed %d bytes to %s", len(elf), self.port.device)

    def start(self) -> None:
        profile = ESP32Profile(self._chip)
        channel = RealSerialChannel(
            self.port.device, self._identify_baud, 0.0,
            reset=profile.reset_sequences["hard_reset"],
        )
        channel.close()
        logger.debug("Started firmware on %s", self.port.device)

    def into_raw_channel(self, baud: int, poll_interval: float) -> SerialChannel:
        profile = ESP32Profile(self._chip)
        return RealSerialChannel(
            self.port.device, baud, poll_interval,
            reset=profile.reset_sequences["hard_reset"],
        )


class EsptoolFlashingService(FlashingService):
    """Flashing service for Espressif boards on USB serial ports.

    Args:
        boot: Bootloader and partition table per chip, written with every
            app. Chips without an entry get the app image only.
    """

    def __init__(self, boot: Optional[dict[Chip, BootImages]] = None):
        self.boot = dict(boot or {})

    def list_ports(self) -> list[PortInfo]:
        ports = []
        for p in serial.tools.list_ports.comports():
            ports.append(PortInfo(
                device=p.device,
                description=p.description or "",
                hwid=p.hwid or "",
                vid=p.vid,
                pid=p.pid,
            ))
        return ports

    def connect(self, port: PortInfo) -> FlashSession:
        return EsptoolSession(port, boot=self.boot)
