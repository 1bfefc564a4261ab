"""
Chip enumeration and shared flashing primitives for hilbench.

Provides:
- The closed set of supported chips (one CLI flag and one bench slot each)
- Flash tool command descriptions (esptool invocations)
- DTR/RTS reset sequences
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from hilbench.errors import UnknownChipError


class Chip(Enum):
    """Supported chip families."""

    ESP32 = "esp32"
    ESP32S2 = "esp32s2"
    ESP32S3 = "esp32s3"
    ESP32C2 = "esp32c2"
    ESP32C3 = "esp32c3"
    ESP32C6 = "esp32c6"
    ESP32H2 = "esp32h2"

    def __str__(self) -> str:
        return self.value

    @property
    def display_name(self) -> str:
        """Name as printed by esptool, e.g. ``ESP32-C3``."""
        if self is Chip.ESP32:
            return "ESP32"
        return f"ESP32-{self.value[len('esp32'):].upper()}"

    @classmethod
    def parse(cls, token: str) -> "Chip":
        """
        Parse a chip token.

        Accepts the short form used on the command line and in RUN
        directives (``esp32c3``) as well as the esptool display name
        (``ESP32-C3``), case-insensitively.

        Raises:
            UnknownChipError: If the token names no supported chip
        """
        key = token.strip().lower().replace("-", "")
        for chip in cls:
            if chip.value == key:
                return chip
        supported = ", ".join(c.value for c in cls)
        raise UnknownChipError(f"Unsupported chip: {token!r}. Supported: {supported}")


@dataclass
class ResetSequence:
    """A reset sequence step using DTR/RTS lines."""

    dtr: Optional[bool]
    rts: Optional[bool]
    delay: float = 0.0


@dataclass
class FlashCommand:
    """A flash command configuration."""

    tool: str  # esptool
    args: list[str]
    env: dict[str, str] = field(default_factory=dict)
    timeout: float = 120.0

    @property
    def argv(self) -> list[str]:
        return [self.tool] + self.args
