"""
Chip support for hilbench.

Usage:
    from hilbench.chips import Chip, ESP32Profile

    chip = Chip.parse("esp32c3")
    profile = ESP32Profile(chip)
"""

from .base import Chip, FlashCommand, ResetSequence
from .esp32 import ESP32Profile, parse_chip_id_output

__all__ = [
    "Chip",
    "FlashCommand",
    "ResetSequence",
    "ESP32Profile",
    "parse_chip_id_output",
]
