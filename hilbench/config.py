"""Bench configuration: test directories per chip plus run parameters."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Any, Optional

import yaml

from hilbench.chips import Chip

DEFAULT_TIMEOUT_S = 20.0
DEFAULT_FLASH_BAUD = 921600
DEFAULT_CONSOLE_BAUD = 115200
DEFAULT_POLL_INTERVAL_S = 0.005
DEFAULT_MAX_DEPTH = 4


@dataclass(frozen=True)
class BootImages:
    """Bootloader and partition table flashed together with every test app."""
    bootloader: Optional[str] = None
    partition_table: Optional[str] = None


@dataclass(frozen=True)
class BenchConfig:
    """Everything a bench run needs besides the boards themselves."""
    sources: dict[Chip, str] = field(default_factory=dict)  # chip -> test ELF directory
    boot: dict[Chip, BootImages] = field(default_factory=dict)
    timeout: float = DEFAULT_TIMEOUT_S
    flash_baud: int = DEFAULT_FLASH_BAUD
    console_baud: int = DEFAULT_CONSOLE_BAUD
    poll_interval: float = DEFAULT_POLL_INTERVAL_S
    max_depth: int = DEFAULT_MAX_DEPTH
    monitor_nested: bool = False

    def source_for(self, chip: Chip) -> Optional[str]:
        return self.sources.get(chip)

    def with_overrides(self, **overrides: Any) -> "BenchConfig":
        """Return a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


_CASTS = {"timeout": float, "flash_baud": int, "console_baud": int,
          "poll_interval": float, "max_depth": int, "monitor_nested": bool}


def _cast(key: str, value: Any, path: str) -> Any:
    kind = _CASTS[key]
    # Flags take YAML booleans only; numbers never take booleans
    if (kind is bool) != isinstance(value, bool):
        raise ValueError(f"{path}: invalid {key}: {value!r}")
    if kind is bool:
        return value
    try:
        return kind(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"{path}: invalid {key}: {value!r}") from e


def _parse_sources(raw: Any, path: str) -> dict[Chip, str]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError(f"{path}: 'sources' must be a mapping of chip -> directory")
    sources: dict[Chip, str] = {}
    for key, directory in raw.items():
        chip = Chip.parse(str(key))
        if chip in sources:
            raise ValueError(f"{path}: more than one directory for {chip}")
        sources[chip] = str(directory)
    return sources


def _parse_boot(raw: Any, path: str) -> dict[Chip, BootImages]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError(f"{path}: 'boot' must be a mapping of chip -> images")
    boot: dict[Chip, BootImages] = {}
    for key, images in raw.items():
        chip = Chip.parse(str(key))
        if chip in boot:
            raise ValueError(f"{path}: more than one boot entry for {chip}")
        if not isinstance(images, dict):
            raise ValueError(f"{path}: boot entry for {chip} must be a mapping")
        unknown = set(images) - {"bootloader", "partition_table"}
        if unknown:
            raise ValueError(f"{path}: unknown boot keys for {chip}: {', '.join(sorted(unknown))}")
        for image in images.values():
            if not os.path.isfile(str(image)):
                raise ValueError(f"{path}: boot image not found for {chip}: {image}")
        boot[chip] = BootImages(
            bootloader=str(images["bootloader"]) if "bootloader" in images else None,
            partition_table=str(images["partition_table"]) if "partition_table" in images else None,
        )
    return boot


def load_config(path: str) -> BenchConfig:
    """Parse a YAML bench file.

    Example::

        sources:
          esp32c3: target/riscv32imc-unknown-none-elf/debug
          esp32s3: target/xtensa-esp32s3-none-elf/debug
        boot:
          esp32c3:
            bootloader: build/c3/bootloader.bin
            partition_table: build/c3/partition-table.bin
        timeout: 30
    """
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid bench file {path}: {e}") from e

    if data is None:
        return BenchConfig()
    if not isinstance(data, dict):
        raise ValueError(f"Invalid bench file (expected mapping): {path}")

    unknown = set(data) - set(_CASTS) - {"sources", "boot"}
    if unknown:
        raise ValueError(f"{path}: unknown keys: {', '.join(sorted(unknown))}")

    values = {key: _cast(key, data[key], path) for key in _CASTS if key in data}
    return BenchConfig(
        sources=_parse_sources(data.get("sources"), path),
        boot=_parse_boot(data.get("boot"), path),
        **values,
    )


def merge_sources(base: dict[Chip, str], overrides: dict[Chip, str]) -> dict[Chip, str]:
    """Overlay CLI directories on file directories, keeping one per chip."""
    merged = dict(base)
    merged.update(overrides)
    return merged
