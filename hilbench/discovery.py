"""Test artifact discovery: find test ELFs for one chip."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Optional

from hilbench.chips import Chip
from hilbench.errors import ArtifactError

logger = logging.getLogger(__name__)

ELF_MAGIC = b"\x7fELF"
TEST_PREFIX = "test"


@dataclass(frozen=True)
class TestArtifact:
    """A test binary read into memory just before flashing."""
    __test__ = False  # not a pytest class

    name: str
    path: str
    image: bytes = field(repr=False)


def is_elf(data: bytes) -> bool:
    return len(data) > len(ELF_MAGIC) and data.startswith(ELF_MAGIC)


def _wanted(name: str, name_filter: Optional[str]) -> bool:
    # '-' is reserved for future naming conventions
    if "-" in name:
        return False
    if name_filter is None:
        return name.startswith(TEST_PREFIX)
    return name == name_filter


def discover_artifacts(directory: str, chip: Chip,
                       name_filter: Optional[str] = None) -> list[TestArtifact]:
    """Collect test ELFs directly inside ``directory``.

    Without ``name_filter`` every ``test*`` file is a candidate; with it,
    only the file of exactly that name. Names containing ``-`` and files
    that do not start with the ELF magic are dropped. Order follows the
    directory listing.

    Raises:
        ArtifactError: If the directory or a candidate file cannot be read.
    """
    try:
        entries = list(os.scandir(directory))
    except OSError as e:
        raise ArtifactError(f"Cannot read {chip} test directory {directory}: {e}") from e

    artifacts: list[TestArtifact] = []
    for entry in entries:
        if not entry.is_file() or not _wanted(entry.name, name_filter):
            continue
        try:
            with open(entry.path, "rb") as f:
                data = f.read()
        except OSError as e:
            raise ArtifactError(f"Cannot read test binary {entry.path}: {e}") from e
        if not is_elf(data):
            logger.debug("Skipping %s: not an ELF file", entry.path)
            continue
        artifacts.append(TestArtifact(name=entry.name, path=entry.path, image=data))

    return artifacts
