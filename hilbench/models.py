"""Data models for bench runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class Status(Enum):
    PASSED = "passed"
    FAILED = "failed"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class RunOutcome:
    """Final classification of one artifact run."""
    status: Status
    detail: str = ""
    line: str = ""                 # raw terminal line as printed by the device

    @classmethod
    def passed(cls, line: str = "[PASSED]") -> "RunOutcome":
        return cls(Status.PASSED, line=line)

    @classmethod
    def failed(cls, detail: str, line: str = "") -> "RunOutcome":
        return cls(Status.FAILED, detail=detail, line=line or f"[FAILED{detail}]")

    @classmethod
    def timeout(cls) -> "RunOutcome":
        return cls(Status.TIMEOUT)

    @property
    def ok(self) -> bool:
        return self.status is Status.PASSED

    def summary(self) -> str:
        """Text printed after ``<artifact> =>``."""
        if self.status is Status.TIMEOUT:
            return "TIMEOUT"
        return self.line


@dataclass
class TestResult:
    """Result of one top-level artifact run."""
    __test__ = False  # not a pytest class

    chip: str
    name: str
    status: str
    detail: str = ""
    duration_ms: int = 0


@dataclass
class SuiteResult:
    """Aggregate result of a bench run."""
    passed: int = 0
    failed: int = 0
    timed_out: int = 0
    duration_ms: int = 0
    skipped_chips: list[str] = field(default_factory=list)
    results: list[TestResult] = field(default_factory=list)

    def add(self, result: TestResult) -> None:
        self.results.append(result)
        if result.status == Status.PASSED.value:
            self.passed += 1
        elif result.status == Status.FAILED.value:
            self.failed += 1
        else:
            self.timed_out += 1

    @property
    def ok(self) -> bool:
        return self.failed == 0 and self.timed_out == 0

    def find(self, name: str) -> Optional[TestResult]:
        for r in self.results:
            if r.name == name:
                return r
        return None
