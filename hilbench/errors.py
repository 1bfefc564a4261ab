"""Exception hierarchy for hilbench.

Every error here is fatal for a bench run: a broken bench setup invalidates
all subsequent results, so nothing is retried or isolated per test.
"""

from __future__ import annotations


class BenchError(RuntimeError):
    """Base class for fatal bench errors."""


class DiscoveryError(BenchError):
    """A serial port could not be identified as a supported board."""


class BoardNotFoundError(BenchError):
    """No discovered board matches the requested chip."""


class ArtifactError(BenchError):
    """A test directory or test binary could not be read."""


class FlashError(BenchError):
    """The flashing tool failed to talk to a board."""


class DirectiveError(BenchError):
    """A device emitted a malformed control directive."""


class DispatchDepthError(BenchError):
    """Nested RUN directives exceeded the configured depth."""


class UnknownChipError(BenchError, ValueError):
    """A chip token does not name a supported chip."""
