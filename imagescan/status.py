"""Status definitions for per-image scan outcomes."""

from __future__ import annotations

from enum import Enum


class OutcomeStatus(str, Enum):
    """Enumerate the possible results of processing one image."""

    SCANNED = "SCANNED"
    SKIPPED_MISSING = "SKIPPED_MISSING"
    FAILED = "FAILED"

    @property
    def is_problem(self) -> bool:
        """Return ``True`` when the image did not produce a report."""

        return self is not OutcomeStatus.SCANNED


class Readiness(str, Enum):
    """Explicit answer returned by a readiness probe."""

    READY = "READY"
    NOT_READY = "NOT_READY"

    def __bool__(self) -> bool:
        return self is Readiness.READY


class PullStatus(str, Enum):
    """Explicit answer returned by an image pull."""

    PULLED = "PULLED"
    FAILED = "FAILED"
