"""Core result data structures for a batch run."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from .status import OutcomeStatus

STATUS_ORDER: Sequence[OutcomeStatus] = (
    OutcomeStatus.SCANNED,
    OutcomeStatus.SKIPPED_MISSING,
    OutcomeStatus.FAILED,
)

#: Exit code used by ``--fail-on-error`` when any image was not scanned
ITEM_FAILURE_EXIT_CODE = 3


@dataclass
class ScanOutcome:
    """Capture the result of processing a single image."""

    image: str
    status: OutcomeStatus
    report_path: Optional[Path] = None
    detail: str = ""


@dataclass
class Summary:
    """Aggregate outcome counts by status."""

    scanned: int = 0
    skipped_missing: int = 0
    failed: int = 0

    def increment(self, status: OutcomeStatus) -> None:
        attr = status.value.lower()
        setattr(self, attr, getattr(self, attr) + 1)

    def as_rows(self) -> List[Tuple[str, int]]:
        """Return status/count pairs ordered for reporting."""

        return [(status.value, getattr(self, status.value.lower())) for status in STATUS_ORDER]

    @property
    def total(self) -> int:
        return sum(getattr(self, status.value.lower()) for status in STATUS_ORDER)


@dataclass
class BatchResult:
    """Bundle the ordered outcomes of a batch with their summary."""

    summary: Summary = field(default_factory=Summary)
    outcomes: List[ScanOutcome] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return self.summary.skipped_missing == 0 and self.summary.failed == 0

    def add_outcome(self, outcome: ScanOutcome) -> None:
        self.summary.increment(outcome.status)
        self.outcomes.append(outcome)

    def problems(self) -> List[ScanOutcome]:
        return [outcome for outcome in self.outcomes if outcome.status.is_problem]

    def exit_code(self, fail_on_error: bool = False) -> int:
        if fail_on_error and not self.passed:
            return ITEM_FAILURE_EXIT_CODE
        return 0


def format_summary_table(result: BatchResult) -> str:
    """Create a human-readable summary table for console output."""

    lines: List[str] = []
    lines.append("Batch Summary")
    lines.append("=" * 40)
    header = f"{'Status':<16} | {'Count':>5}"
    lines.append(header)
    lines.append("-" * len(header))
    for status, count in result.summary.as_rows():
        lines.append(f"{status:<16} | {count:>5}")
    lines.append("-" * len(header))
    lines.append(f"Images    : {result.summary.total}")

    reports = [outcome for outcome in result.outcomes if outcome.report_path]
    if reports:
        lines.append("")
        lines.append("Reports")
        lines.append("-" * 40)
        for outcome in reports:
            lines.append(f"{outcome.image} -> {outcome.report_path}")

    problems = result.problems()
    if problems:
        lines.append("")
        lines.append("Problems")
        lines.append("-" * 40)
        for outcome in problems:
            lines.append(f"[{outcome.status.value}] {outcome.image}")
            if outcome.detail:
                lines.append(f"  Detail: {outcome.detail}")
    return "\n".join(lines)
