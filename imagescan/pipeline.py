"""Sequential pull-and-scan pipeline with per-image failure isolation."""

from __future__ import annotations

import hashlib
import logging
from collections import Counter
from pathlib import Path
from typing import Callable, Dict, Iterable, Sequence, Union

from .result import BatchResult, ScanOutcome
from .status import OutcomeStatus, PullStatus

logger = logging.getLogger(__name__)

DEFAULT_REPORT_EXTENSION = ".html"
DIGEST_SUFFIX_LENGTH = 8

PullFn = Callable[[str], Union[PullStatus, bool, None]]
ExistsFn = Callable[[str], bool]
ScanFn = Callable[[str, Path], None]


def sanitize_image_name(image: str) -> str:
    """Replace the path and tag separators of ``image`` with underscores."""

    return image.replace("/", "_").replace(":", "_")


def report_filename(image: str, extension: str = DEFAULT_REPORT_EXTENSION, disambiguate: bool = False) -> str:
    """Return the report file name for ``image``.

    With ``disambiguate`` set, a short digest of the raw identifier is appended
    so identifiers that differ only in ``/`` versus ``:`` placement stay apart.
    Whether the digest is needed depends on the other images in the batch, so
    an image scanned alone and later beside a clashing one leaves its earlier
    undigested report in place.
    """

    stem = sanitize_image_name(image)
    if disambiguate:
        digest = hashlib.sha256(image.encode("utf-8")).hexdigest()[:DIGEST_SUFFIX_LENGTH]
        stem = f"{stem}-{digest}"
    return f"{stem}{extension}"


def plan_report_paths(
    images: Iterable[str], report_dir: Path, extension: str = DEFAULT_REPORT_EXTENSION
) -> Dict[str, Path]:
    """Map every distinct image to its report path under ``report_dir``."""

    distinct = list(dict.fromkeys(images))
    stems = Counter(sanitize_image_name(image) for image in distinct)
    return {
        image: report_dir / report_filename(image, extension, disambiguate=stems[sanitize_image_name(image)] > 1)
        for image in distinct
    }


def _pull(pull: PullFn, image: str) -> None:
    try:
        status = pull(image)
    except Exception as exc:  # pylint: disable=broad-except
        logger.warning("Pull of %s failed: %s", image, exc)
        return
    if status is PullStatus.FAILED or status is False:
        logger.warning("Pull of %s failed; checking local cache", image)


def run_batch(
    items: Sequence[str],
    pull: PullFn,
    exists: ExistsFn,
    scan: ScanFn,
    report_dir: Path,
    extension: str = DEFAULT_REPORT_EXTENSION,
) -> BatchResult:
    """Pull and scan every image in order, recording one outcome per image."""

    result = BatchResult()
    report_dir = Path(report_dir)
    report_paths = plan_report_paths(items, report_dir, extension)

    for index, image in enumerate(items, start=1):
        logger.info("[%d/%d] Processing %s", index, len(items), image)
        _pull(pull, image)

        try:
            present = exists(image)
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("Could not inspect %s: %s", image, exc)
            present = False
        if not present:
            logger.error("Image %s not found locally; skipping", image)
            result.add_outcome(
                ScanOutcome(image=image, status=OutcomeStatus.SKIPPED_MISSING, detail="image not found after pull")
            )
            continue

        report_path = report_paths[image]
        try:
            report_dir.mkdir(parents=True, exist_ok=True)
            scan(image, report_path)
        except Exception as exc:  # pylint: disable=broad-except
            logger.error("Scan of %s failed: %s", image, exc)
            result.add_outcome(ScanOutcome(image=image, status=OutcomeStatus.FAILED, detail=str(exc)))
            continue

        logger.info("Report for %s written to %s", image, report_path)
        result.add_outcome(ScanOutcome(image=image, status=OutcomeStatus.SCANNED, report_path=report_path))

    return result
