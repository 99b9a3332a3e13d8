"""Fixed-interval readiness polling for external services."""

from __future__ import annotations

import logging
import subprocess
import time
from dataclasses import dataclass
from typing import Callable, Union

from .status import Readiness

logger = logging.getLogger(__name__)

Probe = Callable[[], Union[Readiness, bool]]


@dataclass
class PollState:
    """Track progress through one readiness wait."""

    max_attempts: int
    interval: float
    attempt: int = 0

    @property
    def exhausted(self) -> bool:
        return self.attempt >= self.max_attempts


def _probe_once(probe: Probe) -> bool:
    try:
        return bool(probe())
    except (OSError, subprocess.SubprocessError) as exc:
        logger.debug("Readiness probe raised %s; treating as not ready", exc)
        return False


def wait_until_ready(
    probe: Probe,
    max_attempts: int,
    interval: float,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """Call ``probe`` until it answers ready or ``max_attempts`` is used up.

    Sleeps ``interval`` seconds between attempts, never after the last one.
    A probe that raises ``OSError`` or ``SubprocessError`` counts as not ready.
    """

    state = PollState(max_attempts=max_attempts, interval=interval)
    while not state.exhausted:
        state.attempt += 1
        logger.debug("Readiness attempt %d/%d", state.attempt, state.max_attempts)
        if _probe_once(probe):
            logger.info("Service ready after %d attempt(s)", state.attempt)
            return True
        if state.exhausted:
            break
        sleep(state.interval)
    logger.warning("Service not ready after %d attempt(s)", state.attempt)
    return False
