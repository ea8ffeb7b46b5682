"""Fixed-rate repetition of a blocking task."""

import logging
import time
from typing import Callable

from zotexon.cancellation import CancellationToken
from zotexon.errors import ExportCancelled

logger = logging.getLogger(__name__)


def run_periodically(
    task: Callable[[], object],
    interval: float,
    cancel: CancellationToken,
    clock: Callable[[], float] = time.monotonic,
) -> int:
    """Run ``task`` now and then every ``interval`` seconds until ``cancel`` fires.

    Runs are spaced from the start of the previous run. When a run takes
    longer than ``interval`` the next one starts right away; missed ticks are
    not made up. A task aborted by ``ExportCancelled`` ends the loop quietly,
    any other exception ends it and propagates.

    Returns the number of completed runs.
    """
    if interval <= 0:
        raise ValueError(f"interval must be positive, got {interval}")

    runs = 0
    next_run = clock()
    while not cancel.is_cancelled:
        logger.info("Starting scheduled export")
        try:
            task()
        except ExportCancelled:
            logger.info("Scheduled export interrupted")
            break
        except Exception as e:
            logger.error("Aborting periodic export due to error: %s", e)
            raise
        runs += 1

        next_run = max(next_run + interval, clock())
        if cancel.wait(max(0.0, next_run - clock())):
            break

    logger.info("Cancellation requested, stopping periodic export")
    return runs
