"""Cooperative cancellation of periodic exports on SIGINT/SIGTERM."""

import logging
import signal
import time
from contextlib import contextmanager

from zotexon.errors import ExportCancelled

logger = logging.getLogger(__name__)


class CancellationToken:
    """Stop flag shared between a signal handler and the export loop.

    Cancelling only sets a flag. Work that blocks (HTTP requests, the wait
    between runs) runs inside ``interruptible()``; a signal that arrives there
    aborts it with ``ExportCancelled`` instead of letting it run to the end.
    Anything outside such a block, like writing the export file, finishes first.
    """

    def __init__(self):
        self._cancelled = False
        self._interruptible = False

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def cancel(self):
        self._cancelled = True

    def interrupt(self):
        """Cancel, aborting the current interruptible block if there is one."""
        self._cancelled = True
        if self._interruptible:
            raise ExportCancelled()

    def raise_if_cancelled(self):
        if self._cancelled:
            raise ExportCancelled()

    @contextmanager
    def interruptible(self):
        self.raise_if_cancelled()
        self._interruptible = True
        try:
            yield
        finally:
            self._interruptible = False

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds; return True if cancelled.

        A ``cancel()`` from another thread is only seen when the sleep ends;
        signals delivered to the main thread end it right away.
        """
        try:
            with self.interruptible():
                time.sleep(timeout)
        except ExportCancelled:
            return True
        return self._cancelled


@contextmanager
def cancel_on_signals(token: CancellationToken, signals=(signal.SIGINT, signal.SIGTERM)):
    """Route ``signals`` to ``token`` while the block runs.

    The first signal cancels the token. A second one restores the previous
    handlers and raises ``KeyboardInterrupt`` so a stuck process can still be
    killed.
    """
    previous = {}

    def _restore():
        for sig, handler in previous.items():
            signal.signal(sig, handler)

    def _handler(signum, frame):
        name = signal.Signals(signum).name
        if token.is_cancelled:
            logger.warning("Signal %s received again, aborting", name)
            _restore()
            raise KeyboardInterrupt
        logger.info("Signal %s received, cancelling...", name)
        token.interrupt()

    for sig in signals:
        previous[sig] = signal.signal(sig, _handler)
    try:
        yield token
    finally:
        _restore()
