"""Cooperative cancellation for long-running validation passes."""

import logging
import threading

from imodval.errors import CheckCancelled

logger = logging.getLogger(__name__)

__all__ = ["CancellationToken"]


class CancellationToken:
    """Flag polled at defined points (cursor steps, network segments).

    ``cancel()`` may be called from another thread, e.g. a UI; the
    processing thread only polls it.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        if not self._event.is_set():
            logger.info("Cancellation requested")
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """Raise CheckCancelled if cancel() was called."""
        if self._event.is_set():
            raise CheckCancelled("Validation run was cancelled")
