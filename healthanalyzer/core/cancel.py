"""Caller-supplied cancellation and deadlines for store operations."""

import threading
import time
from typing import Optional

from .errors import CancellationError


class CancelToken:
    """
    Cancellation signal shared between a caller and an in-flight operation.

    A token fires when cancel() is called or when its timeout elapses,
    whichever comes first. Tokens are thread-safe and may be reused across
    several operations; once fired they stay fired.
    """

    def __init__(self, timeout: Optional[float] = None):
        """
        Args:
            timeout: Seconds from now after which the token fires (None for no deadline)
        """
        self._event = threading.Event()
        self._deadline = None
        if timeout is not None:
            self._deadline = time.monotonic() + timeout

    def cancel(self) -> None:
        """Fire the token."""
        self._event.set()

    @property
    def deadline(self) -> Optional[float]:
        """Monotonic deadline, or None."""
        return self._deadline

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._event.set()
            return True
        return False

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise CancellationError("operation cancelled")
