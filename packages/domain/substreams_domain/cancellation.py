"""Cooperative cancellation for concurrent store reads.

Store iteration runs in worker threads, which cannot be interrupted. Tasks
check a shared CancellationToken between steps and stop without delivering
a result once it is cancelled.
"""

import threading


class CancellationToken:
    """Thread-safe cancellation flag.

    Example:
        token = CancellationToken()

        # In a task
        if token.is_cancelled():
            return None

        # From the coordinator
        token.cancel()
    """

    def __init__(self) -> None:
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        """Request cancellation of every task sharing this token."""
        self._cancelled.set()

    def is_cancelled(self) -> bool:
        return self._cancelled.is_set()

    def raise_if_cancelled(self) -> None:
        """Raise TaskCancelled if cancellation was requested."""
        if self._cancelled.is_set():
            raise TaskCancelled()


class TaskCancelled(Exception):
    """Raised inside a task to unwind after cancellation."""
