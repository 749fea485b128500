"""Cooperative cancellation for insertion runs.

The pipeline checks the token immediately before every stage transition, and
long stages may check it between collaborator calls. Requesting cancellation
never interrupts a collaborator call in flight; the run stops at the next
check and still unwinds.
"""

from __future__ import annotations

import threading

from toolset_insertion.core.errors import InsertionCancelled


class CancellationToken:
    """Thread-safe cancellation flag.

    Example::

        token = CancellationToken()
        threading.Timer(600, token.cancel).start()
        pipeline.run(ctx)  # ctx.cancellation is token
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: str | None = None

    def cancel(self, reason: str | None = None) -> None:
        """Request cancellation. Idempotent; the first reason wins."""
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    @property
    def is_cancellation_requested(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def raise_if_cancellation_requested(self) -> None:
        """Raise ``InsertionCancelled`` if cancellation has been requested."""
        if self._event.is_set():
            raise InsertionCancelled(self._reason or "Insertion cancelled")


__all__ = ["CancellationToken"]
