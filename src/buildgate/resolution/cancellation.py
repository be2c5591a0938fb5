"""Cooperative cancellation for build resolution.

The deploy coordinator owns a CancellationToken and may cancel it at any
time, for example from a signal handler. Polling components only read it, at
the top of every loop iteration and right after every sleep.
"""

from __future__ import annotations

import structlog

logger = structlog.get_logger(__name__)


class CancellationToken:
    """A one-way cancelled flag shared between a deploy and its waits."""

    def __init__(self) -> None:
        self._cancelled = False
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        """Whether cancel() has been called."""
        return self._cancelled

    @property
    def reason(self) -> str | None:
        """Reason passed to the first cancel() call."""
        return self._reason

    def cancel(self, reason: str | None = None) -> None:
        """Ask every wait observing this token to finish up as soon as possible.

        Args:
            reason: Optional explanation, logged once
        """
        if self._cancelled:
            return
        self._cancelled = True
        self._reason = reason
        logger.info("build_resolution_cancelled", reason=reason)
