"""Restartable one-shot timer used to coalesce text edits into one commit."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class Debouncer:
    """Runs the most recently scheduled action once input has been quiet.

    Each :meth:`schedule` cancels whatever is pending and starts the delay
    again, so at most one action fires per quiet period.

    Args:
        delay: Quiet period in seconds.
        timer_factory: Callable with the ``threading.Timer`` signature; tests
            pass a fake to fire timers by hand.
    """

    def __init__(
        self,
        delay: float,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ) -> None:
        self.delay = delay
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._action: Optional[Callable[[], None]] = None
        self._generation = 0

    @property
    def pending(self) -> bool:
        return self._action is not None

    def schedule(self, action: Callable[[], None]) -> threading.Timer:
        """Replace any pending action with *action* and restart the delay."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            timer = self._timer_factory(self.delay, self._fire, args=(self._generation,))
            timer.daemon = True
            self._timer = timer
            self._action = action
            timer.start()
        return timer

    def _take(self, generation: Optional[int] = None) -> Optional[Callable[[], None]]:
        with self._lock:
            if self._action is None:
                return None
            if generation is not None and generation != self._generation:
                return None
            pending, self._action = self._action, None
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            return pending

    def _fire(self, generation: int) -> None:
        # A timer that lost a race with a newer schedule() must not run.
        pending = self._take(generation)
        if pending is not None:
            pending()

    def flush(self) -> bool:
        """Run the pending action now. Returns False if nothing was pending."""
        pending = self._take()
        if pending is None:
            return False
        pending()
        return True

    def cancel(self) -> None:
        """Drop the pending action without running it."""
        if self._take() is not None:
            logger.debug("Pending commit cancelled")
