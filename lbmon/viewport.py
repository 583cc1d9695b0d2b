"""Tracks the width available to the trend line and announces changes.

The embedding surface either calls :meth:`ViewportTracker.notify` itself (the
pygame window does so on ``VIDEORESIZE``) or lets the tracker listen for
``SIGWINCH`` so a terminal resize re-measures the container.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import Callable

logger = logging.getLogger(__name__)

Listener = Callable[[int], None]


class ViewportTracker:
    def __init__(self, measure: Callable[[], int], initial_width: int | None = None) -> None:
        self._measure = measure
        self.width = max(1, int(initial_width if initial_width is not None else measure()))
        self._listeners: list[Listener] = []
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def attached(self) -> bool:
        return self._loop is not None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener* for width changes; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def attach(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Re-measure on SIGWINCH where the platform and loop allow it."""
        if self._loop is not None:
            return
        if not hasattr(signal, "SIGWINCH"):
            logger.debug("SIGWINCH unavailable; relying on explicit resize notifications")
            return
        loop = loop or asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGWINCH, self.notify)
        except (NotImplementedError, RuntimeError, ValueError) as exc:
            logger.debug("Cannot watch SIGWINCH (%s); relying on explicit notifications", exc)
            return
        self._loop = loop

    def notify(self, width: int | None = None) -> bool:
        """Publish a new width. Returns True if listeners were told about a change."""
        new_width = max(1, int(width if width is not None else self._measure()))
        if new_width == self.width:
            return False
        logger.debug("Viewport width %d -> %d", self.width, new_width)
        self.width = new_width
        for listener in list(self._listeners):
            listener(new_width)
        return True

    def detach(self) -> None:
        """Stop listening for resizes and drop every subscriber."""
        if self._loop is not None:
            self._loop.remove_signal_handler(signal.SIGWINCH)
            self._loop = None
        self._listeners.clear()
