# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Viewport implementations for the motion controller.

The motion controller only ever reads the viewport's dimensions and writes
one scroll offset per frame. Rendering happens elsewhere: in a browser for
RemoteViewport, nowhere at all for HeadlessViewport.
"""

import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)


class HeadlessViewport:
    """In-memory viewport for replays and tests.

    Every offset written is appended to `history` so callers can inspect
    the scroll trajectory afterwards.
    """

    def __init__(self, scroll_height: float = 3000.0, client_height: float = 1000.0,
                 scroll_top: float = 0.0, keep_history: bool = True) -> None:
        self.scroll_height: float = scroll_height
        self.client_height: float = client_height
        self._scroll_top: float = scroll_top
        self.keep_history: bool = keep_history
        self.history: list[float] = []

    @property
    def scroll_top(self) -> float:
        return self._scroll_top

    @scroll_top.setter
    def scroll_top(self, value: float) -> None:
        self._scroll_top = value
        if self.keep_history:
            self.history.append(value)

    @property
    def max_scroll(self) -> float:
        return max(0.0, self.scroll_height - self.client_height)

    def resize(self, scroll_height: float, client_height: float) -> None:
        self.scroll_height = scroll_height
        self.client_height = client_height


class RemoteViewport:
    """
    Viewport mirrored from a browser client.

    The client reports its dimensions (and, on request, its own scroll
    offset); every offset the controller writes is forwarded through
    `send`. Writes that do not change the whole-pixel offset are not sent,
    which keeps a 60 fps loop from flooding the socket while idle.
    """

    def __init__(self, send: Callable[[float], None],
                 scroll_height: float = 0.0, client_height: float = 0.0) -> None:
        self._send = send
        self.scroll_height: float = scroll_height
        self.client_height: float = client_height
        self._scroll_top: float = 0.0
        self._last_sent: int | None = None

    @property
    def scroll_top(self) -> float:
        return self._scroll_top

    @scroll_top.setter
    def scroll_top(self, value: float) -> None:
        self._scroll_top = value
        rounded: int = round(value)
        if rounded == self._last_sent:
            return
        self._last_sent = rounded
        self._send(value)

    def update_dimensions(self, scroll_height: float, client_height: float,
                          scroll_top: float | None = None) -> None:
        """Apply dimensions reported by the client.

        A reported scroll offset (e.g. after the user scrolled by hand)
        replaces the local one without being echoed back.
        """
        self.scroll_height = scroll_height
        self.client_height = client_height
        if scroll_top is not None:
            self._scroll_top = scroll_top
            self._last_sent = round(scroll_top)
        logger.debug("Viewport %.0fx%.0f (top %.0f)", scroll_height, client_height, self._scroll_top)
