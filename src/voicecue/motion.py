# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Motion controller for smooth, speech-paced scrolling.

Velocity based rather than target chasing: each frame the viewport keeps
moving at a speed derived from the speaker's pace, and a smoothed
proportional correction nudges it back towards the offset of the confirmed
position. Bursts of confirmations are spread out through an interpolated
display position so the text never jumps.
"""

import asyncio
import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

logger = logging.getLogger(__name__)


class Viewport(Protocol):
    """Scrollable surface the controller writes offsets to.

    The content is assumed to carry leading and trailing padding of
    padding_ratio * client_height so the first and last words can reach the
    caret.
    """
    scroll_top: float

    @property
    def scroll_height(self) -> float: ...

    @property
    def client_height(self) -> float: ...


class PositionSource(Protocol):
    def get_confirmed_position(self) -> int: ...


class ScrollState(str, Enum):
    TRACKING = "tracking"
    HOLDING = "holding"
    STOPPED = "stopped"


StateCallback = Callable[[ScrollState], None]


@dataclass(frozen=True)
class MotionOptions:
    """Tuning for MotionController. Distances in pixels, times in seconds."""
    caret_percent: float = 33  # Where the next word sits, % of viewport height from top
    hold_timeout: float = 5.0  # Silence before switching to holding
    correction_gain: float = 1.5
    max_correction_speed: float = 200  # px/s
    sync_deadband: float = 3  # px of error ignored
    correction_smoothing: float = 3  # Rate for exponential smoothing of correction
    min_pace: float = 0.5  # words/s
    max_pace: float = 10  # words/s
    catch_up_multiplier: float = 3  # Base speed multiplier after a skip
    pace_multiplier: float = 1.5  # Display position lead over measured pace
    catch_up_gain: float = 3  # Proportional display catch-up rate
    skip_distance: int = 10  # Advances larger than this trigger catch-up
    catch_up_snap: int = 3  # Words the display position stays short of a skip
    padding_ratio: float = 0.5
    initial_pace: float = 2.5  # About 150 words per minute
    max_pace_gap: float = 5.0  # Longer gaps are pauses, not pace
    max_frame_dt: float = 0.1  # Longer frames are skipped
    frame_interval: float = 1 / 60


MIN_CARET_PERCENT = 10
MAX_CARET_PERCENT = 90


class MotionController:
    """
    Per-frame scroll driver.

    The only event-driven input is on_position_advanced(); everything else
    happens in tick(), which reads the confirmed position from the position
    source and writes one scroll offset to the viewport.

    When an asyncio loop is running, start() schedules tick() every
    frame_interval. Without a loop the host is expected to call tick()
    itself, e.g. from a render callback or a simulation.
    """

    def __init__(
        self,
        viewport: Viewport,
        position_source: PositionSource,
        total_words: int,
        options: MotionOptions | None = None,
        clock: Callable[[], float] = time.monotonic,
        on_state_change: StateCallback | None = None
    ) -> None:
        self.viewport = viewport
        self.position_source = position_source
        self.total_words: int = total_words
        self.options: MotionOptions = options or MotionOptions()
        self._clock = clock

        self.caret_percent: float = self._clamp_caret(self.options.caret_percent)

        self._callbacks: list[StateCallback] = []
        if on_state_change is not None:
            self._callbacks.append(on_state_change)

        self._state: ScrollState = ScrollState.STOPPED
        self._frame_task: asyncio.Task | None = None

        self.last_timestamp: float = 0.0
        self.is_catching_up: bool = False
        self.smoothed_correction_speed: float = 0.0

        self.speaking_pace: float = self.options.initial_pace
        self._last_position: int = 0
        self._last_position_time: float | None = None

        self.last_advance_time: float = 0.0
        self.display_position: float = 0.0

    # --- State ---

    @property
    def state(self) -> ScrollState:
        return self._state

    @property
    def is_tracking(self) -> bool:
        return self._state is ScrollState.TRACKING

    @property
    def is_running(self) -> bool:
        return self._frame_task is not None and not self._frame_task.done()

    def subscribe(self, callback: StateCallback) -> Callable[[], None]:
        """Register a state change callback. Returns a function that removes it."""
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    def _set_state(self, state: ScrollState) -> None:
        self._state = state
        logger.debug("Scroll state: %s", state.value)
        for callback in list(self._callbacks):
            callback(state)

    # --- Geometry ---

    @staticmethod
    def _clamp_caret(percent: float) -> float:
        return max(MIN_CARET_PERCENT, min(MAX_CARET_PERCENT, percent))

    def _max_scroll(self) -> float:
        return self.viewport.scroll_height - self.viewport.client_height

    def _content_height(self) -> float:
        padding: float = self.viewport.client_height * self.options.padding_ratio
        return self.viewport.scroll_height - 2 * padding

    def pixels_per_word(self) -> float:
        """Pixels scrolled per word of script (0 for an empty script)."""
        if self.total_words <= 0:
            return 0.0
        return self._content_height() / self.total_words

    def position_to_offset(self, word_index: float) -> float:
        """
        Scroll offset that puts a word at the caret.

        Args:
            word_index: Word position, fractional positions allowed

        Returns:
            Offset clamped to [0, max scroll]; 0 for a non-scrollable
            viewport or an empty script
        """
        max_scroll: float = self._max_scroll()
        if max_scroll <= 0 or self.total_words <= 0:
            return 0.0

        padding_top: float = self.viewport.client_height * self.options.padding_ratio
        word_in_doc: float = padding_top + (word_index / self.total_words) * self._content_height()
        caret_offset: float = (self.caret_percent / 100) * self.viewport.client_height
        return max(0.0, min(max_scroll, word_in_doc - caret_offset))

    # --- Pace ---

    def update_pace(self, position: int, timestamp: float) -> None:
        """Blend the pace of the latest advance into speaking_pace.

        Gaps of max_pace_gap or more are pauses and are not used as a pace
        sample. The blend is a slow 70/30 moving average.
        """
        if self._last_position_time is not None and position > self._last_position:
            time_delta: float = timestamp - self._last_position_time
            words_delta: int = position - self._last_position
            if 0 < time_delta < self.options.max_pace_gap:
                instant: float = words_delta / time_delta
                clamped: float = max(self.options.min_pace, min(self.options.max_pace, instant))
                self.speaking_pace = self.speaking_pace * 0.7 + clamped * 0.3

        self._last_position = position
        self._last_position_time = timestamp

    def calculate_base_speed(self) -> float:
        """Base scroll speed in px/s. Zero while holding."""
        if self._state is ScrollState.HOLDING:
            return 0.0
        return self.speaking_pace * self.pixels_per_word()

    # --- Lifecycle ---

    def start(self) -> None:
        now: float = self._clock()
        self.last_timestamp = now
        self.last_advance_time = now
        self._set_state(ScrollState.TRACKING)

        if self.is_running:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: host drives tick()
            return
        self._frame_task = loop.create_task(self._run())

    def stop(self) -> None:
        """Stop scrolling. The position source is left untouched."""
        if self._frame_task is not None:
            self._frame_task.cancel()
            self._frame_task = None
        self._set_state(ScrollState.STOPPED)

    def reset(self) -> None:
        """Stop and put the first word back at the caret."""
        self.stop()
        self.viewport.scroll_top = self.position_to_offset(0)
        self._last_position = 0
        self._last_position_time = None
        self.speaking_pace = self.options.initial_pace
        self.is_catching_up = False
        self.smoothed_correction_speed = 0.0
        self.display_position = 0.0

    def set_caret_percent(self, percent: float) -> None:
        """Move the caret. The correction term brings the text to it."""
        self.caret_percent = self._clamp_caret(percent)

    async def _run(self) -> None:
        try:
            while True:
                self.tick(self._clock())
                await asyncio.sleep(self.options.frame_interval)
        except asyncio.CancelledError:
            logger.debug("Frame loop cancelled")
            raise

    # --- Events ---

    def on_position_advanced(self, new_position: int, prev_position: int) -> None:
        """
        Notify the controller that the confirmed position moved forward.

        Updates the pace estimate, enters catch-up after a skip and resumes
        tracking if the controller was holding.

        Args:
            new_position: New confirmed position
            prev_position: Confirmed position before the advance
        """
        now: float = self._clock()
        self.update_pace(new_position, now)

        if new_position - prev_position > self.options.skip_distance:
            self.is_catching_up = True
            # Close most of the gap, leaving the rest to animate
            self.display_position = max(
                self.display_position,
                float(new_position - self.options.catch_up_snap)
            )
            logger.debug("Catch-up after skip %d -> %d", prev_position, new_position)

        self.last_advance_time = now
        if self._state is ScrollState.HOLDING:
            self._set_state(ScrollState.TRACKING)

    def tick(self, timestamp: float | None = None) -> None:
        """
        Advance the scroll by one frame.

        Args:
            timestamp: Frame time in seconds on the controller's clock
        """
        if timestamp is None:
            timestamp = self._clock()
        dt: float = timestamp - self.last_timestamp
        self.last_timestamp = timestamp

        # First frame or after a stall
        if dt > self.options.max_frame_dt or dt <= 0:
            return
        if self._state is ScrollState.STOPPED:
            return

        confirmed: int = self.position_source.get_confirmed_position()

        if self._state is ScrollState.TRACKING and timestamp - self.last_advance_time > self.options.hold_timeout:
            self._set_state(ScrollState.HOLDING)

        # Spread bursty confirmations into steady motion
        if confirmed > self.display_position:
            remaining: float = confirmed - self.display_position
            pace_advance: float = self.speaking_pace * self.options.pace_multiplier * dt
            catch_up_advance: float = remaining * self.options.catch_up_gain * dt
            self.display_position = min(
                float(confirmed),
                self.display_position + max(pace_advance, catch_up_advance)
            )
        else:
            self.display_position = float(confirmed)

        expected: float = self.position_to_offset(self.display_position)
        current: float = self.viewport.scroll_top
        error: float = expected - current

        base_speed: float = self.calculate_base_speed()
        if self.is_catching_up:
            base_speed *= self.options.catch_up_multiplier
            if abs(error) < self.options.sync_deadband * 2:
                self.is_catching_up = False
                logger.debug("Catch-up complete")

        target_correction: float = 0.0
        if abs(error) > self.options.sync_deadband:
            limit: float = self.options.max_correction_speed
            target_correction = max(-limit, min(limit, error * self.options.correction_gain))

        smoothing: float = 1 - math.exp(-self.options.correction_smoothing * dt)
        self.smoothed_correction_speed += (target_correction - self.smoothed_correction_speed) * smoothing

        speed: float = base_speed + self.smoothed_correction_speed
        self.viewport.scroll_top = max(0.0, min(self._max_scroll(), current + speed * dt))
