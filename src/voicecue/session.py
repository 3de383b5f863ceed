# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Prompting session: the glue between a transcript stream and the display.

One PromptSession owns everything for one script: the reference index, the
position tracker and (when given a viewport) the motion controller. Each
transcript event runs matcher -> tracker synchronously and to completion, so
tracker state is never touched by two events at once.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from . import debug_log
from .matcher import MatcherOptions, MatchCandidate, MatchResult, build_speech_window, find_matches
from .motion import MotionController, MotionOptions, ScrollState, StateCallback, Viewport
from .position_tracker import PositionTracker, TrackAction, TrackerOptions, TrackResult
from .script_parser import ReferenceIndex, build_index

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = "1.1"


@dataclass(frozen=True)
class SessionOptions:
    """Options for every stage of the pipeline."""
    matcher: MatcherOptions = field(default_factory=MatcherOptions)
    tracker: TrackerOptions = field(default_factory=TrackerOptions)
    motion: MotionOptions = field(default_factory=MotionOptions)
    # Interim transcripts closer together than this are dropped; finals never are
    interim_interval: float = 0.15


@dataclass(frozen=True)
class HighlightSpan:
    """Span of script text to highlight after an advance."""
    position: int
    start_position: int
    start_offset: int
    end_offset: int


@dataclass(frozen=True)
class TranscriptOutcome:
    """What happened to one transcript event."""
    match: MatchResult
    track: TrackResult
    previous_position: int
    is_final: bool

    @property
    def advanced(self) -> bool:
        return self.track.action is TrackAction.ADVANCED

    @property
    def confidence_level(self) -> str:
        """'high' after an advance, 'medium' while exploring, otherwise 'low'."""
        if self.track.action is TrackAction.ADVANCED:
            return "high"
        if self.track.action is TrackAction.EXPLORING:
            return "medium"
        return "low"


HighlightCallback = Callable[[HighlightSpan], None]


class PromptSession:
    """
    Runs the tracking pipeline for one script.

    Without a viewport the session still tracks position (useful for
    replays and tests); with one it also drives a MotionController.
    """

    def __init__(
        self,
        script_text: str,
        viewport: Viewport | None = None,
        options: SessionOptions | None = None,
        clock: Callable[[], float] = time.monotonic
    ) -> None:
        self.options: SessionOptions = options or SessionOptions()
        self._clock = clock

        self.index: ReferenceIndex = build_index(script_text)
        self.tracker: PositionTracker = PositionTracker(self.options.tracker)
        self.motion: MotionController | None = None
        if viewport is not None:
            self.motion = MotionController(
                viewport,
                self.tracker,
                len(self.index),
                self.options.motion,
                clock=clock
            )

        self._highlight_callbacks: list[HighlightCallback] = []
        self._last_interim_time: float | None = None
        self.last_highlight: HighlightSpan | None = None

        logger.info("Session loaded: %d words", len(self.index))

    # --- Properties ---

    @property
    def confirmed_position(self) -> int:
        return self.tracker.confirmed_position

    @property
    def total_words(self) -> int:
        return len(self.index)

    @property
    def progress(self) -> float:
        """Fraction of the script confirmed, 0-1."""
        if self.total_words <= 1:
            return 0.0
        return min(1.0, self.confirmed_position / (self.total_words - 1))

    @property
    def state(self) -> ScrollState:
        return self.motion.state if self.motion else ScrollState.STOPPED

    # --- Listeners ---

    def on_highlight(self, callback: HighlightCallback) -> Callable[[], None]:
        """Register a highlight callback. Returns a function that removes it."""
        self._highlight_callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._highlight_callbacks:
                self._highlight_callbacks.remove(callback)

        return unsubscribe

    def on_state_change(self, callback: StateCallback) -> Callable[[], None]:
        """Register a scroll state callback (no-op without a viewport)."""
        if self.motion is None:
            return lambda: None
        return self.motion.subscribe(callback)

    # --- Transcript handling ---

    def _throttled(self, is_final: bool) -> bool:
        if is_final:
            return False
        now: float = self._clock()
        if (self._last_interim_time is not None
                and now - self._last_interim_time < self.options.interim_interval):
            return True
        self._last_interim_time = now
        return False

    def handle_transcript(self, text: str, is_final: bool = False) -> TranscriptOutcome | None:
        """
        Process one transcript event from the speech source.

        Interim and final events are matched identically; interim events are
        dropped when they arrive within interim_interval of the previous
        processed one.

        Args:
            text: Transcript text, best effort and possibly partial
            is_final: Whether the recognizer has finalized this text

        Returns:
            TranscriptOutcome, or None if the event was throttled
        """
        if self._throttled(is_final):
            return None

        previous: int = self.tracker.confirmed_position
        if debug_log.is_enabled():
            debug_log.log_transcript(text, is_final, build_speech_window(text, self.options.matcher))

        match: MatchResult = find_matches(text, self.index, previous, self.options.matcher)
        track: TrackResult = self.tracker.process_match(match.best_match)
        outcome = TranscriptOutcome(match=match, track=track, previous_position=previous, is_final=is_final)

        if track.action is TrackAction.ADVANCED:
            self._on_advanced(match.best_match, previous, track.confirmed_position)
        elif track.action is TrackAction.EXPLORING:
            debug_log.log_exploring(
                track.candidate_position or 0,
                track.consecutive_count or 0,
                track.required_count or 0
            )

        return outcome

    def _on_advanced(self, candidate: MatchCandidate | None, previous: int, position: int) -> None:
        if self.motion is not None:
            self.motion.on_position_advanced(position, previous)

        if candidate is not None:
            debug_log.log_position_change(
                previous, position, list(self.index.words[previous:position + 1]), candidate.combined_score
            )
            span = HighlightSpan(
                position=candidate.position,
                start_position=candidate.start_position,
                start_offset=candidate.start_offset,
                end_offset=candidate.end_offset
            )
            self.last_highlight = span
            for callback in list(self._highlight_callbacks):
                callback(span)

    # --- Control ---

    def start(self) -> None:
        """Start (or resume) scrolling. Position is kept."""
        if self.motion is not None:
            self.motion.start()

    def stop(self) -> None:
        """Stop scrolling. Position is kept so that start() resumes."""
        if self.motion is not None:
            self.motion.stop()

    def reset(self) -> None:
        """Back to the first word."""
        self.tracker.reset()
        if self.motion is not None:
            self.motion.reset()
        self._last_interim_time = None
        self.last_highlight = None
        logger.info("Session reset")

    def set_caret_percent(self, percent: float) -> None:
        if self.motion is not None:
            self.motion.set_caret_percent(percent)

    def snapshot(self) -> dict[str, Any]:
        """Export the pipeline state for debugging."""
        scroll: dict[str, Any] | None = None
        if self.motion is not None:
            scroll = {
                "state": self.motion.state.value,
                "is_tracking": self.motion.is_tracking,
                "is_catching_up": self.motion.is_catching_up,
                "speaking_pace": self.motion.speaking_pace,
                "caret_percent": self.motion.caret_percent,
                "display_position": self.motion.display_position,
                "current_scroll": self.motion.viewport.scroll_top,
            }
        return {
            "timestamp": datetime.now().isoformat(),
            "version": SNAPSHOT_VERSION,
            "position": {
                "confirmed": self.tracker.confirmed_position,
                "candidate": self.tracker.candidate_position,
                "consecutive_count": self.tracker.consecutive_count,
            },
            "scroll": scroll,
            "script": {
                "total_words": self.total_words,
                "progress": self.progress,
            },
        }
