"""
Position tracking module that decides when the speaker has moved on.

Keeps a single confirmed position (the floor) that only ever moves forward.
Nearby matches advance it immediately; matches further away must be
corroborated by a streak of consecutive matches before they are trusted, so
one repeated phrase elsewhere in the script cannot drag the display away.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum

from .matcher import MatchCandidate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrackerOptions:
    """Confirmation policy for PositionTracker."""
    confidence_threshold: float = 0.7  # Minimum combined_score to act on a candidate
    nearby_threshold: int = 10  # Distances up to this advance on a single match
    small_skip_consecutive: int = 4  # Streak required for skips up to large_skip_threshold
    large_skip_consecutive: int = 5  # Streak required beyond large_skip_threshold
    large_skip_threshold: int = 50
    consecutive_gap: int = 2  # Maximum words between one match's end and the next start


class TrackAction(str, Enum):
    """What a call to process_match did."""
    ADVANCED = "advanced"
    HOLD = "hold"
    EXPLORING = "exploring"


@dataclass(frozen=True)
class TrackResult:
    """Outcome of processing one candidate."""
    action: TrackAction
    confirmed_position: int
    # Only set while exploring a possible skip
    candidate_position: int | None = None
    consecutive_count: int | None = None
    required_count: int | None = None

    @property
    def advanced(self) -> bool:
        return self.action is TrackAction.ADVANCED


class PositionTracker:
    """
    Stateful, monotonic position tracker.

    Holds two positions: the confirmed position, which is stable and only
    moves forward, and the candidate position, which follows whatever skip
    is currently being explored. Exploring is not a persistent mode; it is
    only visible through the TrackResult of each call.
    """

    def __init__(self, options: TrackerOptions | None = None) -> None:
        self.options: TrackerOptions = options or TrackerOptions()

        self._confirmed_position: int = 0
        self._candidate_position: int = 0
        self._consecutive_count: int = 0
        self._last_match_end: int = -1

        self._lock = threading.Lock()

    @property
    def confirmed_position(self) -> int:
        """Stable floor position in words."""
        return self._confirmed_position

    @property
    def candidate_position(self) -> int:
        """Exploratory ceiling position in words."""
        return self._candidate_position

    @property
    def consecutive_count(self) -> int:
        """Length of the skip streak being explored (0 when none)."""
        return self._consecutive_count

    @property
    def scroll_boundary(self) -> int:
        """Furthest word the display may scroll to."""
        return self._confirmed_position

    def get_confirmed_position(self) -> int:
        """Position source interface used by the motion controller."""
        return self._confirmed_position

    def required_consecutive(self, distance: int) -> int:
        """Number of consecutive matches needed to accept a jump of `distance` words."""
        if distance <= self.options.nearby_threshold:
            return 1
        if distance <= self.options.large_skip_threshold:
            return self.options.small_skip_consecutive
        return self.options.large_skip_consecutive

    def is_consecutive_match(self, candidate: MatchCandidate) -> bool:
        """Check whether a candidate continues the previous match.

        A small gap is tolerated because filler-word filtering can break up
        an otherwise continuous utterance.
        """
        if self._last_match_end < 0:
            return False
        gap: int = candidate.start_position - self._last_match_end
        return 0 <= gap <= self.options.consecutive_gap

    def _reset_streak(self) -> None:
        self._consecutive_count = 0
        self._last_match_end = -1

    def _hold(self) -> TrackResult:
        return TrackResult(action=TrackAction.HOLD, confirmed_position=self._confirmed_position)

    def process_match(self, candidate: MatchCandidate | None) -> TrackResult:
        """
        Decide whether a candidate moves the confirmed position.

        Rules, in order:
        1. No candidate, or combined_score below the confidence threshold: hold
        2. Candidate at or behind the confirmed position: hold
        3. Required streak length depends on how far ahead the candidate is
        4. Consecutive candidates extend the streak, others restart it at 1
        5. A complete streak advances; an incomplete one is exploring

        Args:
            candidate: Best match from the matcher, or None

        Returns:
            TrackResult describing the action taken
        """
        with self._lock:
            if candidate is None:
                return self._hold()

            if candidate.combined_score < self.options.confidence_threshold:
                return self._hold()

            # Backward and lateral matches are re-reads, never rewinds
            if candidate.position <= self._confirmed_position:
                return self._hold()

            distance: int = candidate.position - self._confirmed_position
            required: int = self.required_consecutive(distance)

            if required <= 1:
                previous: int = self._confirmed_position
                self._confirmed_position = candidate.position
                self._candidate_position = candidate.position
                self._reset_streak()
                logger.debug("Advanced %d -> %d", previous, candidate.position)
                return TrackResult(action=TrackAction.ADVANCED, confirmed_position=self._confirmed_position)

            if self.is_consecutive_match(candidate):
                self._consecutive_count += 1
            else:
                self._consecutive_count = 1

            self._last_match_end = candidate.position
            self._candidate_position = candidate.position

            if self._consecutive_count >= required:
                previous = self._confirmed_position
                self._confirmed_position = candidate.position
                self._reset_streak()
                logger.info("Skip confirmed %d -> %d (distance %d)", previous, candidate.position, distance)
                return TrackResult(action=TrackAction.ADVANCED, confirmed_position=self._confirmed_position)

            logger.debug(
                "Exploring skip to %d (%d/%d)",
                candidate.position, self._consecutive_count, required
            )
            return TrackResult(
                action=TrackAction.EXPLORING,
                confirmed_position=self._confirmed_position,
                candidate_position=self._candidate_position,
                consecutive_count=self._consecutive_count,
                required_count=required
            )

    def reset(self) -> None:
        """Return to the start of the script."""
        with self._lock:
            self._confirmed_position = 0
            self._candidate_position = 0
            self._reset_streak()
