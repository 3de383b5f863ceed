# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Stateless candidate matcher.

Scores positions in the reference text against the last few spoken words,
combining fuzzy text similarity with distance from the current position.
Nothing is remembered between calls: identical inputs always give identical
results.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from rapidfuzz import fuzz

from .script_parser import ReferenceIndex, filter_filler_words, normalize_number, normalize_word, tokenize

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatcherOptions:
    """Search configuration for find_matches."""
    radius: int = 50  # Words searched either side of the current position
    min_consecutive: int = 2  # Minimum window length; one word never matches
    window_size: int = 3  # Trailing spoken words used for matching
    distance_weight: float = 0.3  # How strongly proximity beats similarity (0-1)
    threshold: float = 0.3  # Maximum per-word fuzzy distance (0 = identical)


@dataclass(frozen=True)
class MatchCandidate:
    """A position in the script where the speech window matched."""
    position: int  # End word index of the match
    start_position: int  # Start word index of the match
    match_count: int  # Number of words matched
    combined_score: float  # Ranking score, 0-1, higher is better
    start_offset: int = 0  # Character offset for highlighting start
    end_offset: int = 0  # Character offset for highlighting end
    match_quality: float = 0.0  # Text similarity alone, 0-1
    distance: int = 0  # Words between match end and current position


@dataclass(frozen=True)
class MatchResult:
    """All candidates for one speech window, best first."""
    candidates: list[MatchCandidate] = field(default_factory=list)

    @property
    def best_match(self) -> MatchCandidate | None:
        """Highest-scoring candidate, or None."""
        return self.candidates[0] if self.candidates else None


NO_MATCH: MatchResult = MatchResult()


def build_speech_window(speech: str | Sequence[str], options: MatcherOptions | None = None) -> list[str]:
    """Turn a transcript into the window of words used for matching.

    Args:
        speech: Raw transcript text, or a sequence of spoken words
        options: Matcher options (window_size is used)

    Returns:
        Up to window_size normalized, filler-free words (most recent last)
    """
    options = options or MatcherOptions()
    if isinstance(speech, str):
        words: list[str] = tokenize(speech)
    else:
        words = [normalize_number(normalize_word(w)) for w in speech]
        words = [w for w in words if w]
    words = filter_filler_words(words)
    if options.window_size <= 0:
        return []
    return words[-options.window_size:]


def word_distance(spoken: str, script: str) -> float:
    """Fuzzy distance between two normalized words (0 = identical, 1 = unrelated)."""
    if spoken == script:
        return 0.0
    return 1.0 - fuzz.ratio(spoken, script) / 100.0


def _distance_penalty(distance: int, radius: int) -> float:
    """0 at the current position, rising to 1 at the edge of the radius."""
    if radius <= 0:
        return 0.0 if distance == 0 else 1.0
    return min(1.0, distance / radius)


def find_matches(
    speech: str | Sequence[str],
    index: ReferenceIndex,
    current_position: int,
    options: MatcherOptions | None = None
) -> MatchResult:
    """
    Find where the speech window matches near the current position.

    Every word of the window must fuzzily match the script word at the
    consecutive position; partial windows are rejected. Each full match is
    scored as

        match_quality   = 1 - mean word distance
        distance_penalty = min(1, |end - current| / radius)
        combined_score  = match_quality * (1 - distance_weight * distance_penalty)

    so an equally good match further away always ranks lower.

    Args:
        speech: Transcript text or spoken words
        index: Reference index of the script
        current_position: Current confirmed word position
        options: Search configuration

    Returns:
        MatchResult with candidates sorted best first
    """
    options = options or MatcherOptions()

    window: list[str] = build_speech_window(speech, options)
    if len(window) < max(1, options.min_consecutive):
        return NO_MATCH

    total: int = len(index)
    if total == 0:
        return NO_MATCH

    current: int = max(0, min(current_position, total - 1))
    search_start: int = max(0, current - options.radius)
    search_end: int = min(total, current + options.radius)
    last_start: int = search_end - len(window)
    if last_start < search_start:
        return NO_MATCH

    # Distance of every window word against every script word in range,
    # computed once and shared by all start positions
    words: tuple[str, ...] = index.words
    distances: list[dict[int, float]] = []
    for offset, spoken in enumerate(window):
        row: dict[int, float] = {}
        for pos in range(search_start + offset, last_start + offset + 1):
            row[pos] = word_distance(spoken, words[pos])
        distances.append(row)

    candidates: list[MatchCandidate] = []
    for start in range(search_start, last_start + 1):
        total_distance: float = 0.0
        matched: bool = True
        for offset in range(len(window)):
            d: float = distances[offset][start + offset]
            if d > options.threshold:
                matched = False
                break
            total_distance += d
        if not matched:
            continue

        end: int = start + len(window) - 1
        match_quality: float = 1.0 - total_distance / len(window)
        distance: int = abs(end - current)
        penalty: float = _distance_penalty(distance, options.radius)
        combined: float = match_quality * (1.0 - options.distance_weight * penalty)
        start_offset, end_offset = index.span(start, end)

        candidates.append(MatchCandidate(
            position=end,
            start_position=start,
            match_count=len(window),
            combined_score=combined,
            start_offset=start_offset,
            end_offset=end_offset,
            match_quality=match_quality,
            distance=distance
        ))

    # Stable sort keeps earlier positions first on exact ties
    candidates.sort(key=lambda c: c.combined_score, reverse=True)

    if candidates:
        best: MatchCandidate = candidates[0]
        logger.debug(
            "Matched %r at %d-%d (score %.3f, %d candidates)",
            ' '.join(window), best.start_position, best.position,
            best.combined_score, len(candidates)
        )
    return MatchResult(candidates=candidates)
