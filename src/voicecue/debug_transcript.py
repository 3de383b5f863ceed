# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Debug tool for replaying a transcript through the tracking pipeline.

This CLI tool takes a transcript file and a script file, replays the
transcript through a PromptSession on simulated time, and outputs detailed
tracking information (advances, skips being explored, holds) to help debug
tracking issues.
"""

import argparse
import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Literal, TextIO

from .position_tracker import TrackAction
from .session import PromptSession, SessionOptions, TranscriptOutcome
from .speech_source import ReplaySource
from .viewport import HeadlessViewport

EventType = Literal["SKIP", "advance", "exploring", "hold"]

# Simulated time between transcript events and between frames
EVENT_INTERVAL: float = 0.4
FRAME_INTERVAL: float = 1 / 60


@dataclass
class ReplayEvent:
    """A single tracking event during transcript replay."""
    transcript_line: int
    transcript: str
    is_final: bool
    script_index: int
    script_word: str
    event_type: EventType
    details: str = ""


class SimulatedClock:
    """Clock that only moves when told to."""

    def __init__(self, start: float = 0.0) -> None:
        self.now: float = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def load_transcript(path: Path) -> list[str]:
    """Load transcript file and extract transcript lines.

    Filters out metadata lines (starting with '===').
    Returns list of transcript text lines.
    """
    lines: list[str] = []
    with open(path, encoding='utf-8') as f:
        for line in f:
            stripped_line: str = line.strip()
            # Skip metadata lines and empty lines
            if stripped_line.startswith('===') or not stripped_line:
                continue
            lines.append(stripped_line)
    return lines


def load_script(path: Path) -> str:
    """Load script file content."""
    with open(path, encoding='utf-8') as f:
        return f.read()


def _classify(outcome: TranscriptOutcome, nearby_threshold: int) -> EventType:
    if outcome.track.action is TrackAction.ADVANCED:
        if outcome.track.confirmed_position - outcome.previous_position > nearby_threshold:
            return "SKIP"
        return "advance"
    if outcome.track.action is TrackAction.EXPLORING:
        return "exploring"
    return "hold"


def _word_at(session: PromptSession, index: int) -> str:
    words: tuple[str, ...] = session.index.words
    return words[index] if 0 <= index < len(words) else "<END>"


def _run_frames(session: PromptSession, clock: SimulatedClock, duration: float) -> None:
    """Let simulated time pass, ticking the motion controller every frame."""
    elapsed: float = 0.0
    while elapsed < duration:
        clock.advance(FRAME_INTERVAL)
        elapsed += FRAME_INTERVAL
        if session.motion is not None:
            session.motion.tick(clock.now)


def replay_transcript(
    transcript_lines: list[str],
    script_text: str,
    output: TextIO,
    verbose: bool = False,
    word_by_word: bool = False,
    options: SessionOptions | None = None
) -> list[ReplayEvent]:
    """Replay transcript through a session and log events.

    Args:
        transcript_lines: Lines of transcript text
        script_text: The script content
        output: File handle to write log output
        verbose: If True, log every event. If False, only skips and exploring.
        word_by_word: Deliver each line as growing interim results first
        options: Pipeline options (defaults if None)

    Returns:
        List of all replay events
    """
    clock = SimulatedClock()
    viewport = HeadlessViewport(keep_history=False)
    session = PromptSession(script_text, viewport=viewport, options=options, clock=clock)
    nearby: int = session.tracker.options.nearby_threshold
    events: list[ReplayEvent] = []

    # Write header
    mode: str = " (WORD-BY-WORD MODE)" if word_by_word else ""
    output.write("=" * 80 + "\n")
    output.write(f"TRANSCRIPT DEBUG LOG{mode}\n")
    output.write(f"Generated: {datetime.now().isoformat()}\n")
    output.write(f"Script words: {session.total_words}\n")
    output.write(f"Transcript lines: {len(transcript_lines)}\n")
    output.write("=" * 80 + "\n\n")

    # Write script words reference
    output.write("SCRIPT WORDS:\n")
    output.write("-" * 40 + "\n")
    for i, word in enumerate(session.index.words):
        output.write(f"  [{i:4d}] {word}\n")
    output.write("\n" + "=" * 80 + "\n\n")

    output.write("TRACKING LOG:\n")
    output.write("-" * 40 + "\n")

    line_num: int = 0

    def on_transcript(text: str, is_final: bool) -> None:
        outcome: TranscriptOutcome | None = session.handle_transcript(text, is_final)
        if outcome is None:
            return

        event_type: EventType = _classify(outcome, nearby)
        position_before: int = outcome.previous_position
        position_after: int = outcome.track.confirmed_position
        details: str = f"pos: {position_before} -> {position_after}"
        if outcome.match.best_match is not None:
            details += f" score: {outcome.match.best_match.combined_score:.3f}"

        if event_type == "SKIP":
            output.write(f"  *** SKIP CONFIRMED at \"{text[-40:]}\" ***\n")
            output.write(f"      Position: {position_before} -> {position_after}\n")
            output.write(f"      Script word at new position: \"{_word_at(session, position_after)}\"\n")
        elif event_type == "exploring":
            output.write(
                f"    exploring {outcome.track.candidate_position} "
                f"({outcome.track.consecutive_count}/{outcome.track.required_count}) "
                f"at \"{text[-40:]}\"\n"
            )
        elif verbose:
            marker: str = "*" if event_type == "advance" else " "
            output.write(
                f"  {marker} [{position_after:4d}] \"{_word_at(session, position_after)}\" "
                f"<- \"{text[-40:]}\" ({event_type})\n"
            )

        events.append(ReplayEvent(
            transcript_line=line_num,
            transcript=text,
            is_final=is_final,
            script_index=position_after,
            script_word=_word_at(session, position_after),
            event_type=event_type,
            details=details
        ))

    session.start()
    for line_num, line in enumerate(transcript_lines, start=1):
        source = ReplaySource([line], on_transcript, word_by_word=word_by_word)
        if not source.events:
            continue
        line_display: str = f"--- Line {line_num}: \"{line[:60]}"
        line_display += '...' if len(line) > 60 else ''
        line_display += "\" ---"
        output.write(f"\n{line_display}\n")

        source.start()
        while source.step() is not None:
            _run_frames(session, clock, EVENT_INTERVAL)
        source.stop()

    # Write summary
    output.write("\n" + "=" * 80 + "\n")
    output.write("SUMMARY:\n")
    output.write("-" * 40 + "\n")

    advances: list[ReplayEvent] = [e for e in events if e.event_type == "advance"]
    skips: list[ReplayEvent] = [e for e in events if e.event_type == "SKIP"]
    exploring: list[ReplayEvent] = [e for e in events if e.event_type == "exploring"]
    holds: list[ReplayEvent] = [e for e in events if e.event_type == "hold"]

    output.write(f"Total events processed: {len(events)}\n")
    output.write(f"Final position: {session.confirmed_position} / {session.total_words}\n")
    output.write(f"Advances: {len(advances)}\n")
    output.write(f"Skips: {len(skips)}\n")
    output.write(f"Exploring: {len(exploring)}\n")
    output.write(f"Holds: {len(holds)}\n")
    if session.motion is not None:
        output.write(f"Speaking pace: {session.motion.speaking_pace:.2f} words/s\n")
        output.write(f"Final scroll offset: {viewport.scroll_top:.0f}px\n")

    if skips:
        output.write("\nSkip events:\n")
        for e in skips:
            output.write(
                f"  Line {e.transcript_line}: -> position {e.script_index} "
                f"\"{e.script_word}\"\n"
            )

    session.stop()
    return events


def main() -> None:
    """CLI entry point for debug transcript tool."""
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="Debug transcript tracking by replaying a transcript through the pipeline"
    )

    parser.add_argument(
        "transcript",
        type=Path,
        help="Path to transcript file"
    )

    parser.add_argument(
        "script",
        type=Path,
        help="Path to script file"
    )

    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        help="Output log file path (default: stdout)"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log every event, not just skips and exploring"
    )

    parser.add_argument(
        "-w", "--word-by-word",
        action="store_true",
        help="Process transcript word-by-word (simulates interim results)"
    )

    args: argparse.Namespace = parser.parse_args()

    # Validate inputs
    if not args.transcript.exists():
        print(
            f"Error: Transcript file not found: {args.transcript}", file=sys.stderr)
        sys.exit(1)

    if not args.script.exists():
        print(f"Error: Script file not found: {args.script}", file=sys.stderr)
        sys.exit(1)

    # Load files
    try:
        transcript_lines: list[str] = load_transcript(args.transcript)
        script_text: str = load_script(args.script)
    except (OSError, UnicodeDecodeError) as e:
        print(f"Error loading files: {e}", file=sys.stderr)
        sys.exit(1)

    if not transcript_lines:
        print("Error: No transcript lines found", file=sys.stderr)
        sys.exit(1)

    # Run replay
    if args.output:
        with open(args.output, 'w', encoding='utf-8') as f:
            replay_transcript(
                transcript_lines, script_text, f, args.verbose, args.word_by_word
            )
        print(f"Debug log written to: {args.output}")
    else:
        replay_transcript(
            transcript_lines, script_text, sys.stdout, args.verbose, args.word_by_word
        )


if __name__ == "__main__":
    main()
