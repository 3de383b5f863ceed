"""
Base interface for speech sources.

A speech source turns audio (or a recording of what was said) into a stream
of transcript callbacks. Recognition itself happens outside this package:
the browser client is the live source, ReplaySource replays saved
transcripts.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass

logger = logging.getLogger(__name__)

TranscriptCallback = Callable[[str, bool], None]


@dataclass(frozen=True)
class TranscriptEvent:
    """One transcript delivered by a speech source."""

    text: str
    is_final: bool

    def __repr__(self) -> str:
        status: str = "final" if self.is_final else "interim"
        return f"TranscriptEvent({status}: '{self.text}')"


class SpeechSource(ABC):
    """Base interface for speech sources.

    Transcripts are delivered through on_transcript(text, is_final), given
    at construction. Nothing is delivered while stopped or paused.
    """

    def __init__(self, on_transcript: TranscriptCallback) -> None:
        self.on_transcript: TranscriptCallback = on_transcript
        self._running: bool = False
        self._paused: bool = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_paused(self) -> bool:
        return self._paused

    @abstractmethod
    def start(self) -> None:
        """Begin delivering transcripts."""

    @abstractmethod
    def stop(self) -> None:
        """Stop delivering transcripts."""

    def pause(self) -> None:
        self._paused = True

    def resume(self) -> None:
        self._paused = False

    def emit(self, text: str, is_final: bool) -> bool:
        """Deliver a transcript if running and not paused.

        Returns:
            True if the callback was called
        """
        if not self._running or self._paused:
            return False
        self.on_transcript(text, is_final)
        return True


def transcript_events(lines: Sequence[str], word_by_word: bool = True) -> Iterator[TranscriptEvent]:
    """
    Expand transcript lines into the events a recognizer would produce.

    In word-by-word mode each line grows one word at a time as interim
    results and then arrives once more as a final result. Otherwise each
    line is a single final result.
    """
    for line in lines:
        words: list[str] = line.split()
        if not words:
            continue
        if word_by_word:
            for count in range(1, len(words)):
                yield TranscriptEvent(" ".join(words[:count]), is_final=False)
        yield TranscriptEvent(" ".join(words), is_final=True)


class ReplaySource(SpeechSource):
    """
    Replays saved transcript lines as if they were being recognized live.

    Playback is driven by the caller: step() delivers the next event and
    play() delivers events until the replay ends, is paused or is stopped.
    A paused replay keeps its place; resume() and play() carry on from it.
    """

    def __init__(self, lines: Sequence[str], on_transcript: TranscriptCallback,
                 word_by_word: bool = True) -> None:
        super().__init__(on_transcript)
        self.events: list[TranscriptEvent] = list(transcript_events(lines, word_by_word))
        self._cursor: int = 0

    @property
    def finished(self) -> bool:
        return self._cursor >= len(self.events)

    @property
    def remaining(self) -> int:
        return len(self.events) - self._cursor

    def start(self) -> None:
        self._running = True
        self._paused = False
        logger.debug("Replay started (%d events)", len(self.events))

    def stop(self) -> None:
        self._running = False

    def rewind(self) -> None:
        self._cursor = 0

    def step(self) -> TranscriptEvent | None:
        """Deliver the next event. Returns it, or None if nothing was delivered."""
        if self.finished:
            return None
        event: TranscriptEvent = self.events[self._cursor]
        if not self.emit(event.text, event.is_final):
            return None
        self._cursor += 1
        return event

    def play(self) -> int:
        """Deliver events until finished, paused or stopped. Returns how many were delivered."""
        delivered: int = 0
        while self.step() is not None:
            delivered += 1
        return delivered
