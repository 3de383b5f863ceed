"""
Voicecue - speech-following scroll engine for teleprompters.

Infers where a speaker is in a known script from a live, noisy transcript
stream and scrolls the script smoothly so the next word to speak stays at
the reading point.
"""

__version__ = "0.1.0"

from .matcher import MatchCandidate, MatcherOptions, MatchResult, find_matches
from .motion import MotionController, MotionOptions, ScrollState
from .position_tracker import PositionTracker, TrackAction, TrackerOptions, TrackResult
from .script_parser import ReferenceIndex, build_index
from .server import WebServer
from .session import PromptSession, SessionOptions, TranscriptOutcome
from .speech_source import ReplaySource, SpeechSource, TranscriptEvent
from .viewport import HeadlessViewport, RemoteViewport

__all__ = [
    "ReferenceIndex",
    "build_index",
    "MatcherOptions",
    "MatchCandidate",
    "MatchResult",
    "find_matches",
    "PositionTracker",
    "TrackerOptions",
    "TrackAction",
    "TrackResult",
    "MotionController",
    "MotionOptions",
    "ScrollState",
    "PromptSession",
    "SessionOptions",
    "TranscriptOutcome",
    "SpeechSource",
    "ReplaySource",
    "TranscriptEvent",
    "HeadlessViewport",
    "RemoteViewport",
    "WebServer",
]
