# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Script parsing module that builds the reference text index.

The index is an ordered list of normalized words, each remembering where it
came from in the original script text so the matched span can be highlighted
by whatever renders the script.

Speech is normalized with the same rules (plus filler-word removal) so the
matcher compares like with like.
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from num2words import num2words

# Speech artifacts dropped from the speech window before matching.
# Stopwords ("the", "to", "a") stay in; consecutive matching uses them.
FILLER_WORDS: frozenset[str] = frozenset([
    'um', 'umm', 'uh', 'uhh', 'er', 'err', 'ah', 'ahh', 'eh', 'hm', 'hmm',
    'mm', 'mmm', 'mhm',
    'like', 'actually', 'basically', 'so', 'well',
])

_INTEGER: re.Pattern[str] = re.compile(r'^\d+$')
_TOKEN: re.Pattern[str] = re.compile(r'\S+')


@dataclass(frozen=True)
class ScriptToken:
    """A single word of the reference text."""
    text: str  # Normalized form used for matching
    index: int  # Position in the token list
    start_offset: int  # Character offset of the token in the original text
    end_offset: int  # Offset one past the token's last character
    raw: str = ""  # Token as written in the script

    def __repr__(self) -> str:
        return f"ScriptToken({self.index}: '{self.text}' [{self.start_offset}:{self.end_offset}])"


@dataclass(frozen=True)
class ReferenceIndex:
    """Immutable, ordered index of the words in a script."""
    text: str
    tokens: tuple[ScriptToken, ...] = field(default_factory=tuple)
    # Normalized words in script order, built once
    words: tuple[str, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "words", tuple(token.text for token in self.tokens))

    def __len__(self) -> int:
        return len(self.tokens)

    def span(self, start: int, end: int) -> tuple[int, int]:
        """Character offsets covering tokens start..end (inclusive).

        Indices are clamped to the index; an empty index gives (0, 0).
        """
        if not self.tokens:
            return 0, 0
        last: int = len(self.tokens) - 1
        start = max(0, min(start, last))
        end = max(start, min(end, last))
        return self.tokens[start].start_offset, self.tokens[end].end_offset


def normalize_word(word: str) -> str:
    """Normalize a word for matching (lowercase, strip punctuation).

    This is used for comparing spoken words to script words.
    """
    return re.sub(r'[^\w\s]', '', word.lower()).strip()


def normalize_number(word: str) -> str:
    """Replace a bare integer with its spoken form when that is one word.

    "7" -> "seven", "40" -> "forty", "100" -> "hundred". Numbers whose
    spoken form needs several words ("21" -> "twenty one") are left alone,
    since one script token must stay one word for position tracking.
    """
    if not _INTEGER.match(word):
        return word
    spoken: list[str] = num2words(int(word)).replace('-', ' ').replace(',', '').split()
    if len(spoken) == 1:
        return spoken[0]
    if len(spoken) == 2 and spoken[0] == 'one':
        return spoken[1]
    return word


def is_filler_word(word: str) -> bool:
    """Check if a word is a common filler word that can be skipped."""
    return normalize_word(word) in FILLER_WORDS


def filter_filler_words(words: Iterable[str]) -> list[str]:
    """Drop filler words, keeping everything else in order."""
    return [w for w in words if not is_filler_word(w)]


def tokenize(text: str) -> list[str]:
    """Split text into normalized words."""
    words: list[str] = []
    for part in text.split():
        normalized: str = normalize_number(normalize_word(part))
        if normalized:
            words.append(normalized)
    return words


def build_index(script_text: str) -> ReferenceIndex:
    """Build the reference index for a script.

    Tokens that normalize to nothing (pure punctuation, Markdown markers
    like "#" or "---") are left out of the index but their text still
    occupies its place in the original, so offsets stay correct.

    Args:
        script_text: The full script text

    Returns:
        ReferenceIndex over the script's speakable words
    """
    tokens: list[ScriptToken] = []
    for match in _TOKEN.finditer(script_text):
        raw: str = match.group(0)
        normalized: str = normalize_number(normalize_word(raw))
        if not normalized:
            continue
        tokens.append(ScriptToken(
            text=normalized,
            index=len(tokens),
            start_offset=match.start(),
            end_offset=match.end(),
            raw=raw
        ))
    return ReferenceIndex(text=script_text, tokens=tuple(tokens))
