"""
Tests for the reference text index and word normalization.
"""

from voicecue.script_parser import (
    FILLER_WORDS,
    ReferenceIndex,
    build_index,
    filter_filler_words,
    is_filler_word,
    normalize_number,
    normalize_word,
    tokenize,
)


class TestNormalizeWord:
    """Tests for normalize_word."""

    def test_lowercases(self) -> None:
        assert normalize_word("Hello") == "hello"

    def test_strips_punctuation(self) -> None:
        assert normalize_word("world!") == "world"
        assert normalize_word("\"quoted,\"") == "quoted"
        assert normalize_word("don't") == "dont"

    def test_pure_punctuation_is_empty(self) -> None:
        assert normalize_word("---") == ""
        assert normalize_word("#") == ""


class TestNormalizeNumber:
    """Tests for single-word number normalization."""

    def test_single_word_numbers(self) -> None:
        assert normalize_number("7") == "seven"
        assert normalize_number("40") == "forty"
        assert normalize_number("0") == "zero"

    def test_one_hundred_and_one_thousand(self) -> None:
        assert normalize_number("100") == "hundred"
        assert normalize_number("1000") == "thousand"

    def test_multi_word_numbers_unchanged(self) -> None:
        """A number spoken as several words must stay one token."""
        assert normalize_number("21") == "21"
        assert normalize_number("1984") == "1984"

    def test_non_numbers_unchanged(self) -> None:
        assert normalize_number("apples") == "apples"
        assert normalize_number("3rd") == "3rd"


class TestFillerWords:
    """Tests for filler word handling."""

    def test_common_fillers(self) -> None:
        for word in ["um", "uh", "like", "actually", "basically", "so", "well"]:
            assert word in FILLER_WORDS
            assert is_filler_word(word)

    def test_filler_with_punctuation(self) -> None:
        assert is_filler_word("Um,")

    def test_stopwords_are_not_fillers(self) -> None:
        """Stopwords are needed for consecutive matching."""
        for word in ["the", "a", "to", "and", "of"]:
            assert not is_filler_word(word)

    def test_filter_keeps_order(self) -> None:
        assert filter_filler_words(["um", "the", "so", "quick", "uh", "fox"]) == ["the", "quick", "fox"]


class TestTokenize:
    """Tests for tokenize."""

    def test_basic(self) -> None:
        assert tokenize("The quick, brown fox.") == ["the", "quick", "brown", "fox"]

    def test_numbers_become_words(self) -> None:
        assert tokenize("I have 3 apples") == ["i", "have", "three", "apples"]

    def test_drops_empty_tokens(self) -> None:
        assert tokenize("Hello -- world") == ["hello", "world"]

    def test_empty(self) -> None:
        assert tokenize("") == []
        assert tokenize("   \n\t ") == []


class TestBuildIndex:
    """Tests for the reference index."""

    def test_words_and_indices(self) -> None:
        index: ReferenceIndex = build_index("Four score, and seven!")
        assert index.words == ("four", "score", "and", "seven")
        assert [t.index for t in index.tokens] == [0, 1, 2, 3]
        assert len(index) == 4

    def test_offsets_point_into_original_text(self) -> None:
        text: str = "Four score, and seven!"
        index: ReferenceIndex = build_index(text)
        token = index.tokens[1]
        assert token.raw == "score,"
        assert text[token.start_offset:token.end_offset] == "score,"

    def test_markup_tokens_skipped_but_offsets_kept(self) -> None:
        text: str = "# Title\n\n---\nHello there"
        index: ReferenceIndex = build_index(text)
        assert index.words == ("title", "hello", "there")
        hello = index.tokens[1]
        assert text[hello.start_offset:hello.end_offset] == "Hello"
        assert hello.index == 1

    def test_span(self) -> None:
        text: str = "Four score, and seven!"
        index: ReferenceIndex = build_index(text)
        start, end = index.span(1, 2)
        assert text[start:end] == "score, and"

    def test_span_clamps(self) -> None:
        text: str = "Four score, and seven!"
        index: ReferenceIndex = build_index(text)
        assert index.span(-5, 100) == (0, len(text))

    def test_empty_script(self) -> None:
        index: ReferenceIndex = build_index("")
        assert len(index) == 0
        assert index.words == ()
        assert index.span(0, 3) == (0, 0)

    def test_index_is_immutable(self) -> None:
        index: ReferenceIndex = build_index("one two")
        assert isinstance(index.tokens, tuple)

    def test_words_built_once(self) -> None:
        index: ReferenceIndex = build_index("Four score, and seven!")
        assert isinstance(index.words, tuple)
        assert index.words is index.words

    def test_words_derived_from_tokens(self) -> None:
        tokens = build_index("one two").tokens
        index: ReferenceIndex = ReferenceIndex("one two", tokens)
        assert index.words == ("one", "two")
        assert index == build_index("one two")
