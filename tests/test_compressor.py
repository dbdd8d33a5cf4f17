"""Tests for prompt compression."""

import pytest

from llm_gateway.compressor import (
    abbreviate,
    compress,
    compression_ratio,
    remove_articles,
    remove_filler_words,
    simplify_phrases,
    use_contractions,
)
from llm_gateway.models import CompressionLevel


class TestLevels:
    """What each level rewrites."""

    def test_low_only_normalizes_whitespace(self) -> None:
        text = "  Hello    world \n\n\n really the   end  "
        assert compress(text, "low") == "Hello world \n really the end"

    @pytest.mark.parametrize("text", [
        "Hello world",
        "Line one\nLine two",
        "I really just want the answer.\nThanks, very much!",
        "x",
    ])
    def test_low_leaves_normalized_text_unchanged(self, text: str) -> None:
        assert compress(text, "low") == text

    def test_medium_removes_fillers_and_phrases(self) -> None:
        text = "I really just want to know in order to decide"
        assert compress(text, CompressionLevel.MEDIUM) == "I want to know to decide"

    def test_medium_is_default(self) -> None:
        assert compress("It is very good") == "It is good"

    def test_high_applies_everything(self) -> None:
        assert compress("The cat is not on the mat", "high") == "The cat isn't on mat"

    def test_high_abbreviates(self) -> None:
        text = "Give me information about the number of users"
        assert compress(text, "high") == "Give me info about no. of users"

    def test_unknown_level_rejected(self) -> None:
        with pytest.raises(ValueError):
            compress("hello", "extreme")

    def test_empty_prompt(self) -> None:
        assert compress("", "high") == ""


class TestPasses:
    """Individual rewriting passes."""

    def test_filler_removal_is_word_bounded(self) -> None:
        assert remove_filler_words("justice is very simple") == "justice is simple"

    def test_phrase_keeps_leading_capital(self) -> None:
        assert simplify_phrases("Due to the fact that it rained, we stayed") == (
            "Because it rained, we stayed"
        )

    def test_articles_kept_at_line_start(self) -> None:
        assert remove_articles("The plan\nThe goal is a test") == "The plan\nThe goal is test"

    def test_contractions(self) -> None:
        assert use_contractions("We are sure it is not done") == "We're sure it isn't done"

    def test_abbreviations(self) -> None:
        assert abbreviate("with or without approximately") == "w/ or w/o approx"

    def test_newlines_preserved(self) -> None:
        text = "Line one is really long\nLine two"
        assert compress(text) == "Line one is long\nLine two"


class TestCompressionRatio:
    """Fraction of characters removed."""

    def test_half(self) -> None:
        assert compression_ratio("aaaa", "aa") == 0.5

    def test_empty_original(self) -> None:
        assert compression_ratio("", "") == 0.0

    def test_never_negative(self) -> None:
        assert compression_ratio("ab", "abcd") == 0.0

    def test_compression_shortens_verbose_prompt(self) -> None:
        original = (
            "I would really like you to take into consideration the information "
            "in order to make a decision at this point in time"
        )
        assert compression_ratio(original, compress(original, "high")) > 0.3
