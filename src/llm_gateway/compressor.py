"""
llm-gateway: Prompt compression.

Rewrites prompts to use fewer tokens before they are sent to a backend.
Pure functions, no state.

Levels:
- low: whitespace normalization only
- medium: low + filler-word removal + verbose-phrase simplification
- high: medium + article removal + contractions + abbreviations

Substitution tables are applied in a fixed order (phrases, then contractions,
then abbreviations) so later passes never re-expand earlier output.
"""

from __future__ import annotations

import re
from collections.abc import Callable

from llm_gateway.models import CompressionLevel

FILLER_WORDS: tuple[str, ...] = (
    "very", "really", "quite", "rather", "somewhat", "fairly",
    "just", "actually", "basically", "literally", "honestly",
    "simply", "clearly", "obviously", "essentially", "particularly",
)

PHRASE_REPLACEMENTS: tuple[tuple[str, str], ...] = (
    ("in order to", "to"),
    ("due to the fact that", "because"),
    ("at this point in time", "now"),
    ("for the purpose of", "to"),
    ("in the event that", "if"),
    ("a large number of", "many"),
    ("a small number of", "few"),
    ("on a regular basis", "regularly"),
    ("in spite of", "despite"),
    ("take into consideration", "consider"),
    ("make a decision", "decide"),
    ("give an answer", "answer"),
    ("have the ability to", "can"),
    ("in the near future", "soon"),
    ("at the present time", "now"),
)

CONTRACTIONS: tuple[tuple[str, str], ...] = (
    ("do not", "don't"),
    ("does not", "doesn't"),
    ("did not", "didn't"),
    ("will not", "won't"),
    ("would not", "wouldn't"),
    ("should not", "shouldn't"),
    ("could not", "couldn't"),
    ("cannot", "can't"),
    ("are not", "aren't"),
    ("is not", "isn't"),
    ("was not", "wasn't"),
    ("were not", "weren't"),
    ("have not", "haven't"),
    ("has not", "hasn't"),
    ("had not", "hadn't"),
    ("I am", "I'm"),
    ("you are", "you're"),
    ("he is", "he's"),
    ("she is", "she's"),
    ("it is", "it's"),
    ("we are", "we're"),
    ("they are", "they're"),
    ("I have", "I've"),
    ("you have", "you've"),
    ("we have", "we've"),
    ("they have", "they've"),
    ("I will", "I'll"),
    ("you will", "you'll"),
    ("he will", "he'll"),
    ("she will", "she'll"),
    ("we will", "we'll"),
    ("they will", "they'll"),
    ("I would", "I'd"),
    ("you would", "you'd"),
    ("he would", "he'd"),
    ("she would", "she'd"),
    ("we would", "we'd"),
    ("they would", "they'd"),
)

ABBREVIATIONS: tuple[tuple[str, str], ...] = (
    ("approximately", "approx"),
    ("regarding", "re"),
    ("information", "info"),
    ("example", "e.g."),
    ("because", "bc"),
    ("without", "w/o"),
    ("with", "w/"),
    ("between", "btw"),
    ("through", "thru"),
    ("number", "no."),
    ("versus", "vs"),
)

_INLINE_SPACE = re.compile(r"[^\S\n]+")
_BLANK_LINES = re.compile(r"\n\s*\n+")
_SPACE_AROUND_NEWLINE = re.compile(r" ?\n ?")
_SPACE_BEFORE_PUNCT = re.compile(r" +([,.;:!?])")
_FILLERS = re.compile(r"\b(?:" + "|".join(FILLER_WORDS) + r")\b", re.IGNORECASE)
_ARTICLES = re.compile(r"(?<=\S)[^\S\n]+(?:a|an|the)[^\S\n]+(?=\S)", re.IGNORECASE)


def _compile_table(
    table: tuple[tuple[str, str], ...],
) -> list[tuple[re.Pattern[str], str]]:
    # Longest phrases first so "at the present time" wins over any shorter overlap
    ordered = sorted(table, key=lambda pair: len(pair[0]), reverse=True)
    return [
        (re.compile(r"\b" + re.escape(phrase) + r"\b", re.IGNORECASE), replacement)
        for phrase, replacement in ordered
    ]


_PHRASE_PATTERNS = _compile_table(PHRASE_REPLACEMENTS)
_CONTRACTION_PATTERNS = [
    (re.compile(r"\b" + re.escape(phrase) + r"\b", re.IGNORECASE), replacement)
    for phrase, replacement in CONTRACTIONS
]
_ABBREVIATION_PATTERNS = [
    (re.compile(r"\b" + re.escape(word) + r"\b", re.IGNORECASE), replacement)
    for word, replacement in ABBREVIATIONS
]


def _keep_case(replacement: str) -> Callable[[re.Match[str]], str]:
    def _sub(match: re.Match[str]) -> str:
        if match.group(0)[:1].isupper() and replacement[:1].islower():
            return replacement[:1].upper() + replacement[1:]
        return replacement

    return _sub


def _apply(text: str, patterns: list[tuple[re.Pattern[str], str]]) -> str:
    for pattern, replacement in patterns:
        text = pattern.sub(_keep_case(replacement), text)
    return text


def normalize_whitespace(text: str) -> str:
    """Collapse inline whitespace and blank lines, then trim."""
    text = _INLINE_SPACE.sub(" ", text)
    text = _BLANK_LINES.sub("\n", text)
    return text.strip()


def _tidy(text: str) -> str:
    text = normalize_whitespace(text)
    text = _SPACE_AROUND_NEWLINE.sub("\n", text)
    return _SPACE_BEFORE_PUNCT.sub(r"\1", text)


def remove_filler_words(text: str) -> str:
    return _tidy(_FILLERS.sub("", text))


def simplify_phrases(text: str) -> str:
    return _tidy(_apply(text, _PHRASE_PATTERNS))


def remove_articles(text: str) -> str:
    """Drop a/an/the when surrounded by whitespace (never at the start of a line)."""
    return _tidy(_ARTICLES.sub(" ", text))


def use_contractions(text: str) -> str:
    return _apply(text, _CONTRACTION_PATTERNS)


def abbreviate(text: str) -> str:
    return _apply(text, _ABBREVIATION_PATTERNS)


def compress(text: str, level: CompressionLevel | str = CompressionLevel.MEDIUM) -> str:
    """Compress a prompt.

    Args:
        text: The prompt text.
        level: "low", "medium", or "high".

    Returns:
        The compressed prompt.

    Raises:
        ValueError: If the level is unknown.
    """
    level = CompressionLevel(level)

    compressed = normalize_whitespace(text)
    if level is CompressionLevel.LOW:
        return compressed

    compressed = remove_filler_words(compressed)
    compressed = simplify_phrases(compressed)
    if level is CompressionLevel.MEDIUM:
        return compressed

    compressed = remove_articles(compressed)
    compressed = use_contractions(compressed)
    compressed = abbreviate(compressed)
    return _tidy(compressed)


def compression_ratio(original: str, compressed: str) -> float:
    """Fraction of characters removed, clamped to [0, 1] (0.25 = 25% shorter)."""
    if not original:
        return 0.0
    reduction = (len(original) - len(compressed)) / len(original)
    return max(0.0, min(1.0, reduction))
