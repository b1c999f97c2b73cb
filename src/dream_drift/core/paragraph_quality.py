"""Deterministic quality checks for generated story paragraphs."""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Final

MIN_WORDS: Final[int] = 50
MAX_WORDS: Final[int] = 150
MIN_SENTENCES: Final[int] = 2
MIN_CONTINUITY_OVERLAP: Final[int] = 2

ACTION_TERMS: Final[tuple[str, ...]] = (
    "walk",
    "run",
    "sit",
    "stand",
    "open",
    "close",
    "touch",
    "grab",
    "hold",
    "look",
    "see",
    "watch",
    "listen",
    "hear",
    "speak",
    "say",
    "whisper",
    "move",
    "turn",
    "reach",
    "pull",
    "push",
    "lift",
    "drop",
    "place",
    "feel",
    "taste",
    "smell",
    "breathe",
    "sigh",
    "laugh",
    "cry",
    "smile",
)
SENSORY_TERMS: Final[tuple[str, ...]] = (
    "warm",
    "cold",
    "hot",
    "cool",
    "soft",
    "hard",
    "rough",
    "smooth",
    "bright",
    "dark",
    "dim",
    "loud",
    "quiet",
    "silent",
    "sharp",
    "dull",
    "sweet",
    "bitter",
    "sour",
    "salty",
    "fragrant",
    "musty",
    "fresh",
    "heavy",
    "light",
    "wet",
    "dry",
    "slick",
    "sticky",
)
AI_PHRASES: Final[tuple[str, ...]] = (
    "in conclusion",
    "it is important to note",
    "it is worth mentioning",
    "as we can see",
    "it becomes clear that",
    "one might say",
    "it could be argued",
    "in a sense",
    "in many ways",
    "to put it simply",
    "in other words",
)
CONTINUITY_STOPWORDS: Final[frozenset[str]] = frozenset(
    {
        "the",
        "and",
        "but",
        "for",
        "with",
        "from",
        "that",
        "this",
        "was",
        "were",
        "been",
        "have",
        "has",
        "had",
        "will",
        "would",
        "could",
        "should",
    }
)

_SENTENCE_BREAK = re.compile(r"[.!?]+")
_ALPHA_WORD = re.compile(r"^[a-z]+$")


@dataclass(frozen=True)
class ParagraphValidation:
    """Outcome of validating one candidate paragraph."""

    valid: bool
    reason: str | None
    word_count: int
    continuity_overlap: int | None = None


def count_words(text: str) -> int:
    return len([word for word in text.split() if word])


def count_sentences(text: str) -> int:
    return len([chunk for chunk in _SENTENCE_BREAK.split(text) if chunk.strip()])


def has_concrete_action(text: str) -> bool:
    lowered = text.lower()
    return any(term in lowered for term in ACTION_TERMS)


def has_sensory_detail(text: str) -> bool:
    lowered = text.lower()
    return any(term in lowered for term in SENSORY_TERMS)


def has_ai_phrases(text: str) -> bool:
    lowered = text.lower()
    return any(phrase in lowered for phrase in AI_PHRASES)


def continuity_overlap(text: str, previous_paragraphs: Sequence[str]) -> int | None:
    """Count shared content words between a candidate and prior text.

    Returns None when there is nothing to compare against.
    """
    if not previous_paragraphs:
        return None
    previous_words = _content_words(" ".join(previous_paragraphs))
    current_words = _content_words(text)
    return len(current_words & previous_words)


def validate_paragraph(
    candidate: str,
    previous_paragraphs: Sequence[str] = (),
    *,
    enforce_continuity: bool = False,
) -> ParagraphValidation:
    """Accept or reject one candidate; the first failing check names the reason."""
    word_count = count_words(candidate)
    overlap = continuity_overlap(candidate, previous_paragraphs)

    def reject(reason: str) -> ParagraphValidation:
        return ParagraphValidation(
            valid=False,
            reason=reason,
            word_count=word_count,
            continuity_overlap=overlap,
        )

    if word_count < MIN_WORDS:
        return reject(f"Paragraph too short: {word_count} words (minimum {MIN_WORDS})")
    if word_count > MAX_WORDS:
        return reject(f"Paragraph too long: {word_count} words (maximum {MAX_WORDS})")
    if not has_concrete_action(candidate) and not has_sensory_detail(candidate):
        return reject("Paragraph lacks concrete action or sensory detail")
    if has_ai_phrases(candidate):
        return reject("Paragraph contains AI-sounding phrases")
    if count_sentences(candidate) < MIN_SENTENCES:
        return reject("Paragraph should contain multiple sentences")
    # Continuity is advisory unless explicitly enforced.
    if enforce_continuity and overlap is not None and overlap < MIN_CONTINUITY_OVERLAP:
        return reject("Paragraph lacks continuity with previous paragraphs")

    return ParagraphValidation(
        valid=True,
        reason=None,
        word_count=word_count,
        continuity_overlap=overlap,
    )


def _content_words(text: str) -> set[str]:
    return {
        word
        for word in text.lower().split()
        if len(word) > 3 and _ALPHA_WORD.match(word) and word not in CONTINUITY_STOPWORDS
    }
