from __future__ import annotations

from dream_drift.core.paragraph_quality import (
    continuity_overlap,
    count_sentences,
    count_words,
    has_ai_phrases,
    has_concrete_action,
    has_sensory_detail,
    validate_paragraph,
)

WALKING_SENTENCE = "She walked slowly past the quiet door."
PLAIN_SENTENCE = "The number nine was a number of some kind."


def _walking_paragraph(sentences: int) -> str:
    return " ".join([WALKING_SENTENCE] * sentences)


def test_valid_paragraph_passes_every_check() -> None:
    paragraph = _walking_paragraph(8)
    result = validate_paragraph(paragraph)
    assert result.valid is True
    assert result.reason is None
    assert result.word_count == 56
    assert result.continuity_overlap is None


def test_short_paragraph_reports_word_count() -> None:
    result = validate_paragraph(_walking_paragraph(4))
    assert result.valid is False
    assert result.reason == "Paragraph too short: 28 words (minimum 50)"


def test_long_paragraph_reports_word_count() -> None:
    result = validate_paragraph(_walking_paragraph(22))
    assert result.valid is False
    assert result.reason == "Paragraph too long: 154 words (maximum 150)"


def test_word_limits_are_inclusive() -> None:
    fifty = " ".join(["walked"] * 49) + ". Done."
    assert count_words(fifty) == 50
    assert validate_paragraph(fifty).valid is True

    one_fifty = " ".join(["walked"] * 149) + ". Done."
    assert count_words(one_fifty) == 150
    assert validate_paragraph(one_fifty).valid is True

    one_fifty_one = " ".join(["walked"] * 150) + ". Done."
    result = validate_paragraph(one_fifty_one)
    assert result.valid is False
    assert result.reason == "Paragraph too long: 151 words (maximum 150)"


def test_paragraph_without_action_or_sensory_terms_is_rejected() -> None:
    paragraph = " ".join([PLAIN_SENTENCE] * 7)
    assert count_words(paragraph) == 63
    result = validate_paragraph(paragraph)
    assert result.reason == "Paragraph lacks concrete action or sensory detail"


def test_paragraph_with_ai_phrase_is_rejected() -> None:
    paragraph = _walking_paragraph(8) + " In other words, she walked on."
    result = validate_paragraph(paragraph)
    assert result.reason == "Paragraph contains AI-sounding phrases"


def test_single_sentence_paragraph_is_rejected() -> None:
    paragraph = " and ".join(["She walked slowly past the quiet door"] * 8) + "."
    assert count_sentences(paragraph) == 1
    result = validate_paragraph(paragraph)
    assert result.reason == "Paragraph should contain multiple sentences"


def test_vocabulary_matches_substrings_case_insensitively() -> None:
    assert has_concrete_action("Walking home") is True
    assert has_sensory_detail("The BRIGHTNESS of it") is True
    assert has_ai_phrases("IN CONCLUSION, nothing") is True
    assert has_concrete_action("The number nine") is False


def test_sentence_count_ignores_empty_fragments() -> None:
    assert count_sentences("One. Two!! Three?") == 3
    assert count_sentences("...") == 0


def test_continuity_overlap_counts_shared_content_words() -> None:
    previous = ["The lighthouse keeper climbed toward the lantern room."]
    assert continuity_overlap("A keeper stood near the lighthouse stairs", previous) == 2
    assert continuity_overlap("anything", []) is None


def test_continuity_is_advisory_by_default() -> None:
    previous = ["The lighthouse keeper climbed the spiral staircase toward the lantern room."]
    result = validate_paragraph(_walking_paragraph(8), previous)
    assert result.valid is True
    assert result.continuity_overlap == 0


def test_continuity_can_be_enforced() -> None:
    previous = ["The lighthouse keeper climbed the spiral staircase toward the lantern room."]
    result = validate_paragraph(_walking_paragraph(8), previous, enforce_continuity=True)
    assert result.valid is False
    assert result.reason == "Paragraph lacks continuity with previous paragraphs"


def test_enforced_continuity_passes_with_shared_vocabulary() -> None:
    previous = ["She walked slowly past the quiet door at the end of the hall."]
    result = validate_paragraph(_walking_paragraph(8), previous, enforce_continuity=True)
    assert result.valid is True
    assert result.continuity_overlap is not None
    assert result.continuity_overlap >= 2
