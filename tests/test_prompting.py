from __future__ import annotations

from dream_drift.core.prompting import (
    STRONG_DRIFT_NOTE,
    SUBTLE_DRIFT_NOTE,
    build_prompts,
    build_system_prompt,
    build_user_prompt,
    clean_generated_text,
)
from dream_drift.domain.models import DEFAULT_MOTIFS, GenerationContext


def _context(drift_level: float, paragraphs: tuple[str, ...] = ()) -> GenerationContext:
    return GenerationContext(
        drift_level=drift_level,
        motifs=DEFAULT_MOTIFS,
        previous_paragraphs=paragraphs,
        last_paragraph=paragraphs[-1] if paragraphs else "",
    )


def test_system_prompt_embeds_drift_and_motifs() -> None:
    prompt = build_system_prompt(_context(0.1))
    assert "Current drift level: 0.10 (very low (realistic, grounded))" in prompt
    assert "a door, a sound, a name, a recurring place" in prompt
    assert "CRITICAL RULES:" in prompt
    assert "between 80-120 words" in prompt
    assert SUBTLE_DRIFT_NOTE not in prompt
    assert STRONG_DRIFT_NOTE not in prompt


def test_system_prompt_adds_subtle_note_above_low_drift() -> None:
    prompt = build_system_prompt(_context(0.45))
    assert SUBTLE_DRIFT_NOTE in prompt
    assert STRONG_DRIFT_NOTE not in prompt


def test_system_prompt_adds_both_notes_at_high_drift() -> None:
    prompt = build_system_prompt(_context(0.7))
    assert SUBTLE_DRIFT_NOTE in prompt
    assert STRONG_DRIFT_NOTE in prompt
    assert prompt.index(SUBTLE_DRIFT_NOTE) < prompt.index(STRONG_DRIFT_NOTE)


def test_drift_notes_use_strict_thresholds() -> None:
    assert SUBTLE_DRIFT_NOTE not in build_system_prompt(_context(0.3))
    assert STRONG_DRIFT_NOTE not in build_system_prompt(_context(0.6))


def test_user_prompt_limits_previous_context_to_last_five() -> None:
    paragraphs = tuple(f"Paragraph {index} text." for index in range(1, 8))
    prompt = build_user_prompt(_context(0.2, paragraphs))
    assert prompt.startswith(
        "Continue the story with one paragraph. Here is the most recent paragraph:"
    )
    assert prompt.endswith("Write the next paragraph now.")
    assert "Previous context:\nParagraph 3 text." in prompt
    assert "Paragraph 2 text." not in prompt
    assert "Paragraph 1 text." not in prompt


def test_user_prompt_for_empty_story_has_no_context_block() -> None:
    prompt = build_user_prompt(_context(0.0))
    assert "Previous context" not in prompt
    assert prompt.endswith("Write the next paragraph now.")


def test_build_prompts_pairs_system_and_user() -> None:
    context = _context(0.5, ("Only paragraph.",))
    pair = build_prompts(context)
    assert pair.system == build_system_prompt(context)
    assert pair.user == build_user_prompt(context)


def test_clean_generated_text_strips_wrapping_quotes() -> None:
    assert clean_generated_text('  "She opened the door."  ') == "She opened the door."
    assert clean_generated_text("'Single quoted.'") == "Single quoted."
    assert clean_generated_text('"Unbalanced') == '"Unbalanced'
    assert clean_generated_text("Plain text.\n") == "Plain text."
