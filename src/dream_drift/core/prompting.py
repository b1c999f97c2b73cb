"""System and user prompt composition for paragraph generation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from dream_drift.core.drift import describe_drift
from dream_drift.domain.models import GenerationContext

PROMPT_MIN_WORDS: Final[int] = 80
PROMPT_MAX_WORDS: Final[int] = 120
CONTEXT_WINDOW_PARAGRAPHS: Final[int] = 5
SUBTLE_DRIFT_THRESHOLD: Final[float] = 0.3
STRONG_DRIFT_THRESHOLD: Final[float] = 0.6

STYLE_RULES: Final[tuple[str, ...]] = (
    f"Write exactly ONE paragraph that MUST be between {PROMPT_MIN_WORDS}-{PROMPT_MAX_WORDS} "
    "words. This is mandatory - count your words carefully.",
    "Include at least one concrete action or sensory detail",
    "Continue directly from the previous paragraph",
    "Maintain continuity with characters, places, and emotional tone",
    "As drift increases, introduce subtle dreamlike elements gradually",
    "Never conclude the story",
    "Never explain the concept or reference being an AI",
    "Write in third person",
    "Use literary, intentional prose",
    "Avoid abstract filler or excessive metaphor stacking",
    "Keep sentences clear and readable",
    "The surrealism should emerge through events and perception, not language excess",
)

SUBTLE_DRIFT_NOTE: Final[str] = (
    "Note: The story is becoming more dreamlike. Introduce subtle distortions, unexpected "
    "connections, or altered perceptions, but maintain readability and concrete detail."
)
STRONG_DRIFT_NOTE: Final[str] = (
    "Note: The story is now strongly dreamlike. Events may be surreal, but each paragraph "
    "must still contain concrete actions and sensory details. Maintain the illusion of a "
    "coherent narrative."
)

_WRAPPING_QUOTES: Final[tuple[str, ...]] = ('"', "'")


@dataclass(frozen=True)
class PromptPair:
    """System and user instructions for one generation call."""

    system: str
    user: str


def build_prompts(context: GenerationContext) -> PromptPair:
    return PromptPair(system=build_system_prompt(context), user=build_user_prompt(context))


def build_system_prompt(context: GenerationContext) -> str:
    """Embed drift, motifs, and the fixed literary constraints."""
    rules = "\n".join(f"- {rule}" for rule in STYLE_RULES)
    sections = [
        "You are continuing a literary story that gradually becomes dreamlike over time. "
        "The story is a single, continuous narrative shared by all readers.",
        f"Current drift level: {context.drift_level:.2f} ({describe_drift(context.drift_level)})",
        "Recurring motifs that should appear throughout the story: "
        + ", ".join(context.motifs),
        f"CRITICAL RULES:\n{rules}",
        f"WORD COUNT REQUIREMENT: Your paragraph MUST contain at least {PROMPT_MIN_WORDS} words "
        f"and no more than {PROMPT_MAX_WORDS} words. Paragraphs shorter than "
        f"{PROMPT_MIN_WORDS} words will be rejected.",
    ]
    if context.drift_level > SUBTLE_DRIFT_THRESHOLD:
        sections.append(SUBTLE_DRIFT_NOTE)
    if context.drift_level > STRONG_DRIFT_THRESHOLD:
        sections.append(STRONG_DRIFT_NOTE)
    return "\n\n".join(sections)


def build_user_prompt(context: GenerationContext) -> str:
    """Supply the latest paragraph plus a short window of prior context."""
    sections = [
        "Continue the story with one paragraph. Here is the most recent paragraph:",
        context.last_paragraph,
    ]
    recent = context.previous_paragraphs[-CONTEXT_WINDOW_PARAGRAPHS:]
    if recent:
        sections.append("Previous context:\n" + "\n\n".join(recent))
    sections.append("Write the next paragraph now.")
    return "\n\n".join(sections)


def clean_generated_text(raw: str) -> str:
    """Trim provider output and drop one pair of wrapping quotes."""
    text = raw.strip()
    for quote in _WRAPPING_QUOTES:
        if len(text) >= 2 and text.startswith(quote) and text.endswith(quote):
            return text[1:-1].strip()
    return text
