"""Domain models, errors, and ports for the drifting story."""

from dream_drift.domain.errors import (
    DreamDriftError,
    GenerationError,
    ParagraphRejectedError,
    StoryStoreError,
    TriggerAuthError,
)
from dream_drift.domain.models import DEFAULT_MOTIFS, GenerationContext, Paragraph, StoryState
from dream_drift.domain.ports import ParagraphGenerator, RandomSource, StoryRepository

__all__ = [
    "DEFAULT_MOTIFS",
    "DreamDriftError",
    "GenerationContext",
    "GenerationError",
    "Paragraph",
    "ParagraphGenerator",
    "ParagraphRejectedError",
    "RandomSource",
    "StoryRepository",
    "StoryState",
    "StoryStoreError",
    "TriggerAuthError",
]
