"""Core story domain models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from dream_drift.domain.errors import GenerationError

DEFAULT_MOTIFS: tuple[str, ...] = ("a door", "a sound", "a name", "a recurring place")

Severity = Literal["warning", "error"]


@dataclass(frozen=True)
class StoryState:
    """Singleton story state; drift and bookkeeping for the latest commit."""

    state_id: str
    drift_level: float
    motifs: tuple[str, ...]
    last_update_utc: datetime | None = None
    last_paragraph_id: str | None = None


@dataclass(frozen=True)
class Paragraph:
    """One committed paragraph of the shared narrative."""

    paragraph_id: str
    content: str
    drift_level: float
    sequence: int
    created_at_utc: datetime


@dataclass(frozen=True)
class GenerationContext:
    """Everything the generator needs to write the next paragraph."""

    drift_level: float
    motifs: tuple[str, ...]
    previous_paragraphs: tuple[str, ...] = ()
    last_paragraph: str = ""

    @classmethod
    def from_history(cls, state: StoryState, paragraphs: list[Paragraph]) -> GenerationContext:
        contents = tuple(paragraph.content for paragraph in paragraphs)
        return cls(
            drift_level=state.drift_level,
            motifs=state.motifs,
            previous_paragraphs=contents,
            last_paragraph=contents[-1] if contents else "",
        )


class AttemptStatus(str, Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    TRANSPORT_ERROR = "transport_error"


@dataclass(frozen=True)
class AttemptOutcome:
    """Result of one generate-then-validate attempt."""

    attempt: int
    status: AttemptStatus
    candidate: str | None = None
    reason: str | None = None
    error: GenerationError | None = None
    continuity_overlap: int | None = None
