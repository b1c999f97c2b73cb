"""Typed contracts shared by API handlers and Python interfaces."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from dream_drift.domain.models import Paragraph


class ContractModel(BaseModel):
    """Base model config used by all API contracts."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


class ParagraphResponse(ContractModel):
    """One paragraph as shown to readers."""

    id: str
    content: str
    created_at: datetime
    drift_level: float = Field(ge=0.0)
    sequence: int = Field(ge=1)

    @classmethod
    def from_paragraph(cls, paragraph: Paragraph) -> ParagraphResponse:
        return cls(
            id=paragraph.paragraph_id,
            content=paragraph.content,
            created_at=paragraph.created_at_utc,
            drift_level=paragraph.drift_level,
            sequence=paragraph.sequence,
        )


class StoryReadResponse(ContractModel):
    """Full story snapshot for polling readers."""

    paragraphs: list[ParagraphResponse] = Field(default_factory=list)
    drift_level: float = Field(default=0.0, ge=0.0)
    last_update: datetime | None = None


class GeneratedParagraph(ContractModel):
    """Identifying fields of a freshly committed paragraph."""

    id: str
    content: str
    drift_level: float = Field(ge=0.0)
    sequence: int = Field(ge=1)


class TriggerGeneratedResponse(ContractModel):
    """Trigger payload when a paragraph was committed."""

    success: Literal[True] = True
    paragraph: GeneratedParagraph


class TriggerSkippedResponse(ContractModel):
    """Trigger payload when the cycle decided not to generate."""

    skipped: Literal[True] = True
    reason: str
    message: str
