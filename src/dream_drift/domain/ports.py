"""Ports for generation, randomness, persistence, and anomaly breadcrumbs."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from dream_drift.domain.models import GenerationContext, Paragraph, Severity, StoryState


class RandomSource(Protocol):
    """Uniform floats in [0, 1); `random.Random` satisfies this."""

    def random(self) -> float:
        ...


class ParagraphGenerator(Protocol):
    """Writes the next paragraph for a story context."""

    def generate(self, context: GenerationContext) -> str:
        ...


class StoryRepository(Protocol):
    """Persists the singleton story state and the append-only paragraph chain."""

    def load_state(self) -> StoryState | None:
        ...

    def create_state(self, *, motifs: tuple[str, ...]) -> StoryState:
        ...

    def list_paragraphs(self) -> list[Paragraph]:
        ...

    def commit_paragraph(
        self,
        *,
        content: str,
        drift_level: float,
        committed_at: datetime,
        lease_holder: str | None = None,
    ) -> Paragraph:
        ...

    def acquire_cycle_lease(self, *, holder: str, now: datetime, ttl_seconds: int) -> bool:
        ...

    def release_cycle_lease(self, *, holder: str) -> None:
        ...


class AnomalyRecord(Protocol):
    @property
    def anomaly_id(self) -> str:
        ...


class AnomalyLog(Protocol):
    """Append-only sink for generation anomalies."""

    def write_anomaly(
        self,
        *,
        scope: str,
        code: str,
        severity: Severity,
        message: str,
        metadata: dict[str, object] | None = None,
    ) -> AnomalyRecord:
        ...
