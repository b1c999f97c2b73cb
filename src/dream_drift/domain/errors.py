"""Error taxonomy shared by the generation pipeline and its adapters."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from dream_drift.domain.models import AttemptOutcome


class DreamDriftError(RuntimeError):
    """Base class for pipeline failures."""


class TriggerAuthError(DreamDriftError):
    """Raised when a trigger request carries no acceptable credential."""


class StoryStoreError(DreamDriftError):
    """Raised when the story store cannot read or write."""


class GenerationError(DreamDriftError):
    """Raised when the text-generation provider fails or returns garbage.

    When a cycle gives up on a final transport failure it re-raises with the
    outcomes of every attempt it made.
    """

    def __init__(self, message: str, *, outcomes: tuple[AttemptOutcome, ...] = ()) -> None:
        super().__init__(message)
        self.outcomes = outcomes


class ParagraphRejectedError(DreamDriftError):
    """Raised when every generation attempt was rejected by validation."""

    def __init__(
        self,
        reason: str,
        *,
        attempts: int,
        outcomes: tuple[AttemptOutcome, ...] = (),
    ) -> None:
        super().__init__(
            f"Failed to generate valid paragraph after {attempts} attempts: {reason}"
        )
        self.reason = reason
        self.attempts = attempts
        self.outcomes = outcomes
