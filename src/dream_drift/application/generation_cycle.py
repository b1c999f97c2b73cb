"""Generation cycle: gate, generate, validate, advance drift, commit.

One `GenerationCycle.run()` call is one cycle. Phases run in a fixed order::

    IDLE -> GATING -> GENERATING(attempt) -> VALIDATING -> COMMITTING -> DONE

GENERATING and VALIDATING repeat up to ``max_attempts`` times. Every attempt
produces an :class:`AttemptOutcome`; the loop inspects that typed outcome
instead of relying on exceptions for control flow.

The story state is a single addressable slot. When ``lease_ttl_seconds`` is set
the cycle claims a lease on that slot, re-reads the state under the lease, and
gates on that fresh read. The commit only lands while the lease is still held,
so overlapping triggers skip or fail instead of both generating. With the lease
disabled two concurrent cycles can both pass the gate and each commit a paragraph.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Literal
from uuid import uuid4

from dream_drift.core.drift import advance_drift
from dream_drift.core.paragraph_quality import validate_paragraph
from dream_drift.domain.errors import GenerationError, ParagraphRejectedError, StoryStoreError
from dream_drift.domain.models import (
    DEFAULT_MOTIFS,
    AttemptOutcome,
    AttemptStatus,
    GenerationContext,
    Paragraph,
    StoryState,
)
from dream_drift.domain.ports import ParagraphGenerator, RandomSource, StoryRepository

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 2
MIN_INTERVAL_MINUTES = 5.0
MAX_INTERVAL_MINUTES = 10.0

SKIP_INTERVAL_NOT_ELAPSED = "interval_not_elapsed"
SKIP_CYCLE_IN_PROGRESS = "cycle_in_progress"


class CyclePhase(str, Enum):
    IDLE = "idle"
    GATING = "gating"
    GENERATING = "generating"
    VALIDATING = "validating"
    COMMITTING = "committing"
    DONE = "done"


@dataclass(frozen=True)
class CycleResult:
    """Terminal outcome of a cycle that did not fail."""

    status: Literal["generated", "skipped"]
    paragraph: Paragraph | None = None
    skip_reason: str | None = None
    attempts: tuple[AttemptOutcome, ...] = field(default_factory=tuple)

    @property
    def accepted_attempt(self) -> AttemptOutcome | None:
        for outcome in self.attempts:
            if outcome.status is AttemptStatus.ACCEPTED:
                return outcome
        return None

    @property
    def continuity_overlap(self) -> int | None:
        accepted = self.accepted_attempt
        return accepted.continuity_overlap if accepted is not None else None


def should_generate(
    last_update: datetime | None,
    *,
    now: datetime,
    rng: RandomSource,
    min_minutes: float = MIN_INTERVAL_MINUTES,
    max_minutes: float = MAX_INTERVAL_MINUTES,
) -> bool:
    """Gate check with a required interval resampled on every call."""
    if last_update is None:
        return True
    minutes_since_update = (now - last_update).total_seconds() / 60.0
    required_interval = min_minutes + rng.random() * (max_minutes - min_minutes)
    return minutes_since_update >= required_interval


def _utc_now() -> datetime:
    return datetime.now(UTC)


class GenerationCycle:
    """Runs one generation cycle against a story repository."""

    def __init__(
        self,
        *,
        repository: StoryRepository,
        generator: ParagraphGenerator,
        rng: RandomSource | None = None,
        clock: Callable[[], datetime] | None = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        min_interval_minutes: float = MIN_INTERVAL_MINUTES,
        max_interval_minutes: float = MAX_INTERVAL_MINUTES,
        lease_ttl_seconds: int | None = None,
        enforce_continuity: bool = False,
        motifs: tuple[str, ...] = DEFAULT_MOTIFS,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1.")
        self._repository = repository
        self._generator = generator
        self._rng = rng if rng is not None else random.Random()
        self._clock = clock if clock is not None else _utc_now
        self._max_attempts = max_attempts
        self._min_interval_minutes = min_interval_minutes
        self._max_interval_minutes = max_interval_minutes
        self._lease_ttl_seconds = lease_ttl_seconds
        self._enforce_continuity = enforce_continuity
        self._motifs = motifs
        self.phase = CyclePhase.IDLE

    def run(self) -> CycleResult:
        """Execute one cycle; raises on terminal failure, returns on success or skip."""
        self.phase = CyclePhase.IDLE
        state = self._load_or_init_state()

        lease_holder: str | None = None
        if self._lease_ttl_seconds:
            lease_holder = uuid4().hex
            acquired = self._repository.acquire_cycle_lease(
                holder=lease_holder, now=self._clock(), ttl_seconds=self._lease_ttl_seconds
            )
            if not acquired:
                logger.info("cycle.skip reason=%s", SKIP_CYCLE_IN_PROGRESS)
                self.phase = CyclePhase.DONE
                return CycleResult(status="skipped", skip_reason=SKIP_CYCLE_IN_PROGRESS)

        try:
            if lease_holder is not None:
                state = self._reload_state()
            return self._run_gated(state, lease_holder)
        finally:
            if lease_holder is not None:
                self._release_lease(lease_holder)
            self.phase = CyclePhase.DONE

    def _load_or_init_state(self) -> StoryState:
        state = self._repository.load_state()
        if state is not None:
            return state
        logger.info("cycle.init_state motifs=%s", list(self._motifs))
        return self._repository.create_state(motifs=self._motifs)

    def _reload_state(self) -> StoryState:
        # Another cycle may have committed between the first read and the lease claim.
        state = self._repository.load_state()
        if state is None:
            raise StoryStoreError("Story state disappeared after the cycle lease was claimed.")
        return state

    def _release_lease(self, holder: str) -> None:
        try:
            self._repository.release_cycle_lease(holder=holder)
        except StoryStoreError as exc:
            # An unreleased lease lapses after its TTL.
            logger.error("cycle.lease_release_failed holder=%s error=%s", holder, exc)

    def _run_gated(self, state: StoryState, lease_holder: str | None) -> CycleResult:
        self.phase = CyclePhase.GATING
        if not should_generate(
            state.last_update_utc,
            now=self._clock(),
            rng=self._rng,
            min_minutes=self._min_interval_minutes,
            max_minutes=self._max_interval_minutes,
        ):
            logger.info(
                "cycle.skip reason=%s last_update=%s",
                SKIP_INTERVAL_NOT_ELAPSED,
                state.last_update_utc,
            )
            return CycleResult(status="skipped", skip_reason=SKIP_INTERVAL_NOT_ELAPSED)

        paragraphs = self._repository.list_paragraphs()
        context = GenerationContext.from_history(state, paragraphs)
        attempts = self._generate_until_valid(context)
        accepted = attempts[-1]
        assert accepted.candidate is not None

        new_drift = advance_drift(state.drift_level, rng=self._rng)

        self.phase = CyclePhase.COMMITTING
        paragraph = self._repository.commit_paragraph(
            content=accepted.candidate,
            drift_level=new_drift,
            committed_at=self._clock(),
            lease_holder=lease_holder,
        )
        logger.info(
            "cycle.committed paragraph_id=%s sequence=%s drift=%.2f->%.2f attempts=%s",
            paragraph.paragraph_id,
            paragraph.sequence,
            state.drift_level,
            new_drift,
            len(attempts),
        )
        return CycleResult(status="generated", paragraph=paragraph, attempts=attempts)

    def _generate_until_valid(self, context: GenerationContext) -> tuple[AttemptOutcome, ...]:
        outcomes: list[AttemptOutcome] = []
        for attempt in range(1, self._max_attempts + 1):
            outcome = self._attempt(attempt, context)
            outcomes.append(outcome)
            if outcome.status is AttemptStatus.ACCEPTED:
                return tuple(outcomes)
            logger.warning(
                "cycle.attempt_failed attempt=%s/%s status=%s reason=%s",
                attempt,
                self._max_attempts,
                outcome.status.value,
                outcome.reason,
            )

        last = outcomes[-1]
        history = tuple(outcomes)
        if last.status is AttemptStatus.TRANSPORT_ERROR:
            raise GenerationError(
                last.reason or "Generation failed.", outcomes=history
            ) from last.error
        raise ParagraphRejectedError(
            last.reason or "unknown rejection", attempts=len(outcomes), outcomes=history
        )

    def _attempt(self, attempt: int, context: GenerationContext) -> AttemptOutcome:
        self.phase = CyclePhase.GENERATING
        try:
            candidate = self._generator.generate(context)
        except GenerationError as exc:
            return AttemptOutcome(
                attempt=attempt,
                status=AttemptStatus.TRANSPORT_ERROR,
                reason=str(exc),
                error=exc,
            )

        self.phase = CyclePhase.VALIDATING
        validation = validate_paragraph(
            candidate,
            context.previous_paragraphs,
            enforce_continuity=self._enforce_continuity,
        )
        if not validation.valid:
            return AttemptOutcome(
                attempt=attempt,
                status=AttemptStatus.REJECTED,
                candidate=candidate,
                reason=validation.reason,
                continuity_overlap=validation.continuity_overlap,
            )
        return AttemptOutcome(
            attempt=attempt,
            status=AttemptStatus.ACCEPTED,
            candidate=candidate,
            continuity_overlap=validation.continuity_overlap,
        )
