"""Anomaly breadcrumbs for generation cycles, written by both trigger paths."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from dream_drift.application.generation_cycle import CycleResult
from dream_drift.core.paragraph_quality import MIN_CONTINUITY_OVERLAP
from dream_drift.domain.errors import (
    DreamDriftError,
    GenerationError,
    ParagraphRejectedError,
    StoryStoreError,
)
from dream_drift.domain.models import AttemptOutcome, AttemptStatus, Severity
from dream_drift.domain.ports import AnomalyLog

logger = logging.getLogger(__name__)

ANOMALY_SCOPE = "generation"


class CycleAnomalyRecorder:
    """Persist anomaly breadcrumbs for cycle outcomes and mirror concise warning logs."""

    def __init__(self, anomaly_log: AnomalyLog) -> None:
        self._anomaly_log = anomaly_log

    def record(
        self,
        *,
        code: str,
        severity: Severity,
        message: str,
        metadata: dict[str, object] | None = None,
    ) -> None:
        anomaly = self._anomaly_log.write_anomaly(
            scope=ANOMALY_SCOPE,
            code=code,
            severity=severity,
            message=message,
            metadata=metadata,
        )
        logger.warning(
            "anomaly.recorded id=%s code=%s severity=%s message=%s",
            anomaly.anomaly_id,
            code,
            severity,
            message,
        )

    def record_attempts(self, outcomes: Iterable[AttemptOutcome]) -> None:
        for outcome in outcomes:
            if outcome.status is AttemptStatus.REJECTED:
                self.record(
                    code="paragraph_rejected",
                    severity="warning",
                    message=outcome.reason or "Paragraph rejected.",
                    metadata={"attempt": outcome.attempt},
                )
            elif outcome.status is AttemptStatus.TRANSPORT_ERROR:
                self.record(
                    code="generation_attempt_failed",
                    severity="warning",
                    message=outcome.reason or "Generation attempt failed.",
                    metadata={"attempt": outcome.attempt},
                )

    def record_result(self, result: CycleResult) -> None:
        """Record failed attempts of a finished cycle and any low-continuity acceptance."""
        self.record_attempts(result.attempts)
        overlap = result.continuity_overlap
        if overlap is not None and overlap < MIN_CONTINUITY_OVERLAP:
            self.record(
                code="continuity_low",
                severity="warning",
                message="Accepted paragraph shares little vocabulary with earlier paragraphs.",
                metadata={
                    "overlap": overlap,
                    "paragraph_id": result.paragraph.paragraph_id if result.paragraph else None,
                },
            )

    def record_failure(self, exc: DreamDriftError) -> None:
        """Record the attempts a failed cycle made, then the failure itself."""
        if isinstance(exc, ParagraphRejectedError):
            self.record_attempts(exc.outcomes)
            self.record(
                code="cycle_rejected",
                severity="error",
                message=str(exc),
                metadata={"reason": exc.reason, "attempts": exc.attempts},
            )
        elif isinstance(exc, GenerationError):
            self.record_attempts(exc.outcomes)
            self.record(code="cycle_generation_failed", severity="error", message=str(exc))
        elif isinstance(exc, StoryStoreError):
            self.record(code="cycle_store_failed", severity="error", message=str(exc))
