"""FastAPI application exposing the generation trigger and the story feed."""

from __future__ import annotations

import hmac
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Literal

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from dream_drift.adapters.openrouter_client import OpenRouterParagraphGenerator
from dream_drift.adapters.sqlite_anomaly_store import SQLiteAnomalyStore
from dream_drift.adapters.sqlite_story_store import SQLiteStoryStore
from dream_drift.api.contracts import (
    GeneratedParagraph,
    ParagraphResponse,
    StoryReadResponse,
    TriggerGeneratedResponse,
    TriggerSkippedResponse,
)
from dream_drift.application.anomaly_reporting import CycleAnomalyRecorder
from dream_drift.application.generation_cycle import SKIP_CYCLE_IN_PROGRESS, GenerationCycle
from dream_drift.domain.errors import (
    GenerationError,
    ParagraphRejectedError,
    StoryStoreError,
    TriggerAuthError,
)
from dream_drift.domain.models import Paragraph, StoryState
from dream_drift.domain.ports import ParagraphGenerator, RandomSource
from dream_drift.settings import RuntimeSettings, cors_origins, load_settings

logger = logging.getLogger(__name__)

_SKIP_MESSAGES = {
    SKIP_CYCLE_IN_PROGRESS: "Another generation cycle is already running",
}
_DEFAULT_SKIP_MESSAGE = "Not enough time has passed since last update"


class HealthResponse(BaseModel):
    """Simple health payload used by probes."""

    status: Literal["ok"] = "ok"
    service: str = "dream_drift"


class ApiRootResponse(BaseModel):
    """Describes the available endpoints."""

    name: str = "dream_drift"
    persistence: Literal["sqlite"] = "sqlite"
    endpoints: list[str] = Field(
        default_factory=lambda: [
            "/healthz",
            "/api/v1",
            "/api/v1/story",
            "/api/v1/generate",
        ]
    )


def verify_trigger_request(headers: dict[str, str], settings: RuntimeSettings) -> None:
    """Accept the configured bearer secret or the scheduler marker header.

    With no secret configured every caller is accepted; that mode exists for
    local development only.
    """
    secret = settings.cron_secret
    authorization = headers.get("authorization", "")
    if secret and hmac.compare_digest(authorization, f"Bearer {secret}"):
        return
    if headers.get(settings.scheduler_header):
        return
    if not secret:
        logger.warning("trigger.auth_open cron secret not set; allowing request")
        return
    raise TriggerAuthError("Trigger request carried no valid credential.")


def build_story_snapshot(
    state: StoryState | None, paragraphs: list[Paragraph]
) -> StoryReadResponse:
    """Reader view of the story; falls back to the latest paragraph when state is missing."""
    latest = paragraphs[-1] if paragraphs else None
    drift_level = 0.0
    last_update: datetime | None = None
    if state is not None:
        drift_level = state.drift_level
        last_update = state.last_update_utc
    elif latest is not None:
        drift_level = latest.drift_level
    if last_update is None and latest is not None:
        last_update = latest.created_at_utc
    return StoryReadResponse(
        paragraphs=[ParagraphResponse.from_paragraph(paragraph) for paragraph in paragraphs],
        drift_level=drift_level,
        last_update=last_update,
    )


def create_app(
    db_path: Path | None = None,
    *,
    settings: RuntimeSettings | None = None,
    generator: ParagraphGenerator | None = None,
    rng: RandomSource | None = None,
    clock: Callable[[], datetime] | None = None,
) -> FastAPI:
    """Create the API application."""
    effective_settings = settings if settings is not None else load_settings(db_path)
    store = SQLiteStoryStore(db_path=effective_settings.db_path)
    anomaly_store = SQLiteAnomalyStore(db_path=effective_settings.db_path)
    anomalies = CycleAnomalyRecorder(anomaly_store)
    paragraph_generator = (
        generator
        if generator is not None
        else OpenRouterParagraphGenerator.from_settings(effective_settings)
    )

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        removed = anomaly_store.prune_anomalies(
            retention_days=effective_settings.anomaly_retention_days,
            max_rows=effective_settings.anomaly_max_rows,
        )
        logger.info("anomaly.prune removed=%s", removed)
        yield

    app = FastAPI(
        title="dream_drift API",
        version="0.1.0",
        description="Trigger and read endpoints for a single, slowly drifting shared story.",
        lifespan=lifespan,
        openapi_tags=[
            {"name": "system", "description": "Service health and endpoint discovery."},
            {"name": "story", "description": "Read-only story feed for polling readers."},
            {"name": "generation", "description": "Scheduler-driven paragraph generation."},
        ],
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins(),
        allow_credentials=False,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    logger.info(
        "api.start db_path=%s model=%s max_attempts=%s lease_seconds=%s",
        effective_settings.db_path,
        effective_settings.model,
        effective_settings.max_attempts,
        effective_settings.cycle_lease_seconds,
    )

    def trigger_authorized(request: Request) -> None:
        try:
            verify_trigger_request(
                {key.lower(): value for key, value in request.headers.items()},
                effective_settings,
            )
        except TriggerAuthError as exc:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized"
            ) from exc

    @app.get("/healthz", response_model=HealthResponse, tags=["system"])
    def healthz() -> HealthResponse:
        return HealthResponse()

    @app.get("/api/v1", response_model=ApiRootResponse, tags=["system"])
    def api_v1_root() -> ApiRootResponse:
        return ApiRootResponse()

    @app.get("/api/v1/story", response_model=StoryReadResponse, tags=["story"])
    def read_story() -> StoryReadResponse:
        try:
            paragraphs = store.list_paragraphs()
            state = store.load_state()
        except StoryStoreError as exc:
            logger.error("story.read_failed error=%s", exc)
            raise HTTPException(status_code=500, detail="Failed to fetch story") from exc
        return build_story_snapshot(state, paragraphs)

    @app.post(
        "/api/v1/generate",
        response_model=TriggerGeneratedResponse | TriggerSkippedResponse,
        tags=["generation"],
        dependencies=[Depends(trigger_authorized)],
    )
    def trigger_generation() -> TriggerGeneratedResponse | TriggerSkippedResponse:
        cycle = GenerationCycle(
            repository=store,
            generator=paragraph_generator,
            rng=rng,
            max_attempts=effective_settings.max_attempts,
            min_interval_minutes=effective_settings.min_interval_minutes,
            max_interval_minutes=effective_settings.max_interval_minutes,
            lease_ttl_seconds=effective_settings.cycle_lease_seconds or None,
            enforce_continuity=effective_settings.enforce_continuity,
            clock=clock,
        )
        try:
            result = cycle.run()
        except ParagraphRejectedError as exc:
            anomalies.record_failure(exc)
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        except GenerationError as exc:
            anomalies.record_failure(exc)
            raise HTTPException(status_code=502, detail=f"Generation failed: {exc}") from exc
        except StoryStoreError as exc:
            logger.error("cycle.store_failed error=%s", exc)
            anomalies.record_failure(exc)
            raise HTTPException(status_code=500, detail="Story store failure") from exc

        anomalies.record_result(result)
        if result.paragraph is None:
            reason = result.skip_reason or "skipped"
            return TriggerSkippedResponse(
                reason=reason,
                message=_SKIP_MESSAGES.get(reason, _DEFAULT_SKIP_MESSAGE),
            )
        paragraph = result.paragraph
        return TriggerGeneratedResponse(
            paragraph=GeneratedParagraph(
                id=paragraph.paragraph_id,
                content=paragraph.content,
                drift_level=paragraph.drift_level,
                sequence=paragraph.sequence,
            )
        )

    return app


app = create_app()
