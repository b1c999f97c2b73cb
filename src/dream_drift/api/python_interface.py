"""Python-first client for the story feed and generation trigger."""

from __future__ import annotations

import httpx
from pydantic import TypeAdapter

from dream_drift.api.contracts import (
    StoryReadResponse,
    TriggerGeneratedResponse,
    TriggerSkippedResponse,
)

_TRIGGER_RESPONSE = TypeAdapter(TriggerGeneratedResponse | TriggerSkippedResponse)


class StoryApiClient:
    """Tiny typed API client for readers and schedulers."""

    def __init__(self, api_base_url: str = "http://127.0.0.1:8000") -> None:
        """Initialize client with an API base URL."""
        self._api_base_url = api_base_url.rstrip("/")

    @property
    def api_base_url(self) -> str:
        """Return normalized API base URL."""
        return self._api_base_url

    def fetch_story(self) -> StoryReadResponse:
        """Fetch every paragraph plus the current drift and last update time."""
        response = httpx.get(f"{self._api_base_url}/api/v1/story", timeout=30.0)
        response.raise_for_status()
        return StoryReadResponse.model_validate(response.json())

    def trigger_generation(
        self, *, secret: str | None = None
    ) -> TriggerGeneratedResponse | TriggerSkippedResponse:
        """Run one generation cycle on the server; provider latency dominates the timeout."""
        headers = {"Authorization": f"Bearer {secret}"} if secret else {}
        response = httpx.post(
            f"{self._api_base_url}/api/v1/generate",
            headers=headers,
            timeout=120.0,
        )
        response.raise_for_status()
        return _TRIGGER_RESPONSE.validate_python(response.json())


__all__ = ["StoryApiClient"]
