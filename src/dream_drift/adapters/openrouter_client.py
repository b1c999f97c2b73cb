"""OpenRouter chat-completions adapter for paragraph generation."""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from dream_drift.core.prompting import build_prompts, clean_generated_text
from dream_drift.domain.errors import GenerationError
from dream_drift.domain.models import GenerationContext
from dream_drift.settings import DEFAULT_MODEL, DEFAULT_OPENROUTER_URL, RuntimeSettings

logger = logging.getLogger(__name__)


class OpenRouterParagraphGenerator:
    """Single-shot paragraph generation; retries belong to the caller."""

    def __init__(
        self,
        *,
        api_key: str | None,
        api_url: str = DEFAULT_OPENROUTER_URL,
        model: str = DEFAULT_MODEL,
        max_tokens: int = 400,
        temperature: float = 0.8,
        timeout_seconds: float = 30.0,
        site_url: str | None = None,
        app_title: str = "Dream Drift",
        client: httpx.Client | None = None,
    ) -> None:
        self._api_key = api_key
        self._api_url = api_url
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._timeout_seconds = timeout_seconds
        self._site_url = site_url
        self._app_title = app_title
        self._client = client

    @classmethod
    def from_settings(
        cls, settings: RuntimeSettings, *, client: httpx.Client | None = None
    ) -> OpenRouterParagraphGenerator:
        return cls(
            api_key=settings.openrouter_api_key,
            api_url=settings.openrouter_url,
            model=settings.model,
            max_tokens=settings.max_tokens,
            temperature=settings.temperature,
            timeout_seconds=settings.generation_timeout_seconds,
            site_url=settings.site_url,
            app_title=settings.app_title,
            client=client,
        )

    def generate(self, context: GenerationContext) -> str:
        """Request one paragraph for the given story context."""
        if not self._api_key:
            raise GenerationError("OpenRouter API key is not configured.")
        prompts = build_prompts(context)
        payload: dict[str, Any] = {
            "model": self._model,
            "max_tokens": self._max_tokens,
            "temperature": self._temperature,
            "messages": [
                {"role": "system", "content": prompts.system},
                {"role": "user", "content": prompts.user},
            ],
        }
        started = time.monotonic()
        try:
            if self._client is not None:
                response = self._client.post(self._api_url, json=payload, headers=self._headers())
            else:
                with httpx.Client(timeout=self._timeout_seconds) as client:
                    response = client.post(self._api_url, json=payload, headers=self._headers())
        except httpx.TimeoutException as exc:
            raise GenerationError(
                f"OpenRouter request timed out after {self._timeout_seconds:.0f}s."
            ) from exc
        except httpx.HTTPError as exc:
            raise GenerationError(f"OpenRouter request failed: {exc}") from exc

        elapsed_ms = int((time.monotonic() - started) * 1000)
        if not response.is_success:
            logger.error(
                "generation.provider_error status=%s elapsed_ms=%s body=%s",
                response.status_code,
                elapsed_ms,
                response.text[:500],
            )
            raise GenerationError(
                f"OpenRouter API error: {response.status_code} {response.text[:200]}"
            )
        logger.info("generation.provider_ok model=%s elapsed_ms=%s", self._model, elapsed_ms)
        return clean_generated_text(_extract_content(response))

    def _headers(self) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
            "X-Title": self._app_title,
        }
        if self._site_url:
            headers["HTTP-Referer"] = self._site_url
        return headers


def _extract_content(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError as exc:
        raise GenerationError("OpenRouter response was not valid JSON.") from exc
    if not isinstance(data, dict):
        raise GenerationError("Unexpected response format from OpenRouter")
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        raise GenerationError("Unexpected response format from OpenRouter")
    message = choices[0].get("message")
    if not isinstance(message, dict):
        raise GenerationError("Unexpected response format from OpenRouter")
    content = message.get("content")
    if not isinstance(content, str):
        raise GenerationError("Unexpected response format from OpenRouter")
    return content
