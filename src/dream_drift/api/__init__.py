"""Public API surface for HTTP serving and Python-first interfaces."""

from dream_drift.api.app import create_app
from dream_drift.api.contracts import (
    ParagraphResponse,
    StoryReadResponse,
    TriggerGeneratedResponse,
    TriggerSkippedResponse,
)
from dream_drift.api.python_interface import StoryApiClient

__all__ = [
    "ParagraphResponse",
    "StoryApiClient",
    "StoryReadResponse",
    "TriggerGeneratedResponse",
    "TriggerSkippedResponse",
    "create_app",
]
