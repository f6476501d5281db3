"""Speech synthesizer interface and Google-backed implementation.

Responsibilities:
- Define the protocol the fragment cache calls on a cache miss.
- Adapt `GoogleSpeechClient` to that protocol.
"""

from __future__ import annotations

from typing import Any, Mapping, Protocol

from ..models.datatypes import FragmentKind
from .google_client import DEFAULT_SPEECH_ENDPOINT, GoogleSpeechClient


class SpeechSynthesizer(Protocol):
    """Protocol for speech-synthesis collaborators."""

    def synthesize(
        self,
        kind: FragmentKind,
        content: str,
        voice_options: Mapping[str, Any],
        audio_options: Mapping[str, Any],
    ) -> bytes:
        """Return encoded audio bytes for one fragment's content."""


class GoogleTTSSynthesizer:
    """Synthesizer backed by the Google Cloud Text-to-Speech REST API."""

    def __init__(
        self,
        api_key: str | None = None,
        endpoint: str = DEFAULT_SPEECH_ENDPOINT,
        timeout_seconds: float = 60.0,
    ) -> None:
        """Initialize the underlying HTTP client."""

        self.client = GoogleSpeechClient(
            api_key=api_key,
            base_url=endpoint,
            timeout_seconds=timeout_seconds,
        )

    def synthesize(
        self,
        kind: FragmentKind,
        content: str,
        voice_options: Mapping[str, Any],
        audio_options: Mapping[str, Any],
    ) -> bytes:
        """Synthesize one fragment and return the encoded audio payload."""

        return self.client.synthesize_speech(
            input_kind=kind.value,
            content=content,
            voice=voice_options,
            audio_config=audio_options,
        )
