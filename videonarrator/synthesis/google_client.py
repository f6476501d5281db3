"""Google Cloud Text-to-Speech HTTP client.

Responsibilities:
- Send `text:synthesize` requests to the Text-to-Speech REST API.
- Decode the base64 audio payload into raw encoded bytes.
- Raise actionable provider exceptions for stage-level error mapping.
"""

from __future__ import annotations

import base64
import binascii
import json
import re
import socket
from typing import Any, Mapping

import requests


DEFAULT_SPEECH_ENDPOINT = "https://texttospeech.googleapis.com/v1"


class GoogleProviderError(RuntimeError):
    """Raised when a Text-to-Speech request fails or returns malformed output."""

    def __init__(
        self,
        message: str,
        *,
        failure_kind: str = "unknown",
        status_code: int | None = None,
        provider_status: str | None = None,
    ) -> None:
        """Initialize provider error metadata for stage-aware diagnostics."""

        super().__init__(message)
        self.failure_kind = failure_kind
        self.status_code = status_code
        self.provider_status = provider_status


class GoogleSpeechClient:
    """Minimal requests-based client for the Text-to-Speech `text:synthesize` method."""

    _MAX_PROVIDER_MESSAGE_CHARS = 180

    def __init__(
        self,
        *,
        api_key: str | None,
        base_url: str = DEFAULT_SPEECH_ENDPOINT,
        timeout_seconds: float = 60.0,
    ) -> None:
        """Initialize HTTP client settings."""

        self.api_key = api_key.strip() if isinstance(api_key, str) else ""
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds

    def synthesize_speech(
        self,
        *,
        input_kind: str,
        content: str,
        voice: Mapping[str, Any],
        audio_config: Mapping[str, Any],
    ) -> bytes:
        """Return encoded audio bytes for one `ssml` or `text` input."""

        self._require_api_key()
        if input_kind not in {"ssml", "text"}:
            raise GoogleProviderError(
                f"Unsupported input kind `{input_kind}`; expected `ssml` or `text`.",
                failure_kind="invalid_request",
            )

        payload = {
            "input": {input_kind: content},
            "voice": dict(voice),
            "audioConfig": dict(audio_config),
        }
        raw_payload = self._post_json(endpoint_path="/text:synthesize", payload=payload)
        return self._extract_audio(raw_payload)

    def _require_api_key(self) -> None:
        """Require API key presence before issuing requests."""

        if not self.api_key:
            raise GoogleProviderError(
                "Missing Google API key. Set `GOOGLE_API_KEY`, use `--api-key`, or "
                "`--prompt-api-key`.",
                failure_kind="invalid_api_key",
            )

    def _post_json(self, *, endpoint_path: str, payload: dict[str, Any]) -> bytes:
        """POST a JSON payload and map failures to `GoogleProviderError`."""

        endpoint = f"{self.base_url}{endpoint_path}"
        try:
            response = requests.post(
                endpoint,
                params={"key": self.api_key},
                headers={"Content-Type": "application/json; charset=utf-8"},
                json=payload,
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
            response_bytes = bytes(response.content)
        except requests.HTTPError as exc:
            raise self._http_error_to_provider_error(exc) from exc
        except requests.RequestException as exc:
            failure_kind = self._classify_transport_failure(exc)
            if failure_kind == "timeout":
                detail = "Text-to-Speech request timed out."
            else:
                detail = (
                    "Text-to-Speech request transport error: "
                    f"{self._short_message(str(exc))}"
                )
            raise GoogleProviderError(detail, failure_kind=failure_kind) from exc
        except TimeoutError as exc:
            raise GoogleProviderError(
                "Text-to-Speech request timed out.",
                failure_kind="timeout",
            ) from exc

        if not response_bytes:
            raise GoogleProviderError(
                "Text-to-Speech response is empty.",
                failure_kind="malformed_response",
            )
        return response_bytes

    @staticmethod
    def _extract_audio(raw_payload: bytes) -> bytes:
        """Decode `audioContent` from a `text:synthesize` JSON response."""

        try:
            payload = json.loads(raw_payload.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise GoogleProviderError(
                "Text-to-Speech returned invalid JSON payload.",
                failure_kind="malformed_response",
            ) from exc

        encoded = payload.get("audioContent") if isinstance(payload, dict) else None
        if not isinstance(encoded, str) or not encoded:
            raise GoogleProviderError(
                "Text-to-Speech response missing non-empty `audioContent`.",
                failure_kind="malformed_response",
            )
        try:
            return base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise GoogleProviderError(
                "Text-to-Speech `audioContent` is not valid base64.",
                failure_kind="malformed_response",
            ) from exc

    @classmethod
    def _short_message(cls, text: str) -> str:
        """Normalize and cap user-facing provider message length."""

        compact = " ".join(text.split())
        compact = re.sub(r"([?&]key=)[^&\s]+", r"\1[redacted-key]", compact)
        if len(compact) <= cls._MAX_PROVIDER_MESSAGE_CHARS:
            return compact
        return f"{compact[: cls._MAX_PROVIDER_MESSAGE_CHARS - 1]}..."

    @classmethod
    def _extract_provider_message(cls, body: str) -> tuple[str, str | None]:
        """Extract a concise provider message and optional canonical status code."""

        if not body:
            return "", None

        try:
            payload = json.loads(body)
        except json.JSONDecodeError:
            return cls._short_message(body), None

        provider_status: str | None = None
        message: str | None = None
        if isinstance(payload, dict):
            error_payload = payload.get("error")
            if isinstance(error_payload, dict):
                status_value = error_payload.get("status")
                if isinstance(status_value, str) and status_value.strip():
                    provider_status = status_value.strip()
                message_value = error_payload.get("message")
                if isinstance(message_value, str) and message_value.strip():
                    message = message_value.strip()

        return cls._short_message(message or body), provider_status

    @staticmethod
    def _classify_http_failure(
        status_code: int,
        provider_message: str,
        provider_status: str | None,
    ) -> str:
        """Classify HTTP errors into deterministic diagnostic kinds."""

        message_lower = provider_message.lower()
        normalized_status = (provider_status or "").upper()

        if status_code in {401, 403} or "api key" in message_lower:
            return "invalid_api_key"
        if status_code == 429 or normalized_status == "RESOURCE_EXHAUSTED":
            return "quota"
        if status_code == 400 or normalized_status == "INVALID_ARGUMENT":
            return "invalid_request"
        if status_code in {408, 504} or normalized_status == "DEADLINE_EXCEEDED":
            return "timeout"
        return "http_error"

    @staticmethod
    def _classify_transport_failure(reason: object) -> str:
        """Classify network-layer failures into deterministic diagnostic kinds."""

        if isinstance(reason, TimeoutError | socket.timeout | requests.Timeout):
            return "timeout"
        return "transport"

    @classmethod
    def _http_error_to_provider_error(cls, exc: requests.HTTPError) -> GoogleProviderError:
        """Convert HTTP errors into normalized provider exceptions with metadata."""

        response = exc.response
        status_code = response.status_code if response is not None else 0
        body = ""
        if response is not None:
            body = bytes(response.content).decode("utf-8", errors="replace").strip()
        provider_message, provider_status = cls._extract_provider_message(body)
        failure_kind = cls._classify_http_failure(status_code, provider_message, provider_status)

        headline = {
            "invalid_api_key": "Text-to-Speech authentication failed",
            "quota": "Text-to-Speech quota exhausted",
            "invalid_request": "Text-to-Speech rejected the request",
            "timeout": "Text-to-Speech request timed out",
        }.get(failure_kind, "Text-to-Speech request failed")

        if provider_message:
            detail = f"{headline} (HTTP {status_code}): {provider_message}"
        else:
            detail = f"{headline} (HTTP {status_code})."

        return GoogleProviderError(
            detail,
            failure_kind=failure_kind,
            status_code=status_code,
            provider_status=provider_status,
        )
