"""Incremental per-fragment synthesis cache.

Responsibilities:
- Fingerprint each fragment's serialized source and merged options.
- Reuse cached audio when both fingerprints match their persisted sentinels.
- Call the synthesizer on a miss and commit audio before sentinels.
"""

from __future__ import annotations

from hashlib import sha256
import json
from typing import Any, Mapping

from ..errors import SynthesisError
from ..io.storage import FragmentStore
from ..models.datatypes import AUDIO_ENCODING, CacheOutcome, Fragment
from .google_client import GoogleProviderError
from .synthesizer import SpeechSynthesizer


_PROVIDER_HINTS = {
    "invalid_api_key": (
        "Set a valid key via `video-narrator credentials --set-api-key`, "
        "`GOOGLE_API_KEY`, or `--api-key`."
    ),
    "quota": "Check Text-to-Speech quota for the project, then rerun.",
    "invalid_request": "Check the fragment markup and voice/audio option values.",
    "timeout": "Rerun the command; unchanged fragments will not be synthesized again.",
    "transport": "Check network/proxy connectivity and rerun.",
}


def _plain(value: Any) -> Any:
    """Convert read-only mappings and tuples into JSON-serializable containers."""

    if isinstance(value, Mapping):
        return {str(key): _plain(item) for key, item in value.items()}
    if isinstance(value, list | tuple):
        return [_plain(item) for item in value]
    return value


def content_fingerprint(fragment: Fragment) -> str:
    """Return the SHA-256 digest of a fragment's serialized source."""

    return sha256(fragment.serialized_source().encode("utf-8")).hexdigest()


def options_fingerprint(fragment: Fragment) -> str:
    """Return the SHA-256 digest of a fragment's canonical merged options."""

    canonical = json.dumps(
        {"voice": _plain(fragment.voice_options), "audio": _plain(fragment.audio_options)},
        sort_keys=True,
        ensure_ascii=True,
        separators=(",", ":"),
    )
    return sha256(canonical.encode("utf-8")).hexdigest()


class FragmentCache:
    """Guarantee each fragment has audio matching its current content and options."""

    def __init__(
        self,
        store: FragmentStore,
        synthesizer: SpeechSynthesizer,
        encoding: str = AUDIO_ENCODING,
    ) -> None:
        """Initialize cache storage and the synthesizer used on misses."""

        self.store = store
        self.synthesizer = synthesizer
        self.encoding = encoding

    def is_current(self, fragment: Fragment) -> bool:
        """Return whether cached audio can be reused without synthesis."""

        name = fragment.name
        try:
            if not self.store.audio_path(name).is_file():
                return False
        except OSError:
            return False
        stored_content = self.store.read_sentinel(self.store.content_sentinel_path(name))
        stored_options = self.store.read_sentinel(self.store.options_sentinel_path(name))
        return (
            stored_content == content_fingerprint(fragment)
            and stored_options == options_fingerprint(fragment)
        )

    def ensure(self, fragment: Fragment) -> CacheOutcome:
        """Reuse or synthesize audio for one fragment.

        Raises:
            SynthesisError: If the synthesizer fails or the audio cannot be
                written. Existing audio and sentinels are left untouched when
                synthesis itself fails.
        """

        name = fragment.name
        audio_path = self.store.audio_path(name)
        if self.is_current(fragment):
            return CacheOutcome(fragment_name=name, audio_path=audio_path, reused=True)

        audio_bytes = self._synthesize(fragment)
        content_digest = content_fingerprint(fragment)
        options_digest = options_fingerprint(fragment)

        content_sentinel = self.store.content_sentinel_path(name)
        options_sentinel = self.store.options_sentinel_path(name)
        try:
            # Sentinels never exist while the audio file is being replaced.
            content_sentinel.unlink(missing_ok=True)
            options_sentinel.unlink(missing_ok=True)
            self.store.write_bytes(audio_path, audio_bytes)
            self.store.write_text(self.store.source_path(name), fragment.serialized_source())
            self.store.write_sentinel(content_sentinel, content_digest)
            self.store.write_sentinel(options_sentinel, options_digest)
        except OSError as exc:
            raise SynthesisError(
                [name],
                f"Failed to store synthesized audio for fragment `{name}`: {exc}",
                hint=f"Verify the cache directory `{self.store.root}` is writable.",
            ) from exc
        return CacheOutcome(fragment_name=name, audio_path=audio_path, reused=False)

    def _synthesize(self, fragment: Fragment) -> bytes:
        """Call the synthesizer with the run's fixed encoding forced in."""

        audio_options = dict(fragment.audio_options)
        audio_options["audioEncoding"] = self.encoding
        try:
            audio_bytes = self.synthesizer.synthesize(
                fragment.kind,
                fragment.serialized_source(),
                dict(fragment.voice_options),
                audio_options,
            )
        except GoogleProviderError as exc:
            raise SynthesisError(
                [fragment.name],
                f"Synthesis failed for fragment `{fragment.name}`: {exc}",
                hint=_PROVIDER_HINTS.get(
                    exc.failure_kind,
                    "Verify the API key and voice/audio options, then rerun.",
                ),
            ) from exc
        except Exception as exc:
            raise SynthesisError(
                [fragment.name],
                f"Synthesis failed for fragment `{fragment.name}`: {exc}",
                hint="Rerun the command; unchanged fragments will not be synthesized again.",
            ) from exc

        if not audio_bytes:
            raise SynthesisError(
                [fragment.name],
                f"Synthesis returned no audio for fragment `{fragment.name}`.",
            )
        return audio_bytes
