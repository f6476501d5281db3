"""Speech synthesis client, synthesizer protocol, and incremental fragment cache."""

from .cache import FragmentCache, content_fingerprint, options_fingerprint
from .google_client import GoogleProviderError, GoogleSpeechClient
from .synthesizer import GoogleTTSSynthesizer, SpeechSynthesizer

__all__ = [
    "FragmentCache",
    "GoogleProviderError",
    "GoogleSpeechClient",
    "GoogleTTSSynthesizer",
    "SpeechSynthesizer",
    "content_fingerprint",
    "options_fingerprint",
]
