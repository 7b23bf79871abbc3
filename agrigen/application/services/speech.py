from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Any, Optional, Tuple

import httpx

from ...infra.config import AppSettings
from ...observability.logging_utils import log_event, summarize_text


TRANSLATE_TIMEOUT_SECONDS = 10.0
SYNTHESIS_TIMEOUT_SECONDS = 30.0
URDU_LOCALE = "ur-PK"
URDU_VOICE = "ur-PK-AsadNeural"
AUDIO_CONTENT_TYPE = "audio/mpeg"

TEXT_REQUIRED_MESSAGE = "Text is required"
TTS_NOT_CONFIGURED_MESSAGE = (
    "SpeechActors API key not configured. Please set SPEECHACTOR_TTS environment variable."
)
TTS_FAILED_MESSAGE = "SpeechActors API failed. Using fallback browser TTS."

TRANSLATION_PROVIDER = "google_translate"
PASSTHROUGH_PROVIDER = "passthrough"


class SpeechError(Exception):
    """Text-to-speech failure; ``fallback`` tells the client to use browser TTS."""

    def __init__(
        self,
        status_code: int,
        message: str,
        *,
        fallback: bool = True,
        details: Optional[str] = None,
    ) -> None:
        self.status_code = status_code
        self.message = message
        self.fallback = fallback
        self.details = details
        super().__init__(message)


@dataclass(frozen=True)
class SpeechResult:
    audio: str
    translated_text: str
    translation_provider: str
    content_type: str = AUDIO_CONTENT_TYPE


def parse_translation_payload(payload: Any) -> Optional[str]:
    """Join the sentence chunks of a ``translate_a/single`` response."""
    if not isinstance(payload, list) or not payload or not isinstance(payload[0], list):
        return None
    chunks = [
        str(item[0])
        for item in payload[0]
        if isinstance(item, list) and item and item[0] is not None
    ]
    joined = "".join(chunks)
    return joined or None


class UrduSpeechService:
    """Translates English advice to Urdu and voices it through SpeechActors."""

    def __init__(self, settings: AppSettings, *, transport: Optional[httpx.BaseTransport] = None):
        self._settings = settings
        self._transport = transport

    def translate(self, text: str) -> Tuple[str, str]:
        params = {"client": "gtx", "sl": "en", "tl": "ur", "dt": "t", "q": text}
        try:
            with httpx.Client(timeout=TRANSLATE_TIMEOUT_SECONDS, transport=self._transport) as client:
                response = client.get(self._settings.google_translate_api_url, params=params)
                response.raise_for_status()
                translated = parse_translation_payload(response.json())
        except (httpx.HTTPError, ValueError) as exc:
            log_event("translation_failed", level=logging.WARNING, error=str(exc))
            return text, PASSTHROUGH_PROVIDER
        if not translated:
            log_event("translation_empty", level=logging.WARNING)
            return text, PASSTHROUGH_PROVIDER
        return translated, TRANSLATION_PROVIDER

    def speak(self, text: Optional[str]) -> SpeechResult:
        if not text or not text.strip():
            raise SpeechError(400, TEXT_REQUIRED_MESSAGE, fallback=False)
        cfg = self._settings
        if not cfg.speechactors_api_key or not cfg.speechactors_api_url:
            raise SpeechError(503, TTS_NOT_CONFIGURED_MESSAGE)

        spoken_text, provider = self.translate(text)
        log_event(
            "speech_translated",
            provider=provider,
            text=summarize_text(spoken_text, limit=120),
        )
        payload = {
            "locale": URDU_LOCALE,
            "vid": URDU_VOICE,
            "text": spoken_text,
            "speakingRate": 0,
            "pitch": 0,
        }
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Authorization": f"Bearer {cfg.speechactors_api_key}",
        }
        try:
            with httpx.Client(timeout=SYNTHESIS_TIMEOUT_SECONDS, transport=self._transport) as client:
                response = client.post(cfg.speechactors_api_url, json=payload, headers=headers)
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            log_event("speech_failed", level=logging.ERROR, status=exc.response.status_code)
            raise SpeechError(
                exc.response.status_code,
                TTS_FAILED_MESSAGE,
                details=summarize_text(exc.response.text, limit=200),
            ) from exc
        except httpx.HTTPError as exc:
            log_event("speech_failed", level=logging.ERROR, error=str(exc))
            raise SpeechError(500, TTS_FAILED_MESSAGE, details=str(exc)) from exc

        return SpeechResult(
            audio=base64.b64encode(response.content).decode("ascii"),
            translated_text=spoken_text,
            translation_provider=provider,
        )
