"""OpenAI operation builders for transcription, chat, speech and realtime sessions."""

from typing import Any, Dict, List

from admissions_voice.config import Settings
from admissions_voice.exceptions import ConfigurationError
from admissions_voice.upstream.client import UpstreamOperation

REALTIME_BETA_HEADER = "realtime=v1"

# Upload filename extension by audio MIME subtype
AUDIO_EXTENSIONS = {
    "webm": "webm",
    "ogg": "ogg",
    "mpeg": "mp3",
    "mp3": "mp3",
    "mp4": "mp4",
    "m4a": "m4a",
    "x-m4a": "m4a",
    "wav": "wav",
    "x-wav": "wav",
    "wave": "wav",
    "flac": "flac",
}


def audio_filename(mime_type: str) -> str:
    """Filename sent with the multipart upload, e.g. ``speech.webm``."""
    subtype = mime_type.split("/", 1)[-1].split(";", 1)[0].lower()
    return f"speech.{AUDIO_EXTENSIONS.get(subtype, 'webm')}"


class OpenAIOperations:
    """
    Builds UpstreamOperation descriptors for the OpenAI endpoints.

    Stateless apart from the settings it reads model and voice names from.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.base_url = settings.openai_base_url.rstrip("/")

    def _auth_headers(self) -> Dict[str, str]:
        if not self.settings.openai_api_key:
            raise ConfigurationError("OPENAI_API_KEY not set")
        return {"Authorization": f"Bearer {self.settings.openai_api_key}"}

    def transcription(self, audio: bytes, mime_type: str = "audio/webm") -> UpstreamOperation:
        """Speech-to-text as a multipart upload."""
        return UpstreamOperation(
            name="transcription",
            method="POST",
            url=f"{self.base_url}/audio/transcriptions",
            headers=self._auth_headers(),
            data={"model": self.settings.transcription_model},
            files={"file": (audio_filename(mime_type), audio, mime_type)},
            timeout=self.settings.upstream_timeout_seconds,
        )

    def chat_completion(self, messages: List[Dict[str, str]]) -> UpstreamOperation:
        """Reply generation from the full message sequence."""
        return UpstreamOperation(
            name="chat_completion",
            method="POST",
            url=f"{self.base_url}/chat/completions",
            headers={**self._auth_headers(), "Content-Type": "application/json"},
            json={
                "model": self.settings.text_model,
                "temperature": self.settings.text_temperature,
                "messages": messages,
            },
            timeout=self.settings.upstream_timeout_seconds,
        )

    def speech(self, text: str) -> UpstreamOperation:
        """Text-to-speech; the response body is raw audio."""
        return UpstreamOperation(
            name="speech",
            method="POST",
            url=f"{self.base_url}/audio/speech",
            headers={**self._auth_headers(), "Content-Type": "application/json"},
            json={
                "model": self.settings.tts_model,
                "input": text,
                "voice": self.settings.tts_voice,
                "response_format": self.settings.tts_format,
            },
            timeout=self.settings.upstream_timeout_seconds,
        )

    def realtime_session(self, instructions: str) -> UpstreamOperation:
        """Ephemeral realtime session issuance, bounded by the session timeout."""
        payload: Dict[str, Any] = {
            "model": self.settings.realtime_model,
            "voice": self.settings.realtime_voice,
            "create_response": True,
            "interrupt_response": True,
            "turn_detection": {
                "type": "server_vad",
                "silence_duration_ms": self.settings.realtime_silence_duration_ms,
            },
            # Realtime requires audio+text (or text only), never audio alone
            "modalities": ["audio", "text"],
            "instructions": instructions,
        }
        return UpstreamOperation(
            name="realtime_session",
            method="POST",
            url=f"{self.base_url}/realtime/sessions",
            headers={
                **self._auth_headers(),
                "Content-Type": "application/json",
                "OpenAI-Beta": REALTIME_BETA_HEADER,
            },
            json=payload,
            timeout=self.settings.session_timeout_seconds,
        )
