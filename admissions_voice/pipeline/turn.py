"""Turn pipeline: transcribe, generate a reply, synthesize speech."""

from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence
from uuid import uuid4

import structlog

from admissions_voice.exceptions import (
    EmptyTranscriptError,
    PermanentUpstreamError,
    RequestAbortedError,
)
from admissions_voice.pipeline.audio import DecodedAudio, decode_audio_payload
from admissions_voice.pipeline.models import ChatMessage, TurnResult
from admissions_voice.pipeline.prompts import REPEAT_FALLBACK_REPLY, TURN_SYSTEM_PROMPT
from admissions_voice.upstream.client import UpstreamResult
from admissions_voice.upstream.openai import OpenAIOperations
from admissions_voice.upstream.retry import RetryingCaller

logger = structlog.get_logger()

SPEECH_MIME_TYPES = {
    "mp3": "audio/mpeg",
    "opus": "audio/ogg",
    "aac": "audio/aac",
    "flac": "audio/flac",
    "wav": "audio/wav",
    "pcm": "audio/pcm",
}

DisconnectCheck = Callable[[], Awaitable[bool]]


def _json_body(result: UpstreamResult, operation: str) -> Dict[str, Any]:
    try:
        body = result.json()
    except ValueError as e:
        raise PermanentUpstreamError(
            f"{operation} returned a non-JSON body",
            operation=operation,
            upstream_status=502,
        ) from e
    if not isinstance(body, dict):
        raise PermanentUpstreamError(
            f"{operation} returned an unexpected body",
            operation=operation,
            upstream_status=502,
        )
    return body


def extract_reply(body: Dict[str, Any]) -> str:
    """First candidate reply of a chat completion, trimmed."""
    choices = body.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return ""
    message = choices[0].get("message")
    if not isinstance(message, dict):
        return ""
    content = message.get("content")
    return content.strip() if isinstance(content, str) else ""


class TurnPipeline:
    """
    Produces a spoken reply from one recorded utterance and prior history.

    Stages run strictly in order:
    1. Decode the audio payload
    2. Transcribe (empty transcript stops the turn)
    3. Generate a reply (empty reply is replaced by a repeat prompt)
    4. Synthesize the reply

    A failure at any stage aborts the turn; no stage is retried beyond the
    RetryingCaller's own policy.
    """

    def __init__(
        self,
        caller: RetryingCaller,
        operations: OpenAIOperations,
        max_audio_bytes: int,
        system_prompt: str = TURN_SYSTEM_PROMPT,
        fallback_reply: str = REPEAT_FALLBACK_REPLY,
    ) -> None:
        self.caller = caller
        self.operations = operations
        self.max_audio_bytes = max_audio_bytes
        self.system_prompt = system_prompt
        self.fallback_reply = fallback_reply
        self.speech_mime_type = SPEECH_MIME_TYPES.get(
            operations.settings.tts_format, "audio/mpeg"
        )

    async def run(
        self,
        audio_payload: str,
        history: Sequence[ChatMessage] = (),
        is_disconnected: Optional[DisconnectCheck] = None,
    ) -> TurnResult:
        """
        Run one conversational turn.

        Args:
            audio_payload: Raw base64 or data-URL encoded audio
            history: Prior conversation, oldest first
            is_disconnected: Optional check run before each upstream stage

        Returns:
            TurnResult with transcript, reply and reply audio
        """
        log = logger.bind(turn_id=str(uuid4()))

        audio = decode_audio_payload(audio_payload, self.max_audio_bytes)
        log.info("Decoded audio", size=audio.size, mime_type=audio.mime_type)

        await self._check_connected(is_disconnected, "transcription")
        user_text = await self.transcribe(audio)
        log.info("Transcribed utterance", text_length=len(user_text))

        await self._check_connected(is_disconnected, "reply generation")
        reply = await self.generate_reply(user_text, history)
        log.info("Generated reply", reply_length=len(reply))

        await self._check_connected(is_disconnected, "speech synthesis")
        speech = await self.synthesize(reply)
        log.info("Synthesized reply", audio_size=len(speech))

        return TurnResult(
            user_text=user_text,
            reply=reply,
            audio=speech,
            audio_mime_type=self.speech_mime_type,
        )

    async def transcribe(self, audio: DecodedAudio) -> str:
        """Speech-to-text. Raises EmptyTranscriptError when nothing was heard."""
        operation = self.operations.transcription(audio.data, audio.mime_type)
        result = await self.caller.call(operation)
        body = _json_body(result, operation.name)

        text = body.get("text")
        if text is not None and not isinstance(text, str):
            raise PermanentUpstreamError(
                f"{operation.name} returned a non-string transcript",
                operation=operation.name,
                upstream_status=502,
            )
        text = (text or "").strip()
        if not text:
            raise EmptyTranscriptError()
        return text

    def build_messages(
        self,
        user_text: str,
        history: Sequence[ChatMessage],
    ) -> List[Dict[str, str]]:
        """System instruction, then history in order, then the new utterance."""
        return [
            {"role": "system", "content": self.system_prompt},
            *(message.to_payload() for message in history),
            {"role": "user", "content": user_text},
        ]

    async def generate_reply(self, user_text: str, history: Sequence[ChatMessage]) -> str:
        """Reply generation. Never returns an empty string."""
        operation = self.operations.chat_completion(self.build_messages(user_text, history))
        result = await self.caller.call(operation)
        reply = extract_reply(_json_body(result, operation.name))
        return reply or self.fallback_reply

    async def synthesize(self, text: str) -> bytes:
        """Text-to-speech; returns the raw audio bytes."""
        operation = self.operations.speech(text)
        result = await self.caller.call(operation)
        if not result.content:
            raise PermanentUpstreamError(
                f"{operation.name} returned no audio",
                operation=operation.name,
                upstream_status=502,
            )
        return result.content

    @staticmethod
    async def _check_connected(is_disconnected: Optional[DisconnectCheck], stage: str) -> None:
        if is_disconnected is not None and await is_disconnected():
            raise RequestAbortedError(stage)
