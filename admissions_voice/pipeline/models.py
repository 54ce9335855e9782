"""Conversation and turn data models."""

from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel

from admissions_voice.pipeline.audio import encode_data_url

Role = Literal["system", "user", "assistant"]


class ChatMessage(BaseModel):
    """One entry of the caller-supplied conversation history."""

    role: Role
    content: str

    def to_payload(self) -> dict:
        return {"role": self.role, "content": self.content}


@dataclass
class TurnResult:
    """Outcome of one conversational turn."""

    user_text: str
    reply: str
    audio: bytes
    audio_mime_type: str = "audio/mpeg"

    @property
    def audio_data_url(self) -> str:
        return encode_data_url(self.audio, self.audio_mime_type)
