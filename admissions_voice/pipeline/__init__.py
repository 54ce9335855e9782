"""Turn pipeline for recorded utterances."""

from admissions_voice.pipeline.audio import DecodedAudio, decode_audio_payload, encode_data_url
from admissions_voice.pipeline.models import ChatMessage, TurnResult
from admissions_voice.pipeline.turn import TurnPipeline

__all__ = [
    "DecodedAudio",
    "decode_audio_payload",
    "encode_data_url",
    "ChatMessage",
    "TurnResult",
    "TurnPipeline",
]
