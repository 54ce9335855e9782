"""Decoding of inbound audio payloads and encoding of reply audio."""

import base64
import binascii
import re
from dataclasses import dataclass

from admissions_voice.exceptions import InvalidInputError, PayloadTooLargeError

DEFAULT_INPUT_MIME_TYPE = "audio/webm"

_DATA_URL_RE = re.compile(r"^data:(audio/[\w.+-]+)(?:;[\w.+-]+=[\w.+-]+)*;base64,(.*)$", re.DOTALL)
_WHITESPACE_RE = re.compile(r"\s+")


@dataclass
class DecodedAudio:
    """Audio bytes recovered from a request payload."""

    data: bytes
    mime_type: str = DEFAULT_INPUT_MIME_TYPE

    @property
    def size(self) -> int:
        return len(self.data)


def _max_encoded_length(max_bytes: int) -> int:
    """Longest base64 text (ignoring whitespace) that can decode to ``max_bytes``."""
    return 4 * ((max_bytes + 2) // 3)


def decode_audio_payload(payload: str, max_bytes: int) -> DecodedAudio:
    """
    Decode raw base64 or a ``data:audio/...;base64,`` URL.

    Args:
        payload: Encoded audio from the request body
        max_bytes: Ceiling on the decoded size

    Returns:
        DecodedAudio with non-empty bytes

    Raises:
        InvalidInputError: payload missing, not base64, or decodes to nothing
        PayloadTooLargeError: decoded size exceeds ``max_bytes``
    """
    if not isinstance(payload, str) or not payload.strip():
        raise InvalidInputError("Missing audio data URL")

    match = _DATA_URL_RE.match(payload.strip())
    if match:
        mime_type, encoded = match.group(1).lower(), match.group(2)
    else:
        mime_type, encoded = DEFAULT_INPUT_MIME_TYPE, payload

    encoded = _WHITESPACE_RE.sub("", encoded)

    # Reject oversized payloads before paying for the decode
    if len(encoded) > _max_encoded_length(max_bytes):
        estimated = (len(encoded) * 3) // 4
        raise PayloadTooLargeError(size=estimated, limit=max_bytes)

    try:
        data = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidInputError(f"Audio is not valid base64: {e}") from e

    if not data:
        raise InvalidInputError("Audio payload is empty")

    if len(data) > max_bytes:
        raise PayloadTooLargeError(size=len(data), limit=max_bytes)

    return DecodedAudio(data=data, mime_type=mime_type)


def encode_data_url(data: bytes, mime_type: str = "audio/mpeg") -> str:
    """Wrap audio bytes as a base64 data URL."""
    return f"data:{mime_type};base64,{base64.b64encode(data).decode()}"
