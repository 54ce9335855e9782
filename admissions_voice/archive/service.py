"""Archiving of a conversation's recorded audio and transcript."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

import structlog

from admissions_voice.archive.storage import StorageBackend
from admissions_voice.exceptions import PayloadTooLargeError
from admissions_voice.upstream.openai import AUDIO_EXTENSIONS

logger = structlog.get_logger()

ARCHIVE_PREFIX = "iituitions-voice"


@dataclass
class ArchiveReceipt:
    """Keys of the stored objects."""

    audio_file_id: Optional[str]
    transcript_file_id: str


def archive_basename(now: Optional[datetime] = None) -> str:
    """``iituitions-voice-<timestamp>-<suffix>`` with filesystem-safe characters."""
    now = now or datetime.now(timezone.utc)
    stamp = now.isoformat().replace(":", "-").replace(".", "-").replace("+", "-")
    return f"{ARCHIVE_PREFIX}-{stamp}-{uuid4().hex[:8]}"


class ArchiveService:
    """Stores audio (when present) and transcript JSON side by side."""

    def __init__(self, storage: StorageBackend, max_bytes: int) -> None:
        self.storage = storage
        self.max_bytes = max_bytes

    async def archive(
        self,
        audio: bytes,
        audio_mime_type: str = "audio/webm",
        transcript_json: str = "{}",
    ) -> ArchiveReceipt:
        if len(audio) > self.max_bytes:
            raise PayloadTooLargeError(size=len(audio), limit=self.max_bytes)

        base = archive_basename()
        audio_key = None

        if audio:
            subtype = audio_mime_type.split("/", 1)[-1].split(";", 1)[0].lower()
            audio_key = f"{base}.{AUDIO_EXTENSIONS.get(subtype, 'webm')}"
            await self.storage.upload(audio, audio_key, content_type=audio_mime_type)

        transcript_key = f"{base}.json"
        await self.storage.upload(
            (transcript_json or "{}").encode("utf-8"),
            transcript_key,
            content_type="application/json",
        )

        logger.info(
            "Archived conversation",
            audio_key=audio_key,
            transcript_key=transcript_key,
            audio_size=len(audio),
        )
        return ArchiveReceipt(audio_file_id=audio_key, transcript_file_id=transcript_key)
