"""Storage backends for archived audio and transcripts."""

import hashlib
import mimetypes
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

import aiofiles

from admissions_voice.exceptions import ArchiveError


@dataclass
class StorageObject:
    """Metadata for stored object."""
    key: str
    size: int
    content_type: str
    etag: Optional[str] = None
    last_modified: Optional[datetime] = None
    metadata: Dict[str, str] = field(default_factory=dict)
    url: Optional[str] = None


class StorageBackend(ABC):
    """Abstract base class for storage backends."""

    @abstractmethod
    async def upload(
        self,
        data: bytes,
        key: str,
        content_type: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> StorageObject:
        """Upload data to storage."""
        pass

    @abstractmethod
    async def download(self, key: str) -> bytes:
        """Download data from storage."""
        pass

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check if object exists."""
        pass


class LocalStorage(StorageBackend):
    """
    Local filesystem storage backend.

    Usage:
        storage = LocalStorage(base_path="/data/archive")
        await storage.upload(audio_data, "iituitions-voice-2024-01-01.webm")
    """

    def __init__(
        self,
        base_path: str = ".archive",
        base_url: Optional[str] = None,
    ):
        self.base_path = Path(base_path).resolve()
        self.base_url = base_url or f"file://{self.base_path}"

    def _get_full_path(self, key: str) -> Path:
        """Get full path for key, refusing keys that escape the base path."""
        path = (self.base_path / key).resolve()
        if self.base_path not in path.parents:
            raise ArchiveError(f"Invalid storage key: {key}")
        return path

    def _get_content_type(self, key: str) -> str:
        """Get content type for key."""
        mime_type, _ = mimetypes.guess_type(key)
        return mime_type or "application/octet-stream"

    async def upload(
        self,
        data: bytes,
        key: str,
        content_type: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> StorageObject:
        """Upload data to local storage."""
        file_path = self._get_full_path(key)
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(file_path, "wb") as f:
                await f.write(data)
        except OSError as e:
            raise ArchiveError(f"Failed to store {key}: {e}") from e

        return StorageObject(
            key=key,
            size=len(data),
            content_type=content_type or self._get_content_type(key),
            etag=hashlib.md5(data).hexdigest(),
            last_modified=datetime.now(timezone.utc),
            metadata=metadata or {},
            url=f"{self.base_url}/{key}",
        )

    async def download(self, key: str) -> bytes:
        """Download from local storage."""
        file_path = self._get_full_path(key)
        async with aiofiles.open(file_path, "rb") as f:
            return await f.read()

    async def exists(self, key: str) -> bool:
        """Check if exists in local storage."""
        return self._get_full_path(key).exists()
