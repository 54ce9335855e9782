"""Archive of recorded conversations."""

from admissions_voice.archive.service import ArchiveReceipt, ArchiveService
from admissions_voice.archive.storage import LocalStorage, StorageBackend, StorageObject

__all__ = [
    "ArchiveReceipt",
    "ArchiveService",
    "LocalStorage",
    "StorageBackend",
    "StorageObject",
]
