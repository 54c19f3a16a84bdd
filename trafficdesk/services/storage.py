"""
Object storage collaborator.

Attachments and case evidence only keep the URL and `public_id` a backend
returns; the bytes live wherever the backend puts them.
"""
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Callable, Dict, Optional

from trafficdesk.core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class UploadProgress:
    loaded: int
    total: int
    percentage: int


@dataclass
class UploadResult:
    success: bool
    url: Optional[str] = None
    public_id: Optional[str] = None
    file_name: Optional[str] = None
    size: Optional[int] = None
    type: Optional[str] = None  # image | video | raw
    error: Optional[str] = None


ProgressCallback = Callable[[UploadProgress], None]


def resource_type(content_type: str) -> str:
    if content_type.startswith("image/"):
        return "image"
    if content_type.startswith("video/"):
        return "video"
    return "raw"


class StorageBackend(ABC):
    @abstractmethod
    async def upload_file(self, data: bytes, filename: str, content_type: str,
                          folder: Optional[str] = None,
                          on_progress: Optional[ProgressCallback] = None) -> UploadResult:
        ...

    @abstractmethod
    async def delete_file(self, public_id: str) -> bool:
        ...


class MockStorage(StorageBackend):
    """Keeps uploaded bytes in memory and hands out predictable URLs."""

    def __init__(self, base_url: Optional[str] = None, default_folder: Optional[str] = None):
        self.base_url = (base_url or settings.STORAGE_BASE_URL).rstrip("/")
        self.default_folder = default_folder or settings.STORAGE_DEFAULT_FOLDER
        self.files: Dict[str, bytes] = {}

    async def upload_file(self, data, filename, content_type, folder=None, on_progress=None):
        if not filename:
            return UploadResult(success=False, error="Filename is required")

        folder = folder or self.default_folder
        total = len(data)
        if on_progress is not None:
            for percentage in range(10, 101, 10):
                on_progress(UploadProgress(loaded=total * percentage // 100, total=total, percentage=percentage))

        stamp = int(time.time() * 1000)
        stem = PurePosixPath(filename).stem
        public_id = f"{folder}/{stamp}-{stem}"
        self.files[public_id] = bytes(data)

        logger.info("Stored %s (%d bytes) as %s", filename, total, public_id)
        return UploadResult(
            success=True,
            url=f"{self.base_url}/{folder}/{stamp}-{filename}",
            public_id=public_id,
            file_name=filename,
            size=total,
            type=resource_type(content_type),
        )

    async def delete_file(self, public_id):
        removed = self.files.pop(public_id, None) is not None
        if not removed:
            logger.warning("Delete requested for unknown file %s", public_id)
        return removed


def get_storage(provider: Optional[str] = None) -> StorageBackend:
    provider = (provider or settings.STORAGE_PROVIDER).lower()
    if provider == "mock":
        return MockStorage()
    raise ValueError(f"Unsupported storage provider: {provider}")
