"""Core data types and service interfaces shared by the web application."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class VideoMetadata:
    """Identity and upload time of a stored video."""

    id: str
    uploaded_at: datetime


class VideoNotFoundError(LookupError):
    """Raised when a metadata service has no record for a video id."""

    def __init__(self, video_id: str, reason: str | None = None) -> None:
        message = f"{video_id} not found"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.video_id = video_id


class VideoMetadataService(ABC):
    """Stores and retrieves video metadata records."""

    @abstractmethod
    def read(self, video_id: str) -> VideoMetadata:
        """Return the record for ``video_id`` or raise VideoNotFoundError."""

    @abstractmethod
    def list(self) -> list[VideoMetadata]:
        """Return every stored record."""

    @abstractmethod
    def create(self, video_id: str, uploaded_at: datetime) -> None:
        """Store a new record."""


class VideoContentService(ABC):
    """Stores and retrieves the files that make up a video."""

    @abstractmethod
    def read(self, video_id: str, filename: str) -> bytes:
        """Return the contents of one file of a video."""

    @abstractmethod
    def write(self, video_id: str, filename: str, data: bytes) -> None:
        """Store one file of a video."""