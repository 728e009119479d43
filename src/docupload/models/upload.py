"""Upload data models."""

import mimetypes
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from docupload.core.config import settings
from docupload.exceptions import ConfigurationInvalid, LocalIoFailure

DEFAULT_CONTENT_TYPE = "application/octet-stream"


class UploadMode(str, Enum):
    """Transfer mode of an upload session."""

    SINGLE_PART = "single_part"  # One send call carrying the whole payload
    MULTI_PART = "multi_part"  # Numbered parts followed by a finalize call


class SessionStatus(str, Enum):
    """Remote status of an upload session."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETE = "complete"
    FAILED = "failed"

    @classmethod
    def _missing_(cls, value):
        if value == "upload_failed":
            return cls.FAILED
        return None


class UploadSessionMetadata(BaseModel):
    """Request body for opening an upload session."""

    filename: str
    content_type: str = DEFAULT_CONTENT_TYPE
    content_length: int = Field(0, ge=0, description="Declared length in bytes, 0 when unknown")
    mode: UploadMode = UploadMode.SINGLE_PART

    @classmethod
    def single_part(cls, filename: str, content_type: str, content_length: int) -> "UploadSessionMetadata":
        """Create metadata for a single-part session."""
        return cls(
            filename=filename,
            content_type=content_type,
            content_length=content_length,
            mode=UploadMode.SINGLE_PART,
        )

    @classmethod
    def multi_part(cls, filename: str, content_type: str, content_length: int = 0) -> "UploadSessionMetadata":
        """Create metadata for a multi-part session."""
        return cls(
            filename=filename,
            content_type=content_type,
            content_length=content_length,
            mode=UploadMode.MULTI_PART,
        )

    def to_request_body(self) -> dict:
        """Serialize to the JSON body expected by the create endpoint."""
        return self.model_dump(mode="json")


class SessionHandle(BaseModel):
    """Upload session as echoed by the remote side.

    Only ``id`` and ``status`` are guaranteed; everything else depends on the
    endpoint that produced the handle.
    """

    model_config = ConfigDict(extra="ignore")

    id: str
    object: str = "file_upload"
    status: SessionStatus
    filename: Optional[str] = None
    content_type: Optional[str] = None
    content_length: Optional[int] = None
    upload_url: Optional[str] = Field(None, description="Single-use content submission endpoint")
    complete_url: Optional[str] = None
    expiry_time: Optional[datetime] = None
    created_time: Optional[datetime] = None
    last_edited_time: Optional[datetime] = None
    archived: bool = False
    request_id: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        """True once the remote side will not change the status any more."""
        return self.status in (SessionStatus.COMPLETE, SessionStatus.FAILED)


class ErrorBody(BaseModel):
    """Error payload returned by the remote side with a non-2xx status."""

    model_config = ConfigDict(extra="ignore")

    object: Optional[str] = None
    status: Optional[int] = None
    code: Optional[str] = None
    message: Optional[str] = None
    request_id: Optional[str] = None


@dataclass(frozen=True)
class ContentPart:
    """One content transmission for a session.

    ``part_number`` is set only for multi-part sessions and is 1-indexed.
    """

    session_id: str
    filename: str
    content_type: str
    data: bytes
    part_number: Optional[int] = None

    def __post_init__(self):
        if self.part_number is not None and self.part_number < 1:
            raise ConfigurationInvalid(f"part_number must be >= 1, got {self.part_number}")

    @property
    def size_bytes(self) -> int:
        return len(self.data)


def _default_chunk_size() -> int:
    return settings.chunk_size_bytes


@dataclass(frozen=True)
class ChunkSourceConfig:
    """Describes the file behind a chunk source.

    ``total_size`` of ``None`` means the length is unknown, which forces
    multi-part mode.
    """

    filename: str
    content_type: str = DEFAULT_CONTENT_TYPE
    total_size: Optional[int] = None
    chunk_size: int = field(default_factory=_default_chunk_size)

    def __post_init__(self):
        if self.chunk_size <= 0:
            raise ConfigurationInvalid(f"chunk_size must be positive, got {self.chunk_size}")
        if self.total_size is not None and self.total_size < 0:
            raise ConfigurationInvalid(f"total_size must not be negative, got {self.total_size}")

    @property
    def has_known_size(self) -> bool:
        return self.total_size is not None

    @classmethod
    def for_known_size(cls, filename: str, content_type: str, total_size: int) -> "ChunkSourceConfig":
        """Config for a source whose length is known up front."""
        return cls(filename=filename, content_type=content_type, total_size=total_size)

    @classmethod
    def for_unknown_size(cls, filename: str, content_type: str) -> "ChunkSourceConfig":
        """Config for network streams, pipes and generated content."""
        return cls(filename=filename, content_type=content_type, total_size=None)

    @classmethod
    def from_buffer(
        cls, filename: str, data: Union[bytes, bytearray, memoryview], content_type: Optional[str] = None
    ) -> "ChunkSourceConfig":
        """Config for an in-memory payload, guessing the MIME type from the filename."""
        return cls(
            filename=filename,
            content_type=content_type or guess_content_type(filename),
            total_size=len(data),
        )

    @classmethod
    def from_file_path(cls, file_path: Union[str, Path]) -> "ChunkSourceConfig":
        """Config for a file on disk, with MIME type and size detected.

        Raises:
            LocalIoFailure: If the file cannot be stat'ed
        """
        path = Path(file_path)
        try:
            total_size = path.stat().st_size
        except OSError as e:
            raise LocalIoFailure(f"Cannot read size of {path}: {e}") from e

        return cls(
            filename=path.name or "unknown",
            content_type=guess_content_type(path.name),
            total_size=total_size,
        )

    def with_chunk_size(self, chunk_size: int) -> "ChunkSourceConfig":
        """Return a copy using another chunk size."""
        return replace(self, chunk_size=chunk_size)


def guess_content_type(filename: str) -> str:
    """Guess a MIME type from a filename, falling back to octet-stream."""
    content_type, _ = mimetypes.guess_type(filename)
    return content_type or DEFAULT_CONTENT_TYPE
