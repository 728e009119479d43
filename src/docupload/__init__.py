"""Client for uploading files to a document workspace API.

Small payloads are sent in one request; large or unknown-size sources are
streamed as numbered parts with only one chunk held in memory at a time.
"""

from docupload.exceptions import (
    ConfigurationInvalid,
    LocalIoFailure,
    MalformedContentType,
    MalformedResponse,
    RemoteRejected,
    TransportFailure,
    UploadError,
)
from docupload.gateway import HttpUploadGateway, RemoteUploadGateway
from docupload.models.upload import (
    ChunkSourceConfig,
    ContentPart,
    SessionHandle,
    SessionStatus,
    UploadMode,
    UploadSessionMetadata,
)
from docupload.upload import (
    BufferedChunkSource,
    StreamingChunkSource,
    UploadOrchestrator,
)

__all__ = [
    "ConfigurationInvalid",
    "LocalIoFailure",
    "MalformedContentType",
    "MalformedResponse",
    "RemoteRejected",
    "TransportFailure",
    "UploadError",
    "HttpUploadGateway",
    "RemoteUploadGateway",
    "ChunkSourceConfig",
    "ContentPart",
    "SessionHandle",
    "SessionStatus",
    "UploadMode",
    "UploadSessionMetadata",
    "BufferedChunkSource",
    "StreamingChunkSource",
    "UploadOrchestrator",
]
