"""Upload orchestration.

Mode selection, chunk sources and the orchestrator that sequences
open, send and finalize calls against a remote gateway.
"""

from docupload.upload.chunk_source import (
    BufferedChunkSource,
    ChunkSource,
    StreamingChunkSource,
    open_chunk_source,
)
from docupload.upload.orchestrator import UploadAttempt, UploadOrchestrator, UploadState
from docupload.upload.request_builder import (
    MULTIPART_THRESHOLD,
    build_session_metadata,
    select_upload_mode,
)

__all__ = [
    "BufferedChunkSource",
    "ChunkSource",
    "StreamingChunkSource",
    "open_chunk_source",
    "UploadAttempt",
    "UploadOrchestrator",
    "UploadState",
    "MULTIPART_THRESHOLD",
    "build_session_metadata",
    "select_upload_mode",
]
