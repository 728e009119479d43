"""Orchestrator for the file upload protocol.

One upload call opens exactly one remote session, transmits the content in
either one send (single_part) or numbered parts (multi_part), and finalizes
multi-part sessions. Any failure aborts the call; the remote session is left
as it is and its id is attached to the raised error.
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

from docupload.core.config import settings
from docupload.core.logging import upload_session_context
from docupload.exceptions import LocalIoFailure, UploadError
from docupload.gateway import RemoteUploadGateway, validate_content_type
from docupload.models.upload import (
    ChunkSourceConfig,
    ContentPart,
    SessionHandle,
    UploadMode,
    UploadSessionMetadata,
)
from docupload.upload.chunk_source import ChunkSource, open_chunk_source
from docupload.upload.request_builder import build_session_metadata

logger = logging.getLogger(__name__)


class UploadState(str, Enum):
    """Progress of a single upload call."""

    CREATED = "created"
    METADATA_RESOLVED = "metadata_resolved"
    SESSION_OPEN = "session_open"
    TRANSMITTING = "transmitting"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


_TRANSITIONS = {
    UploadState.CREATED: {UploadState.METADATA_RESOLVED, UploadState.FAILED},
    UploadState.METADATA_RESOLVED: {UploadState.SESSION_OPEN, UploadState.FAILED},
    UploadState.SESSION_OPEN: {UploadState.TRANSMITTING, UploadState.FAILED},
    UploadState.TRANSMITTING: {UploadState.FINALIZING, UploadState.DONE, UploadState.FAILED},
    UploadState.FINALIZING: {UploadState.DONE, UploadState.FAILED},
    UploadState.DONE: set(),
    UploadState.FAILED: set(),
}


@dataclass
class UploadAttempt:
    """Bookkeeping for one upload call."""

    filename: str
    state: UploadState = UploadState.CREATED
    mode: Optional[UploadMode] = None
    session_id: Optional[str] = None
    parts_sent: int = 0
    bytes_sent: int = 0

    def advance(self, new_state: UploadState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal upload transition {self.state.value} -> {new_state.value}")
        logger.debug(
            "Upload state transition",
            extra={
                "upload_filename": self.filename,
                "from_state": self.state.value,
                "to_state": new_state.value,
                "parts_sent": self.parts_sent,
            },
        )
        self.state = new_state


class UploadOrchestrator:
    """Drives upload sessions against a remote gateway.

    Holds no per-upload state, so one instance can serve concurrent uploads.

    Args:
        gateway: Remote operations used to open, fill and finalize sessions
        multipart_threshold: Known sizes at or above this many bytes are
            uploaded as multi_part when the mode is chosen automatically
    """

    def __init__(self, gateway: RemoteUploadGateway, multipart_threshold: Optional[int] = None):
        self.gateway = gateway
        self.multipart_threshold = (
            multipart_threshold if multipart_threshold is not None else settings.multipart_threshold_bytes
        )

    async def upload_auto(self, source: Any, config: ChunkSourceConfig) -> SessionHandle:
        """Upload with the mode chosen from the declared size.

        Sizes under the threshold go single_part, larger or unknown sizes go
        multi_part. This is the recommended entry point.
        """
        return await self.upload(source, config)

    async def upload_with_explicit_mode(
        self, source: Any, config: ChunkSourceConfig, mode: UploadMode
    ) -> SessionHandle:
        """Upload with a caller-pinned mode.

        Raises:
            ConfigurationInvalid: If single_part is requested for an unknown size
        """
        return await self.upload(source, config, mode=mode)

    async def upload(
        self, source: Any, config: ChunkSourceConfig, mode: Optional[UploadMode] = None
    ) -> SessionHandle:
        """Upload a source in one remote session.

        Args:
            source: Bytes-like payload, a binary or asyncio reader, or a ChunkSource
            config: Filename, content type, optional total size and chunk size
            mode: Explicit mode, or None to choose automatically

        Returns:
            The final session: the finalize response for multi_part, the
            send response (or the opened session) for single_part

        Raises:
            ConfigurationInvalid: Before any remote call, for unusable input
                such as an unknown mode or a malformed content type
            TransportFailure, RemoteRejected, MalformedResponse, LocalIoFailure:
                When the sequence fails part way
        """
        attempt = UploadAttempt(filename=config.filename)

        try:
            chunk_source = open_chunk_source(source, config)
            if config.total_size is None and chunk_source.total_size is not None:
                config = replace(config, total_size=chunk_source.total_size)

            metadata = build_session_metadata(config, mode=mode, threshold=self.multipart_threshold)
            validate_content_type(metadata.content_type)
            attempt.mode = metadata.mode
            attempt.advance(UploadState.METADATA_RESOLVED)

            session = await self.gateway.open_session(metadata)
            attempt.session_id = session.id
            attempt.advance(UploadState.SESSION_OPEN)
        except UploadError as e:
            self._fail(attempt, e)
            raise

        token = upload_session_context.set(session.id)
        try:
            logger.info(
                "Upload session opened",
                extra={
                    "session_id": session.id,
                    "upload_filename": metadata.filename,
                    "mode": metadata.mode.value,
                    "declared_length": metadata.content_length,
                    "chunk_size": config.chunk_size,
                },
            )

            attempt.advance(UploadState.TRANSMITTING)
            if metadata.mode is UploadMode.SINGLE_PART:
                result = await self._send_single_part(attempt, session, metadata, chunk_source)
            else:
                result = await self._send_multi_part(attempt, session, metadata, chunk_source)
            attempt.advance(UploadState.DONE)

            logger.info(
                "Upload completed",
                extra={
                    "session_id": session.id,
                    "mode": metadata.mode.value,
                    "parts_sent": attempt.parts_sent,
                    "bytes_sent": attempt.bytes_sent,
                    "status": result.status.value,
                },
            )
            return result
        except UploadError as e:
            self._fail(attempt, e)
            raise
        finally:
            upload_session_context.reset(token)

    async def _send_single_part(
        self,
        attempt: UploadAttempt,
        session: SessionHandle,
        metadata: UploadSessionMetadata,
        chunk_source: ChunkSource,
    ) -> SessionHandle:
        data = await chunk_source.read_to_end()
        part = ContentPart(
            session_id=session.id,
            filename=metadata.filename,
            content_type=metadata.content_type,
            data=data,
        )
        echoed = await self.gateway.send_content(part)
        attempt.parts_sent = 1
        attempt.bytes_sent = len(data)
        return echoed if echoed is not None else session

    async def _send_multi_part(
        self,
        attempt: UploadAttempt,
        session: SessionHandle,
        metadata: UploadSessionMetadata,
        chunk_source: ChunkSource,
    ) -> SessionHandle:
        part_number = 1
        while (chunk := await chunk_source.next_chunk()) is not None:
            if not chunk:
                continue
            part = ContentPart(
                session_id=session.id,
                filename=metadata.filename,
                content_type=metadata.content_type,
                data=chunk,
                part_number=part_number,
            )
            await self.gateway.send_content(part)
            attempt.parts_sent = part_number
            attempt.bytes_sent += len(chunk)
            logger.debug(
                "Sent upload part",
                extra={"session_id": session.id, "part_number": part_number, "size_bytes": len(chunk)},
            )
            part_number += 1

        if attempt.parts_sent == 0:
            logger.warning(
                "Multi-part source was empty, finalizing session with no parts",
                extra={"session_id": session.id},
            )

        attempt.advance(UploadState.FINALIZING)
        return await self.gateway.finalize_session(session.id)

    @staticmethod
    def _fail(attempt: UploadAttempt, error: UploadError) -> None:
        failed_state = attempt.state
        attempt.advance(UploadState.FAILED)

        error.session_id = attempt.session_id
        error.parts_sent = attempt.parts_sent
        error.failed_state = failed_state.value

        logger.error(
            "Upload failed",
            extra={
                "session_id": attempt.session_id,
                "upload_filename": attempt.filename,
                "mode": attempt.mode.value if attempt.mode else None,
                "failed_state": failed_state.value,
                "parts_sent": attempt.parts_sent,
                "bytes_sent": attempt.bytes_sent,
                "error": str(error),
                "error_type": type(error).__name__,
            },
        )

    async def upload_bytes(
        self,
        filename: str,
        data: Union[bytes, bytearray, memoryview],
        content_type: Optional[str] = None,
        mode: Optional[UploadMode] = None,
    ) -> SessionHandle:
        """Upload an in-memory payload, guessing the MIME type from the filename."""
        config = ChunkSourceConfig.from_buffer(filename, data, content_type=content_type)
        return await self.upload(data, config, mode=mode)

    async def upload_file(
        self,
        file_path: Union[str, Path],
        mode: Optional[UploadMode] = None,
        chunk_size: Optional[int] = None,
    ) -> SessionHandle:
        """Stream a file from disk, detecting its size and MIME type."""
        config = await asyncio.to_thread(ChunkSourceConfig.from_file_path, file_path)
        if chunk_size is not None:
            config = config.with_chunk_size(chunk_size)

        try:
            handle = await asyncio.to_thread(open, file_path, "rb")
        except OSError as e:
            raise LocalIoFailure(f"Cannot open {file_path}: {e}") from e

        with handle:
            return await self.upload(handle, config, mode=mode)

    async def upload_stream_unknown_size(
        self,
        reader: Any,
        filename: str,
        content_type: str,
        chunk_size: Optional[int] = None,
    ) -> SessionHandle:
        """Upload from a stream whose length is not known ahead of time.

        Always multi_part; only one chunk is held in memory at a time.
        """
        config = ChunkSourceConfig.for_unknown_size(filename, content_type)
        if chunk_size is not None:
            config = config.with_chunk_size(chunk_size)
        return await self.upload(reader, config, mode=UploadMode.MULTI_PART)
