"""Chunk sources feeding the upload orchestrator.

A chunk source hands out a forward-only sequence of non-empty byte chunks,
each at most ``chunk_size`` bytes, and reports the total length when it is
known. Two implementations exist: one slicing an in-memory buffer and one
draining an incremental reader with a single reusable buffer.
"""

import asyncio
import inspect
import logging
from typing import Any, Optional, Protocol, Union, runtime_checkable

from docupload.exceptions import ConfigurationInvalid, LocalIoFailure
from docupload.models.upload import ChunkSourceConfig

logger = logging.getLogger(__name__)

BytesLike = Union[bytes, bytearray, memoryview]


@runtime_checkable
class ChunkSource(Protocol):
    """Capability consumed by the orchestrator."""

    @property
    def total_size(self) -> Optional[int]:
        """Total length in bytes, or None when unknown."""
        ...

    async def next_chunk(self) -> Optional[bytes]:
        """Return the next non-empty chunk, or None at end of source."""
        ...

    async def read_to_end(self) -> bytes:
        """Return everything not yet consumed as one buffer."""
        ...


class BufferedChunkSource:
    """Chunk source over a payload that is already in memory."""

    def __init__(self, data: BytesLike, chunk_size: int):
        if chunk_size <= 0:
            raise ConfigurationInvalid(f"chunk_size must be positive, got {chunk_size}")
        self._view = memoryview(data).cast("B")
        self._chunk_size = chunk_size
        self._offset = 0

    @property
    def total_size(self) -> int:
        return len(self._view)

    @property
    def remaining(self) -> int:
        return len(self._view) - self._offset

    async def next_chunk(self) -> Optional[bytes]:
        if self._offset >= len(self._view):
            return None
        end = min(self._offset + self._chunk_size, len(self._view))
        chunk = self._view[self._offset:end].tobytes()
        self._offset = end
        return chunk

    async def read_to_end(self) -> bytes:
        data = self._view[self._offset:].tobytes()
        self._offset = len(self._view)
        return data


class StreamingChunkSource:
    """Chunk source over an incremental reader.

    Accepts blocking binary readers (files, pipes, socket files), which are
    read in a worker thread, and asyncio-style readers whose ``read`` is a
    coroutine. Each call fills one reusable buffer of ``chunk_size`` bytes,
    so memory use does not grow with the size of the source.
    """

    def __init__(self, reader: Any, chunk_size: int, total_size: Optional[int] = None):
        if chunk_size <= 0:
            raise ConfigurationInvalid(f"chunk_size must be positive, got {chunk_size}")
        if not callable(getattr(reader, "read", None)):
            raise ConfigurationInvalid(f"{type(reader).__name__} has no read() method")

        self._reader = reader
        self._buffer = bytearray(chunk_size)
        self._total_size = total_size
        self._exhausted = False
        self._is_async = inspect.iscoroutinefunction(reader.read)
        self.bytes_read = 0

    @property
    def total_size(self) -> Optional[int]:
        return self._total_size

    async def _read_into(self, view: memoryview) -> int:
        if self._is_async:
            data = await self._reader.read(len(view))
            return self._copy_into(view, data)

        readinto = getattr(self._reader, "readinto", None)
        if readinto is not None:
            count = await asyncio.to_thread(readinto, view)
            if count is None:
                raise LocalIoFailure("Reader is non-blocking and has no data available")
            return count

        data = await asyncio.to_thread(self._reader.read, len(view))
        return self._copy_into(view, data)

    @staticmethod
    def _copy_into(view: memoryview, data) -> int:
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise TypeError(
                f"reader returned {type(data).__name__}, expected bytes; "
                "open files in binary mode"
            )
        view[:len(data)] = data
        return len(data)

    async def next_chunk(self) -> Optional[bytes]:
        if self._exhausted:
            return None

        view = memoryview(self._buffer)
        filled = 0
        try:
            # Short reads are normal for pipes and sockets; keep reading
            # until the chunk is full or the reader reports EOF.
            while filled < len(view):
                count = await self._read_into(view[filled:])
                if count == 0:
                    self._exhausted = True
                    break
                filled += count
        except (OSError, ValueError, TypeError) as e:
            logger.error(
                "Failed to read from upload source",
                extra={"bytes_read": self.bytes_read + filled, "error": str(e)},
            )
            raise LocalIoFailure(f"Failed to read from source: {e}") from e

        if filled == 0:
            return None

        self.bytes_read += filled
        return bytes(view[:filled])

    async def read_to_end(self) -> bytes:
        chunks = []
        while (chunk := await self.next_chunk()) is not None:
            chunks.append(chunk)
        return b"".join(chunks)


def open_chunk_source(source: Any, config: ChunkSourceConfig) -> ChunkSource:
    """Wrap a caller-supplied source descriptor in a chunk source.

    Args:
        source: Bytes-like payload, an existing chunk source, or a reader
        config: Filename, size and chunk size of the upload

    Returns:
        A chunk source producing chunks of ``config.chunk_size`` bytes

    Raises:
        ConfigurationInvalid: If the descriptor is not a supported type
    """
    if isinstance(source, (bytes, bytearray, memoryview)):
        return BufferedChunkSource(source, config.chunk_size)
    if isinstance(source, ChunkSource):
        return source
    if callable(getattr(source, "read", None)):
        return StreamingChunkSource(source, config.chunk_size, total_size=config.total_size)
    raise ConfigurationInvalid(f"Unsupported upload source: {type(source).__name__}")
