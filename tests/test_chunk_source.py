"""Tests for chunk sources."""

import asyncio
import io

import pytest

from docupload.exceptions import ConfigurationInvalid, LocalIoFailure
from docupload.models.upload import ChunkSourceConfig
from docupload.upload.chunk_source import (
    BufferedChunkSource,
    ChunkSource,
    StreamingChunkSource,
    open_chunk_source,
)


class TrickleReader:
    """Blocking reader that returns at most ``step`` bytes per read."""

    def __init__(self, data, step):
        self._stream = io.BytesIO(data)
        self._step = step
        self.read_sizes = []

    def read(self, size):
        self.read_sizes.append(size)
        return self._stream.read(min(size, self._step))


async def drain(source):
    chunks = []
    while (chunk := await source.next_chunk()) is not None:
        chunks.append(chunk)
    return chunks


def make_source(kind, data, chunk_size):
    if kind == "buffered":
        return BufferedChunkSource(data, chunk_size)
    return StreamingChunkSource(io.BytesIO(data), chunk_size)


class TestBufferedChunkSource:
    """Tests for the in-memory chunk source."""

    @pytest.mark.asyncio
    async def test_last_chunk_is_shorter(self):
        """Test slicing into full chunks plus a remainder."""
        source = BufferedChunkSource(b"abcdefghij", chunk_size=4)

        assert await drain(source) == [b"abcd", b"efgh", b"ij"]
        assert await source.next_chunk() is None

    @pytest.mark.asyncio
    async def test_total_size_and_remaining(self):
        """Test that the buffer reports its length."""
        source = BufferedChunkSource(bytearray(b"abcdef"), chunk_size=4)

        assert source.total_size == 6
        await source.next_chunk()
        assert source.remaining == 2

    @pytest.mark.asyncio
    async def test_read_to_end_after_partial_consumption(self):
        """Test that read_to_end returns only unconsumed bytes."""
        source = BufferedChunkSource(memoryview(b"abcdefgh"), chunk_size=3)

        assert await source.next_chunk() == b"abc"
        assert await source.read_to_end() == b"defgh"
        assert await source.next_chunk() is None

    def test_rejects_non_positive_chunk_size(self):
        """Test chunk size validation."""
        with pytest.raises(ConfigurationInvalid):
            BufferedChunkSource(b"abc", chunk_size=0)


class TestStreamingChunkSource:
    """Tests for the incremental chunk source."""

    @pytest.mark.asyncio
    async def test_chunks_from_binary_reader(self):
        """Test reading a file-like object in chunks."""
        source = StreamingChunkSource(io.BytesIO(b"0123456789"), chunk_size=4)

        assert await drain(source) == [b"0123", b"4567", b"89"]
        assert source.bytes_read == 10
        assert source.total_size is None

    @pytest.mark.asyncio
    async def test_short_reads_are_combined_into_full_chunks(self):
        """Test that a trickling reader still yields full-size chunks."""
        reader = TrickleReader(b"abcdefghijklm", step=3)
        source = StreamingChunkSource(reader, chunk_size=5)

        assert await drain(source) == [b"abcde", b"fghij", b"klm"]
        assert max(reader.read_sizes) <= 5

    @pytest.mark.asyncio
    async def test_chunks_do_not_alias_the_reused_buffer(self):
        """Test that earlier chunks survive later reads into the same buffer."""
        source = StreamingChunkSource(io.BytesIO(b"aaaabbbb"), chunk_size=4)

        first = await source.next_chunk()
        second = await source.next_chunk()

        assert first == b"aaaa"
        assert second == b"bbbb"
        assert len(source._buffer) == 4

    @pytest.mark.asyncio
    async def test_async_reader(self):
        """Test an asyncio StreamReader as the source."""
        reader = asyncio.StreamReader()
        reader.feed_data(b"hello world")
        reader.feed_eof()
        source = StreamingChunkSource(reader, chunk_size=4)

        assert await drain(source) == [b"hell", b"o wo", b"rld"]

    @pytest.mark.asyncio
    async def test_empty_reader_ends_immediately(self):
        """Test that a zero-length first read is end of source."""
        source = StreamingChunkSource(io.BytesIO(b""), chunk_size=4)

        assert await source.next_chunk() is None
        assert await source.next_chunk() is None

    @pytest.mark.asyncio
    async def test_read_to_end(self):
        """Test materializing a stream for single-part uploads."""
        source = StreamingChunkSource(io.BytesIO(b"x" * 25), chunk_size=10, total_size=25)

        assert await source.read_to_end() == b"x" * 25
        assert source.total_size == 25

    @pytest.mark.asyncio
    async def test_os_error_becomes_local_io_failure(self):
        """Test that reader errors are wrapped."""

        class BrokenReader:
            def read(self, size):
                raise OSError("broken pipe")

        source = StreamingChunkSource(BrokenReader(), chunk_size=4)

        with pytest.raises(LocalIoFailure) as exc_info:
            await source.next_chunk()
        assert isinstance(exc_info.value.__cause__, OSError)

    @pytest.mark.asyncio
    async def test_closed_file_becomes_local_io_failure(self):
        """Test that reading a closed file is a local failure."""
        stream = io.BytesIO(b"abc")
        stream.close()
        source = StreamingChunkSource(stream, chunk_size=4)

        with pytest.raises(LocalIoFailure):
            await source.next_chunk()

    @pytest.mark.asyncio
    async def test_text_reader_becomes_local_io_failure(self):
        """Test that a reader returning str is a local failure."""
        source = StreamingChunkSource(io.StringIO("hello world"), chunk_size=4)

        with pytest.raises(LocalIoFailure, match="binary mode") as exc_info:
            await source.next_chunk()
        assert isinstance(exc_info.value.__cause__, TypeError)

    @pytest.mark.asyncio
    async def test_async_text_reader_becomes_local_io_failure(self):
        class AsyncTextReader:
            async def read(self, size):
                return "text"

        source = StreamingChunkSource(AsyncTextReader(), chunk_size=4)

        with pytest.raises(LocalIoFailure):
            await source.next_chunk()
        assert source.bytes_read == 0

    def test_rejects_object_without_read(self):
        """Test that a non-reader is rejected."""
        with pytest.raises(ConfigurationInvalid):
            StreamingChunkSource(object(), chunk_size=4)

    def test_rejects_non_positive_chunk_size(self):
        """Test chunk size validation."""
        with pytest.raises(ConfigurationInvalid):
            StreamingChunkSource(io.BytesIO(b""), chunk_size=-1)


@pytest.mark.asyncio
@pytest.mark.parametrize("kind", ["buffered", "streaming"])
@pytest.mark.parametrize(
    "size,chunk_size",
    [
        (0, 4),  # empty source
        (4, 4),  # exactly one chunk
        (12, 4),  # exact multiple, no empty trailing chunk
        (13, 4),  # remainder
    ],
)
async def test_chunks_reassemble_to_original(kind, size, chunk_size):
    """Test that concatenating chunks in order restores the source."""
    data = bytes(i % 256 for i in range(size))
    chunks = await drain(make_source(kind, data, chunk_size))

    assert b"".join(chunks) == data
    assert all(0 < len(c) <= chunk_size for c in chunks)
    assert len(chunks) == -(-size // chunk_size)


class TestOpenChunkSource:
    """Tests for source descriptor dispatch."""

    def test_bytes_become_buffered_source(self):
        config = ChunkSourceConfig.for_known_size("a.bin", "application/octet-stream", 3)
        source = open_chunk_source(b"abc", config)
        assert isinstance(source, BufferedChunkSource)

    def test_reader_becomes_streaming_source_with_declared_size(self):
        config = ChunkSourceConfig.for_known_size("a.bin", "application/octet-stream", 3)
        source = open_chunk_source(io.BytesIO(b"abc"), config)
        assert isinstance(source, StreamingChunkSource)
        assert source.total_size == 3

    def test_chunk_source_passes_through(self):
        config = ChunkSourceConfig.for_unknown_size("a.bin", "application/octet-stream")
        existing = BufferedChunkSource(b"abc", chunk_size=2)
        assert open_chunk_source(existing, config) is existing
        assert isinstance(existing, ChunkSource)

    def test_unsupported_descriptor(self):
        config = ChunkSourceConfig.for_unknown_size("a.bin", "application/octet-stream")
        with pytest.raises(ConfigurationInvalid):
            open_chunk_source("path/as/string.bin", config)
