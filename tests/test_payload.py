"""Test the payload carrier: buffers, streams and backpressure."""
import pytest

from hub.payload import Attachment


async def _source(chunks):
    for chunk in chunks:
        yield chunk


class ProducerProbe:
    """Lazy producer that records how far ahead of the consumer it gets."""

    def __init__(self, chunks: int, chunk_size: int):
        self.chunks = chunks
        self.chunk_size = chunk_size
        self.produced = 0

    async def __aiter__(self):
        for _ in range(self.chunks):
            self.produced += 1
            yield b"x" * self.chunk_size


@pytest.mark.asyncio
async def test_buffer_is_sliced_into_chunks():
    attachment = Attachment.from_bytes(b"abcdefghij", mime="text/plain")
    chunks = [c async for c in attachment.stream(chunk_size=4)]
    assert chunks == [b"abcd", b"efgh", b"ij"]
    # A buffer can be streamed again
    assert b"".join([c async for c in attachment.stream(chunk_size=3)]) == b"abcdefghij"


@pytest.mark.asyncio
async def test_stream_passes_through():
    attachment = Attachment.from_stream(_source([b"ab", b"", b"cd"]))
    assert attachment.is_streaming
    assert [c async for c in attachment.stream()] == [b"ab", b"cd"]


@pytest.mark.asyncio
async def test_stream_is_single_use():
    attachment = Attachment.from_stream(_source([b"ab"]))
    assert [c async for c in attachment.stream()] == [b"ab"]
    with pytest.raises(RuntimeError, match="already been consumed"):
        [c async for c in attachment.stream()]


@pytest.mark.asyncio
async def test_materialize_drains_stream():
    attachment = Attachment.from_stream(_source([b"ab", b"cd"]), mime="text/csv", file_extension="csv")
    assert await attachment.materialize() == b"abcd"
    assert attachment.data_buffer == b"abcd"
    assert not attachment.is_streaming
    assert await attachment.read_all() == b"abcd"


@pytest.mark.asyncio
async def test_stream_is_pulled_not_pushed():
    probe = ProducerProbe(chunks=1000, chunk_size=1024)
    attachment = Attachment.from_stream(probe.__aiter__())
    consumed = 0
    async for chunk in attachment.stream():
        consumed += 1
        # The producer never runs ahead of the consumer
        assert probe.produced == consumed
    assert consumed == 1000
    assert attachment.data_buffer is None


@pytest.mark.asyncio
async def test_empty_attachment_streams_nothing():
    attachment = Attachment(mime="text/plain")
    assert not attachment.has_data
    assert [c async for c in attachment.stream()] == []
