"""
Action Hub Payload Carrier.

An Attachment wraps the data a caller wants delivered. The same object can
be consumed two ways:
- as a materialised buffer (`data_buffer`, `read_all()`)
- as a pull-based async byte stream (`stream()`)

Streams are single-use. Pulling drives the producer, so a slow destination
slows down the caller's upload and at most one chunk is held per hop.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import AsyncIterator, Optional

DEFAULT_CHUNK_SIZE = 64 * 1024


@dataclass
class Attachment:
    """Payload metadata plus either a buffer or a live byte stream."""
    mime: Optional[str] = None
    file_extension: Optional[str] = None
    data_buffer: Optional[bytes] = None
    source: Optional[AsyncIterator[bytes]] = field(default=None, repr=False)
    _consumed: bool = field(default=False, init=False, repr=False)

    @classmethod
    def from_bytes(
        cls,
        data: bytes,
        mime: str | None = None,
        file_extension: str | None = None,
    ) -> "Attachment":
        return cls(mime=mime, file_extension=file_extension, data_buffer=data)

    @classmethod
    def from_stream(
        cls,
        source: AsyncIterator[bytes],
        mime: str | None = None,
        file_extension: str | None = None,
    ) -> "Attachment":
        return cls(mime=mime, file_extension=file_extension, source=source)

    @property
    def is_streaming(self) -> bool:
        """True while the payload only exists as an unread stream."""
        return self.data_buffer is None and self.source is not None

    @property
    def has_data(self) -> bool:
        return self.data_buffer is not None or self.source is not None

    async def stream(self, chunk_size: int = DEFAULT_CHUNK_SIZE) -> AsyncIterator[bytes]:
        """Yield the payload chunk by chunk.

        A buffer is sliced without copying it whole; a live stream is passed
        through as the producer hands it over.
        """
        if self.data_buffer is not None:
            view = memoryview(self.data_buffer)
            for offset in range(0, len(view), chunk_size):
                yield bytes(view[offset:offset + chunk_size])
            return

        if self.source is None:
            return
        if self._consumed:
            raise RuntimeError("Attachment stream has already been consumed")
        self._consumed = True
        async for chunk in self.source:
            if chunk:
                yield chunk

    async def materialize(self) -> bytes:
        """Drain a live stream into `data_buffer` and return it."""
        if self.data_buffer is None:
            parts = [chunk async for chunk in self.stream()]
            self.data_buffer = b"".join(parts)
            self.source = None
        return self.data_buffer

    async def read_all(self) -> bytes:
        return await self.materialize()
