"""Chunked delivery of resampled PCM to the HTTP response."""

from __future__ import annotations

import asyncio
import math
from collections.abc import AsyncIterator, Callable, Iterator

from tts_bridge.common.logging import get_logger

# 160 samples of 16-bit mono = 20 ms at 8 kHz
CHUNK_SIZE = 320


def chunk_count(length: int, chunk_size: int = CHUNK_SIZE) -> int:
    """Number of chunks ``iter_chunks`` yields for a buffer of ``length`` bytes."""
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    return math.ceil(length / chunk_size)


def iter_chunks(buffer: bytes, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    """Yield ``buffer`` in order as ``chunk_size`` slices; the last may be shorter."""
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    view = memoryview(buffer)
    for offset in range(0, len(view), chunk_size):
        yield bytes(view[offset : offset + chunk_size])


async def stream_pcm(
    buffer: bytes,
    chunk_size: int = CHUNK_SIZE,
    *,
    correlation_id: str | None = None,
    on_chunk: Callable[[int], None] | None = None,
) -> AsyncIterator[bytes]:
    """Async response body yielding ``buffer`` chunk by chunk.

    The ASGI server awaits each ``send`` before pulling the next chunk, so a
    slow consumer holds the loop at the current chunk. A client disconnect
    cancels or closes the generator and the remaining chunks are dropped.

    The body runs after the request middleware has returned, so the request's
    ``correlation_id`` is passed in and bound here.
    """
    logger = get_logger(__name__, correlation_id=correlation_id)
    total = chunk_count(len(buffer), chunk_size)
    sent = 0
    try:
        for chunk in iter_chunks(buffer, chunk_size):
            yield chunk
            sent += 1
            if on_chunk is not None:
                on_chunk(len(chunk))
    except (asyncio.CancelledError, GeneratorExit):
        logger.info(
            "tts.stream_abandoned",
            chunks_sent=sent,
            chunks_total=total,
        )
        raise
    logger.info(
        "tts.stream_completed",
        chunks_sent=sent,
        bytes_sent=len(buffer),
    )


__all__ = ["CHUNK_SIZE", "chunk_count", "iter_chunks", "stream_pcm"]
