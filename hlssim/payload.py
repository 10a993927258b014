"""Segment bodies: random bytes sized to the rendition bitrate."""

import os

CHUNK_SIZE = 1024


def segment_size(segment, bitrate):
    """Payload length: segment seconds times ``bitrate``, floored.

    Integer arithmetic keeps the result identical on every request for the
    same segment.
    """
    return segment.duration * bitrate // 1000


def iter_payload(size, byte_source=os.urandom, chunk_size=CHUNK_SIZE):
    """Yield ``size`` bytes from ``byte_source`` in chunks of at most ``chunk_size``."""
    remaining = size
    while remaining > 0:
        count = min(chunk_size, remaining)
        chunk = byte_source(count)
        if len(chunk) != count:
            raise IOError(f"byte source returned {len(chunk)} bytes, expected {count}")
        yield chunk
        remaining -= count
