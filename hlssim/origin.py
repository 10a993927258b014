"""
Per-request entry points into the live timeline.

The HTTP layer only deals with Origin: it resolves a rendition, extends its
timeline and hands back something ready to send, or raises NotFound.
"""

import os
import random
from typing import Iterator, NamedTuple

from hlssim import payload, playlist, timeline
from hlssim.clock import now_millis
from hlssim.errors import NotFound

# Last-Modified of the master playlist never changes.
MASTER_LAST_MODIFIED = 1640995200000  # 2022-01-01T00:00:00Z


class PlaylistResponse(NamedTuple):
    body: str
    last_modified: int


class SegmentResponse(NamedTuple):
    rendition_id: int
    index: int
    last_modified: int
    size: int
    chunks: Iterator[bytes]


class Origin:
    def __init__(self, catalog, base_url, rng=None, byte_source=os.urandom, clock=now_millis):
        self.catalog = catalog
        self.base_url = base_url.rstrip("/")
        self.rng = rng if rng is not None else random.Random()
        self.byte_source = byte_source
        self.clock = clock

    def _rendition(self, rendition_id):
        rendition = self.catalog.get(rendition_id)
        if rendition is None:
            raise NotFound(f"no rendition {rendition_id}")
        return rendition

    def _snapshot(self, rendition, now):
        return timeline.snapshot(rendition, now, self.catalog.start_time, self.rng)

    def master_playlist(self):
        return PlaylistResponse(
            body=playlist.render_master(self.catalog, self.base_url),
            last_modified=MASTER_LAST_MODIFIED,
        )

    def media_playlist(self, rendition_id):
        rendition = self._rendition(rendition_id)
        now = self.clock()
        segments = self._snapshot(rendition, now)
        body = playlist.render_media(rendition_id, rendition, segments, now, self.base_url)
        return PlaylistResponse(body=body, last_modified=segments[-1].time)

    def segment(self, rendition_id, index):
        """Look up segment ``index`` in the freshly extended history."""
        rendition = self._rendition(rendition_id)
        segments = self._snapshot(rendition, self.clock())
        for segment in segments:
            if segment.index == index:
                break
        else:
            raise NotFound(f"rendition {rendition_id} has no segment {index}")

        size = payload.segment_size(segment, rendition.bitrate)
        return SegmentResponse(
            rendition_id=rendition_id,
            index=index,
            last_modified=segment.time,
            size=size,
            chunks=payload.iter_payload(size, self.byte_source),
        )
