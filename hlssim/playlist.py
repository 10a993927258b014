"""Render the catalog and rendition histories as HLS playlists."""

from hlssim.catalog import round_half_up
from hlssim.clock import iso_timestamp
from hlssim.errors import NotFound

HLS_VERSION = 3


def master_url(base_url):
    return f"{base_url}/master.m3u8"


def media_url(base_url, rendition_id):
    return f"{base_url}/stream_{rendition_id}.m3u8"


def segment_url(base_url, rendition_id, index):
    return f"{base_url}/stream_{rendition_id}_{index:05d}.ts"


def encode_tags(tags=()):
    """Playlist header: ``#EXTM3U`` followed by one ``#KEY:value`` line per tag."""
    lines = ["#EXTM3U\n"]
    for key, value in tags:
        lines.append(f"#{key}:{value}\n")
    return "".join(lines)


def render_master(catalog, base_url):
    """One EXT-X-STREAM-INF entry per rendition, in catalog order."""
    body = [encode_tags()]
    for rendition_id, rendition in enumerate(catalog):
        body.append(
            f"#EXT-X-STREAM-INF:PROGRAM-ID=1,BANDWIDTH={rendition.bitrate},"
            f"FRAME-RATE={rendition.framerate},RESOLUTION={rendition.resolution},"
            f'CODECS="{rendition.codecs}"\n'
        )
        body.append(f"{media_url(base_url, rendition_id)}\n")
    return "".join(body)


def target_duration(rendition):
    """Whole seconds that no EXTINF of this rendition can round above."""
    return max(1, round_half_up(rendition.longest_segment / 1000))


def elapsed(segments, now):
    """Segments that have finished by ``now``; later ones are still "encoding"."""
    return [segment for segment in segments if segment.end <= now]


def render_media(rendition_id, rendition, segments, now, base_url):
    """Render a live media playlist from a history snapshot.

    Raises NotFound when no segment in ``segments`` has fully elapsed.
    """
    published = elapsed(segments, now)
    if not published:
        raise NotFound(f"rendition {rendition_id} has no elapsed segments yet")

    first = published[0]
    body = [
        encode_tags(
            [
                ("EXT-X-VERSION", HLS_VERSION),
                ("EXT-X-TARGETDURATION", target_duration(rendition)),
                ("EXT-X-MEDIA-SEQUENCE", first.index),
                ("EXT-X-PROGRAM-DATE-TIME", iso_timestamp(first.time)),
            ]
        )
    ]
    for segment in published:
        body.append(f"#EXTINF:{segment.duration / 1000:.3f},\n")
        body.append(f"{segment_url(base_url, rendition_id, segment.index)}\n")
    return "".join(body)
