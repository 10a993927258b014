import pytest

from hlssim.errors import NotFound
from hlssim.origin import MASTER_LAST_MODIFIED, Origin

from conftest import START, pattern_bytes


def test_master_playlist(origin):
    response = origin.master_playlist()
    assert response.last_modified == MASTER_LAST_MODIFIED
    assert response.body.count("#EXT-X-STREAM-INF:") == 3
    assert "http://origin.test/stream_2.m3u8\n" in response.body


def test_base_url_trailing_slash_is_dropped(catalog, clock):
    origin = Origin(catalog, "http://origin.test/", clock=clock)
    assert "http://origin.test/stream_0.m3u8\n" in origin.master_playlist().body


def test_unknown_rendition(origin):
    with pytest.raises(NotFound):
        origin.media_playlist(5)
    with pytest.raises(NotFound):
        origin.segment(5, 1)


def test_media_playlist_waits_for_first_segment(origin, clock):
    with pytest.raises(NotFound):
        origin.media_playlist(0)
    clock.advance(1002)
    with pytest.raises(NotFound):
        origin.media_playlist(0)
    clock.advance(1)
    response = origin.media_playlist(0)
    assert "stream_0_00001.ts" in response.body


def test_media_playlist_last_modified_is_newest_segment_start(origin, clock, catalog):
    clock.advance(2500)
    response = origin.media_playlist(0)
    history = catalog.get(0).history
    assert response.last_modified == history[-1].time == START + 2006
    # Segment 3 is still being "encoded".
    assert "stream_0_00003.ts" not in response.body


def test_segment_size_is_stable(origin, clock):
    clock.advance(2500)
    first = origin.segment(0, 2)
    clock.advance(100)
    second = origin.segment(0, 2)
    assert first.size == second.size == 1003 * 8000 // 1000
    assert first.last_modified == START + 1003
    assert b"".join(first.chunks) == pattern_bytes(first.size)


def test_segment_not_yet_generated(origin, clock):
    clock.advance(2500)
    with pytest.raises(NotFound):
        origin.segment(0, 4)


def test_evicted_segment_not_found(origin, clock):
    clock.advance(2500)
    origin.segment(0, 1)
    clock.advance(60000)
    with pytest.raises(NotFound):
        origin.segment(0, 1)


def test_segment_request_extends_timeline(origin, clock, catalog):
    clock.advance(5000)
    origin.segment(1, 1)
    assert catalog.get(1).history
    assert catalog.get(0).history == []
