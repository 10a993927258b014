import pytest

from hlssim.catalog import FrameRange, Segment
from hlssim.payload import iter_payload, segment_size


def segment(duration):
    return Segment(time=0, duration=duration, index=1, frames=FrameRange(0, 1))


def test_segment_size_floors():
    assert segment_size(segment(1003), 450000) == 451350
    assert segment_size(segment(986), 800000) == 788800
    assert segment_size(segment(1003), 333) == 333
    assert segment_size(segment(9999), 2000000) == 19998000


def test_payload_chunks():
    requested = []

    def source(count):
        requested.append(count)
        return bytes(count)

    chunks = list(iter_payload(2500, source))
    assert [len(chunk) for chunk in chunks] == [1024, 1024, 452]
    assert requested == [1024, 1024, 452]


def test_payload_uses_byte_source_verbatim():
    data = b"".join(iter_payload(10, lambda count: b"ab" * (count // 2), chunk_size=4))
    assert data == b"ababababab"


def test_empty_payload():
    assert list(iter_payload(0)) == []


def test_default_source_produces_exact_size():
    assert sum(len(chunk) for chunk in iter_payload(5000)) == 5000


def test_short_byte_source_is_an_error():
    with pytest.raises(IOError):
        list(iter_payload(100, lambda count: b"x"))
