import threading

import pytest

from hlssim.catalog import Catalog
from hlssim.http_server import make_server
from hlssim.origin import Origin

# 2022-01-01T00:00:00Z, a Saturday.
START = 1640995200000

TEST_RENDITIONS = [
    {
        "width": 960,
        "height": 540,
        "codecs": "avc1.64001f,mp4a.40.29",
        "duration": 1000,
        "variance": 0,
        "window": 10000,
        "framerate": 60,
        "bitrate": 8000,
    },
    {
        "width": 1920,
        "height": 1080,
        "codecs": "avc1.640028,mp4a.40.29",
        "duration": 10000,
        "variance": 1000,
        "window": 120000,
        "framerate": 30,
        "bitrate": 2000,
    },
    {
        "width": 1280,
        "height": 720,
        "codecs": "avc1.64001f,mp4a.40.29",
        "duration": 5000,
        "variance": 1000,
        "window": 30000,
        "framerate": 60,
        "bitrate": 4000,
    },
]


class FakeClock:
    def __init__(self, now=START):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, millis):
        self.now += millis


class FixedJitter:
    """Stand-in for random.Random that always picks the same jitter."""

    def __init__(self, value=0):
        self.value = value

    def randint(self, a, b):
        assert a <= self.value <= b
        return self.value


def pattern_bytes(count):
    return b"\x47" * count


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def catalog():
    return Catalog.from_definitions(TEST_RENDITIONS, start_time=START)


@pytest.fixture
def origin(catalog, clock):
    return Origin(catalog, "http://origin.test", rng=FixedJitter(), byte_source=pattern_bytes, clock=clock)


@pytest.fixture
def live_server(origin):
    httpd = make_server(origin, "127.0.0.1", 0)
    port = httpd.server_address[1]
    origin.base_url = f"http://127.0.0.1:{port}"
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    yield origin
    httpd.shutdown()
    httpd.server_close()
    thread.join(timeout=5)
