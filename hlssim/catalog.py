"""
Stream catalog: the fixed set of renditions the origin serves.

Each rendition carries its static encoding parameters plus the mutable
segment history that the timeline generator grows and truncates. The
history is only ever touched while holding the rendition's lock.
"""

import json
import logging
import threading
from dataclasses import dataclass, field
from typing import NamedTuple

from hlssim.clock import now_millis
from hlssim.errors import CatalogError


class FrameRange(NamedTuple):
    index: int
    count: int


class Segment(NamedTuple):
    time: int
    duration: int
    index: int
    frames: FrameRange

    @property
    def end(self):
        return self.time + self.duration


@dataclass
class Rendition:
    width: int
    height: int
    codecs: str
    duration: int
    variance: int
    window: int
    framerate: int
    bitrate: int
    history: list = field(default_factory=list, repr=False)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def frame_duration(self):
        return round_half_up(1000 / self.framerate)

    @property
    def nominal_frames(self):
        return round_half_up(self.duration / self.frame_duration)

    @property
    def longest_segment(self):
        """Longest duration jitter can give a segment, in ms."""
        return (self.nominal_frames + FRAME_JITTER) * self.frame_duration

    @property
    def resolution(self):
        return f"{self.width}x{self.height}"


# Segments vary by up to this many frames either side of the nominal count.
FRAME_JITTER = 2

REQUIRED_KEYS = ("width", "height", "codecs", "duration", "window", "framerate", "bitrate")
INTEGER_KEYS = ("width", "height", "duration", "variance", "window", "framerate", "bitrate")

DEFAULT_RENDITIONS = [
    {
        "width": 960,
        "height": 540,
        "codecs": "avc1.64001f,mp4a.40.29",
        "duration": 1000,
        "variance": 0,
        "window": 10000,
        "framerate": 60,
        "bitrate": 450000,
    },
    {
        "width": 1920,
        "height": 1080,
        "codecs": "avc1.640028,mp4a.40.29",
        "duration": 10000,
        "variance": 1000,
        "window": 120000,
        "framerate": 30,
        "bitrate": 2000000,
    },
    {
        "width": 1280,
        "height": 720,
        "codecs": "avc1.64001f,mp4a.40.29",
        "duration": 5000,
        "variance": 1000,
        "window": 30000,
        "framerate": 60,
        "bitrate": 800000,
    },
]


def round_half_up(value):
    """Round a non-negative number to the nearest integer, ties going up."""
    return int(value + 0.5)


def make_rendition(definition):
    """Validate one rendition definition (a dict) and build a Rendition."""
    missing = [key for key in REQUIRED_KEYS if key not in definition]
    if missing:
        raise CatalogError(f"rendition is missing keys: {', '.join(missing)}")

    values = {}
    for name in INTEGER_KEYS:
        # Only variance may be absent at this point.
        value = definition.get(name, 0)
        # bool is an int subclass; floats would be truncated silently.
        if isinstance(value, bool) or not isinstance(value, int):
            raise CatalogError(f"rendition {name} must be an integer, got {value!r}")
        values[name] = value
    if not isinstance(definition["codecs"], str):
        raise CatalogError(f"rendition codecs must be a string, got {definition['codecs']!r}")

    rendition = Rendition(codecs=definition["codecs"], **values)

    for name in ("width", "height", "duration", "window", "framerate", "bitrate"):
        if getattr(rendition, name) <= 0:
            raise CatalogError(f"rendition {name} must be positive, got {getattr(rendition, name)}")
    if rendition.variance < 0:
        raise CatalogError(f"rendition variance must not be negative, got {rendition.variance}")
    if rendition.frame_duration < 1:
        raise CatalogError(f"rendition framerate {rendition.framerate} is too high for millisecond frames")
    if rendition.nominal_frames <= FRAME_JITTER:
        raise CatalogError(
            f"rendition duration {rendition.duration}ms must span more than {FRAME_JITTER} frames"
        )
    if rendition.window < rendition.longest_segment:
        raise CatalogError(
            f"rendition window {rendition.window}ms is shorter than its longest segment ({rendition.longest_segment}ms)"
        )
    return rendition


class Catalog:
    """Ordered, fixed-size collection of renditions sharing one start reference."""

    def __init__(self, renditions, start_time=None):
        if not renditions:
            raise CatalogError("catalog needs at least one rendition")
        self.renditions = tuple(renditions)
        if start_time is None:
            start_time = now_millis() // 1000 * 1000
        self.start_time = start_time

    def __len__(self):
        return len(self.renditions)

    def __iter__(self):
        return iter(self.renditions)

    def get(self, rendition_id):
        """Return the rendition at ``rendition_id`` or None when out of range."""
        if 0 <= rendition_id < len(self.renditions):
            return self.renditions[rendition_id]
        return None

    @classmethod
    def from_definitions(cls, definitions, start_time=None):
        return cls([make_rendition(d) for d in definitions], start_time=start_time)

    @classmethod
    def default(cls, start_time=None):
        return cls.from_definitions(DEFAULT_RENDITIONS, start_time=start_time)


def load_catalog(path, start_time=None):
    """Load rendition definitions from a JSON file holding a list of objects."""
    logging.info(f"Loading stream catalog from {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            definitions = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise CatalogError(f"cannot read catalog {path}: {e}") from e

    if not isinstance(definitions, list):
        raise CatalogError(f"catalog {path} must contain a JSON list of renditions")
    for definition in definitions:
        if not isinstance(definition, dict):
            raise CatalogError(f"catalog {path} entries must be JSON objects")
    return Catalog.from_definitions(definitions, start_time=start_time)
