"""
Timeline generator.

Histories grow lazily: nothing happens until a request touches a rendition,
at which point the timeline catches up with the wall clock in whole-frame
steps and then sheds whatever fell out of the sliding window.
"""

import logging
import random

from hlssim.catalog import FRAME_JITTER, FrameRange, Segment


def _zero_segment(start_time):
    return Segment(time=start_time, duration=0, index=0, frames=FrameRange(0, 0))


def next_segment(rendition, last, rng):
    """Build the segment that directly follows ``last``."""
    frames = rendition.nominal_frames + rng.randint(-FRAME_JITTER, FRAME_JITTER)
    return Segment(
        time=last.end,
        duration=frames * rendition.frame_duration,
        index=last.index + 1,
        frames=FrameRange(last.frames.index + last.frames.count, frames),
    )


def evict(rendition):
    """Drop leading segments that start before the window opened."""
    history = rendition.history
    window_start = history[-1].end - rendition.window
    for position, segment in enumerate(history):
        if segment.time >= window_start:
            if position:
                del history[:position]
            return position
    return 0


def extend(rendition, now, start_time, rng=None):
    """Grow ``rendition.history`` until it covers ``now`` and apply the window.

    Must be called with ``rendition.lock`` held. Returns the number of
    segments appended.
    """
    if rng is None:
        rng = random
    history = rendition.history
    last = history[-1] if history else _zero_segment(start_time)

    added = 0
    missing = now - last.end
    while missing > 0:
        segment = next_segment(rendition, last, rng)
        history.append(segment)
        last = segment
        missing -= segment.duration
        added += 1

    if not history:
        return added

    dropped = evict(rendition)
    if added or dropped:
        logging.debug(
            f"Rendition {rendition.resolution}: +{added} segments, -{dropped} evicted, "
            f"now {history[0].index}..{history[-1].index}"
        )
    return added


def snapshot(rendition, now, start_time, rng=None):
    """Extend under the rendition lock and return an immutable copy of the history."""
    with rendition.lock:
        extend(rendition, now, start_time, rng)
        return tuple(rendition.history)
