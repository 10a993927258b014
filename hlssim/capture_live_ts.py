#!/usr/bin/env python3
"""
Record a live HLS media playlist into one TS file.
The script:
  - Polls a live m3u8 playlist for a fixed amount of wall-clock time.
  - Picks up every newly published segment (.ts) exactly once, keyed by media sequence.
  - Downloads each segment to a temporary directory with retries, checking Content-Length.
  - Concatenates the segments in sequence order into one output TS file.
Usage:
    python -m hlssim.capture_live_ts <m3u8_url> <output_file> [--duration 30] [--poll-interval 1]
        [--temp-dir /path/to/dir] [--retries 3] [--timeout 10]
"""

import argparse
import logging
import os
import sys
import tempfile
import time
import urllib.parse
from typing import NamedTuple

import requests


class PlaylistEntry(NamedTuple):
    sequence: int
    duration: float
    url: str


def download_m3u8(url, timeout=10):
    """Download the m3u8 playlist and return its lines."""
    response = requests.get(url, timeout=timeout)
    response.raise_for_status()
    return response.text.splitlines()


def resolve_url(base, segment_url):
    """Resolve a segment URL relative to the base URL if needed."""
    return urllib.parse.urljoin(base, segment_url)


def parse_media_playlist(lines, base_url):
    """Return the playlist's segments, numbered from EXT-X-MEDIA-SEQUENCE."""
    sequence = 0
    duration = None
    entries = []
    for line in lines:
        line = line.strip()
        if not line:
            continue
        if line.startswith("#EXT-X-MEDIA-SEQUENCE:"):
            sequence = int(line.split(":", 1)[1])
        elif line.startswith("#EXTINF:"):
            duration = float(line.split(":", 1)[1].split(",", 1)[0])
        elif not line.startswith("#"):
            entries.append(PlaylistEntry(sequence, duration, resolve_url(base_url, line)))
            sequence += 1
            duration = None
    return entries


def download_segment(url, dest_path, retries=3, timeout=10):
    """Download a TS segment with retry logic. Returns the number of bytes written."""
    for attempt in range(1, retries + 1):
        try:
            logging.info(f"Downloading segment: {url} (attempt {attempt}/{retries})")
            response = requests.get(url, stream=True, timeout=timeout)
            response.raise_for_status()
            written = 0
            with open(dest_path, 'wb') as f:
                for chunk in response.iter_content(chunk_size=8192):
                    if chunk:
                        f.write(chunk)
                        written += len(chunk)
            expected = response.headers.get("Content-Length")
            if expected is not None and int(expected) != written:
                raise IOError(f"short read: got {written} of {expected} bytes")
            return written
        except (requests.RequestException, IOError) as e:
            logging.error(f"Error downloading {url} on attempt {attempt}: {e}")
            if attempt == retries:
                raise


def concatenate_segments(segment_files, output_file):
    """Concatenate a list of segment files into a single output file."""
    with open(output_file, 'wb') as outfile:
        for seg_file in segment_files:
            logging.info(f"Appending {seg_file} to {output_file}")
            with open(seg_file, 'rb') as infile:
                outfile.write(infile.read())


def capture(m3u8_url, temp_dir, duration, poll_interval=1.0, retries=3, timeout=10,
            clock=time.monotonic, sleep=time.sleep):
    """Poll ``m3u8_url`` for ``duration`` seconds and download each new segment once.

    Returns the downloaded file paths ordered by media sequence.
    """
    downloaded = {}
    deadline = clock() + duration
    while True:
        try:
            entries = parse_media_playlist(download_m3u8(m3u8_url, timeout=timeout), m3u8_url)
        except requests.HTTPError as e:
            # A live origin answers 404 until its first segment is published.
            if e.response is None or e.response.status_code != 404:
                raise
            logging.info(f"Playlist {m3u8_url} not published yet.")
            entries = []
        new_entries = [entry for entry in entries if entry.sequence not in downloaded]
        if new_entries:
            logging.info(f"Playlist lists {len(entries)} segments, {len(new_entries)} new.")
        for entry in new_entries:
            seg_filename = os.path.join(temp_dir, f"segment_{entry.sequence:05d}.ts")
            download_segment(entry.url, seg_filename, retries=retries, timeout=timeout)
            downloaded[entry.sequence] = seg_filename

        if clock() >= deadline:
            break
        sleep(poll_interval)

    return [downloaded[sequence] for sequence in sorted(downloaded)]


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Record a live m3u8 playlist for a while and concatenate its segments into one TS file."
    )
    parser.add_argument("m3u8_url", help="URL of the live media playlist")
    parser.add_argument("output", help="Output TS file path")
    parser.add_argument(
        "--duration",
        type=float,
        default=30.0,
        help="How long to keep polling the playlist, in seconds (default: 30)"
    )
    parser.add_argument(
        "--poll-interval",
        type=float,
        default=1.0,
        help="Seconds between playlist refreshes (default: 1)"
    )
    parser.add_argument(
        "--temp-dir",
        default=None,
        help="Temporary directory to store TS segments (default uses system temp directory)"
    )
    parser.add_argument(
        "--retries",
        type=int,
        default=3,
        help="Number of retries for downloading each segment (default: 3)"
    )
    parser.add_argument(
        "--timeout",
        type=int,
        default=10,
        help="Timeout in seconds for HTTP requests (default: 10)"
    )
    args = parser.parse_args(argv)

    # Set up logging
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")

    temp_dir = args.temp_dir if args.temp_dir else tempfile.mkdtemp(prefix="m3u8_segments_")
    logging.info(f"Recording {args.m3u8_url} for {args.duration}s into {temp_dir}")

    try:
        segment_files = capture(
            args.m3u8_url,
            temp_dir,
            args.duration,
            poll_interval=args.poll_interval,
            retries=args.retries,
            timeout=args.timeout,
        )
    except (requests.RequestException, IOError, ValueError) as e:
        logging.error(f"Capture failed: {e}")
        sys.exit(1)

    if not segment_files:
        logging.error("No TS segments were published while recording.")
        sys.exit(1)
    logging.info(f"Captured {len(segment_files)} segments. Starting concatenation.")

    try:
        concatenate_segments(segment_files, args.output)
    except OSError as e:
        logging.error(f"Failed to concatenate segments: {e}")
        sys.exit(1)

    logging.info(f"Concatenation complete. Output file created: {args.output}")


if __name__ == "__main__":
    main()
