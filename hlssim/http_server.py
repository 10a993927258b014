#!/usr/bin/env python3
"""
Live HLS origin simulator.

Serves a master playlist, one live media playlist per rendition and random
segment payloads whose timeline advances with the wall clock.

Usage:
    python -m hlssim.http_server [--port 9876] [--base-url http://127.0.0.1:9876] [--catalog renditions.json]
"""

import argparse
import logging
import random
import re
import sys
import time
from http.server import BaseHTTPRequestHandler, HTTPServer
from socketserver import ThreadingMixIn

from hlssim.catalog import Catalog, load_catalog
from hlssim.clock import http_date
from hlssim.errors import CatalogError, NotFound
from hlssim.origin import Origin

DEFAULT_PORT = 9876
SEGMENT_MAX_AGE = 10

MASTER_PATH = re.compile(r'^/master\.m3u8$')
MEDIA_PATH = re.compile(r'^/stream_([0-9]+)\.m3u8$')
SEGMENT_PATH = re.compile(r'^/stream_([0-9]+)_([0-9]+)\.ts$')


class ThreadingHTTPServer(ThreadingMixIn, HTTPServer):
    """Handle requests in a separate thread for each client."""
    daemon_threads = True

    def __init__(self, server_address, handler_class, origin):
        self.origin = origin
        super().__init__(server_address, handler_class)


def cors_headers(max_age=0):
    return {
        'Access-Control-Allow-Origin': '*',
        'Access-Control-Max-Age': str(max_age),
        'Access-Control-Allow-Credentials': 'true',
        'Access-Control-Allow-Headers': 'origin',
        'Access-Control-Allow-Methods': 'GET,POST,OPTIONS',
    }


class HLSHandler(BaseHTTPRequestHandler):
    """HTTP handler that serves the simulated live stream."""

    server_version = 'hlssim'

    def setup(self):
        super().setup()
        self._started = time.monotonic()
        self._headers_sent = False
        self._status = 0

    def do_HEAD(self):
        """Handle HEAD requests (just send headers, no body)."""
        self.handle_request(send_body=False)

    def do_GET(self):
        self.handle_request(send_body=True)

    def do_OPTIONS(self):
        """Answer CORS preflight requests."""
        self._started = time.monotonic()
        self.send_response(204)
        for name, value in cors_headers().items():
            self.send_header(name, value)
        self.send_header('Content-Length', '0')
        self.end_headers()
        self.log_access()

    def handle_request(self, send_body):
        self._started = time.monotonic()
        self._headers_sent = False
        self._status = 0
        path = self.path.split('?', 1)[0]
        try:
            self.route(path, send_body)
        except NotFound:
            self.send_empty(404)
        except Exception:
            logging.exception(f'Failed to serve {self.command} {self.path}')
            if self._headers_sent:
                self.close_connection = True
            else:
                self.send_empty(500)
        finally:
            self.log_access()

    def route(self, path, send_body):
        origin = self.server.origin

        if MASTER_PATH.match(path):
            self.send_playlist(origin.master_playlist(), send_body)
            return

        match = MEDIA_PATH.match(path)
        if match:
            self.send_playlist(origin.media_playlist(int(match.group(1))), send_body)
            return

        match = SEGMENT_PATH.match(path)
        if match:
            segment = origin.segment(int(match.group(1)), int(match.group(2)))
            self.send_segment(segment, send_body)
            return

        raise NotFound(path)

    def send_empty(self, status):
        self.send_response(status)
        self.send_header('Content-Length', '0')
        self.end_headers()

    def end_headers(self):
        super().end_headers()
        self._headers_sent = True

    def send_m3u8_headers(self, last_modified, length):
        """Send headers for an .m3u8 playlist."""
        now = http_date(self.server.origin.clock())
        self.send_response(200)
        self.send_header('Last-Modified', http_date(last_modified))
        self.send_header('Expires', now)
        self.send_header('Cache-Control', 'max-age=0, no-cache, no-store')
        self.send_header('Pragma', 'no-cache')
        self.send_header('Content-Type', 'application/x-mpegURL')
        self.send_header('Content-Length', str(length))
        for name, value in cors_headers().items():
            self.send_header(name, value)
        self.end_headers()

    def send_ts_headers(self, last_modified, length):
        """Send headers for a .ts segment."""
        now = http_date(self.server.origin.clock())
        self.send_response(200)
        self.send_header('Last-Modified', http_date(last_modified))
        self.send_header('Expires', now)
        self.send_header('Cache-Control', f'max-age={SEGMENT_MAX_AGE}')
        self.send_header('Pragma', 'no-cache')
        self.send_header('Content-Type', 'video/MP2T')
        self.send_header('Content-Length', str(length))
        for name, value in cors_headers(SEGMENT_MAX_AGE).items():
            self.send_header(name, value)
        self.end_headers()

    def send_playlist(self, playlist, send_body):
        body = playlist.body.encode('utf-8')
        self.send_m3u8_headers(playlist.last_modified, len(body))
        if send_body:
            self.wfile.write(body)

    def send_segment(self, segment, send_body):
        self.send_ts_headers(segment.last_modified, segment.size)
        if send_body:
            for chunk in segment.chunks:
                self.wfile.write(chunk)

    def log_request(self, code='-', size='-'):
        # send_response runs before the body goes out; log_access reports it.
        self._status = int(code) if isinstance(code, int) else 0

    def log_access(self):
        """Access log: method and path with status and duration in ms, once the body is sent."""
        duration = round((time.monotonic() - self._started) * 1000, 2)
        status = self._status
        message = f'{self.command} {self.path} status={status} duration={duration}'
        if 200 <= status < 300:
            logging.info(message)
        else:
            logging.warning(message)

    def date_time_string(self, timestamp=None):
        if timestamp is None:
            return http_date(self.server.origin.clock())
        return super().date_time_string(timestamp)

    def log_message(self, format, *args):
        logging.debug(f'{self.address_string()} - {format % args}')


def make_server(origin, host='', port=DEFAULT_PORT):
    return ThreadingHTTPServer((host, port), HLSHandler, origin)


def run_server(origin, host='', port=DEFAULT_PORT):
    httpd = make_server(origin, host, port)
    logging.info(f"Serving live HLS on {host or '0.0.0.0'}:{port} as {origin.base_url} (threaded)...")
    try:
        httpd.serve_forever()
    except KeyboardInterrupt:
        pass
    httpd.server_close()
    logging.info('Server stopped.')


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Serve a simulated live HLS stream with random segment payloads.'
    )
    parser.add_argument('--host', default='0.0.0.0', help='Address to bind (default: 0.0.0.0)')
    parser.add_argument(
        '--port',
        type=int,
        default=DEFAULT_PORT,
        help=f'Port to listen on (default: {DEFAULT_PORT})'
    )
    parser.add_argument(
        '--base-url',
        default=None,
        help='Base URL written into playlists (default: http://127.0.0.1:<port>)'
    )
    parser.add_argument(
        '--catalog',
        default=None,
        help='JSON file with a list of renditions (default: built-in 540p/1080p/720p set)'
    )
    parser.add_argument('--seed', type=int, default=None, help='Seed for segment duration jitter')
    parser.add_argument(
        '--log-level',
        default='INFO',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level (default: INFO)'
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=args.log_level, format='%(asctime)s - %(levelname)s - %(message)s')

    try:
        catalog = load_catalog(args.catalog) if args.catalog else Catalog.default()
    except CatalogError as e:
        logging.error(f'Invalid stream catalog: {e}')
        sys.exit(1)
    logging.info(f'Catalog has {len(catalog)} renditions, timeline starts at {catalog.start_time}')

    base_url = args.base_url or f'http://127.0.0.1:{args.port}'
    origin = Origin(catalog, base_url, rng=random.Random(args.seed))
    run_server(origin, args.host, args.port)


if __name__ == '__main__':
    main()
