"""Wall-clock helpers. All timeline arithmetic is in integer milliseconds."""

import time
from datetime import datetime, timezone
from email.utils import formatdate


def now_millis():
    return int(time.time() * 1000)


def http_date(millis):
    """Format epoch milliseconds as an RFC 7231 date, e.g. ``Sat, 01 Jan 2022 00:00:00 GMT``."""
    return formatdate(millis / 1000.0, usegmt=True)


def iso_timestamp(millis):
    """Format epoch milliseconds as ISO-8601 UTC with millisecond precision."""
    moment = datetime.fromtimestamp(millis // 1000, tz=timezone.utc)
    return f"{moment.strftime('%Y-%m-%dT%H:%M:%S')}.{millis % 1000:03d}Z"
