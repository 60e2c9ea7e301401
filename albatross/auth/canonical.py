"""URL canonicalization and timestamp helpers shared by signer and verifier.

Both sides must produce the same bytes for the same logical request, so
everything that shapes the signed message lives here and nowhere else.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import parse_qsl, urlsplit, urlunsplit

from albatross.errors import InvalidTimestampError, SigningError

TIMESTAMP_PARAM = "timestamp"
TIMESTAMP_FORMAT = "%Y%m%d%H%M"

_TIMESTAMP_RE = re.compile(r"[0-9]{12}")
_WHITESPACE_RE = re.compile(r"\s")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(moment: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def truncate_to_minute(moment: datetime) -> datetime:
    """Drop seconds and below."""
    return as_utc(moment).replace(second=0, microsecond=0)


def format_timestamp(moment: datetime) -> str:
    """Format as the fixed 12-digit ``YYYYMMDDHHmm`` UTC stamp."""
    return truncate_to_minute(moment).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    """Parse a 12-digit stamp back into an aware UTC datetime."""
    if not isinstance(value, str) or not _TIMESTAMP_RE.fullmatch(value):
        raise InvalidTimestampError(f"Timestamp must be exactly 12 digits: {value!r}")
    # strptime accepts single-digit fields, so slice the fixed-width parts
    try:
        return datetime(
            int(value[0:4]),
            int(value[4:6]),
            int(value[6:8]),
            int(value[8:10]),
            int(value[10:12]),
            tzinfo=timezone.utc,
        )
    except ValueError as exc:
        raise InvalidTimestampError(f"Timestamp is not a valid UTC minute: {value!r}") from exc


def canonicalize_url(url: str) -> str:
    """Strip surrounding whitespace and lower-case the whole URL."""
    return url.strip().lower()


def append_timestamp(url: str, stamp: str) -> str:
    """Add ``timestamp=<stamp>`` as the last query parameter.

    The fragment, if any, stays after the query.
    """
    parts = urlsplit(url)
    if any(key == TIMESTAMP_PARAM for key, _ in parse_qsl(parts.query, keep_blank_values=True)):
        raise SigningError(f"URL already carries a '{TIMESTAMP_PARAM}' parameter")
    pair = f"{TIMESTAMP_PARAM}={stamp}"
    query = f"{parts.query}&{pair}" if parts.query else pair
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


def extract_timestamp(url: str) -> Optional[str]:
    """Return the single ``timestamp`` value in url's query.

    Returns None when the parameter is absent; raises InvalidTimestampError
    when it appears more than once.
    """
    values = [
        value
        for key, value in parse_qsl(urlsplit(url).query, keep_blank_values=True)
        if key == TIMESTAMP_PARAM
    ]
    if not values:
        return None
    if len(values) > 1:
        raise InvalidTimestampError(f"'{TIMESTAMP_PARAM}' appears {len(values)} times")
    return values[0]


def build_canonical_url(logical_url: str, moment: datetime) -> str:
    """Canonicalize logical_url and embed the stamp for moment."""
    canonical = canonicalize_url(logical_url)
    if _WHITESPACE_RE.search(canonical):
        raise SigningError("URL must not contain whitespace")
    return append_timestamp(canonical, format_timestamp(moment))


def within_window(stamp: datetime, now: datetime, window: timedelta) -> bool:
    """True if the stamp is no further than window from the exact current time."""
    return abs(as_utc(now) - stamp) <= window
