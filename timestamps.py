"""
ClassiCrawl Timestamps
Merges the two date attributes of a result row into one timestamp.

Each row's <time> element carries a machine-readable ``datetime`` attribute
("2020-06-08 14:45", no seconds) and a human-readable ``title`` attribute
("Mon 08 Jun 02:45:12 PM") whose fourth token holds the seconds.
"""

import re
from datetime import datetime, tzinfo
from typing import Optional

from errors import FormatError

SHORT_FORMAT = "%Y-%m-%d %H:%M"
CANONICAL_FORMAT = "%Y-%m-%d %H:%M:%S"

_SHORT_RE = re.compile(r"^(\d{4}-\d{2}-\d{2}) (\d{2}:\d{2})$")
_LONG_TIME_RE = re.compile(r"^\d{1,2}:\d{2}:(\d{2})$")


def reconcile_timestamp(short: str, long: str) -> str:
    """
    Combine the short and long date forms into 'YYYY-MM-DD HH:MM:SS'.

    The date, hour and minute come from the short form; the seconds come
    from the time token of the long form. The long form's hour is ignored
    because it is rendered on a 12-hour clock.

    Raises:
        FormatError: if either input does not have the expected shape
    """
    match = _SHORT_RE.match(short or "")
    if not match:
        raise FormatError(f"unexpected short date format: {short!r}")
    date_part, hour_minute = match.groups()

    tokens = (long or "").split(" ")
    if len(tokens) < 4:
        raise FormatError(f"unexpected long date format: {long!r}")
    time_match = _LONG_TIME_RE.match(tokens[3])
    if not time_match:
        raise FormatError(f"unexpected long date format: {long!r}")
    seconds = time_match.group(1)

    return f"{date_part} {hour_minute}:{seconds}"


def parse_timestamp(value: str, tz: Optional[tzinfo] = None) -> datetime:
    """Parse a canonical timestamp, attaching tz when given."""
    try:
        parsed = datetime.strptime(value, CANONICAL_FORMAT)
    except (TypeError, ValueError) as e:
        raise FormatError(f"unexpected timestamp format: {value!r}") from e
    if tz is not None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed


def parse_cutoff(value: str, tz: Optional[tzinfo] = None) -> datetime:
    """Parse a user supplied cutoff ('YYYY-MM-DD HH:MM' or with seconds)."""
    for fmt in (CANONICAL_FORMAT, SHORT_FORMAT):
        try:
            parsed = datetime.strptime(value.strip(), fmt)
        except ValueError:
            continue
        return parsed.replace(tzinfo=tz) if tz is not None else parsed
    raise FormatError(f"unexpected cutoff format: {value!r}")
