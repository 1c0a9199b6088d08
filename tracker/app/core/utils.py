"""Utility functions for the tracker application."""

import re
from datetime import datetime, timedelta, timezone

# \s matches U+00A0 for str patterns
_WHITESPACE_RE = re.compile(r"\s+")


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def normalize_text(text: str) -> str:
    """Collapse non-breaking spaces and whitespace runs into single spaces.

    Examples:
        >>> normalize_text("Teacher\\u00a0:   Jane   Doe ")
        'Teacher : Jane Doe'
    """
    return _WHITESPACE_RE.sub(" ", text).strip()


def describe_age(age: timedelta) -> str:
    """Render an age as the short relative label shown next to cached data.

    Args:
        age: Elapsed time since the data was fetched. Negative ages (clock
            skew) are treated as zero.

    Returns:
        "Just now", "<m>m ago", "<h>h ago" or "<d>d ago".

    Examples:
        >>> describe_age(timedelta(seconds=30))
        'Just now'
        >>> describe_age(timedelta(minutes=5))
        '5m ago'
        >>> describe_age(timedelta(hours=26))
        '1d ago'
    """
    seconds = max(int(age.total_seconds()), 0)
    minutes = seconds // 60
    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes}m ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h ago"
    return f"{hours // 24}d ago"
