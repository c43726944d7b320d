"""
Timestamp helpers.

Every timestamp Athemaria writes is a millisecond epoch rendered as a string,
so ordering and range queries in Firestore compare them as strings.
"""

import time

MS_PER_DAY = 24 * 60 * 60 * 1000


def now_ms() -> str:
    """Current time as a millisecond epoch string."""
    return str(int(time.time() * 1000))


def days_ago_ms(days: int, now: float = None) -> str:
    """Millisecond epoch string for `days` days before `now` (seconds)."""
    current = time.time() if now is None else now
    return str(int(current * 1000) - days * MS_PER_DAY)
