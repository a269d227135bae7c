from __future__ import annotations

import datetime as dt

_ONE_TICK = dt.timedelta(microseconds=1)


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def next_timestamp(previous: dt.datetime | None) -> dt.datetime:
    """Current UTC time, bumped past `previous` when the clock has not moved
    (updated_at must strictly increase across consecutive writes)."""
    now = utcnow()
    if previous is not None and now <= previous:
        return previous + _ONE_TICK
    return now
