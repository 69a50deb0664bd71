"""Time-of-day buckets (ALL / AM / PM / Peak / Off-Peak) and clock-time parsing.

An hour that cannot be read from a time string belongs to ALL and to nothing
else, so rows with a malformed time drop out of every narrower bucket.
"""

import enum
import re

import pandas as pd

from rail_dashboard.config import PEAK_EVENING, PEAK_MORNING

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")
_CLOCK = re.compile(r"^\s*(\d{1,2}):(\d{1,2})")


class TimeBucket(enum.Enum):
    ALL = "ALL"
    AM = "AM"
    PM = "PM"
    PEAK = "Peak"
    OFF_PEAK = "Off-Peak"

    @classmethod
    def parse(cls, value):
        """Accept a bucket, its UI label or None (ALL)."""
        if value is None:
            return cls.ALL
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        for bucket in cls:
            if text.lower() in (bucket.value.lower(), bucket.name.lower()):
                return bucket
        raise ValueError(f"Unknown time bucket: {value!r}")


def _is_peak(hour):
    return hour in PEAK_MORNING or hour in PEAK_EVENING


def parse_hour(time_str):
    """Return the hour of an "HH:MM" string, or None when it is unreadable."""
    if time_str is None or (not isinstance(time_str, str) and pd.isna(time_str)):
        return None
    match = _LEADING_INT.match(str(time_str).split(":")[0])
    if not match:
        return None
    return int(match.group(1))


def in_bucket(hour, bucket):
    bucket = TimeBucket.parse(bucket)
    if bucket is TimeBucket.ALL:
        return True
    if hour is None:
        return False
    if bucket is TimeBucket.AM:
        return 0 <= hour < 12
    if bucket is TimeBucket.PM:
        return 12 <= hour < 24
    if bucket is TimeBucket.PEAK:
        return _is_peak(hour)
    return not _is_peak(hour)


def classify(time_str):
    """Every bucket a departure/arrival time falls into (ALL always included)."""
    hour = parse_hour(time_str)
    return frozenset(b for b in TimeBucket if in_bucket(hour, b))


def time_to_minutes(time_str):
    """Minutes since midnight for "HH:MM[:SS]", or None."""
    if time_str is None or (not isinstance(time_str, str) and pd.isna(time_str)):
        return None
    match = _CLOCK.match(str(time_str))
    if not match:
        return None
    return int(match.group(1)) * 60 + int(match.group(2))


def hour_series(times: pd.Series) -> pd.Series:
    """Vectorised parse_hour; unreadable values become NaN."""
    lead = times.astype(str).str.split(":").str[0].str.extract(r"^\s*([+-]?\d+)")[0]
    return pd.to_numeric(lead, errors="coerce")


def minutes_series(times: pd.Series) -> pd.Series:
    """Vectorised time_to_minutes; unreadable values become NaN."""
    parts = times.astype(str).str.extract(r"^\s*(\d{1,2}):(\d{1,2})")
    return pd.to_numeric(parts[0], errors="coerce") * 60 + pd.to_numeric(parts[1], errors="coerce")


def bucket_mask(times: pd.Series, bucket) -> pd.Series:
    """Boolean mask of the rows whose time falls in ``bucket``."""
    bucket = TimeBucket.parse(bucket)
    if bucket is TimeBucket.ALL:
        return pd.Series(True, index=times.index)

    hours = hour_series(times)
    peak = hours.isin(list(PEAK_MORNING) + list(PEAK_EVENING))
    if bucket is TimeBucket.AM:
        mask = (hours >= 0) & (hours < 12)
    elif bucket is TimeBucket.PM:
        mask = (hours >= 12) & (hours < 24)
    elif bucket is TimeBucket.PEAK:
        mask = peak
    else:
        mask = hours.notna() & ~peak
    return mask.fillna(False).astype(bool)
