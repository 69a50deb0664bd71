"""
Shared filter state and the engine that applies it to journey rows.

``FilterState`` is an immutable snapshot handed to readers; ``FilterStore`` is
the single mutation point used by UI event handlers. ``FilterEngine.apply``
ANDs one predicate per active dimension, restricted to the dimensions a
``FilterProfile`` honours (arrival-station views, for example, test the
arrival time instead of the departure time).
"""

import enum
import logging
from dataclasses import dataclass, field, replace
from typing import FrozenSet, Optional, Tuple

import pandas as pd

from rail_dashboard.journeys import delay_bucket_series, month_series, normalize_delay_reason
from rail_dashboard.timebuckets import TimeBucket, bucket_mask

logger = logging.getLogger(__name__)


class Dimension(enum.Enum):
    TIME_BUCKET = "time_bucket"
    TICKET_CLASS = "ticket_class"
    TICKET_TYPE = "ticket_type"
    STATION = "station"
    MONTH = "month"
    DELAY_BUCKET = "delay_bucket"
    JOURNEY_STATUS = "journey_status"
    DELAY_REASON = "delay_reason"
    ROUTE = "route"


@dataclass(frozen=True)
class FilterState:
    time_bucket: TimeBucket = TimeBucket.ALL
    ticket_class: Optional[str] = None
    ticket_type: Optional[str] = None
    station: Optional[str] = None
    month: Optional[str] = None
    delay_bucket: Optional[str] = None
    journey_status: Optional[str] = None
    delay_reason: Optional[str] = None
    route: Optional[Tuple[str, str]] = None

    def get(self, dimension):
        return getattr(self, Dimension(dimension).value)

    def is_active(self, dimension) -> bool:
        value = self.get(dimension)
        return value is not None and value is not TimeBucket.ALL

    def active(self) -> dict:
        """Active constraints keyed by dimension name."""
        return {d.value: self.get(d) for d in Dimension if self.is_active(d)}


def _coerce(dimension, value):
    if dimension is Dimension.TIME_BUCKET:
        return TimeBucket.parse(value)
    if dimension is Dimension.ROUTE and value is not None:
        departure, arrival = value
        return (departure, arrival)
    return value


class FilterStore:
    """Holds the current FilterState; every change goes through here."""

    def __init__(self, state: Optional[FilterState] = None):
        self._state = state or FilterState()

    def snapshot(self) -> FilterState:
        return self._state

    def set(self, dimension, value) -> FilterState:
        dimension = Dimension(dimension)
        value = _coerce(dimension, value)
        self._state = replace(self._state, **{dimension.value: value})
        logger.debug("Filter %s set to %r", dimension.value, value)
        return self._state

    def toggle(self, dimension, value) -> FilterState:
        """Select ``value``; selecting the current value again clears it."""
        dimension = Dimension(dimension)
        value = _coerce(dimension, value)
        current = self._state.get(dimension)
        if dimension is Dimension.TIME_BUCKET:
            new = TimeBucket.ALL if value == current else value
        else:
            new = None if value == current else value
        return self.set(dimension, new)

    def clear(self, dimension) -> FilterState:
        dimension = Dimension(dimension)
        return self.set(dimension, TimeBucket.ALL if dimension is Dimension.TIME_BUCKET else None)

    def reset(self) -> FilterState:
        self._state = FilterState()
        return self._state


@dataclass(frozen=True)
class FilterProfile:
    """Which dimensions a consumer honours, and which columns they read."""

    name: str
    dimensions: FrozenSet[Dimension] = field(default_factory=lambda: frozenset(Dimension))
    time_column: str = "departure_time"
    station_column: str = "departure_station"


DEPARTURES = FilterProfile("departures")
ARRIVALS = FilterProfile(
    "arrivals",
    dimensions=frozenset({Dimension.TIME_BUCKET, Dimension.TICKET_CLASS, Dimension.TICKET_TYPE, Dimension.STATION}),
    time_column="arrival_time",
    station_column="arrival_station",
)
REVENUE = FilterProfile(
    "revenue",
    dimensions=frozenset({
        Dimension.TIME_BUCKET, Dimension.MONTH, Dimension.TICKET_TYPE,
        Dimension.JOURNEY_STATUS, Dimension.ROUTE,
    }),
)
# the monthly trend keeps every month visible; the month filter only highlights
REVENUE_TREND = FilterProfile(
    "revenue_trend",
    dimensions=frozenset({Dimension.TIME_BUCKET, Dimension.TICKET_TYPE, Dimension.JOURNEY_STATUS, Dimension.ROUTE}),
)
# the delay buckets are the chart itself, and it always shows Delayed journeys
DELAY_REFUNDS = FilterProfile("delay_refunds", dimensions=frozenset({Dimension.TIME_BUCKET}))
# top-station tables highlight the selected station instead of filtering to it
DEPARTURE_PEAKS = FilterProfile("departure_peaks", dimensions=DEPARTURES.dimensions - {Dimension.STATION})
ARRIVAL_PEAKS = FilterProfile(
    "arrival_peaks",
    dimensions=ARRIVALS.dimensions - {Dimension.STATION},
    time_column="arrival_time",
    station_column="arrival_station",
)
PERFORMANCE = FilterProfile("performance", dimensions=frozenset({Dimension.TIME_BUCKET, Dimension.DELAY_REASON}))
UNFILTERED = FilterProfile("unfiltered", dimensions=frozenset())


class FilterEngine:
    @staticmethod
    def mask(rows: pd.DataFrame, state: FilterState, profile: FilterProfile = DEPARTURES) -> pd.Series:
        mask = pd.Series(True, index=rows.index)

        def wants(dimension):
            return dimension in profile.dimensions and state.is_active(dimension)

        if wants(Dimension.TIME_BUCKET):
            mask &= bucket_mask(rows[profile.time_column], state.time_bucket)
        for dimension in (Dimension.TICKET_CLASS, Dimension.TICKET_TYPE, Dimension.JOURNEY_STATUS):
            if wants(dimension):
                mask &= rows[dimension.value].eq(state.get(dimension))
        if wants(Dimension.STATION):
            mask &= rows[profile.station_column].eq(state.station)
        if wants(Dimension.MONTH):
            mask &= month_series(rows).eq(state.month)
        if wants(Dimension.DELAY_BUCKET):
            mask &= delay_bucket_series(rows).eq(state.delay_bucket)
        if wants(Dimension.DELAY_REASON):
            reasons = rows["reason_for_delay"].map(normalize_delay_reason)
            mask &= reasons.eq(normalize_delay_reason(state.delay_reason))
        if wants(Dimension.ROUTE):
            departure, arrival = state.route
            mask &= rows["departure_station"].eq(departure) & rows["arrival_station"].eq(arrival)
        return mask.fillna(False).astype(bool)

    @classmethod
    def apply(cls, rows: pd.DataFrame, state: FilterState, profile: FilterProfile = DEPARTURES) -> pd.DataFrame:
        """Rows matching every active dimension of ``profile``, in input order."""
        return rows[cls.mask(rows, state, profile)]
