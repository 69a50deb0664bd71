"""
Aggregations over UK railway journey rows.

Every function takes an already filtered journeys DataFrame and returns a new
pandas object (or a small dataclass); input frames are never modified.

Missing values:
- a missing or unparseable price counts as 0
- rows without a journey date are left out of monthly series
- rows without a station are left out of station and route groupings
- divisions by an empty total return 0 (or None where "no data" must be
  distinguishable, see ``cancellation_score`` / ``reliability_score``)
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np
import pandas as pd

from rail_dashboard import config
from rail_dashboard.timebuckets import TimeBucket, hour_series, minutes_series, time_to_minutes

DELAY_BUCKETS = config.DELAY_BUCKET_EDGES
DELAY_BUCKET_LABELS = [label for label, _, _ in DELAY_BUCKETS]
_DELAY_BINS = [DELAY_BUCKETS[0][1]] + [upper for _, _, upper in DELAY_BUCKETS]


# ---------- Helpers ----------
def _prices(rows: pd.DataFrame) -> pd.Series:
    return pd.to_numeric(rows["price"], errors="coerce").fillna(0.0)


def _shares(values: pd.Series) -> pd.Series:
    total = values.sum()
    if not total:
        return pd.Series(0.0, index=values.index)
    return values / total * 100


def month_key(date) -> Optional[str]:
    """YYYY-MM prefix of a journey date, or None if the date is missing."""
    if date is None or (not isinstance(date, str) and pd.isna(date)):
        return None
    text = str(date).strip()
    return text[:7] if text else None


def month_series(rows: pd.DataFrame) -> pd.Series:
    dates = rows["date_of_journey"]
    text = dates.astype(str).str.strip()
    return text.str.slice(0, 7).where(dates.notna() & text.ne(""))


def percent_change(values) -> list:
    """Period-over-period change in percent; 0 for the first period and after a zero or missing value."""
    series = pd.Series(list(values), dtype=float)
    change = series.div(series.shift()).sub(1).mul(100)
    return change.replace([np.inf, -np.inf], np.nan).fillna(0.0).tolist()


# ---------- Delays ----------
def delay_minutes(scheduled, actual) -> Optional[int]:
    """Minutes between scheduled and actual arrival, corrected across midnight."""
    start, end = time_to_minutes(scheduled), time_to_minutes(actual)
    if start is None or end is None:
        return None
    delay = end - start
    if delay < -config.HALF_DAY_MINUTES:
        delay += config.DAY_MINUTES
    elif delay > config.HALF_DAY_MINUTES:
        delay -= config.DAY_MINUTES
    return delay


def delay_bucket(minutes) -> Optional[str]:
    if minutes is None or pd.isna(minutes):
        return None
    for label, lower, upper in DELAY_BUCKETS:
        if lower < minutes <= upper:
            return label
    return None


def delay_minutes_series(rows: pd.DataFrame, scheduled="arrival_time", actual="actual_arrival_time") -> pd.Series:
    delay = minutes_series(rows[actual]) - minutes_series(rows[scheduled])
    delay = delay.where(delay >= -config.HALF_DAY_MINUTES, delay + config.DAY_MINUTES)
    return delay.where(delay <= config.HALF_DAY_MINUTES, delay - config.DAY_MINUTES)


def delay_bucket_series(rows: pd.DataFrame) -> pd.Series:
    """Delay bucket label per row (NaN when on time, early or unparseable)."""
    delays = delay_minutes_series(rows)
    return pd.cut(delays, bins=_DELAY_BINS, labels=DELAY_BUCKET_LABELS, right=True).astype(object)


def delay_refund_summary(rows: pd.DataFrame) -> pd.DataFrame:
    """Revenue and refunds per delay bucket, for Delayed journeys only."""
    delayed = rows[rows["journey_status"].eq("Delayed")]
    buckets = delay_bucket_series(delayed)
    prices = _prices(delayed)
    refunded = delayed["refund_requested"].fillna(False).astype(bool)

    records = []
    for label in DELAY_BUCKET_LABELS:
        in_bucket = buckets.eq(label)
        total = float(prices[in_bucket].sum())
        refund = float(prices[in_bucket & refunded].sum())
        records.append({
            "bucket": label,
            "count": int(in_bucket.sum()),
            "total_revenue": total,
            "refund": refund,
            "net_revenue": total - refund,
            "refund_percent": refund / total * 100 if total > 0 else 0.0,
        })
    return pd.DataFrame.from_records(records)


def normalize_delay_reason(reason) -> str:
    """Fold free-text delay reasons into a handful of canonical labels."""
    if reason is None or (not isinstance(reason, str) and pd.isna(reason)) or not str(reason).strip():
        return "Unknown"
    lower = str(reason).lower()
    for needle, label in (
        ("signal", "Signal Failure"),
        ("staff", "Staffing"),
        ("weather", "Weather"),
        ("technical", "Technical Issue"),
        ("traffic", "Traffic"),
    ):
        if needle in lower:
            return label
    return reason


# ---------- Monthly series ----------
def monthly_revenue(rows: pd.DataFrame) -> pd.Series:
    months = month_series(rows)
    out = _prices(rows).groupby(months).sum().sort_index()
    return out.rename("revenue").rename_axis("month")


def monthly_refund(rows: pd.DataFrame) -> pd.Series:
    refunded = rows[rows["refund_requested"].fillna(False).astype(bool)]
    return monthly_revenue(refunded).rename("refund")


def monthly_journeys(rows: pd.DataFrame) -> pd.Series:
    months = month_series(rows).dropna()
    return months.value_counts().sort_index().rename("journeys").rename_axis("month")


def revenue_by_ticket_type(rows: pd.DataFrame) -> pd.DataFrame:
    """Month x ticket type revenue."""
    frame = pd.DataFrame({"month": month_series(rows), "ticket_type": rows["ticket_type"], "price": _prices(rows)})
    frame = frame.dropna(subset=["month"])
    types = ["Advance", "Anytime", "Off-Peak"]
    if frame.empty:
        return pd.DataFrame(columns=types, dtype=float).rename_axis("month")
    pivot = frame.pivot_table(index="month", columns="ticket_type", values="price", aggfunc="sum", fill_value=0.0)
    return pivot.reindex(columns=types, fill_value=0.0).sort_index()


@dataclass(frozen=True)
class TrendSummary:
    total: int
    cancelled: int
    highest_month: Optional[str]
    lowest_month: Optional[str]
    change_percent: float


def journey_trend_summary(rows: pd.DataFrame) -> TrendSummary:
    """Totals over dated journeys only; undated rows are left out of every count."""
    dated = rows[month_series(rows).notna()]
    counts = monthly_journeys(dated)
    cancelled = int(dated["journey_status"].fillna("").str.lower().str.contains("cancel").sum())
    if counts.empty:
        return TrendSummary(0, cancelled, None, None, 0.0)
    first, last = counts.iloc[0], counts.iloc[-1]
    return TrendSummary(
        total=int(counts.sum()),
        cancelled=cancelled,
        highest_month=counts.idxmax(),
        lowest_month=counts.idxmin(),
        change_percent=float((last - first) / first * 100) if len(counts) > 1 and first else 0.0,
    )


def _monthly_status(rows: pd.DataFrame, status: str) -> pd.DataFrame:
    months = month_series(rows)
    frame = pd.DataFrame({"month": months, "hit": rows["journey_status"].eq(status)}).dropna(subset=["month"])
    grouped = frame.groupby("month")["hit"].agg(count="sum", total="size").sort_index()
    grouped["count"] = grouped["count"].astype(int)
    grouped["percent_change"] = percent_change(grouped["count"])
    return grouped.reset_index()


def monthly_cancellations(rows: pd.DataFrame) -> pd.DataFrame:
    """Cancelled journeys per month with month-over-month change."""
    return _monthly_status(rows, "Cancelled")


def monthly_on_time(rows: pd.DataFrame) -> pd.DataFrame:
    """On-time journeys per month with month-over-month change."""
    return _monthly_status(rows, "On Time")


def _status_score(rows, status) -> Optional[float]:
    if len(rows) == 0:
        return None
    return float(rows["journey_status"].eq(status).mean() * 100)


def cancellation_score(rows: pd.DataFrame) -> Optional[float]:
    return _status_score(rows, "Cancelled")


def reliability_score(rows: pd.DataFrame) -> Optional[float]:
    return _status_score(rows, "On Time")


def monthly_reliability(rows: pd.DataFrame) -> pd.Series:
    """On-time percentage per month (rows with an invalid date are dropped)."""
    dates = pd.to_datetime(rows["date_of_journey"], errors="coerce")
    valid = rows[dates.notna()]
    on_time = valid["journey_status"].eq("On Time")
    return (on_time.groupby(month_series(valid)).mean() * 100).sort_index().rename("reliability")


# ---------- Time of day ----------
def busiest_slots(rows: pd.DataFrame, time_bucket=TimeBucket.ALL) -> pd.DataFrame:
    """Departures per 15-minute slot of the morning (or, for PM, evening) peak window."""
    start = time_to_minutes(config.PM_SLOT_START if TimeBucket.parse(time_bucket) is TimeBucket.PM else config.AM_SLOT_START)
    minutes = minutes_series(rows["departure_time"])

    slots = []
    for i in range(config.SLOT_COUNT):
        lower = start + i * config.SLOT_MINUTES
        count = int(((minutes >= lower) & (minutes < lower + config.SLOT_MINUTES)).sum())
        slots.append({"slot": f"{lower // 60:02d}:{lower % 60:02d}", "count": count})
    out = pd.DataFrame(slots)
    out["percent"] = _shares(out["count"])
    return out


def hourly_departures(rows: pd.DataFrame, time_bucket=TimeBucket.ALL) -> pd.Series:
    """Departures per hour, over 12-23 for the PM view and 0-11 otherwise."""
    hours = range(12, 24) if TimeBucket.parse(time_bucket) is TimeBucket.PM else range(0, 12)
    counts = hour_series(rows["departure_time"]).dropna().astype(int).value_counts()
    return counts.reindex(list(hours), fill_value=0).astype(int).rename("departures").rename_axis("hour")


def weekday_hour_matrix(rows: pd.DataFrame, time_bucket=TimeBucket.ALL) -> pd.DataFrame:
    """Weekday x hour departure counts."""
    hours = range(12, 24) if TimeBucket.parse(time_bucket) is TimeBucket.PM else range(0, 12)
    frame = pd.DataFrame({
        "weekday": pd.to_datetime(rows["date_of_journey"], errors="coerce").dt.dayofweek,
        "hour": hour_series(rows["departure_time"]),
    }).dropna()
    if frame.empty:
        return pd.DataFrame(0, index=config.WEEKDAYS, columns=list(hours))
    matrix = pd.crosstab(frame["weekday"].astype(int), frame["hour"].astype(int))
    matrix = matrix.reindex(index=range(7), columns=list(hours), fill_value=0)
    matrix.index = config.WEEKDAYS
    return matrix


# ---------- Stations and routes ----------
def route_revenue(rows: pd.DataFrame, n=5):
    """
    Top and bottom ``n`` routes by revenue.

    Rows missing either station, and non-positive prices, are dropped before
    grouping by "{departure} to {arrival}". Bottom routes are returned lowest
    first.
    """
    prices = _prices(rows)
    valid = rows["departure_station"].notna() & rows["arrival_station"].notna() & (prices > 0)
    for col in ("departure_station", "arrival_station"):
        valid &= ~rows[col].astype(str).str.strip().isin(["", "undefined"])
    subset = rows[valid]

    routes = subset["departure_station"].astype(str) + " to " + subset["arrival_station"].astype(str)
    revenue = prices[valid].groupby(routes, sort=False).sum()
    revenue = revenue[revenue > 0].sort_values(ascending=False, kind="mergesort")
    table = revenue.rename("revenue").rename_axis("route").reset_index()
    return table.head(n).reset_index(drop=True), table.tail(n).iloc[::-1].reset_index(drop=True)


def station_peaks(rows: pd.DataFrame, station_col="departure_station", time_col="departure_time", n=7) -> pd.DataFrame:
    """Per station, the busiest clock time and its count; top ``n`` stations."""
    subset = rows.dropna(subset=[station_col, time_col])
    subset = subset[subset[station_col].astype(str).str.strip().ne("") & subset[time_col].astype(str).str.strip().ne("")]
    if subset.empty:
        return pd.DataFrame(columns=["station", "peak_time", "count"])

    counts = subset.groupby([station_col, time_col], sort=False).size()
    records = []
    for station, per_time in counts.groupby(level=0, sort=False):
        best = per_time.idxmax()
        records.append({"station": station, "peak_time": best[1], "count": int(per_time.max())})
    table = pd.DataFrame.from_records(records)
    return table.sort_values("count", ascending=False, kind="mergesort").head(n).reset_index(drop=True)


def on_time_performance(rows: pd.DataFrame, by="overall", top_n=10) -> pd.DataFrame:
    """
    On-time rate overall or per route / departure station / arrival station.

    by: 'overall', 'route', 'departure_station', 'arrival_station'
    """
    on_time = rows["journey_status"].astype(str).str.lower().str.strip().eq("on time")
    if by == "overall":
        total = len(rows)
        hits = int(on_time.sum())
        return pd.DataFrame([{"total": total, "on_time": hits, "on_time_pct": round(hits / total * 100, 2) if total else 0.0}])

    if by == "route":
        keys = rows["departure_station"].astype(str) + " to " + rows["arrival_station"].astype(str)
        keys = keys.where(rows["departure_station"].notna() & rows["arrival_station"].notna())
    elif by in ("departure_station", "arrival_station"):
        keys = rows[by]
    else:
        raise ValueError(f"Unknown grouping: {by!r}")

    grp = on_time.groupby(keys).agg(total="size", on_time="sum")
    grp["on_time_pct"] = (grp["on_time"] / grp["total"] * 100).round(2)
    grp = grp.rename_axis(by).reset_index()
    return grp.sort_values("on_time_pct", ascending=False, kind="mergesort").head(top_n).reset_index(drop=True)


# ---------- Ticket mix ----------
def ticket_class_split(rows: pd.DataFrame) -> pd.Series:
    counts = rows["ticket_class"].value_counts()
    return counts.reindex(config.TICKET_CLASSES, fill_value=0).astype(int)


def ticket_type_counts(rows: pd.DataFrame) -> pd.Series:
    counts = rows["ticket_type"].value_counts()
    return counts.reindex(config.TICKET_TYPES, fill_value=0).astype(int)


@dataclass(frozen=True)
class RailcardSplit:
    holders: int
    non_holders: int
    by_type: pd.Series


def railcard_split(rows: pd.DataFrame) -> RailcardSplit:
    railcards = rows["railcard"]
    non_holders = int((railcards.isna() | railcards.eq("None")).sum())
    by_type = railcards.value_counts().reindex(config.RAILCARDS, fill_value=0).astype(int)
    return RailcardSplit(holders=len(rows) - non_holders, non_holders=non_holders, by_type=by_type)


@dataclass(frozen=True)
class ClassInsight:
    standard_percent: float
    top_type: str
    top_type_percent: float


def standard_class_insight(rows: pd.DataFrame) -> ClassInsight:
    """Share of Standard class tickets and the most common type within it."""
    classes = ticket_class_split(rows)
    total = classes.sum()
    standard_percent = classes["Standard"] / total * 100 if total else 0.0

    standard = rows[rows["ticket_class"].eq("Standard")]
    if standard.empty:
        return ClassInsight(float(standard_percent), config.TICKET_TYPES[0], 0.0)
    types = ticket_type_counts(standard)
    return ClassInsight(float(standard_percent), types.idxmax(), float(types.max() / len(standard) * 100))


# ---------- Revenue by status ----------
def status_revenue(rows: pd.DataFrame) -> pd.DataFrame:
    revenue = _prices(rows).groupby(rows["journey_status"]).sum()
    revenue = revenue.reindex(config.JOURNEY_STATUSES, fill_value=0.0)
    return pd.DataFrame({"revenue": revenue, "share": _shares(revenue)}).rename_axis("status").reset_index()


def status_refunds(rows: pd.DataFrame) -> pd.DataFrame:
    refunded = rows[rows["refund_requested"].fillna(False).astype(bool)]
    refunds = _prices(refunded).groupby(refunded["journey_status"]).sum()
    refunds = refunds.reindex(config.REFUND_STATUSES, fill_value=0.0)
    return pd.DataFrame({"refund": refunds, "share": _shares(refunds)}).rename_axis("status").reset_index()


# ---------- Disruptions ----------
def disruption_table(rows: pd.DataFrame, dates=None) -> pd.DataFrame:
    """Per date: cancellation score and each delay reason's share of that day's journeys."""
    dates = dates if dates is not None else config.DISRUPTION_DATES
    reasons = rows["reason_for_delay"].map(normalize_delay_reason)
    records = []
    for date in dates:
        on_day = rows["date_of_journey"].eq(date)
        total = int(on_day.sum())
        record = {
            "date": date,
            "cancellation_score": rows.loc[on_day, "journey_status"].eq("Cancelled").sum() / total * 100 if total else 0.0,
        }
        for reason in config.DELAY_REASONS:
            record[reason] = (reasons[on_day] == reason).sum() / total * 100 if total else 0.0
        records.append(record)
    return pd.DataFrame.from_records(records, columns=["date", "cancellation_score"] + config.DELAY_REASONS)


def leading_causes(rows: pd.DataFrame) -> pd.DataFrame:
    """Cancelled journeys by normalised reason: passengers affected and fares at stake."""
    cancelled = rows[rows["journey_status"].eq("Cancelled")]
    reasons = cancelled["reason_for_delay"].map(normalize_delay_reason)
    grouped = _prices(cancelled).groupby(reasons, sort=False).agg(passengers="size", refund_amount="sum")
    grouped = grouped.rename_axis("reason").reset_index()
    return grouped.sort_values("passengers", ascending=False, kind="mergesort").reset_index(drop=True)


def refund_flows(rows: pd.DataFrame, origins=None, destinations=None) -> pd.DataFrame:
    """
    Links for the origin city -> origin station -> destination -> refund
    parallel-sets view. ``origins``/``destinations`` are city-name prefixes.
    """
    subset = rows.dropna(subset=["departure_station", "arrival_station"])
    if origins:
        subset = subset[subset["departure_station"].str.startswith(tuple(origins))]
    if destinations:
        subset = subset[subset["arrival_station"].str.startswith(tuple(destinations))]

    refunded = subset["refund_requested"].fillna(False).astype(bool)
    axes = pd.DataFrame({
        "Origin City": subset["departure_station"].str.split(" ").str[0],
        "Origin Station": subset["departure_station"],
        "Destination Station": subset["arrival_station"],
        "Refund Result": np.where(refunded, "Refunded", "Not Refunded"),
        "refunded": refunded,
    })

    names = ["Origin City", "Origin Station", "Destination Station", "Refund Result"]
    links = []
    for source, target in zip(names, names[1:]):
        grouped = axes.groupby([source, target], sort=False)["refunded"].agg(count="size", refund_percent="mean")
        for (src_value, tgt_value), row in grouped.iterrows():
            links.append({
                "source_dimension": source,
                "source": src_value,
                "target_dimension": target,
                "target": tgt_value,
                "count": int(row["count"]),
                "refund_percent": float(row["refund_percent"]) * 100,
            })
    return pd.DataFrame.from_records(
        links, columns=["source_dimension", "source", "target_dimension", "target", "count", "refund_percent"]
    )
