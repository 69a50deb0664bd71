"""
Country and operator metrics over the European punctuality dataset.

A joint "UK/France" operator is counted once in the UK and once in France
(``expand_joint_countries``) and is left out of every EU-wide average.
Rows without a country are dropped from country groupings.
"""

import bisect
from dataclasses import dataclass
from typing import Dict, Optional

import pandas as pd

from rail_dashboard import config
from rail_dashboard.loader import parse_number

SERVICE_COLUMNS = ["compensation_score", "booking_score", "night_train_score", "cycling_score"]
GRID_COLUMNS = ["punctuality", "compensation_score", "booking_score", "cycling_score"]


@dataclass(frozen=True)
class OperatorScore:
    name: str
    punctuality: float


@dataclass(frozen=True)
class CountrySummary:
    avg_punctuality: Optional[float]
    avg_cancellation: Optional[float]
    avg_price: Optional[float]
    operator_count: int
    best_operator: Optional[OperatorScore]


@dataclass(frozen=True)
class GapSummary:
    uk_avg: Optional[float]
    eu_avg: Optional[float]
    gap: Optional[float]


def _mean(values: pd.Series) -> Optional[float]:
    value = values.mean()
    return None if pd.isna(value) else float(value)


def expand_joint_countries(rows: pd.DataFrame) -> pd.DataFrame:
    """One row per (operator, country); the joint label moves to ``source_country``."""
    targets = rows["country"].map(lambda c: list(config.JOINT_COUNTRIES.get(c, (c,))))
    expanded = rows.assign(source_country=rows["country"], country=targets).explode("country")
    return expanded.reset_index(drop=True)


def _uk_eu_split(rows, reference=config.REFERENCE_COUNTRY):
    expanded = expand_joint_countries(rows)
    is_reference = expanded["country"].eq(reference)
    is_joint = expanded["source_country"].isin(list(config.JOINT_COUNTRIES))
    eu = expanded[~is_reference & ~is_joint & expanded["country"].notna()]
    return expanded[is_reference], eu


def country_averages(rows: pd.DataFrame) -> Dict[str, CountrySummary]:
    """
    Per-country means of punctuality, cancellation rate and price per km.

    ``best_operator`` is the most punctual operator; ties go to the first row.
    """
    expanded = expand_joint_countries(rows).dropna(subset=["country"])
    summaries = {}
    for country, group in expanded.groupby("country", sort=False):
        punctual = group["punctuality"].dropna()
        best = None
        if not punctual.empty:
            best_idx = punctual.idxmax()
            best = OperatorScore(group.at[best_idx, "operator"], float(punctual[best_idx]))
        summaries[country] = CountrySummary(
            avg_punctuality=_mean(group["punctuality"]),
            avg_cancellation=_mean(group["cancellation_rate"]),
            avg_price=_mean(group["ticket_price_per_km"]),
            operator_count=len(group),
            best_operator=best,
        )
    return summaries


def country_table(rows: pd.DataFrame) -> pd.DataFrame:
    """``country_averages`` flattened into a DataFrame indexed by country."""
    records = [
        {
            "country": country,
            "avg_punctuality": s.avg_punctuality,
            "avg_cancellation": s.avg_cancellation,
            "avg_price": s.avg_price,
            "operator_count": s.operator_count,
            "best_operator": s.best_operator.name if s.best_operator else None,
        }
        for country, s in country_averages(rows).items()
    ]
    columns = ["country", "avg_punctuality", "avg_cancellation", "avg_price", "operator_count", "best_operator"]
    return pd.DataFrame.from_records(records, columns=columns).set_index("country")


def uk_eu_gap(rows: pd.DataFrame) -> GapSummary:
    """UK mean punctuality minus the mean of every other (non-joint) operator."""
    uk, eu = _uk_eu_split(rows)
    uk_avg, eu_avg = _mean(uk["punctuality"]), _mean(eu["punctuality"])
    gap = uk_avg - eu_avg if uk_avg is not None and eu_avg is not None else None
    return GapSummary(uk_avg, eu_avg, gap)


# ---------- Colour scales ----------
def _band(value, thresholds) -> Optional[int]:
    value = parse_number(value)
    if value is None:
        return None
    return min(bisect.bisect_right(thresholds, value), len(config.BAND_COLORS) - 1)


def punctuality_band(value) -> Optional[int]:
    """Band 0..3 on the [75, 80, 85, 90] scale; None when there is no value."""
    return _band(value, config.PUNCTUALITY_THRESHOLDS)


def cancellation_band(value) -> Optional[int]:
    return _band(value, config.CANCELLATION_THRESHOLDS)


def band_color(band) -> str:
    return config.NO_DATA_COLOR if band is None else config.BAND_COLORS[band]


def performance_status(punctuality) -> str:
    punctuality = parse_number(punctuality)
    if punctuality is None:
        return "No Data"
    if punctuality >= 90:
        return "Excellent"
    if punctuality >= 85:
        return "Good"
    if punctuality >= 80:
        return "Average"
    return "Needs Improvement"


def service_score(rows: pd.DataFrame) -> Optional[float]:
    """Mean of the four service scores per operator, averaged; None for no operators."""
    if len(rows) == 0:
        return None
    per_operator = rows[SERVICE_COLUMNS].apply(pd.to_numeric, errors="coerce").fillna(0).mean(axis=1)
    return float(per_operator.mean())


# ---------- Rankings ----------
def top_countries(rows: pd.DataFrame, n=5) -> pd.DataFrame:
    table = country_table(rows).dropna(subset=["avg_punctuality"])
    return table.sort_values("avg_punctuality", ascending=False, kind="mergesort").head(n)


def cancellation_ranking(rows: pd.DataFrame, n=8) -> pd.Series:
    """Mean cancellation rate per country on the raw rows, joint rows skipped."""
    raw = rows[~rows["country"].isin(list(config.JOINT_COUNTRIES))].dropna(subset=["country"])
    ranking = raw.groupby("country", sort=False)["cancellation_rate"].mean().dropna()
    return ranking.sort_values(ascending=False, kind="mergesort").head(n)


def cancellation_comment(country) -> str:
    return config.CANCELLATION_COMMENTS.get(country, "Multiple factors")


def metric_means(rows: pd.DataFrame, columns=GRID_COLUMNS) -> pd.DataFrame:
    """Per-country means of ``columns``, with missing values counted as 0."""
    expanded = expand_joint_countries(rows).dropna(subset=["country"])
    values = expanded[columns].apply(pd.to_numeric, errors="coerce").fillna(0)
    return values.groupby(expanded["country"], sort=False).mean()


def lowest_punctuality_grid(rows: pd.DataFrame, reference=config.REFERENCE_COUNTRY, n=5) -> pd.DataFrame:
    """The reference country plus the ``n`` least punctual others, four metrics each."""
    means = metric_means(rows)
    others = means.drop(index=reference, errors="ignore").sort_values("punctuality", kind="mergesort")
    selected = ([reference] if reference in means.index else []) + list(others.index[:n])
    return means.loc[selected]


def price_punctuality_averages(rows: pd.DataFrame) -> pd.DataFrame:
    uk, eu = _uk_eu_split(rows)
    columns = ["ticket_price_per_km", "punctuality"]
    return pd.DataFrame(
        {"UK": uk[columns].mean(), "EU": eu[columns].mean()}
    ).T.rename_axis("group")


def service_radar(rows: pd.DataFrame) -> pd.DataFrame:
    """
    UK and EU service profiles scaled to [0, 1]:
    punctuality over a fixed 60-100 range, price inverted over the observed
    range (cheaper is better), compensation and night trains out of 10.
    """
    uk, eu = _uk_eu_split(rows)
    low, high = config.RADAR_PUNCTUALITY_RANGE
    prices = rows["ticket_price_per_km"]
    price_min, price_max = prices.min(), prices.max()
    price_span = price_max - price_min if pd.notna(price_min) and pd.notna(price_max) else 0

    def profile(group):
        means = group[["punctuality", "ticket_price_per_km", "compensation_score", "night_train_score"]].mean().fillna(0)
        price = 1 - (means["ticket_price_per_km"] - price_min) / price_span if price_span else 0.0
        return [
            (means["punctuality"] - low) / (high - low) if high != low else 0.0,
            float(price),
            means["compensation_score"] / 10,
            means["night_train_score"] / 10,
        ]

    return pd.DataFrame(
        {"UK": profile(uk), "EU": profile(eu)},
        index=["Punctuality", "Ticket Price", "Compensation", "Night Service"],
    )


def key_insights(country, summary: CountrySummary, eu_punctuality=None, avg_price=None) -> list:
    """Up to three one-line observations for the country detail panel."""
    eu_punctuality = config.INSIGHT_EU_PUNCTUALITY if eu_punctuality is None else eu_punctuality
    avg_price = config.INSIGHT_AVG_PRICE if avg_price is None else avg_price
    punctuality = summary.avg_punctuality
    insights = []

    if punctuality is not None:
        if punctuality >= 90:
            insights.append("Demonstrates exceptional punctuality performance")
            if summary.avg_cancellation is not None and summary.avg_cancellation < 1.5:
                insights.append("Maintains high reliability with low cancellation rates")
        elif punctuality < eu_punctuality:
            insights.append("Shows potential for punctuality improvement")
            insights.append(f"{eu_punctuality - punctuality:.1f}% below EU punctuality benchmark")

    if summary.avg_price is not None and summary.avg_price > avg_price and avg_price:
        insights.append(f"{(summary.avg_price - avg_price) / avg_price * 100:.0f}% higher than average ticket prices")
    else:
        insights.append("Competitive pricing structure")

    if punctuality is not None:
        score = round(punctuality / 10 + 1, 1)
        if score >= 9:
            insights.append("Excellent digital booking experience")
            insights.append("Top-tier customer service standards")
        elif score <= 8:
            insights.append("Room for service quality enhancement")

    if country == "Switzerland":
        insights.append("Leading European rail service provider")
    elif country == config.REFERENCE_COUNTRY:
        insights.append("Ongoing modernization of rail infrastructure")
    return insights[:3]


def geojson_country(feature) -> Optional[str]:
    """Dataset country for a map feature, from its ``NAME`` property."""
    name = (feature.get("properties") or {}).get("NAME")
    return config.GEOJSON_NAMES.get(name, name)
