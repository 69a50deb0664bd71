"""
Data loading for the dashboard (the row store).

Two tabular sources are read once at startup:
- ``railway.csv``: one row per UK rail ticket/journey
- ``european_train_punctuality.csv``: one row per European operator

Headers are mapped to snake_case names (see ``config.JOURNEY_COLUMNS`` and
``config.OPERATOR_COLUMNS``). Numeric fields are coerced with
``pd.to_numeric(errors="coerce")``; unreadable values stay NaN and each
aggregator chooses its own fallback.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

import numpy as np
import pandas as pd

from rail_dashboard import config
from rail_dashboard.errors import DataLoadFailure

logger = logging.getLogger(__name__)

REQUIRED_JOURNEY_COLUMNS = [
    "departure_station",
    "arrival_station",
    "departure_time",
    "date_of_journey",
    "journey_status",
    "price",
]
REQUIRED_OPERATOR_COLUMNS = ["country", "operator", "punctuality"]
# "Yes" in the source file; True/1 in a re-uploaded processed export
REFUND_YES = ["yes", "true", "1"]


def parse_number(value) -> Optional[float]:
    """Parse a single field as float, returning None when it is not a number."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, np.number)):
        return None if pd.isna(value) else float(value)
    text = str(value).strip()
    if not text:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    return None if np.isnan(number) else number


def _read_csv(path) -> pd.DataFrame:
    path = Path(path)
    if not path.exists():
        raise DataLoadFailure(path, "file not found")
    try:
        return pd.read_csv(path, dtype=str)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as exc:
        raise DataLoadFailure(path, f"could not parse CSV ({exc})") from exc


def _check_columns(df, required, source):
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise DataLoadFailure(source, f"missing columns: {', '.join(missing)}")


class RailDataLoader:
    def __init__(self, journeys_path=None, operators_path=None):
        self.journeys_path = journeys_path or config.JOURNEYS_CSV
        self.operators_path = operators_path or config.OPERATORS_CSV

    def load_journeys(self) -> pd.DataFrame:
        df = _read_csv(self.journeys_path)
        df = self.preprocess_journeys(df, source=self.journeys_path)
        logger.info("Loaded %d journey rows from %s", len(df), self.journeys_path)
        return df

    def load_operators(self) -> pd.DataFrame:
        df = _read_csv(self.operators_path)
        df = self.preprocess_operators(df, source=self.operators_path)
        logger.info("Loaded %d operator rows from %s", len(df), self.operators_path)
        return df

    @staticmethod
    def preprocess_journeys(df: pd.DataFrame, source="journeys") -> pd.DataFrame:
        """Rename headers, coerce price and refund flag, fill optional columns."""
        df = df.rename(columns=config.JOURNEY_COLUMNS)
        _check_columns(df, REQUIRED_JOURNEY_COLUMNS, source)

        # optional columns get neutral defaults
        for col, default in {
            "arrival_time": np.nan,
            "actual_arrival_time": np.nan,
            "ticket_class": "Standard",
            "ticket_type": "Unknown",
            "railcard": "None",
            "refund_requested": "No",
            "reason_for_delay": np.nan,
        }.items():
            if col not in df.columns:
                df[col] = default

        df["railcard"] = df["railcard"].fillna("None")
        df["price"] = pd.to_numeric(df["price"], errors="coerce")
        df["refund_requested"] = (
            df["refund_requested"].astype(str).str.strip().str.lower().isin(REFUND_YES)
        )
        return df.reset_index(drop=True)

    @staticmethod
    def preprocess_operators(df: pd.DataFrame, source="operators") -> pd.DataFrame:
        """Rename headers and coerce the numeric score columns."""
        df = df.rename(columns=config.OPERATOR_COLUMNS)
        _check_columns(df, REQUIRED_OPERATOR_COLUMNS, source)
        for col in config.OPERATOR_NUMERIC:
            if col not in df.columns:
                df[col] = np.nan
            df[col] = pd.to_numeric(df[col], errors="coerce")
        df["country"] = df["country"].str.strip()
        return df.reset_index(drop=True)


def load_geojson(path=None) -> dict:
    """Read the Europe outline used by the map view."""
    path = Path(path or config.EUROPE_GEOJSON)
    if not path.exists():
        raise DataLoadFailure(path, "file not found")
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as exc:
        raise DataLoadFailure(path, f"invalid GeoJSON ({exc})") from exc


@dataclass(frozen=True)
class RowStore:
    """Datasets loaded once at startup. Readers must not modify the frames."""

    journeys: Optional[pd.DataFrame] = None
    operators: Optional[pd.DataFrame] = None
    errors: Dict[str, DataLoadFailure] = field(default_factory=dict)

    @classmethod
    def load(cls, loader: Optional[RailDataLoader] = None) -> "RowStore":
        """Load every dataset; a failure is recorded against that dataset only."""
        loader = loader or RailDataLoader()
        frames, errors = {}, {}
        for name, load in (("journeys", loader.load_journeys), ("operators", loader.load_operators)):
            try:
                frames[name] = load()
            except DataLoadFailure as exc:
                logger.error("%s", exc)
                errors[name] = exc
        return cls(errors=errors, **frames)

    def frame(self, name: str) -> pd.DataFrame:
        if name in self.errors:
            raise self.errors[name]
        df = getattr(self, name)
        if df is None:
            raise DataLoadFailure(name, "dataset not loaded")
        return df


# ---------- Sample data ----------
def generate_sample_journeys(n=400, seed=42) -> pd.DataFrame:
    """Generate a small journeys dataset with the internal column names."""
    rng = np.random.default_rng(seed)
    dates = pd.date_range("2024-01-01", "2024-04-30").strftime("%Y-%m-%d").to_numpy()
    stations = ["London Kings Cross", "York", "Liverpool Lime Street", "Manchester Piccadilly", "Bristol Temple Meads"]
    reasons = ["Signal Failure", "Weather", "Technical Issue", "Staff Shortage", "Traffic"]

    dep_minutes = rng.integers(0, 24 * 60, n)
    duration = rng.integers(30, 240, n)
    status = rng.choice(config.JOURNEY_STATUSES, n, p=[0.8, 0.15, 0.05])
    delay = np.where(status == "Delayed", rng.integers(1, 120, n), 0)

    def clock(minutes):
        minutes = np.mod(minutes, 24 * 60)
        return [f"{m // 60:02d}:{m % 60:02d}" for m in minutes]

    data = {
        "date_of_journey": rng.choice(dates, n),
        "departure_time": clock(dep_minutes),
        "arrival_time": clock(dep_minutes + duration),
        "actual_arrival_time": clock(dep_minutes + duration + delay),
        "departure_station": rng.choice(stations, n),
        "arrival_station": rng.choice(stations, n),
        "journey_status": status,
        "ticket_class": rng.choice(config.TICKET_CLASSES, n, p=[0.9, 0.1]),
        "ticket_type": rng.choice(config.TICKET_TYPES, n),
        "railcard": rng.choice(["None"] + config.RAILCARDS, n, p=[0.65, 0.15, 0.05, 0.15]),
        "price": np.round(rng.normal(25, 12, n), 2).clip(1),
        "refund_requested": np.where(status == "On Time", False, rng.random(n) < 0.3),
        "reason_for_delay": np.where(status == "On Time", None, rng.choice(reasons, n)),
    }
    return pd.DataFrame(data)
