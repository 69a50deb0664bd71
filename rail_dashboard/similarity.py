"""Cosine similarity of country service profiles (the rail network flower)."""

import logging
from dataclasses import dataclass
from typing import Callable, Mapping, Optional, Union

import numpy as np
import pandas as pd

from rail_dashboard import config
from rail_dashboard.loader import parse_number
from rail_dashboard.operators import GRID_COLUMNS, metric_means

logger = logging.getLogger(__name__)

# Hand-picked similarities for the flower legend, keyed by country.
DISPLAY_SIMILARITY_OVERRIDE = {
    "Germany": 0.56,
    "France": 0.7,
    "Italy": 0.72,
    "Slovakia": 0.69,
    "Sweden": 0.82,
    "Poland": 0.76,
    "Netherlands": 0.65,
    "Portugal": 0.75,
}

Override = Union[Mapping[str, float], Callable[[str, float], Optional[float]]]


@dataclass(frozen=True)
class SimilarityLink:
    country: str
    raw: float
    normalized: float
    source: str = "computed"


def country_vectors(rows: pd.DataFrame) -> pd.DataFrame:
    """Punctuality, compensation, booking and cycling means per country (missing = 0)."""
    return metric_means(rows, GRID_COLUMNS)


def cosine_similarity(a, b) -> float:
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    norm_a, norm_b = np.linalg.norm(a), np.linalg.norm(b)
    if not norm_a or not norm_b:
        return 0.0
    return float(np.dot(a, b) / (norm_a * norm_b))


def normalize_similarities(values) -> list:
    """Min-max scale into [0.2, 1.0]; every value is 1.0 when they are all equal."""
    values = [float(v) for v in values]
    if not values:
        return []
    low, high = min(values), max(values)
    if high == low:
        return [1.0] * len(values)
    floor = config.SIMILARITY_FLOOR
    return [floor + (1 - floor) * (v - low) / (high - low) for v in values]


def _override_value(override, country, normalized):
    if callable(override):
        return parse_number(override(country, normalized))
    return parse_number(override.get(country))


def similarity_links(rows: pd.DataFrame, reference=config.REFERENCE_COUNTRY, override: Optional[Override] = None) -> list:
    """
    Similarity of every country to ``reference``.

    ``override`` replaces the normalised value of the countries it covers,
    either from a mapping or from a callable returning None to keep the
    computed value. Replaced links are tagged "display-override".
    """
    vectors = country_vectors(rows)
    ref = vectors.loc[reference].to_numpy() if reference in vectors.index else np.zeros(len(GRID_COLUMNS))
    others = [c for c in vectors.index if c != reference]

    raw = [cosine_similarity(ref, vectors.loc[c].to_numpy()) for c in others]
    links = [SimilarityLink(c, r, n) for c, r, n in zip(others, raw, normalize_similarities(raw))]
    if override is None:
        return links

    result = []
    for link in links:
        value = _override_value(override, link.country, link.normalized)
        if value is None:
            result.append(link)
        else:
            result.append(SimilarityLink(link.country, link.raw, float(value), "display-override"))
    logger.debug("Similarity override applied to %d of %d links",
                 sum(link.source == "display-override" for link in result), len(result))
    return result
