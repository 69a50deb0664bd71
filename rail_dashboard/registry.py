"""
Chart registry: re-runs the filter pipeline for every registered chart.

A chart is a ``render(filtered_rows, state)`` callable plus the dataset it
reads and the ``FilterProfile`` it honours. ``notify_all`` filters each
distinct (dataset, profile) pair once and calls the renders synchronously, in
registration order.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Mapping, Optional

import pandas as pd

from rail_dashboard.filters import DEPARTURES, FilterEngine, FilterProfile, FilterState, FilterStore

logger = logging.getLogger(__name__)

Render = Callable[[pd.DataFrame, FilterState], None]


@dataclass(frozen=True)
class Chart:
    name: str
    render: Render
    profile: FilterProfile
    dataset: str


class ChartRegistry:
    def __init__(self, store: FilterStore, frames: Mapping[str, pd.DataFrame]):
        self.store = store
        self.frames = frames
        self._charts = OrderedDict()

    @property
    def names(self):
        return list(self._charts)

    def register(self, name, render: Render, profile: FilterProfile = DEPARTURES, dataset="journeys"):
        if dataset not in self.frames:
            raise KeyError(f"Unknown dataset {dataset!r} for chart {name!r}")
        if name in self._charts:
            logger.warning("Chart %s registered twice; replacing it", name)
        self._charts[name] = Chart(name, render, profile, dataset)

    def unregister(self, name):
        self._charts.pop(name, None)

    def notify_all(self, state: Optional[FilterState] = None):
        """Filter once per (dataset, profile) and hand the result to every chart."""
        state = state or self.store.snapshot()
        logger.debug("Notifying %d charts with %s", len(self._charts), state.active())

        filtered = {}
        for chart in self._charts.values():
            key = (chart.dataset, chart.profile)
            if key not in filtered:
                filtered[key] = FilterEngine.apply(self.frames[chart.dataset], state, chart.profile)
            try:
                chart.render(filtered[key], state)
            except Exception:
                logger.exception("Chart %s failed to render", chart.name)
                raise
        return state

    def dispatch(self, dimension, value):
        """UI click: toggle one filter field, then redraw everything."""
        state = self.store.toggle(dimension, value)
        logger.debug("Dispatch %s=%r", dimension, value)
        return self.notify_all(state)
