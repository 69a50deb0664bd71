"""Cross-chart filtering and aggregation for the European and UK rail dashboard."""

__version__ = "0.1.0"
