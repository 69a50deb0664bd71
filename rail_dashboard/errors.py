"""Exceptions raised by the dashboard."""


class RailDashboardError(Exception):
    """Base class for dashboard errors."""


class DataLoadFailure(RailDashboardError):
    """A data source could not be read or did not hold the expected columns."""

    def __init__(self, source, reason):
        self.source = str(source)
        self.reason = reason
        super().__init__(f"Failed to load {self.source}: {reason}")
