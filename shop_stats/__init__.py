"""Shop statistics service: date-bucketed aggregation tables with CSV export."""

__version__ = "1.0.0"
