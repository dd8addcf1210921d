from __future__ import annotations


class StatsError(Exception):
    """Base error class for shop statistics aggregation."""


class StatsConfigurationError(StatsError):
    """Raised when a statistic group or its query template cannot be used safely."""


class QueryExecutionError(StatsError):
    """Raised when a statistic query fails to run."""


class MalformedRowError(StatsError):
    """Raised when a result row lacks the bucket/value fields or carries a non-numeric value."""
