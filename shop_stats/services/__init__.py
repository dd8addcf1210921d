"""Services layer for shop-stats-service."""
from .stats_service import CsvExport, StatsService

__all__ = ["CsvExport", "StatsService"]
