"""Repository layer for shop-stats-service."""
from .stats_repository import StatsRepository

__all__ = ["StatsRepository"]
