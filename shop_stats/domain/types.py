"""
Core type definitions and constants.
"""
from __future__ import annotations

from typing import Literal

DateGroupType = Literal["day", "week", "month", "year"]
WarningKind = Literal["query_execution", "malformed_row", "configuration"]
GroupSource = Literal["yaml", "db"]

DATE_GROUP_TYPES: tuple[str, ...] = ("day", "week", "month", "year")
DEFAULT_DATE_GROUP_TYPE = "day"

# Result row contract: every statistic query must select these two aliases.
BUCKET_FIELD = "sColumnName"
VALUE_FIELD = "dColumnValue"

# Named slots in a stored query template.
BUCKET_SLOT = "[{sColumnName}]"
CONDITION_SLOT = "[{sCondition}]"

DEFAULT_DATE_COLUMN = "datecreated"


class TranslationKey:
    NOTHING_ASSIGNED = "ecommerce_stats.nothing_assigned"
    TOTAL = "ecommerce_stats.total"
    DELTA = "ecommerce_stats.delta"


class ErrorCode:
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    EXPORT_ERROR = "EXPORT_ERROR"
