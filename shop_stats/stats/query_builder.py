"""Build parameterized statistic queries from stored templates.

Key invariant: the only text ever spliced into a template is a bucket
expression from a fixed table and a WHERE clause made of quoted, allow-listed
identifiers and named placeholders. All values travel as bound parameters.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any

from ..domain.types import BUCKET_SLOT, CONDITION_SLOT, DEFAULT_DATE_GROUP_TYPE
from .errors import StatsConfigurationError
from .models import EvaluationRequest, StatGroupConfig, is_date_group_type

logger = logging.getLogger(__name__)

ISO_WEEK_FUNCTION = "stats_iso_week"

_IDENTIFIER_PART = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_BUCKET_EXPRESSIONS: dict[str, str] = {
    "day": "date({column})",
    "week": ISO_WEEK_FUNCTION + "({column})",
    "month": "strftime('%Y-%m', {column})",
    "year": "strftime('%Y', {column})",
}


@dataclass(frozen=True)
class CompiledQuery:
    sql: str
    parameters: dict[str, Any]


# ------------------------------------------------------------------
# Identifiers and buckets
# ------------------------------------------------------------------

def quote_identifier(name: str) -> str:
    """Quote a (possibly table-qualified) column name after checking every part.

    Backticks and double quotes left over from hand-written configuration are
    stripped first.
    """
    cleaned = name.replace("`", "").replace('"', "").strip()
    parts = cleaned.split(".")
    if not cleaned or not all(_IDENTIFIER_PART.match(p) for p in parts):
        raise StatsConfigurationError(f"Invalid column identifier: {name!r}")
    return ".".join(f'"{p}"' for p in parts)


def resolve_date_group_type(value: str | None) -> str:
    """Lenient granularity lookup: anything unknown buckets by day."""
    normalized = (value or "").strip().lower()
    if is_date_group_type(normalized):
        return normalized
    logger.warning("Unknown date group type %r, falling back to %r", value, DEFAULT_DATE_GROUP_TYPE)
    return DEFAULT_DATE_GROUP_TYPE


def build_bucket_expression(date_group_type: str, column: str) -> str:
    try:
        template = _BUCKET_EXPRESSIONS[date_group_type]
    except KeyError as exc:
        raise StatsConfigurationError(f"Unsupported date group type: {date_group_type!r}") from exc
    return template.format(column=quote_identifier(column))


def iso_week_bucket(value: Any) -> str | None:
    """Format a timestamp as ``<ISO year>-KW<ISO week>``, e.g. ``2024-KW7``."""
    if value is None:
        return None
    if isinstance(value, datetime):
        day = value.date()
    elif isinstance(value, date):
        day = value
    else:
        try:
            day = datetime.fromisoformat(str(value).strip()).date()
        except ValueError:
            return None
    iso_year, iso_week, _ = day.isocalendar()
    return f"{iso_year}-KW{iso_week}"


# ------------------------------------------------------------------
# Filter clause
# ------------------------------------------------------------------

def build_condition(
    group: StatGroupConfig,
    request: EvaluationRequest,
) -> tuple[str, dict[str, Any]]:
    """Compose the WHERE clause for one group.

    The end date is inclusive: it compiles to ``< end_date + 1 day`` so that
    timestamps later on the last day still match.
    """
    predicates: list[str] = []
    params: dict[str, Any] = {}

    if group.date_restriction_field:
        date_col = quote_identifier(group.date_restriction_field)
        if request.start_date is not None:
            predicates.append(f"{date_col} >= :date_from")
            params["date_from"] = request.start_date.isoformat()
        if request.end_date is not None:
            predicates.append(f"{date_col} < :date_to")
            params["date_to"] = (request.end_date + timedelta(days=1)).isoformat()

    if group.portal_restriction_field and request.portal_id:
        portal_col = quote_identifier(group.portal_restriction_field)
        predicates.append(f"{portal_col} = :portal_id")
        params["portal_id"] = request.portal_id

    if not predicates:
        return "", params
    return "WHERE (" + ") AND (".join(predicates) + ")", params


# ------------------------------------------------------------------
# Template compilation
# ------------------------------------------------------------------

def compile_group_query(group: StatGroupConfig, request: EvaluationRequest) -> CompiledQuery:
    """Fill the bucket and condition slots of ``group.query``."""
    template = group.query
    if BUCKET_SLOT not in template:
        raise StatsConfigurationError(
            f"Query template of group '{group.name}' has no {BUCKET_SLOT} slot"
        )

    bucket_sql = build_bucket_expression(request.date_group_type, group.date_column)
    condition_sql, params = build_condition(group, request)

    if condition_sql and CONDITION_SLOT not in template:
        raise StatsConfigurationError(
            f"Query template of group '{group.name}' has no {CONDITION_SLOT} slot "
            "but date or portal restrictions apply"
        )

    sql = template.replace(BUCKET_SLOT, bucket_sql).replace(CONDITION_SLOT, condition_sql)
    return CompiledQuery(sql=sql, parameters=params)
