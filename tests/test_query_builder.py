"""Contract tests for statistic query compilation.

Verifies that:
- Bucket expressions come from the fixed granularity table
- ISO week buckets use the ``<year>-KW<week>`` format
- Filter clauses are parenthesized, AND-combined and fully parameterized
- Unsafe identifiers and incomplete templates are rejected
"""
from __future__ import annotations

from datetime import date, datetime

import pytest

from shop_stats.stats.errors import StatsConfigurationError
from shop_stats.stats.models import EvaluationRequest, StatGroupConfig
from shop_stats.stats.query_builder import (
    build_bucket_expression,
    build_condition,
    compile_group_query,
    iso_week_bucket,
    quote_identifier,
    resolve_date_group_type,
)

TEMPLATE = "SELECT [{sColumnName}] AS sColumnName, SUM(v) AS dColumnValue FROM t [{sCondition}] GROUP BY 1"


def _group(**overrides) -> StatGroupConfig:
    data = {
        "name": "Orders",
        "query": TEMPLATE,
        "date_restriction_field": "datecreated",
        "portal_restriction_field": "cms_portal_id",
    }
    data.update(overrides)
    return StatGroupConfig(**data)


# ============================================================================
# Buckets
# ============================================================================

class TestBucketExpressions:
    def test_day(self):
        assert build_bucket_expression("day", "datecreated") == 'date("datecreated")'

    def test_week_uses_iso_function(self):
        assert build_bucket_expression("week", "o.datecreated") == 'stats_iso_week("o"."datecreated")'

    def test_month(self):
        assert build_bucket_expression("month", "datecreated") == "strftime('%Y-%m', \"datecreated\")"

    def test_year(self):
        assert build_bucket_expression("year", "datecreated") == "strftime('%Y', \"datecreated\")"

    def test_unknown_granularity(self):
        with pytest.raises(StatsConfigurationError):
            build_bucket_expression("quarter", "datecreated")

    def test_lenient_resolution_falls_back_to_day(self):
        assert resolve_date_group_type("MONTH") == "month"
        assert resolve_date_group_type("quarter") == "day"
        assert resolve_date_group_type(None) == "day"


class TestIsoWeekBucket:
    def test_week_seven_2024(self):
        assert iso_week_bucket("2024-02-14 09:00:00") == "2024-KW7"

    def test_date_and_datetime_inputs(self):
        assert iso_week_bucket(date(2024, 2, 12)) == "2024-KW7"
        assert iso_week_bucket(datetime(2024, 2, 18, 23, 59)) == "2024-KW7"

    def test_week_starts_monday(self):
        assert iso_week_bucket("2024-02-18") == "2024-KW7"
        assert iso_week_bucket("2024-02-19") == "2024-KW8"

    def test_year_boundary_uses_iso_year(self):
        assert iso_week_bucket("2024-12-30") == "2025-KW1"
        assert iso_week_bucket("2021-01-03") == "2020-KW53"

    def test_unparseable_and_null(self):
        assert iso_week_bucket(None) is None
        assert iso_week_bucket("not a date") is None


# ============================================================================
# Identifiers
# ============================================================================

class TestQuoteIdentifier:
    def test_plain_and_qualified(self):
        assert quote_identifier("datecreated") == '"datecreated"'
        assert quote_identifier("shop_order.datecreated") == '"shop_order"."datecreated"'

    def test_backticks_stripped(self):
        assert quote_identifier("`shop_order`.`datecreated`") == '"shop_order"."datecreated"'

    @pytest.mark.parametrize("name", ["", "date created", "x; DROP TABLE t", "1col", "a..b", 'x"--'])
    def test_rejects_unsafe_names(self, name):
        with pytest.raises(StatsConfigurationError):
            quote_identifier(name)


# ============================================================================
# Filter clause
# ============================================================================

class TestBuildCondition:
    def test_no_restrictions(self):
        sql, params = build_condition(_group(), EvaluationRequest())
        assert sql == ""
        assert params == {}

    def test_full_range_and_portal(self):
        req = EvaluationRequest(start_date=date(2024, 1, 1), end_date=date(2024, 1, 31), portal_id="p1")
        sql, params = build_condition(_group(), req)
        assert sql == (
            'WHERE ("datecreated" >= :date_from) AND ("datecreated" < :date_to) '
            'AND ("cms_portal_id" = :portal_id)'
        )
        assert params == {"date_from": "2024-01-01", "date_to": "2024-02-01", "portal_id": "p1"}

    def test_open_ended_start(self):
        sql, params = build_condition(_group(), EvaluationRequest(start_date=date(2024, 3, 1)))
        assert sql == 'WHERE ("datecreated" >= :date_from)'
        assert params == {"date_from": "2024-03-01"}

    def test_portal_ignored_without_restriction_field(self):
        req = EvaluationRequest(portal_id="p1")
        sql, params = build_condition(_group(portal_restriction_field=""), req)
        assert sql == ""
        assert params == {}

    def test_dates_ignored_without_restriction_field(self):
        req = EvaluationRequest(start_date=date(2024, 1, 1), end_date=date(2024, 1, 31))
        sql, _ = build_condition(_group(date_restriction_field=""), req)
        assert sql == ""

    def test_values_never_inlined(self):
        req = EvaluationRequest(portal_id="p1' OR '1'='1")
        sql, params = build_condition(_group(), req)
        assert "OR '1'" not in sql
        assert params["portal_id"] == "p1' OR '1'='1"


# ============================================================================
# Template compilation
# ============================================================================

class TestCompileGroupQuery:
    def test_slots_filled(self):
        req = EvaluationRequest(date_group_type="month", start_date=date(2024, 1, 1))
        compiled = compile_group_query(_group(), req)
        assert compiled.sql == (
            "SELECT strftime('%Y-%m', \"datecreated\") AS sColumnName, SUM(v) AS dColumnValue "
            'FROM t WHERE ("datecreated" >= :date_from) GROUP BY 1'
        )
        assert compiled.parameters == {"date_from": "2024-01-01"}

    def test_empty_condition_leaves_no_placeholder(self):
        compiled = compile_group_query(_group(), EvaluationRequest())
        assert "[{" not in compiled.sql
        assert "WHERE" not in compiled.sql

    def test_missing_bucket_slot(self):
        with pytest.raises(StatsConfigurationError):
            compile_group_query(_group(query="SELECT 1 AS dColumnValue FROM t"), EvaluationRequest())

    def test_missing_condition_slot_with_filters(self):
        group = _group(query="SELECT [{sColumnName}] AS sColumnName, 1 AS dColumnValue FROM t")
        assert compile_group_query(group, EvaluationRequest()).parameters == {}
        with pytest.raises(StatsConfigurationError):
            compile_group_query(group, EvaluationRequest(portal_id="p1"))

    def test_custom_bucket_column(self):
        compiled = compile_group_query(_group(date_column="o.created_at"), EvaluationRequest(date_group_type="year"))
        assert "strftime('%Y', \"o\".\"created_at\")" in compiled.sql

    def test_unsafe_bucket_column(self):
        with pytest.raises(StatsConfigurationError):
            compile_group_query(_group(date_column="created_at) --"), EvaluationRequest())
