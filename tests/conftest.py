from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Any, Mapping

import pytest

from shop_stats.integrations import CatalogTranslator, LocaleNumberFormatter
from shop_stats.stats import QueryExecutionError

EN_MESSAGES = {
    "ecommerce_stats.nothing_assigned": "not assigned",
    "ecommerce_stats.total": "Total",
    "ecommerce_stats.delta": "Delta",
}

ORDERS_TEMPLATE = (
    "SELECT [{sColumnName}] AS sColumnName, SUM(value_total) AS dColumnValue "
    "FROM shop_order [{sCondition}] GROUP BY sColumnName ORDER BY sColumnName"
)

PAYMENT_TEMPLATE = (
    "SELECT [{sColumnName}] AS sColumnName, payment_method, SUM(value_total) AS dColumnValue "
    "FROM shop_order [{sCondition}] GROUP BY sColumnName, payment_method "
    "ORDER BY payment_method, sColumnName"
)

LOCATION_TEMPLATE = (
    "SELECT [{sColumnName}] AS sColumnName, country, city, SUM(value_total) AS dColumnValue "
    "FROM shop_order [{sCondition}] GROUP BY sColumnName, country, city "
    "ORDER BY country, city, sColumnName"
)

# (datecreated, value_total, payment_method, country, city, cms_portal_id)
SHOP_ORDERS = [
    ("2024-01-05 10:00:00", 100.0, "invoice", "DE", "Berlin", "p1"),
    ("2024-01-20 12:30:00", 50.0, "paypal", "DE", "Hamburg", "p1"),
    ("2024-02-14 09:00:00", 70.0, "invoice", "AT", "Wien", "p2"),
    ("2024-02-29 23:59:00", 30.0, "", "DE", "Berlin", "p2"),
    ("2024-03-01 08:00:00", 20.0, None, "AT", None, "p1"),
]


class FakeExecutor:
    """Returns canned rows for the first response key contained in the SQL."""

    def __init__(self, responses: dict[str, list[dict[str, Any]] | Exception]) -> None:
        self._responses = responses
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def fetch_rows(self, sql: str, parameters: Mapping[str, Any]) -> list[dict[str, Any]]:
        self.calls.append((sql, dict(parameters)))
        for marker, response in self._responses.items():
            if marker in sql:
                if isinstance(response, Exception):
                    raise response
                return [dict(r) for r in response]
        raise QueryExecutionError(f"no such table in: {sql}")


@pytest.fixture
def translator() -> CatalogTranslator:
    return CatalogTranslator(EN_MESSAGES)


@pytest.fixture
def formatter() -> LocaleNumberFormatter:
    return LocaleNumberFormatter(".", ",")


@pytest.fixture
def shop_db(tmp_path: Path) -> str:
    db_path = tmp_path / "shop.db"
    conn = sqlite3.connect(db_path)
    conn.executescript("""
        CREATE TABLE shop_order (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            datecreated TEXT NOT NULL,
            value_total REAL NOT NULL DEFAULT 0,
            payment_method TEXT,
            country TEXT,
            city TEXT,
            cms_portal_id TEXT
        );
    """)
    conn.executemany(
        "INSERT INTO shop_order (datecreated, value_total, payment_method, country, city, cms_portal_id) "
        "VALUES (?, ?, ?, ?, ?, ?);",
        SHOP_ORDERS,
    )
    conn.commit()
    conn.close()
    return str(db_path)
