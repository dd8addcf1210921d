from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Any, Mapping

from pydantic import ValidationError

from ..stats.errors import QueryExecutionError, StatsConfigurationError
from ..stats.models import StatGroupConfig
from ..stats.query_builder import ISO_WEEK_FUNCTION, iso_week_bucket

logger = logging.getLogger(__name__)

_MIGRATIONS_DIR = Path(__file__).resolve().parent.parent / "migrations"


class StatsRepository:
    """SQLite access for statistic queries and stored statistic group definitions.

    A fresh connection is opened per call, so one instance can be shared by
    the threads of a parallel evaluation.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    @property
    def db_path(self) -> str:
        return self._db_path

    def _conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        conn.create_function(ISO_WEEK_FUNCTION, 1, iso_week_bucket, deterministic=True)
        return conn

    def fetch_rows(self, sql: str, parameters: Mapping[str, Any]) -> list[dict[str, Any]]:
        logger.debug("Executing statistic query: %s params=%s", sql, dict(parameters))
        conn = self._conn()
        try:
            cursor = conn.execute(sql, dict(parameters))
            return [dict(row) for row in cursor.fetchall()]
        except sqlite3.Error as exc:
            raise QueryExecutionError(str(exc)) from exc
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Stored group definitions
    # ------------------------------------------------------------------

    def apply_migrations(self) -> None:
        for migration in sorted(_MIGRATIONS_DIR.glob("*.sql")):
            conn = sqlite3.connect(self._db_path)
            try:
                with conn:
                    conn.executescript(migration.read_text(encoding="utf-8"))
            finally:
                conn.close()
            logger.info("Statistics migration applied: %s", migration.name)

    def list_stat_groups(self) -> list[StatGroupConfig]:
        """Return the statistic groups stored in the database, ordered by position.

        Rows that fail validation are logged and left out.
        """
        conn = self._conn()
        try:
            cursor = conn.execute(
                'SELECT name, query, "groups", date_restriction_field, '
                "portal_restriction_field, date_column, position "
                "FROM pkg_shop_statistic_group "
                "ORDER BY position ASC, id ASC;"
            )
            rows = cursor.fetchall()
        except sqlite3.Error as exc:
            raise StatsConfigurationError(f"Cannot read statistic groups: {exc}") from exc
        finally:
            conn.close()

        groups: list[StatGroupConfig] = []
        for row in rows:
            try:
                groups.append(StatGroupConfig(**dict(row)))
            except ValidationError as exc:
                logger.warning("Ignoring invalid statistic group %r: %s", row["name"], exc)
        return groups

    def add_stat_group(self, group: StatGroupConfig) -> None:
        conn = sqlite3.connect(self._db_path)
        try:
            with conn:
                conn.execute(
                    'INSERT INTO pkg_shop_statistic_group (name, query, "groups", '
                    "date_restriction_field, portal_restriction_field, date_column, position) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?);",
                    (
                        group.name,
                        group.query,
                        group.groups,
                        group.date_restriction_field,
                        group.portal_restriction_field,
                        group.date_column,
                        group.position,
                    ),
                )
        finally:
            conn.close()

    def check_connection(self) -> tuple[bool, str]:
        try:
            conn = sqlite3.connect(self._db_path)
            try:
                conn.execute("SELECT 1;").fetchone()
            finally:
                conn.close()
        except sqlite3.Error as exc:
            return False, str(exc)
        return True, "Database reachable"
