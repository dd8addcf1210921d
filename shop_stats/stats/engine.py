"""Run the configured statistic queries and merge their rows into a TableModel."""
from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Protocol, Sequence

from ..domain.types import BUCKET_FIELD, VALUE_FIELD, TranslationKey
from .errors import MalformedRowError, QueryExecutionError, StatsConfigurationError
from .models import (
    EvaluationRequest,
    EvaluationResult,
    EvaluationWarning,
    GroupNode,
    StatGroupConfig,
    TableModel,
)
from .query_builder import compile_group_query, resolve_date_group_type

if TYPE_CHECKING:
    from ..integrations.localization import Translator

logger = logging.getLogger(__name__)


class QueryExecutor(Protocol):
    """Runs one parameterized query; failures surface as QueryExecutionError."""

    def fetch_rows(self, sql: str, parameters: Mapping[str, Any]) -> Iterable[Mapping[str, Any]]: ...


@dataclass
class _GroupOutcome:
    config: StatGroupConfig
    node: GroupNode | None
    warnings: list[EvaluationWarning]


def _to_number(value: Any) -> float:
    if value is None:
        return 0.0
    if isinstance(value, bool):
        raise MalformedRowError(f"`{VALUE_FIELD}` must be numeric, got {value!r}")
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        try:
            number = float(Decimal(str(value).strip()))
        except (InvalidOperation, ValueError) as exc:
            raise MalformedRowError(f"`{VALUE_FIELD}` must be numeric, got {value!r}") from exc
    if not math.isfinite(number):
        raise MalformedRowError(f"`{VALUE_FIELD}` must be finite, got {value!r}")
    return number


def _sub_group_label(value: Any, unassigned_label: str) -> str:
    text = "" if value is None else str(value)
    return text if text else unassigned_label


def ingest_row(
    node: GroupNode,
    row: Mapping[str, Any],
    sub_group_fields: Sequence[str],
    unassigned_label: str,
) -> None:
    """Merge one result row into ``node``.

    Raises MalformedRowError when the row cannot be placed in a column.
    """
    if BUCKET_FIELD not in row or VALUE_FIELD not in row:
        raise MalformedRowError(
            f"Query must select at least `{BUCKET_FIELD}` and `{VALUE_FIELD}`"
        )
    column = row[BUCKET_FIELD]
    if column is None:
        raise MalformedRowError(f"`{BUCKET_FIELD}` is NULL")
    value = _to_number(row[VALUE_FIELD])
    path = [_sub_group_label(row.get(name), unassigned_label) for name in sub_group_fields]
    node.add_row(path, str(column), value)


class AggregationEngine:
    """Evaluates statistic groups into a TableModel.

    The engine only holds its collaborators; each ``evaluate`` call builds a
    fresh tree per group, so one instance may serve any number of calls.
    """

    def __init__(
        self,
        groups: Sequence[StatGroupConfig],
        executor: QueryExecutor,
        translator: Translator,
        max_workers: int = 1,
    ) -> None:
        self._groups = tuple(sorted(groups, key=lambda g: g.position))
        self._executor = executor
        self._translator = translator
        self._max_workers = max(1, max_workers)

    @property
    def groups(self) -> tuple[StatGroupConfig, ...]:
        return self._groups

    def evaluate(
        self,
        start_date: date | None = None,
        end_date: date | None = None,
        date_group_type: str | None = "day",
        show_diff: bool = False,
        portal_id: str | None = None,
    ) -> EvaluationResult:
        if start_date is not None and end_date is not None and start_date > end_date:
            logger.warning("Start date %s is after end date %s, nothing to evaluate", start_date, end_date)
            return EvaluationResult(model=TableModel.from_groups([], show_diff))
        request = EvaluationRequest(
            start_date=start_date,
            end_date=end_date,
            date_group_type=resolve_date_group_type(date_group_type),
            show_diff=show_diff,
            portal_id=portal_id,
        )
        return self.evaluate_request(request)

    def evaluate_request(self, request: EvaluationRequest) -> EvaluationResult:
        unassigned_label = self._translator.trans(TranslationKey.NOTHING_ASSIGNED)
        outcomes = self._run_groups(request, unassigned_label)

        nodes: dict[str, GroupNode] = {}
        warnings: list[EvaluationWarning] = []
        for outcome in outcomes:
            warnings.extend(outcome.warnings)
            if outcome.node is None:
                continue
            existing = nodes.get(outcome.node.title)
            if existing is None:
                nodes[outcome.node.title] = outcome.node
            else:
                existing.merge(outcome.node)

        model = TableModel.from_groups(list(nodes.values()), request.show_diff)
        logger.info(
            "Evaluated %d statistic group(s) by %s: %d column(s), depth %d, %d warning(s)",
            len(model.groups), request.date_group_type, len(model.column_names),
            model.max_depth, len(warnings),
        )
        return EvaluationResult(model=model, warnings=tuple(warnings))

    def _run_groups(self, request: EvaluationRequest, unassigned_label: str) -> list[_GroupOutcome]:
        if self._max_workers == 1 or len(self._groups) <= 1:
            return [self._evaluate_group(g, request, unassigned_label) for g in self._groups]
        with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
            # map() keeps configuration order regardless of completion order
            return list(pool.map(lambda g: self._evaluate_group(g, request, unassigned_label), self._groups))

    def _evaluate_group(
        self,
        group: StatGroupConfig,
        request: EvaluationRequest,
        unassigned_label: str,
    ) -> _GroupOutcome:
        try:
            compiled = compile_group_query(group, request)
        except StatsConfigurationError as exc:
            logger.error("Skipping statistic group `%s`: %s", group.name, exc)
            return _GroupOutcome(group, None, [EvaluationWarning(group.name, "configuration", str(exc))])

        try:
            rows = list(self._executor.fetch_rows(compiled.sql, compiled.parameters))
        except QueryExecutionError as exc:
            logger.error("Error adding ecommerce stats block `%s`: %s", group.name, exc)
            return _GroupOutcome(group, None, [EvaluationWarning(group.name, "query_execution", str(exc))])

        node = GroupNode(title=group.name)
        sub_group_fields = group.sub_group_fields
        for index, row in enumerate(rows):
            try:
                ingest_row(node, row, sub_group_fields, unassigned_label)
            except MalformedRowError as exc:
                logger.error(
                    "Could not add block `%s` to table (row %d, %d row(s) kept): %s",
                    group.name, index, node.row_count, exc,
                )
                warning = EvaluationWarning(group.name, "malformed_row", f"row {index}: {exc}")
                return _GroupOutcome(group, node, [warning])
        return _GroupOutcome(group, node, [])
