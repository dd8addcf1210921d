"""
Statistics service: wires group configuration, query execution, localization
and export for one evaluation at a time.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

import pandas as pd

from ..config import Settings
from ..integrations import CatalogTranslator, LocaleNumberFormatter, load_localization
from ..repositories import StatsRepository
from ..stat_groups import get_stat_groups, load_stat_groups_config
from ..stats import (
    AggregationEngine,
    CsvExporter,
    EvaluationRequest,
    EvaluationResult,
    StatGroupConfig,
    export_csv_text,
    table_to_frame,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CsvExport:
    filename: str
    content: str
    result: EvaluationResult


class StatsService:
    """Evaluates the configured statistic groups and renders the results."""

    def __init__(
        self,
        settings: Settings,
        repository: StatsRepository,
        translator: CatalogTranslator,
        formatter: LocaleNumberFormatter,
    ) -> None:
        self._settings = settings
        self._repo = repository
        self._translator = translator
        self._formatter = formatter

    @classmethod
    def from_settings(cls, settings: Settings) -> "StatsService":
        translator, formatter = load_localization(settings.locales_file, settings.locale)
        return cls(settings, StatsRepository(settings.db_path), translator, formatter)

    def list_groups(self, force_reload: bool = False) -> list[StatGroupConfig]:
        if self._settings.group_source == "db":
            return self._repo.list_stat_groups()
        if force_reload:
            load_stat_groups_config(self._settings.groups_file, force_reload=True)
        return get_stat_groups(self._settings.groups_file)

    def evaluate(self, request: EvaluationRequest) -> EvaluationResult:
        engine = AggregationEngine(
            self.list_groups(),
            self._repo,
            self._translator,
            max_workers=self._settings.max_workers,
        )
        result = engine.evaluate_request(request)
        for warning in result.warnings:
            logger.warning("Statistic group `%s` incomplete (%s): %s", warning.group, warning.kind, warning.message)
        return result

    def export_csv(self, request: EvaluationRequest) -> CsvExport:
        result = self.evaluate(request)
        rows = CsvExporter(self._translator, self._formatter).export(result.model)
        content = export_csv_text(rows, delimiter=self._settings.csv_delimiter)
        return CsvExport(filename=_export_filename(request), content=content, result=result)

    def table_frame(self, request: EvaluationRequest) -> tuple[pd.DataFrame, EvaluationResult]:
        result = self.evaluate(request)
        return table_to_frame(result.model, self._translator), result


def _export_filename(request: EvaluationRequest) -> str:
    start = request.start_date.strftime("%Y%m%d") if request.start_date else "begin"
    end = request.end_date.strftime("%Y%m%d") if request.end_date else "now"
    return f"shop_stats_{request.date_group_type}_{start}-{end}.csv"
