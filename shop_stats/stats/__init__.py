"""Date-bucketed statistic aggregation, table snapshot and CSV export."""
from .errors import (
    StatsError,
    StatsConfigurationError,
    QueryExecutionError,
    MalformedRowError,
)
from .models import (
    StatGroupConfig,
    StatGroupsFile,
    EvaluationRequest,
    EvaluationResult,
    EvaluationWarning,
    GroupNode,
    TableModel,
    collect_column_names,
    compute_max_depth,
    parse_sub_group_fields,
)
from .query_builder import CompiledQuery, compile_group_query, iso_week_bucket, quote_identifier
from .engine import AggregationEngine, QueryExecutor, ingest_row
from .csv_export import CsvExporter, column_deltas, export_csv_text, write_csv
from .frame import table_to_frame

__all__ = [
    "StatsError",
    "StatsConfigurationError",
    "QueryExecutionError",
    "MalformedRowError",
    "StatGroupConfig",
    "StatGroupsFile",
    "EvaluationRequest",
    "EvaluationResult",
    "EvaluationWarning",
    "GroupNode",
    "TableModel",
    "collect_column_names",
    "compute_max_depth",
    "parse_sub_group_fields",
    "CompiledQuery",
    "compile_group_query",
    "iso_week_bucket",
    "quote_identifier",
    "AggregationEngine",
    "QueryExecutor",
    "ingest_row",
    "CsvExporter",
    "column_deltas",
    "export_csv_text",
    "write_csv",
    "table_to_frame",
]
