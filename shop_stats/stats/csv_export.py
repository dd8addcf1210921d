"""Flatten a TableModel into CSV rows."""
from __future__ import annotations

import csv
import io
from typing import IO, TYPE_CHECKING, Iterable, Sequence

from ..domain.types import TranslationKey
from .models import GroupNode, TableModel

if TYPE_CHECKING:
    from ..integrations.localization import NumberFormatter, Translator


class CsvExporter:
    """Row-oriented export of a TableModel.

    The header carries ``max_depth`` blank cells followed by one cell per
    column (two when the diff column is shown). Every node then gets one row,
    depth-first: its title indented by level, "total" fillers for the unused
    depth slots and the formatted totals. Each top-level group is followed by
    an empty separator row.
    """

    def __init__(self, translator: Translator, formatter: NumberFormatter, decimals: int = 2) -> None:
        self._translator = translator
        self._formatter = formatter
        self._decimals = decimals

    def export(self, table: TableModel) -> list[list[str]]:
        header = [""] * table.max_depth
        delta_label = self._translator.trans(TranslationKey.DELTA)
        for name in table.column_names:
            header.append(name)
            if table.show_diff_column:
                header.append(delta_label)

        data: list[list[str]] = [header]
        total_label = self._translator.trans(TranslationKey.TOTAL)
        for group in table.groups:
            self._export_node(data, table, group, 1, total_label)
            data.append([])
        return data

    def _export_node(
        self,
        data: list[list[str]],
        table: TableModel,
        node: GroupNode,
        level: int,
        total_label: str,
    ) -> None:
        row = [""] * (level - 1)
        row.append(node.title)
        row.extend([total_label] * max(0, table.max_depth - level))

        values = [node.get_totals(name) or 0.0 for name in table.column_names]
        for value, delta in zip(values, column_deltas(values)):
            row.append(self._formatter.format_number(value, self._decimals))
            if table.show_diff_column:
                row.append(self._formatter.format_number(delta, self._decimals))
        data.append(row)

        for child in node.sub_groups:
            self._export_node(data, table, child, level + 1, total_label)


def column_deltas(values: Sequence[float]) -> list[float]:
    """Successive differences within one row; the first value is compared to 0."""
    deltas: list[float] = []
    previous = 0.0
    for value in values:
        deltas.append(value - previous)
        previous = value
    return deltas


def write_csv(rows: Iterable[Sequence[str]], stream: IO[str], delimiter: str = ";") -> None:
    writer = csv.writer(stream, delimiter=delimiter, lineterminator="\r\n")
    writer.writerows(rows)


def export_csv_text(rows: Iterable[Sequence[str]], delimiter: str = ";") -> str:
    buffer = io.StringIO()
    write_csv(rows, buffer, delimiter=delimiter)
    return buffer.getvalue()
