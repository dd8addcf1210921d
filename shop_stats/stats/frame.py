"""Tabular (pandas) view of a TableModel for display."""
from __future__ import annotations

from typing import TYPE_CHECKING, Iterator

import pandas as pd

from ..domain.types import TranslationKey
from .csv_export import column_deltas
from .models import GroupNode, TableModel

if TYPE_CHECKING:
    from ..integrations.localization import Translator


def _walk(node: GroupNode, path: tuple[str, ...] = ()) -> Iterator[tuple[tuple[str, ...], GroupNode]]:
    path = path + (node.title,)
    yield path, node
    for child in node.sub_groups:
        yield from _walk(child, path)


def table_to_frame(table: TableModel, translator: Translator) -> pd.DataFrame:
    """Build a DataFrame with one row per node and one float column per bucket.

    Rows are indexed by ``group`` plus one ``level_<n>`` entry per sub-group
    level. A node's unused deeper levels are left blank, so a parent row never
    shares its key with a child titled like the "total" label. With the
    diff column enabled, each bucket column is followed by ``<bucket> <delta>``.
    """
    delta_label = translator.trans(TranslationKey.DELTA)
    depth = max(table.max_depth, 1)
    index_names = ["group"] + [f"level_{i}" for i in range(1, depth)]

    columns: list[str] = []
    for name in table.column_names:
        columns.append(name)
        if table.show_diff_column:
            columns.append(f"{name} {delta_label}")

    keys: list[tuple[str, ...]] = []
    records: list[list[float]] = []
    for group in table.groups:
        for path, node in _walk(group):
            keys.append(path + ("",) * (depth - len(path)))
            values = [node.get_totals(name) or 0.0 for name in table.column_names]
            record: list[float] = []
            for value, delta in zip(values, column_deltas(values)):
                record.append(value)
                if table.show_diff_column:
                    record.append(delta)
            records.append(record)

    if depth == 1:
        index = pd.Index([k[0] for k in keys], name="group", dtype=object)
    else:
        index = pd.MultiIndex.from_tuples(keys, names=index_names)
    return pd.DataFrame(records, index=index, columns=columns, dtype=float)
