from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterator, Sequence

from pydantic import BaseModel, Field, field_validator, model_validator

from ..domain.types import (
    DATE_GROUP_TYPES,
    DEFAULT_DATE_COLUMN,
    DEFAULT_DATE_GROUP_TYPE,
    DateGroupType,
    WarningKind,
)


class StatGroupConfig(BaseModel):
    """One configured statistic: a query template plus its sub-grouping fields."""
    name: str = Field(..., min_length=1, description="Display name of the group")
    query: str = Field(..., min_length=1, description="SQL template with bucket/condition slots")
    groups: str = Field("", description="Comma-separated sub-grouping field names")
    date_restriction_field: str = Field("", description="Column compared against the date range")
    portal_restriction_field: str = Field("", description="Column compared against the portal id")
    date_column: str = Field(DEFAULT_DATE_COLUMN, description="Timestamp column used for bucketing")
    position: int = Field(0, description="Evaluation and display order")

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Group name must not be blank")
        return v

    @field_validator("groups", "date_restriction_field", "portal_restriction_field", mode="before")
    @classmethod
    def coerce_none(cls, v: Any) -> Any:
        return "" if v is None else v

    @property
    def sub_group_fields(self) -> list[str]:
        return parse_sub_group_fields(self.groups)


class StatGroupsFile(BaseModel):
    """Root of the YAML statistic group catalog."""
    groups: list[StatGroupConfig] = Field(default_factory=list)


class EvaluationRequest(BaseModel):
    """Inputs of a single evaluation run.

    Callers that forward raw query strings frequently send ``null`` instead of
    omitting a field, so the pre-validator maps those nulls back to defaults.
    """
    start_date: date | None = None
    end_date: date | None = None
    date_group_type: DateGroupType = DEFAULT_DATE_GROUP_TYPE
    show_diff: bool = False
    portal_id: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _coerce_nulls(cls, values: Any) -> Any:
        if isinstance(values, dict):
            if values.get("date_group_type") is None:
                values["date_group_type"] = DEFAULT_DATE_GROUP_TYPE
            if values.get("show_diff") is None:
                values["show_diff"] = False
            if values.get("portal_id") == "":
                values["portal_id"] = None
        return values

    @model_validator(mode="after")
    def _check_range(self) -> "EvaluationRequest":
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self


def parse_sub_group_fields(raw: str | None) -> list[str]:
    """Split a comma-separated field list into ordered, trimmed, non-empty names."""
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


def is_date_group_type(value: str) -> bool:
    return value in DATE_GROUP_TYPES


@dataclass
class GroupNode:
    """A statistic group (or one of its sub-groups) with per-column totals.

    The top-level node keeps every descendant in ``rows`` keyed by its full
    label path; ``children`` holds the direct sub-nodes in first-seen order.
    """
    title: str
    totals: dict[str, float] = field(default_factory=dict)
    children: dict[str, GroupNode] = field(default_factory=dict)
    rows: dict[tuple[str, ...], GroupNode] = field(default_factory=dict)
    row_count: int = 0

    def add_row(self, path: Sequence[str], column: str, value: float) -> None:
        """Accumulate ``value`` under ``column`` on this node and every node along ``path``."""
        self._accumulate(column, value)
        parent = self
        for depth in range(1, len(path) + 1):
            key = tuple(path[:depth])
            node = self.rows.get(key)
            if node is None:
                node = GroupNode(title=key[-1])
                self.rows[key] = node
                parent.children[key[-1]] = node
            node._accumulate(column, value)
            parent = node
        self.row_count += 1

    def merge(self, other: GroupNode) -> None:
        """Fold another tree with the same title into this one."""
        for column, value in other.totals.items():
            self._accumulate(column, value)
        # other.rows holds parents before their children
        for key, source in other.rows.items():
            target = self.rows.get(key)
            if target is None:
                target = GroupNode(title=key[-1])
                self.rows[key] = target
                parent = self.rows[key[:-1]] if len(key) > 1 else self
                parent.children[key[-1]] = target
            for column, value in source.totals.items():
                target._accumulate(column, value)
        self.row_count += other.row_count

    def _accumulate(self, column: str, value: float) -> None:
        self.totals[column] = self.totals.get(column, 0.0) + value

    def get_totals(self, column: str) -> float | None:
        return self.totals.get(column)

    @property
    def sub_groups(self) -> list[GroupNode]:
        return list(self.children.values())

    @property
    def has_rows(self) -> bool:
        return self.row_count > 0

    def column_names(self) -> list[str]:
        return list(self.totals)

    def max_group_depth(self) -> int:
        return max((len(key) for key in self.rows), default=0)

    def iter_nodes(self, level: int = 1) -> Iterator[tuple[int, GroupNode]]:
        """Yield ``(level, node)`` depth-first, pre-order, starting with this node."""
        yield level, self
        for child in self.children.values():
            yield from child.iter_nodes(level + 1)

    def node_count(self) -> int:
        return sum(1 for _ in self.iter_nodes())

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "totals": dict(self.totals),
            "children": [child.to_dict() for child in self.children.values()],
        }


def collect_column_names(groups: Sequence[GroupNode]) -> list[str]:
    names: set[str] = set()
    for group in groups:
        names.update(group.column_names())
    return sorted(names)


def compute_max_depth(groups: Sequence[GroupNode]) -> int:
    """Deepest sub-group nesting + 1 over all groups that ingested rows; 0 if none did."""
    return max((g.max_group_depth() + 1 for g in groups if g.has_rows), default=0)


@dataclass(frozen=True)
class TableModel:
    """Snapshot of one evaluation run.

    The freeze is shallow: ``column_names``, ``max_depth`` and the group order
    are fixed when the snapshot is taken, while the GroupNode trees stay the
    engine's plain dataclasses. Consumers must treat them as read-only; a
    node changed afterwards is no longer reflected in the derived fields.
    """
    groups: tuple[GroupNode, ...]
    column_names: tuple[str, ...]
    max_depth: int
    show_diff_column: bool

    @classmethod
    def from_groups(cls, groups: Sequence[GroupNode], show_diff_column: bool) -> "TableModel":
        return cls(
            groups=tuple(groups),
            column_names=tuple(collect_column_names(groups)),
            max_depth=compute_max_depth(groups),
            show_diff_column=show_diff_column,
        )

    def get_group(self, title: str) -> GroupNode | None:
        for group in self.groups:
            if group.title == title:
                return group
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "groups": [g.to_dict() for g in self.groups],
            "column_names": list(self.column_names),
            "max_depth": self.max_depth,
            "show_diff_column": self.show_diff_column,
        }


@dataclass(frozen=True)
class EvaluationWarning:
    """A group (or part of it) that was skipped during evaluation."""
    group: str
    kind: WarningKind
    message: str


@dataclass(frozen=True)
class EvaluationResult:
    model: TableModel
    warnings: tuple[EvaluationWarning, ...] = ()

    @property
    def skipped_groups(self) -> list[str]:
        return [w.group for w in self.warnings if w.kind != "malformed_row"]
