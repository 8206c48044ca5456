# src/neurodrill/structure.py
from __future__ import annotations

# General imports (stdlib)
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

# Local imports
from .exceptions import ValidationError
from .scores import PerformanceBand


@dataclass(frozen=True)
class HierarchySpec:
    """
    Ordered grouping columns for drilldown aggregation.

    Layout:
        columns  (Tuple[str, ...]) : Category columns, outermost level first.
        labels   (Tuple[str, ...]) : Display label per level (defaults to the column name).
    """
    columns: Tuple[str, ...]
    labels: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        cols = tuple(self.columns)
        if not cols:
            raise ValidationError("Hierarchy must name at least one column")
        dupes = sorted({c for c in cols if cols.count(c) > 1})
        if dupes:
            raise ValidationError(f"Hierarchy has duplicate columns: {', '.join(dupes)}")

        labels = tuple(self.labels) if self.labels else cols
        if len(labels) != len(cols):
            raise ValidationError(
                f"Hierarchy has {len(cols)} columns but {len(labels)} labels"
            )

        # Frozen: assign normalized tuples through object.__setattr__
        object.__setattr__(self, "columns", cols)
        object.__setattr__(self, "labels", labels)

    @classmethod
    def from_mapping(cls, mapping: Dict[str, str]) -> "HierarchySpec":
        """Build from an ordered {column: label} mapping."""
        return cls(columns=tuple(mapping), labels=tuple(mapping.values()))

    def label_for(self, column: str) -> str:
        return self.labels[self.columns.index(column)]

    def __len__(self) -> int:
        return len(self.columns)


@dataclass(frozen=True)
class AggregationNode:
    """
    One category value summarized at one hierarchy level.

    Layout:
        name            (Any)                 : Category value as found in the data.
        column          (str)                 : Hierarchy column this node groups by.
        level           (int)                 : 0-based hierarchy level.
        mean_z          (float | None)        : Mean z-score, 2 decimals.
        mean_percentile (int | None)          : Mean percentile, rounded half-to-even.
        band            (PerformanceBand|None): Classification of `mean_percentile`.
        node_id         (str)                 : Normalized id, prefixed by the parent id.
        parent_id       (str | None)          : Id of the parent node; None at the top level.
        n_obs           (int)                 : Observations contributing to this node.
        children        (Tuple[AggregationNode, ...]) : Sorted child nodes (empty for leaves).
    """
    name: Any
    column: str
    level: int
    mean_z: Optional[float]
    mean_percentile: Optional[int]
    band: Optional[PerformanceBand]
    node_id: str
    parent_id: Optional[str] = None
    n_obs: int = 0
    children: Tuple["AggregationNode", ...] = field(default_factory=tuple)

    @property
    def is_terminal(self) -> bool:
        # No deeper data is treated the same as the last declared level
        return not self.children

    def to_row(self) -> "SummaryRow":
        return SummaryRow(
            name=str(self.name),
            mean_z=self.mean_z,
            mean_percentile=self.mean_percentile,
            band=self.band,
            drilldown_id=None if self.is_terminal else self.node_id,
        )


@dataclass(frozen=True)
class SummaryRow:
    """Display row for one bar of a (drilldown) chart series."""
    name: str
    mean_z: Optional[float]
    mean_percentile: Optional[int]
    band: Optional[PerformanceBand]
    drilldown_id: Optional[str] = None

    def to_point(self) -> Dict[str, Any]:
        """Chart point: {name, y, y2, range[, drilldown]}."""
        point: Dict[str, Any] = {
            "name": self.name,
            "y": self.mean_z,
            "y2": self.mean_percentile,
            "range": self.band.value if self.band is not None else None,
        }
        if self.drilldown_id is not None:
            point["drilldown"] = self.drilldown_id
        return point


@dataclass(frozen=True)
class SeriesRecord:
    """Drilldown series revealed by clicking the bar with id `id`."""
    id: str
    parent_id: Optional[str]
    items: Tuple[SummaryRow, ...]
