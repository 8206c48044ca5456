# src/neurodrill/drilldown.py
from __future__ import annotations

# General imports (stdlib)
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

# Local imports
from .config import Drilldown
from .exceptions import ValidationError
from .structure import AggregationNode, SeriesRecord, SummaryRow


def _records(nodes: Sequence[AggregationNode]) -> Iterator[SeriesRecord]:
    # Pre-order: a node's record precedes its descendants' records
    for node in nodes:
        if node.is_terminal:
            continue
        yield SeriesRecord(
            id=node.node_id,
            parent_id=node.parent_id,
            items=tuple(child.to_row() for child in node.children),
        )
        yield from _records(node.children)


def build_series(
    root: Optional[Sequence[AggregationNode]],
) -> Tuple[Tuple[SummaryRow, ...], Tuple[SeriesRecord, ...]]:
    """
    Flatten an aggregation tree into chart series.

    Use:
        The top-level nodes become the root series rows, in their sorted order.
        Every node with children (top-level nodes included) contributes one
        drilldown record whose items are its children's rows. Only rows of
        nodes with children carry a `drilldown_id`, so every referenced id has
        a record.

    Args:
        root (Sequence[AggregationNode] | None): Top-level nodes from
            `Aggregator.aggregate` (None when the top level had no data).

    Returns:
        tuple[tuple[SummaryRow, ...], tuple[SeriesRecord, ...]]:
            - root_series: One row per top-level node.
            - drilldown_series: Pre-order drilldown records.
    """
    nodes = tuple(root or ())
    root_series = tuple(node.to_row() for node in nodes)
    drilldown_series = tuple(_records(nodes))
    return root_series, drilldown_series


def check_series(
    root_series: Sequence[SummaryRow],
    drilldown_series: Sequence[SeriesRecord],
) -> None:
    """
    Verify drilldown ids are unique and every drilldown reference resolves.

    Raises:
        ValidationError: On a duplicate record id or a dangling `drilldown_id`.
    """
    ids: List[str] = [rec.id for rec in drilldown_series]
    dupes = sorted({i for i in ids if ids.count(i) > 1})
    if dupes:
        raise ValidationError(f"Duplicate drilldown series ids: {', '.join(dupes)}")

    known = set(ids)
    rows = list(root_series) + [item for rec in drilldown_series for item in rec.items]
    dangling = sorted({r.drilldown_id for r in rows if r.drilldown_id is not None and r.drilldown_id not in known})
    if dangling:
        raise ValidationError(f"Drilldown ids without a series: {', '.join(dangling)}")


def to_chart_payload(
    root_series: Sequence[SummaryRow],
    drilldown_series: Sequence[SeriesRecord],
    settings: Drilldown = Drilldown(),
    title: Optional[str] = None,
    axis_label: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Convert series into the plain structures a drilldown chart library consumes.

    Args:
        root_series (Sequence[SummaryRow]): Top-level rows.
        drilldown_series (Sequence[SeriesRecord]): Drilldown records.
        settings (Drilldown): Series name and chart types.
        title (str | None): Chart title (typically the patient name).
        axis_label (str | None): Category axis title (label of the top level).

    Returns:
        dict: {"title", "xAxis", "series": [{name, type, data}],
        "drilldown": {"series": [{id, type, data}]}} where each data point is
        {name, y, y2, range[, drilldown]}.
    """
    return {
        "title": title,
        "xAxis": {"type": "category", "title": axis_label},
        "series": [
            {
                "name": settings.series_name,
                "type": settings.root_type,
                "data": [row.to_point() for row in root_series],
            }
        ],
        "drilldown": {
            "series": [
                {
                    "id": rec.id,
                    "type": settings.drilldown_type,
                    "data": [item.to_point() for item in rec.items],
                }
                for rec in drilldown_series
            ]
        },
    }
