"""
Hierarchical score aggregation.

Use:
    Validate an observation table against a hierarchy, derive missing z-scores
    or percentiles, then recursively group the table level by level, computing
    mean z-score, mean percentile and performance band for every category and
    linking each category to its parent through a normalized node id.
"""


# src/neurodrill/aggregate.py
from __future__ import annotations

# General imports (stdlib)
import logging
import re
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Set, Tuple, Union

# Third-party imports
import numpy as np
import pandas as pd

# Local imports
from .config import Config
from .exceptions import ConfigurationError
from .scores import classify, percentile_to_z, z_to_percentile
from .structure import AggregationNode, HierarchySpec

logger = logging.getLogger(__name__)

SCORE_COLUMNS = ("z", "percentile")

HierarchyLike = Union[HierarchySpec, Sequence[str]]


def normalize_id(parent_id: Optional[str], value: Any) -> str:
    """
    Build a node id from a category value and its parent id.

    Whitespace becomes "_" and the result is lowercased; child ids are joined
    to their parent id with "_".
    """
    slug = re.sub(r"\s", "_", str(value)).lower()
    return f"{parent_id}_{slug}" if parent_id else slug


def _as_spec(hierarchy: HierarchyLike) -> HierarchySpec:
    if isinstance(hierarchy, HierarchySpec):
        return hierarchy
    if isinstance(hierarchy, str):
        return HierarchySpec(columns=(hierarchy,))
    return HierarchySpec(columns=tuple(hierarchy))


def _float_or_none(value: float) -> Optional[float]:
    return None if pd.isna(value) else float(value)


@dataclass(frozen=True)
class _Branch:
    """Summarized category before node ids are assigned; `path` holds the labels from the top level down."""
    path: Tuple[Any, ...]
    column: str
    level: int
    mean_z: Optional[float]
    mean_percentile: Optional[int]
    n_obs: int
    children: Tuple["_Branch", ...] = ()


class Aggregator:
    """
    Hierarchical aggregation of normative test scores.

    Pipeline:
      1) Validate hierarchy columns and score columns
      2) Derive z from percentile (or percentile from z) where missing
      3) Group, summarize and sort one hierarchy level at a time
      4) Recurse into each category's rows for the next level
    """

    def __init__(self, cfg: Config) -> None:
        """
        Initialize an Aggregator with the run configuration.

        Args:
            cfg (Config): Global configuration; `cfg.scoring` controls
                rounding and the percentile clamp used for z inversion.
        """
        self.cfg = cfg


    @staticmethod
    def step(label: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """
        Run a function and log its wall-clock time.

        Args:
            label (str): Label used in the log line.
            fn (Callable): Function to run.
            *args: Positional args forwarded to `fn`.
            **kwargs: Keyword args forwarded to `fn`.

        Returns:
            Any: The return value of `fn(*args, **kwargs)`.
        """
        t0 = time.time()
        out = fn(*args, **kwargs)
        dt_ms = (time.time() - t0) * 1000.0
        logger.info("[ok] %s (%s ms)", label, f"{dt_ms:,.0f}")
        return out


    @staticmethod
    @contextmanager
    def timed(label: str):
        """
        Context manager that logs a timing line when the block exits.

        Args:
            label (str): Label used in the log line.

        Yields:
            None
        """
        t0 = time.time()
        try:
            yield
        finally:
            # Always log elapsed time, even if an exception occurs
            dt_ms = (time.time() - t0) * 1000.0
            logger.info("[ok] %s (%s ms)", label, f"{dt_ms:,.0f}")


    @staticmethod
    def validate(data: pd.DataFrame, hierarchy: HierarchyLike) -> HierarchySpec:
        """
        Check that an observation table can be aggregated along a hierarchy.

        Args:
            data (pd.DataFrame): Observation table.
            hierarchy (HierarchySpec | Sequence[str]): Grouping columns, outermost first.

        Returns:
            HierarchySpec: The validated hierarchy.

        Raises:
            ValidationError: If the hierarchy is empty or repeats a column.
            ConfigurationError: If hierarchy columns are absent from `data`, or
                neither `z` nor `percentile` is present.
        """
        spec = _as_spec(hierarchy)
        available = list(data.columns)

        missing = [c for c in spec.columns if c not in available]
        if missing:
            raise ConfigurationError(
                f"Hierarchy columns not found in data: {', '.join(missing)}\n"
                f"Available columns: {', '.join(map(str, available))}"
            )

        if not any(c in available for c in SCORE_COLUMNS):
            raise ConfigurationError(
                f"Required columns not found in data: {', '.join(SCORE_COLUMNS)}"
            )

        return spec


    def prepare_observations(self, data: pd.DataFrame) -> pd.DataFrame:
        """
        Return a copy of `data` with numeric `z` and `percentile` columns.

        Use:
            Missing z-scores are inverted from percentiles (clamped to
            `cfg.scoring.percentile_clip`); missing percentiles are derived from
            z-scores. Rows with neither stay missing and are ignored by the means.

        Args:
            data (pd.DataFrame): Observation table with `z` and/or `percentile`.

        Returns:
            pd.DataFrame: Prepared copy.

        Raises:
            ConfigurationError: If neither score column exists.
        """
        has_z = "z" in data.columns
        has_pct = "percentile" in data.columns
        if not (has_z or has_pct):
            raise ConfigurationError(
                f"Required columns not found in data: {', '.join(SCORE_COLUMNS)}"
            )

        df = data.copy()
        clip = self.cfg.scoring.percentile_clip

        if has_pct:
            df["percentile"] = pd.to_numeric(df["percentile"], errors="coerce")
        if has_z:
            df["z"] = pd.to_numeric(df["z"], errors="coerce")

        # Fill z from percentile, whole column or row-wise
        if not has_z:
            df["z"] = percentile_to_z(df["percentile"], clip=clip)
        elif has_pct:
            fill = df["z"].isna() & df["percentile"].notna()
            if fill.any():
                df.loc[fill, "z"] = percentile_to_z(df.loc[fill, "percentile"], clip=clip)

        # Fill percentile from z, whole column or row-wise
        if not has_pct:
            df["percentile"] = z_to_percentile(df["z"])
        else:
            fill = df["percentile"].isna() & df["z"].notna()
            if fill.any():
                df.loc[fill, "percentile"] = z_to_percentile(df.loc[fill, "z"])

        return df


    def aggregate(
        self,
        data: pd.DataFrame,
        hierarchy: HierarchyLike,
        level: int = 0,
        parent_id: Optional[str] = None,
    ) -> Optional[Tuple[AggregationNode, ...]]:
        """
        Aggregate observations along a hierarchy into a tree of summary nodes.

        Use:
            Validates once, prepares score columns, then recursively groups the
            table starting at `level`. Each returned sibling tuple is sorted by
            mean percentile, highest first; ties keep first-appearance order.

        Args:
            data (pd.DataFrame): Observation table.
            hierarchy (HierarchySpec | Sequence[str]): Grouping columns, outermost first.
            level (int): Hierarchy level to start at.
            parent_id (str | None): Node id the returned siblings hang under.

        Returns:
            tuple[AggregationNode, ...] | None: Sibling nodes at `level`, or None
            when the level is past the hierarchy or has no data.
        """
        spec = self.validate(data, hierarchy)
        df = self.prepare_observations(data)

        branches = self._aggregate_level(df, spec.columns, level, (), parent_id)
        if branches is None:
            return None

        ids = self._assign_ids(branches, parent_id)
        return self._build_nodes(branches, parent_id, ids)


    def _aggregate_level(
        self,
        df: pd.DataFrame,
        columns: Tuple[str, ...],
        level: int,
        path: Tuple[Any, ...],
        parent_id: Optional[str],
    ) -> Optional[Tuple[_Branch, ...]]:
        # Past the last level: nothing to group
        if level >= len(columns):
            return None

        col = columns[level]
        is_last_level = level == len(columns) - 1

        # Rows without a category at this level contribute nothing here
        filtered = df[df[col].notna()]
        if filtered.empty:
            logger.info(
                "pruned level %d (%s) under %s: no non-missing values",
                level, col, " / ".join(map(str, path)) or parent_id or "<root>",
            )
            return None

        summary = self.summarize_level(filtered, col)

        branches: List[_Branch] = []
        for value, row in zip(summary[col], summary.itertuples(index=False)):
            children: Tuple[_Branch, ...] = ()
            if not is_last_level:
                subset = filtered[filtered[col] == value]
                children = self._aggregate_level(subset, columns, level + 1, path + (value,), parent_id) or ()

            mean_pct = row.mean_percentile
            branches.append(
                _Branch(
                    path=path + (value,),
                    column=col,
                    level=level,
                    mean_z=_float_or_none(row.mean_z),
                    mean_percentile=None if pd.isna(mean_pct) else int(mean_pct),
                    n_obs=int(row.n_obs),
                    children=children,
                )
            )

        return tuple(branches)


    def _assign_ids(self, branches: Sequence[_Branch], parent_id: Optional[str]) -> Dict[Tuple[Any, ...], str]:
        """
        Map every branch path to a unique node id.

        Use:
            Ids are handed out level by level, and within a level in order of
            the label path, so collision suffixes do not depend on row order.
        """
        # Ids seen during this run, pre-seeded with the parent chain
        seen: Set[str] = set()
        if parent_id:
            seen.add(parent_id)

        ids: Dict[Tuple[Any, ...], str] = {}
        frontier = [(parent_id, b) for b in branches]
        while frontier:
            next_frontier = []
            for pid, branch in sorted(frontier, key=lambda item: tuple(map(str, item[1].path))):
                node_id = self._unique_id(normalize_id(pid, branch.path[-1]), seen)
                ids[branch.path] = node_id
                next_frontier.extend((node_id, child) for child in branch.children)
            frontier = next_frontier
        return ids


    @staticmethod
    def _build_nodes(
        branches: Sequence[_Branch],
        parent_id: Optional[str],
        ids: Dict[Tuple[Any, ...], str],
    ) -> Tuple[AggregationNode, ...]:
        nodes = []
        for b in branches:
            node_id = ids[b.path]
            nodes.append(
                AggregationNode(
                    name=b.path[-1],
                    column=b.column,
                    level=b.level,
                    mean_z=b.mean_z,
                    mean_percentile=b.mean_percentile,
                    band=classify(b.mean_percentile),
                    node_id=node_id,
                    parent_id=parent_id,
                    n_obs=b.n_obs,
                    children=Aggregator._build_nodes(b.children, node_id, ids),
                )
            )
        return tuple(nodes)


    def summarize_level(self, df: pd.DataFrame, col: str) -> pd.DataFrame:
        """
        Group one hierarchy level and compute rounded means.

        Use:
            Groups `df` by `col` in first-appearance order, averages `z` and
            `percentile` ignoring missing values, rounds half-to-even, and
            stable-sorts by rounded mean percentile descending (missing last).

        Args:
            df (pd.DataFrame): Prepared observations with non-missing `col`.
            col (str): Grouping column.

        Returns:
            pd.DataFrame: Columns `[col, mean_z, mean_percentile, n_obs]`.
        """
        scoring = self.cfg.scoring

        stats = (
            df.groupby(col, sort=False, observed=True)
              .agg(mean_z=("z", "mean"), mean_percentile=("percentile", "mean"), n_obs=("z", "size"))
              .reset_index()
        )

        # numpy rounding is half-to-even
        stats["mean_z"] = np.round(stats["mean_z"].astype(float), scoring.z_decimals)
        stats["mean_percentile"] = np.round(stats["mean_percentile"].astype(float), scoring.percentile_decimals)

        return stats.sort_values(
            "mean_percentile", ascending=False, kind="stable", na_position="last"
        ).reset_index(drop=True)


    @staticmethod
    def _unique_id(node_id: str, seen: Set[str]) -> str:
        # Distinct labels may normalize to one id; suffix instead of merging them
        candidate = node_id
        suffix = 2
        while candidate in seen:
            candidate = f"{node_id}_{suffix}"
            suffix += 1
        if candidate != node_id:
            logger.warning("node id collision on %r; using %r", node_id, candidate)
        seen.add(candidate)
        return candidate


    @staticmethod
    def iter_nodes(nodes: Optional[Sequence[AggregationNode]]):
        """Yield every node of a tree in pre-order (parent before children)."""
        for node in nodes or ():
            yield node
            yield from Aggregator.iter_nodes(node.children)


    @staticmethod
    def to_frame(nodes: Optional[Sequence[AggregationNode]]) -> pd.DataFrame:
        """
        Flatten an aggregation tree into one row per node, pre-order.

        Returns:
            pd.DataFrame: Columns level, column, name, node_id, parent_id,
            mean_z, mean_percentile, range, n_obs, is_terminal.
        """
        columns = [
            "level", "column", "name", "node_id", "parent_id",
            "mean_z", "mean_percentile", "range", "n_obs", "is_terminal",
        ]
        rows = [
            {
                "level": n.level,
                "column": n.column,
                "name": n.name,
                "node_id": n.node_id,
                "parent_id": n.parent_id,
                "mean_z": n.mean_z,
                "mean_percentile": n.mean_percentile,
                "range": n.band.value if n.band is not None else None,
                "n_obs": n.n_obs,
                "is_terminal": n.is_terminal,
            }
            for n in Aggregator.iter_nodes(nodes)
        ]
        return pd.DataFrame(rows, columns=columns)


    @staticmethod
    def add_group_z_stats(df: pd.DataFrame, groups: Sequence[str]) -> pd.DataFrame:
        """
        Add per-category z-score mean and SD columns.

        Use:
            For each grouping column present in `df`, attach `z_mean_{col}` and
            `z_sd_{col}` computed over all rows sharing that row's category.
            Rows with a missing category get NaN.

        Args:
            df (pd.DataFrame): Prepared observations with a `z` column.
            groups (Sequence[str]): Category columns (e.g. ["domain", "subdomain"]).

        Returns:
            pd.DataFrame: Copy of `df` with the added columns.
        """
        out = df.copy()
        for col in groups:
            if col not in out.columns:
                continue
            grouped = out.groupby(col, observed=True, dropna=True)["z"]
            out[f"z_mean_{col}"] = grouped.transform("mean")
            out[f"z_sd_{col}"] = grouped.transform("std")
        return out
