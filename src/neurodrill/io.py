# src/neurodrill/io.py
from __future__ import annotations

# General imports (stdlib)
from pathlib import Path
from typing import Dict, Iterable, Optional

# Third-party imports
import pandas as pd

# Local imports
from .exceptions import DataNotFound

# Category columns read as strings so ids and labels are not reformatted
CATEGORY_COLUMNS = ("domain", "subdomain", "narrow", "scale", "pass", "verbal", "timed")

# test_type values routed to each data source
TEST_TYPE_SOURCES: Dict[str, tuple] = {
    "neurocog": ("npsych_test",),
    "neurobehav": ("rating_scale",),
    "validity": ("performance_validity", "symptom_validity"),
}


def resolve_table(path: Path) -> Path:
    """
    Locate an observation table, trying sibling formats when `path` is absent.

    Use:
        `data/neurocog.parquet` falls back to `data/neurocog.feather` and then
        `data/neurocog.csv`, in that order.

    Raises:
        DataNotFound: If no candidate exists.
    """
    path = Path(path)
    if path.exists():
        return path
    for suffix in (".parquet", ".feather", ".csv"):
        candidate = path.with_suffix(suffix)
        if candidate.exists():
            return candidate
    raise DataNotFound(f"Observation table not found: {path}")


def read_observations(path: Path, encoding: str = "utf-8") -> pd.DataFrame:
    """
    Read an observation table from CSV, Parquet or Feather.

    Args:
        path (Path): Table path; sibling formats are tried when it is absent.
        encoding (str): Text encoding for CSV input.

    Returns:
        pd.DataFrame: Table with category columns as strings (missing kept as NaN).

    Raises:
        DataNotFound: If the file is missing or its format is unsupported.
    """
    path = resolve_table(path)
    suffix = path.suffix.lower()

    if suffix == ".csv":
        dtypes = {c: "string" for c in CATEGORY_COLUMNS}
        df = pd.read_csv(path, encoding=encoding, dtype=dtypes)
    elif suffix == ".parquet":
        df = pd.read_parquet(path)
    elif suffix == ".feather":
        df = pd.read_feather(path)
    else:
        raise DataNotFound(f"Unsupported table format {suffix!r}: {path}")

    # Normalize category dtypes to object so groupby keys are plain str
    for col in CATEGORY_COLUMNS:
        if col in df.columns:
            df[col] = pd.Series(
                [None if pd.isna(v) else v for v in df[col]], index=df.index, dtype=object
            )

    return df


def filter_domains(df: pd.DataFrame, domain_names: Iterable[str]) -> pd.DataFrame:
    """Rows whose `domain` is one of `domain_names` (all rows if there is no domain column)."""
    if "domain" not in df.columns:
        return df.copy()
    return df[df["domain"].isin(list(domain_names))].copy()


def split_by_source(df: pd.DataFrame) -> Dict[str, pd.DataFrame]:
    """
    Split a combined neuropsych table into per-source tables by `test_type`.

    Returns:
        dict[str, pd.DataFrame]: neurocog / neurobehav / validity tables;
        empty when `test_type` is absent.
    """
    if "test_type" not in df.columns:
        return {}
    return {
        source: df[df["test_type"].isin(types)].reset_index(drop=True)
        for source, types in TEST_TYPE_SOURCES.items()
    }


def write_table(df: Optional[pd.DataFrame], path: Path) -> None:
    """Save a DataFrame as CSV (no-op if None), creating parent directories."""
    if df is None:
        return
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, sep=",", decimal=".", index=False)
