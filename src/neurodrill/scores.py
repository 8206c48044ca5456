"""
Normative score conversion and performance classification.

Use:
    Convert standardized scores (standard, scaled, T, z) to z-scores and
    percentiles, invert percentiles back to z-scores, and label percentiles
    with one of seven qualitative performance bands.
"""


# src/neurodrill/scores.py
from __future__ import annotations

# General imports (stdlib)
import math
from enum import Enum
from typing import Dict, Optional, Tuple

# Third-party imports
import numpy as np
import pandas as pd
from scipy.stats import norm

# Local imports
from .exceptions import ValidationError


class PerformanceBand(str, Enum):
    EXCEPTIONALLY_HIGH = "Exceptionally High"
    ABOVE_AVERAGE = "Above Average"
    HIGH_AVERAGE = "High Average"
    AVERAGE = "Average"
    LOW_AVERAGE = "Low Average"
    BELOW_AVERAGE = "Below Average"
    EXCEPTIONALLY_LOW = "Exceptionally Low"


# Lower percentile bound of each band, evaluated high-to-low
BAND_THRESHOLDS: Tuple[Tuple[float, PerformanceBand], ...] = (
    (98, PerformanceBand.EXCEPTIONALLY_HIGH),
    (91, PerformanceBand.ABOVE_AVERAGE),
    (75, PerformanceBand.HIGH_AVERAGE),
    (25, PerformanceBand.AVERAGE),
    (9, PerformanceBand.LOW_AVERAGE),
    (2, PerformanceBand.BELOW_AVERAGE),
)


class ScoreType(str, Enum):
    STANDARD_SCORE = "standard_score"
    SCALED_SCORE = "scaled_score"
    T_SCORE = "t_score"
    Z_SCORE = "z_score"
    PERCENTILE = "percentile"
    BASE_RATE = "base_rate"
    RAW_SCORE = "raw_score"

    @classmethod
    def parse(cls, value: "str | ScoreType") -> "ScoreType":
        """Resolve a score-type tag (e.g. "T Score", "t_score") to its enum member."""
        if isinstance(value, ScoreType):
            return value
        key = str(value).strip().lower().replace(" ", "_").replace("-", "_")
        try:
            return cls(key)
        except ValueError:
            raise ValidationError(
                f"Unknown score type: {value!r}. Available: {', '.join(m.value for m in cls)}"
            ) from None


# Normative mean and SD per standardized score type
SCORE_PARAMS: Dict[ScoreType, Tuple[float, float]] = {
    ScoreType.Z_SCORE: (0.0, 1.0),
    ScoreType.SCALED_SCORE: (10.0, 3.0),
    ScoreType.T_SCORE: (50.0, 10.0),
    ScoreType.STANDARD_SCORE: (100.0, 15.0),
}

# Table footnotes describing each standardized metric
SCORE_NOTES: Dict[ScoreType, str] = {
    ScoreType.T_SCORE: "T score: Mean = 50 [50th‰], SD ± 10 [16th‰, 84th‰]",
    ScoreType.SCALED_SCORE: "Scaled score: Mean = 10 [50th‰], SD ± 3 [16th‰, 84th‰]",
    ScoreType.STANDARD_SCORE: "Standard score: Mean = 100 [50th‰], SD ± 15 [16th‰, 84th‰]",
    ScoreType.Z_SCORE: "z-score: Mean = 0 [50th‰], SD ± 1 [16th‰, 84th‰]",
}


def _is_missing(value: Optional[float]) -> bool:
    if value is None or value is pd.NA:
        return True
    try:
        return math.isnan(float(value))
    except (TypeError, ValueError):
        return True


def classify(percentile: Optional[float]) -> Optional[PerformanceBand]:
    """
    Map a percentile rank to its performance band.

    Args:
        percentile (float | None): Percentile rank in [0, 100].

    Returns:
        PerformanceBand | None: Band label, or None for a missing/NaN percentile.
    """
    if _is_missing(percentile):
        return None

    pct = float(percentile)
    for lower, band in BAND_THRESHOLDS:
        if pct >= lower:
            return band
    return PerformanceBand.EXCEPTIONALLY_LOW


def classify_series(percentiles: pd.Series) -> pd.Series:
    """Vectorized `classify` returning band labels (str) or None."""
    def label(p: Optional[float]) -> Optional[str]:
        band = classify(p)
        return band.value if band is not None else None

    return percentiles.map(label).astype(object)


def score_to_z(scores: "pd.Series | float", score_type: "str | ScoreType") -> "pd.Series | float":
    """Standardize raw normative scores to z-scores using the score type's mean and SD."""
    st = ScoreType.parse(score_type)
    if st not in SCORE_PARAMS:
        raise ValidationError(f"Score type {st.value!r} has no normative mean/SD")
    mu, sd = SCORE_PARAMS[st]
    return (scores - mu) / sd


def z_to_percentile(z: "pd.Series | float") -> "pd.Series | float":
    """Percentile rank (1 decimal) of a z-score under the standard normal."""
    pct = norm.cdf(z) * 100
    if isinstance(z, pd.Series):
        return pd.Series(np.round(pct, 1), index=z.index)
    return float(np.round(pct, 1))


def percentile_to_z(
    percentile: "pd.Series | float",
    clip: Tuple[float, float] = (0.5, 99.5),
) -> "pd.Series | float":
    """
    Invert a percentile rank to a z-score (rounded to 2 decimals).

    Use:
        Percentiles are clamped to `clip` before applying the inverse normal CDF,
        since Φ⁻¹ is infinite at 0 and 100. Missing values stay missing.

    Args:
        percentile (pd.Series | float): Percentile rank(s) in [0, 100].
        clip (tuple[float, float]): Inclusive lower/upper clamp in percentile units.

    Returns:
        pd.Series | float: z-score(s).
    """
    lo, hi = clip
    if isinstance(percentile, pd.Series):
        p = pd.to_numeric(percentile, errors="coerce").clip(lower=lo, upper=hi)
        return pd.Series(np.round(norm.ppf(p / 100.0), 2), index=percentile.index)

    if _is_missing(percentile):
        return float("nan")
    p = min(max(float(percentile), lo), hi)
    return float(np.round(norm.ppf(p / 100.0), 2))


def compute_percentile_range(
    df: pd.DataFrame,
    score_col: str,
    score_type: "str | ScoreType",
) -> pd.DataFrame:
    """
    Add z, percentile and range columns derived from a standardized score column.

    Use:
        Standardize `score_col` with the normative parameters of `score_type`,
        compute the percentile rank (1 decimal), and classify it. Percentiles
        below 1 are rounded up and above 99 rounded down before classification
        so extreme scores keep a printable rank.

    Args:
        df (pd.DataFrame): Source table (not mutated).
        score_col (str): Column holding the standardized scores.
        score_type (str | ScoreType): Metric of `score_col`.

    Returns:
        pd.DataFrame: Copy of `df` with `z`, `percentile`, `range` columns.
    """
    out = df.copy()
    z = score_to_z(pd.to_numeric(out[score_col], errors="coerce"), score_type)
    pct = z_to_percentile(z)

    # Banding uses an integer rank with the extremes pulled inward
    pct_band = pd.Series(np.where(pct < 1, np.ceil(pct), np.where(pct > 99, np.floor(pct), np.round(pct))), index=out.index)
    pct_band = pct_band.where(pct.notna())

    out["z"] = z
    out["percentile"] = pct
    out["range"] = classify_series(pct_band)
    return out


def source_note(score_types: "list[str | ScoreType]", default: Optional[str] = None) -> str:
    """Join the footnotes of the given score types; falls back to `default` or the standard-score note."""
    notes = []
    for tag in dict.fromkeys(score_types):
        try:
            st = ScoreType.parse(tag)
        except ValidationError:
            continue
        if st in SCORE_NOTES and SCORE_NOTES[st] not in notes:
            notes.append(SCORE_NOTES[st])
    if notes:
        return "; ".join(notes)
    return default if default is not None else SCORE_NOTES[ScoreType.STANDARD_SCORE]
