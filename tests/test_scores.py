import math

import numpy as np
import pandas as pd
import pytest

from neurodrill.exceptions import ValidationError
from neurodrill.scores import (
    PerformanceBand,
    ScoreType,
    classify,
    classify_series,
    compute_percentile_range,
    percentile_to_z,
    score_to_z,
    source_note,
    z_to_percentile,
)


@pytest.mark.parametrize(
    "pct, band",
    [
        (100, PerformanceBand.EXCEPTIONALLY_HIGH),
        (98, PerformanceBand.EXCEPTIONALLY_HIGH),
        (97, PerformanceBand.ABOVE_AVERAGE),
        (91, PerformanceBand.ABOVE_AVERAGE),
        (90, PerformanceBand.HIGH_AVERAGE),
        (75, PerformanceBand.HIGH_AVERAGE),
        (74, PerformanceBand.AVERAGE),
        (25, PerformanceBand.AVERAGE),
        (24, PerformanceBand.LOW_AVERAGE),
        (9, PerformanceBand.LOW_AVERAGE),
        (8, PerformanceBand.BELOW_AVERAGE),
        (2, PerformanceBand.BELOW_AVERAGE),
        (1, PerformanceBand.EXCEPTIONALLY_LOW),
        (0, PerformanceBand.EXCEPTIONALLY_LOW),
    ],
)
def test_classify_band_boundaries(pct, band):
    assert classify(pct) == band


@pytest.mark.parametrize("missing", [None, float("nan"), np.nan, pd.NA])
def test_classify_missing_is_none(missing):
    assert classify(missing) is None


def test_band_values_are_display_labels():
    assert PerformanceBand.LOW_AVERAGE.value == "Low Average"
    assert classify(50) == "Average"


def test_classify_series_keeps_missing():
    out = classify_series(pd.Series([99.0, np.nan, 5.0]))
    assert out.tolist() == ["Exceptionally High", None, "Below Average"]


def test_percentile_to_z_clamps_extremes():
    assert percentile_to_z(50) == 0.0
    assert percentile_to_z(0) == -2.58
    assert percentile_to_z(100) == 2.58
    assert math.isnan(percentile_to_z(None))


def test_percentile_to_z_series():
    z = percentile_to_z(pd.Series([50.0, None, 84.13]))
    assert z.iloc[0] == 0.0
    assert math.isnan(z.iloc[1])
    assert z.iloc[2] == pytest.approx(1.0)


def test_score_to_z_and_back():
    assert score_to_z(115, "standard_score") == pytest.approx(1.0)
    assert score_to_z(7, ScoreType.SCALED_SCORE) == pytest.approx(-1.0)
    assert z_to_percentile(1.0) == 84.1


def test_score_to_z_rejects_non_normative_types():
    with pytest.raises(ValidationError):
        score_to_z(10, "raw_score")


def test_score_type_parse_variants():
    assert ScoreType.parse("T Score") is ScoreType.T_SCORE
    assert ScoreType.parse("scaled-score") is ScoreType.SCALED_SCORE
    with pytest.raises(ValidationError):
        ScoreType.parse("stanine")


def test_compute_percentile_range_standard_scores():
    df = pd.DataFrame({"score": [100, 130, 55]})
    out = compute_percentile_range(df, "score", "standard_score")

    assert out["z"].tolist() == pytest.approx([0.0, 2.0, -3.0])
    assert out["percentile"].tolist() == [50.0, 97.7, 0.1]
    assert out["range"].tolist() == ["Average", "Exceptionally High", "Exceptionally Low"]
    assert "z" not in df.columns


def test_compute_percentile_range_t_score():
    out = compute_percentile_range(pd.DataFrame({"score": [40]}), "score", "t_score")
    assert out["percentile"].iloc[0] == 15.9
    assert out["range"].iloc[0] == "Low Average"


def test_source_note_combines_known_types():
    note = source_note(["t_score", "scaled_score", "t_score", "base_rate"])
    assert note.startswith("T score")
    assert note.count(";") == 1
    assert source_note([]).startswith("Standard score")
