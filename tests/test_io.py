import pandas as pd
import pytest

from neurodrill.exceptions import DataNotFound
from neurodrill.io import filter_domains, read_observations, split_by_source, write_table


def test_read_csv_falls_back_from_parquet_name(tmp_path, battery):
    write_table(battery, tmp_path / "data" / "neurocog.csv")

    df = read_observations(tmp_path / "data" / "neurocog.parquet")
    assert len(df) == len(battery)
    assert df["domain"].tolist() == battery["domain"].tolist()
    assert df["percentile"].dtype.kind in "if"


def test_read_csv_keeps_missing_categories(tmp_path):
    path = tmp_path / "t.csv"
    path.write_text("domain,subdomain,percentile\nMemory,,50\n", encoding="utf-8")
    df = read_observations(path)
    assert df["subdomain"].iloc[0] is None
    assert df["domain"].iloc[0] == "Memory"


def test_read_missing_or_unsupported(tmp_path):
    with pytest.raises(DataNotFound):
        read_observations(tmp_path / "absent.csv")

    odd = tmp_path / "table.xlsx"
    odd.write_bytes(b"")
    with pytest.raises(DataNotFound):
        read_observations(odd)


def test_filter_domains(battery):
    out = filter_domains(battery, ["Memory"])
    assert set(out["domain"]) == {"Memory"}
    assert len(out) == 6


def test_split_by_source():
    df = pd.DataFrame({
        "test_type": ["npsych_test", "rating_scale", "symptom_validity", "performance_validity"],
        "scale": ["a", "b", "c", "d"],
    })
    parts = split_by_source(df)
    assert parts["neurocog"]["scale"].tolist() == ["a"]
    assert parts["neurobehav"]["scale"].tolist() == ["b"]
    assert parts["validity"]["scale"].tolist() == ["c", "d"]
    assert split_by_source(df.drop(columns="test_type")) == {}
