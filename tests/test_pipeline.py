import json

import pytest

from neurodrill.config import make_config
from neurodrill.core import DrilldownPipeline
from neurodrill.drilldown import build_series
from neurodrill.exceptions import ConfigurationError, VisualizationError
from neurodrill.io import write_table
from neurodrill.visualization import figure_height, visualize_dotplot


HIERARCHY = ["domain", "subdomain", "scale"]


@pytest.fixture
def pipeline(tmp_path):
    return DrilldownPipeline(make_config(directory=tmp_path))


def test_build_returns_series_and_payload(pipeline, battery):
    result = pipeline.build(battery, HIERARCHY, title="Patient A")
    assert not result.is_empty
    assert len(result.root_series) == 2
    assert len(result.drilldown_series) == 6
    assert result.payload["title"] == "Patient A"
    assert result.hierarchy.columns == tuple(HIERARCHY)


def test_default_preset_skips_narrow_for_domains_without_it(pipeline, battery):
    out = pipeline.run_domain("Memory", "adult", data=battery, write=False)
    assert out.result.hierarchy.columns == ("domain", "subdomain", "scale")
    assert out.result.hierarchy.labels == ("Clinical Domain", "Subdomain", "Test Score")
    assert [r.name for r in out.result.root_series] == ["Memory"]

    sleep = battery.assign(domain="Sleep")
    fallback = pipeline.run_domain("Sleep", "adult", data=sleep, write=False)
    assert fallback.resolved.is_fallback
    assert "narrow" not in fallback.result.hierarchy.columns


def test_default_preset_keeps_narrow_for_domains_with_it(pipeline, battery):
    iq = battery.assign(domain="General Cognitive Ability")
    with pytest.raises(ConfigurationError):
        pipeline.run_domain("General Cognitive Ability", "adult", data=iq, write=False)

    out = pipeline.run_domain(
        "General Cognitive Ability", "adult", data=iq.assign(narrow="Gc"), write=False,
    )
    assert out.result.hierarchy.columns == ("domain", "subdomain", "narrow", "scale")


def test_explicit_hierarchy_is_used_as_given(pipeline, battery):
    with pytest.raises(ConfigurationError):
        pipeline.run_domain("Memory", "adult", hierarchy=["domain", "narrow"], data=battery, write=False)


def test_build_uses_the_preset_unchanged(pipeline, battery):
    with pytest.raises(ConfigurationError):
        pipeline.build(battery)


def test_run_domain_writes_outputs(pipeline, battery, tmp_path):
    out = pipeline.run_domain("Memory", "adult", patient="Patient A", hierarchy=HIERARCHY, data=battery)

    assert out.resolved.pheno == "memory"
    assert [r.name for r in out.result.root_series] == ["Memory"]
    assert set(out.files) == {"payload", "table", "figure"}
    assert out.files["payload"] == tmp_path / "output" / "_05_memory_drilldown.json"
    for path in out.files.values():
        assert path.exists()

    payload = json.loads(out.files["payload"].read_text(encoding="utf-8"))
    assert payload["series"][0]["data"][0]["drilldown"] == "memory"


def test_run_domain_without_rows_writes_nothing(pipeline, battery):
    out = pipeline.run_domain("Motor", "adult", hierarchy=HIERARCHY, data=battery)
    assert out.result.is_empty
    assert out.files == {}


def test_run_domains_reads_each_source(pipeline, battery, tmp_path):
    write_table(battery, tmp_path / "data" / "neurocog.csv")

    outputs = pipeline.run_domains(["Memory", "Verbal/Language"], "adult", hierarchy=HIERARCHY, write=False)
    assert [o.resolved.pheno for o in outputs] == ["memory", "verbal"]
    assert [o.result.root_series[0].name for o in outputs] == ["Memory", "Verbal/Language"]
    assert all(o.files == {} for o in outputs)


def test_dotplot_export(cfg, aggregator, battery, tmp_path):
    rows, _ = build_series(aggregator.aggregate(battery, ["domain"]))
    path = visualize_dotplot(rows, cfg.display, str(tmp_path / "plots" / "dots"), metric="z", title="Domains")
    assert path.suffix == ".png"
    assert path.exists()

    with pytest.raises(VisualizationError):
        visualize_dotplot(rows, cfg.display, str(tmp_path / "x"), metric="raw")


def test_figure_height_has_floor(cfg):
    assert figure_height(0, cfg.display) == cfg.display.min_height
    assert figure_height(20, cfg.display) == pytest.approx(20 * 0.4 + 0.8)
