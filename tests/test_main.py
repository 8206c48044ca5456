from neurodrill.__main__ import main
from neurodrill.io import write_table


def test_main_writes_domain_outputs(battery, tmp_path, capsys):
    write_table(battery, tmp_path / "data" / "neurocog.csv")

    rc = main(["Memory", "--dir", str(tmp_path), "--patient", "Patient A"])
    assert rc == 0

    lines = capsys.readouterr().out.splitlines()
    out_dir = tmp_path / "output"
    assert lines == [
        f"memory\tpayload\t{out_dir / '_05_memory_drilldown.json'}",
        f"memory\ttable\t{out_dir / '_05_memory_summary.csv'}",
        f"memory\tfigure\t{out_dir / '_05_memory_dotplot.png'}",
    ]
    assert (out_dir / "_05_memory_dotplot.png").exists()


def test_main_reports_missing_data(tmp_path, capsys):
    rc = main(["Memory", "--dir", str(tmp_path)])
    assert rc == 1
    assert "error: Observation table not found" in capsys.readouterr().err


def test_main_rejects_unknown_preset(tmp_path, capsys):
    rc = main(["Memory", "--dir", str(tmp_path), "--preset", "nope"])
    assert rc == 1
    assert "error:" in capsys.readouterr().err
