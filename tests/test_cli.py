# tests/test_cli.py
import json

from typer.testing import CliRunner

from entrypoints.cli.analyze import app

from .fixtures.deals import rental_fields

runner = CliRunner()


def test_analyze_command(tmp_path):
    path = tmp_path / "deal.json"
    path.write_text(json.dumps({"fields": rental_fields(), "market": {"avg_roi": 0.05}}))

    result = runner.invoke(app, ["analyze", str(path), "--strategy", "rental", "--years", "5"])
    assert result.exit_code == 0, result.output
    report = json.loads(result.output)
    assert report["strategy"] == "rental"
    assert len(report["projection"]["cash_flows"]) == 6


def test_analyze_accepts_bare_fields_and_writes_file(tmp_path):
    path = tmp_path / "deal.json"
    path.write_text(json.dumps(rental_fields()))
    out = tmp_path / "report.json"

    result = runner.invoke(app, ["analyze", str(path), "--strategy", "flip", "--out", str(out)])
    assert result.exit_code == 0, result.output
    assert json.loads(out.read_text())["flip"]["arv"] > 0


def test_analyze_bad_strategy(tmp_path):
    path = tmp_path / "deal.json"
    path.write_text(json.dumps(rental_fields()))
    result = runner.invoke(app, ["analyze", str(path), "--strategy", "wholesale"])
    assert result.exit_code == 1


def test_analyze_bad_json(tmp_path):
    path = tmp_path / "deal.json"
    path.write_text("[1, 2]")
    result = runner.invoke(app, ["analyze", str(path)])
    assert result.exit_code != 0


def test_amortization_command():
    result = runner.invoke(app, ["amortization", "--principal", "240000", "--rate", "0.07", "--months", "2"])
    assert result.exit_code == 0, result.output
    body = json.loads(result.output)
    assert len(body["schedule"]) == 2
    assert round(body["summary"]["monthly_payment"], 2) == 1596.73


def test_irr_command():
    result = runner.invoke(app, ["irr", "--discount-rate", "0.1", "--", "-1000", "1100"])
    assert result.exit_code == 0, result.output
    assert "irr: 0.100000" in result.output
    assert "npv@0.1:" in result.output


def test_irr_command_undefined():
    result = runner.invoke(app, ["irr", "100", "200"])
    assert "irr: undefined" in result.output
