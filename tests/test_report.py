import json

from cfp.engine import compute
from cfp.report import render_report, report_payload, summary_lines, write_report
from cfp.schema import load_scenario
from cfp.simulation import run_simulation


def test_report_payload_carries_years_and_analytics():
    scenario = load_scenario("sample_scenario.json")
    payload = report_payload(scenario, compute(scenario))

    assert payload["scenario_name"] == scenario.name
    assert len(payload["scenario_digest"]) == 12
    assert len(payload["years"]) == 5
    assert "lifetime_total_tax" in payload["analytics"]
    assert "simulation" not in payload


def test_scenario_digest_tracks_inputs():
    scenario = load_scenario("sample_scenario.json")
    computed = compute(scenario)
    before = report_payload(scenario, computed)["scenario_digest"]

    scenario.years[0].employment_income += 1
    assert report_payload(scenario, computed)["scenario_digest"] != before


def test_rendered_report_is_json(tmp_path):
    scenario = load_scenario("sample_scenario.json")
    computed = compute(scenario)
    target = tmp_path / "nested" / "report.json"
    write_report(target, render_report(scenario, computed))

    data = json.loads(target.read_text(encoding="utf-8"))
    first = data["years"][0]
    assert first["year"] == 2025
    assert first["waterfall"]["gross_income"] == computed.years[0].waterfall.gross_income
    assert first["scheduled_fields"]["tfsa_contribution"] == 6_000


def test_summary_lines_include_monte_carlo_block():
    scenario = load_scenario("sample_scenario.json")
    computed = compute(scenario)
    simulation = run_simulation(scenario, mode="monte_carlo", runs=3, seed=3)
    lines = summary_lines(computed, simulation)

    assert lines[0] == "Years: 2025-2029 (2 passes)"
    assert "Monte Carlo trials: 3" in lines
    assert any(line.startswith("Probability of ruin:") for line in lines)
