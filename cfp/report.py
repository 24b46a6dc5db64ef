"""JSON report and plain-text summary generation."""

from __future__ import annotations

from dataclasses import asdict
from datetime import UTC, datetime
import hashlib
import json
from pathlib import Path

from .engine import ComputedScenario
from .schema import Scenario
from .simulation import SimulationResult


def _money(value: float) -> str:
    return f"${value:,.0f}"


def _scenario_digest(scenario: Scenario) -> str:
    encoded = json.dumps(asdict(scenario), sort_keys=True, default=str).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()[:12]


def _year_payload(computed: ComputedScenario) -> list[dict[str, object]]:
    return [asdict(item) for item in computed.years]


def report_payload(
    scenario: Scenario,
    computed: ComputedScenario,
    simulation: SimulationResult | None = None,
) -> dict[str, object]:
    payload: dict[str, object] = {
        "scenario_id": scenario.id,
        "scenario_name": scenario.name,
        "scenario_digest": _scenario_digest(scenario),
        "generated_at": datetime.now(UTC).isoformat(timespec="seconds"),
        "passes": computed.passes,
        "years": _year_payload(computed),
        "analytics": asdict(computed.analytics),
    }
    if simulation is not None:
        payload["simulation"] = asdict(simulation)
    return payload


def render_report(scenario: Scenario, computed: ComputedScenario, simulation: SimulationResult | None = None) -> str:
    return json.dumps(report_payload(scenario, computed, simulation), indent=2, default=str)


def write_report(path: str | Path, content: str) -> None:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding="utf-8")


def summary_lines(computed: ComputedScenario, simulation: SimulationResult | None = None) -> list[str]:
    """Short human-readable digest of a computed scenario."""
    if not computed.years:
        return []
    first = computed.years[0]
    last = computed.years[-1]
    analytics = computed.analytics
    lines = [
        f"Years: {first.year}-{last.year} ({computed.passes} pass{'es' if computed.passes > 1 else ''})",
        f"Lifetime gross income: {_money(analytics.lifetime_gross_income)}",
        f"Lifetime income tax: {_money(analytics.lifetime_total_tax)}",
        f"Lifetime after-tax income: {_money(analytics.lifetime_after_tax_income)}",
        f"Lifetime average tax rate: {analytics.lifetime_avg_tax_rate:.1%}",
        f"Ending net worth: {_money(last.ledger.net_worth)} ({_money(last.real.net_worth)} in {first.year} dollars)",
    ]
    if simulation is not None and simulation.mode == "monte_carlo" and simulation.final_net_worth is not None:
        stats = simulation.final_net_worth
        lines.append(f"Monte Carlo trials: {simulation.trial_count}")
        lines.append(f"Final net worth p10/p50/p90: {_money(stats.p10)} / {_money(stats.median)} / {_money(stats.p90)}")
        lines.append(f"Probability of ruin: {simulation.probability_of_ruin:.1%}")
    return lines
