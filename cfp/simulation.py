"""Simulation orchestration: deterministic runs and Monte Carlo return sampling."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import math
import random

from .engine import compute
from .schema import AssetReturns, ReturnDistribution, Scenario

logger = logging.getLogger(__name__)

MAX_TRIALS = 2000
SIMULATION_MODES = ("deterministic", "monte_carlo")


@dataclass(slots=True, frozen=True)
class AnnualSummary:
    year: int
    gross_income: float
    total_tax: float
    after_tax_income: float
    net_cash_flow: float
    net_worth_end: float


@dataclass(slots=True, frozen=True)
class PercentileBand:
    year: int
    p10: float
    p25: float
    p50: float
    p75: float
    p90: float


@dataclass(slots=True, frozen=True)
class FinalNetWorthStats:
    mean: float
    median: float
    p10: float
    p25: float
    p75: float
    p90: float
    min: float
    max: float


@dataclass(slots=True, frozen=True)
class SimulationResult:
    mode: str
    seed: int | None
    annual: tuple[AnnualSummary, ...]
    trial_count: int = 1
    probability_of_ruin: float = 0.0
    net_worth_percentiles: tuple[PercentileBand, ...] = ()
    after_tax_percentiles: tuple[PercentileBand, ...] = ()
    final_net_worth: FinalNetWorthStats | None = None


def _percentile(values: list[float], pct: float) -> float:
    ordered = sorted(values)
    if not ordered:
        return 0.0
    if len(ordered) == 1:
        return ordered[0]
    position = (len(ordered) - 1) * pct
    low = int(math.floor(position))
    high = int(math.ceil(position))
    if low == high:
        return ordered[low]
    weight = position - low
    return (ordered[low] * (1.0 - weight)) + (ordered[high] * weight)


def _band(year: int, values: list[float]) -> PercentileBand:
    return PercentileBand(
        year=year,
        p10=_percentile(values, 0.10),
        p25=_percentile(values, 0.25),
        p50=_percentile(values, 0.50),
        p75=_percentile(values, 0.75),
        p90=_percentile(values, 0.90),
    )


def _clamp_annual_return(value: float) -> float:
    # A return at or below -100% would wipe out more than the balance.
    return max(-0.95, value)


def _sample(dist: ReturnDistribution, rng: random.Random) -> float:
    if dist.std_dev <= 0:
        return dist.mean
    return _clamp_annual_return(rng.gauss(dist.mean, dist.std_dev))


def _monte_carlo_paths(scenario: Scenario, trials: int, rng: random.Random) -> list[dict[int, AssetReturns]]:
    mc = scenario.monte_carlo
    paths: list[dict[int, AssetReturns]] = []
    for _ in range(trials):
        path: dict[int, AssetReturns] = {}
        for yd in scenario.years:
            path[yd.year] = AssetReturns(
                equity=_sample(mc.equity, rng),
                fixed_income=_sample(mc.fixed_income, rng),
                cash=_sample(mc.cash, rng),
                savings=_sample(mc.savings, rng),
            )
        paths.append(path)
    return paths


def _annual_summary(scenario: Scenario, annual_return_overrides: dict[int, AssetReturns] | None = None) -> tuple[AnnualSummary, ...]:
    result = compute(scenario, annual_return_overrides=annual_return_overrides)
    return tuple(
        AnnualSummary(
            year=item.year,
            gross_income=item.waterfall.gross_income,
            total_tax=item.tax.total_income_tax,
            after_tax_income=item.waterfall.after_tax_income,
            net_cash_flow=item.waterfall.net_cash_flow,
            net_worth_end=item.ledger.net_worth,
        )
        for item in result.years
    )


def _aggregate(trials: list[tuple[AnnualSummary, ...]], seed: int | None) -> SimulationResult:
    count = len(trials)
    years = [row.year for row in trials[0]]
    mean_rows: list[AnnualSummary] = []
    net_worth_bands: list[PercentileBand] = []
    after_tax_bands: list[PercentileBand] = []
    for idx, year in enumerate(years):
        rows = [trial[idx] for trial in trials]
        net_worths = [row.net_worth_end for row in rows]
        after_tax = [row.after_tax_income for row in rows]
        mean_rows.append(
            AnnualSummary(
                year=year,
                gross_income=sum(row.gross_income for row in rows) / count,
                total_tax=sum(row.total_tax for row in rows) / count,
                after_tax_income=sum(after_tax) / count,
                net_cash_flow=sum(row.net_cash_flow for row in rows) / count,
                net_worth_end=sum(net_worths) / count,
            )
        )
        net_worth_bands.append(_band(year, net_worths))
        after_tax_bands.append(_band(year, after_tax))

    finals = [trial[-1].net_worth_end for trial in trials if trial]
    ruined = sum(1 for trial in trials if any(row.net_worth_end <= 0 for row in trial))
    return SimulationResult(
        mode="monte_carlo",
        seed=seed,
        annual=tuple(mean_rows),
        trial_count=count,
        probability_of_ruin=ruined / count,
        net_worth_percentiles=tuple(net_worth_bands),
        after_tax_percentiles=tuple(after_tax_bands),
        final_net_worth=FinalNetWorthStats(
            mean=sum(finals) / len(finals) if finals else 0.0,
            median=_percentile(finals, 0.50),
            p10=_percentile(finals, 0.10),
            p25=_percentile(finals, 0.25),
            p75=_percentile(finals, 0.75),
            p90=_percentile(finals, 0.90),
            min=min(finals, default=0.0),
            max=max(finals, default=0.0),
        ),
    )


def run_simulation(
    scenario: Scenario,
    mode: str = "deterministic",
    runs: int | None = None,
    seed: int | None = None,
) -> SimulationResult:
    if mode == "deterministic":
        annual = _annual_summary(scenario)
        ruined = any(row.net_worth_end <= 0 for row in annual)
        return SimulationResult(
            mode=mode,
            seed=None,
            annual=annual,
            trial_count=1,
            probability_of_ruin=1.0 if ruined else 0.0,
        )
    if mode != "monte_carlo":
        raise ValueError(f"unsupported simulation mode: {mode}")

    trials = max(1, min(runs if runs is not None else scenario.monte_carlo.num_trials, MAX_TRIALS))
    if seed is None:
        seed = random.randint(1, 2**31 - 1)
    rng = random.Random(seed)
    logger.debug("running %d Monte Carlo trials with seed %d", trials, seed)
    results = [_annual_summary(scenario, path) for path in _monte_carlo_paths(scenario, trials, rng)]
    return _aggregate(results, seed)
