import pytest

from cfp.schema import load_scenario
from cfp.simulation import MAX_TRIALS, _clamp_annual_return, _percentile, run_simulation


def _scenario():
    return load_scenario("sample_scenario.json")


def test_deterministic_mode_matches_engine_rows():
    result = run_simulation(_scenario())

    assert result.mode == "deterministic"
    assert result.seed is None
    assert result.trial_count == 1
    assert [row.year for row in result.annual] == [2025, 2026, 2027, 2028, 2029]
    assert result.probability_of_ruin == 0
    assert result.final_net_worth is None


def test_monte_carlo_is_reproducible_with_seed():
    first = run_simulation(_scenario(), mode="monte_carlo", runs=20, seed=7)
    second = run_simulation(_scenario(), mode="monte_carlo", runs=20, seed=7)

    assert first == second
    assert first.seed == 7
    assert first.trial_count == 20


def test_monte_carlo_bands_are_ordered():
    result = run_simulation(_scenario(), mode="monte_carlo", runs=30, seed=11)

    assert len(result.net_worth_percentiles) == 5
    for band in result.net_worth_percentiles:
        assert band.p10 <= band.p25 <= band.p50 <= band.p75 <= band.p90
    stats = result.final_net_worth
    assert stats.min <= stats.p10 <= stats.median <= stats.p90 <= stats.max
    assert 0 <= result.probability_of_ruin <= 1


def test_monte_carlo_generates_seed_when_missing():
    result = run_simulation(_scenario(), mode="monte_carlo", runs=2)
    assert result.seed is not None


def test_trial_count_is_capped(monkeypatch):
    captured = {}

    def fake_paths(scenario, trials, rng):
        captured["trials"] = trials
        return [{}]

    monkeypatch.setattr("cfp.simulation._monte_carlo_paths", fake_paths)
    run_simulation(_scenario(), mode="monte_carlo", runs=10_000, seed=1)
    assert captured["trials"] == MAX_TRIALS


def test_zero_volatility_reproduces_deterministic_path():
    scenario = _scenario()
    mc = scenario.monte_carlo
    for dist, mean in ((mc.equity, 0.06), (mc.fixed_income, 0.035), (mc.cash, 0.02), (mc.savings, 0.025)):
        dist.mean = mean
        dist.std_dev = 0.0

    deterministic = run_simulation(scenario)
    simulated = run_simulation(scenario, mode="monte_carlo", runs=3, seed=5)
    for expected, actual in zip(deterministic.annual, simulated.annual):
        assert actual.net_worth_end == pytest.approx(expected.net_worth_end)


def test_unknown_mode_is_rejected():
    with pytest.raises(ValueError, match="unsupported simulation mode"):
        run_simulation(_scenario(), mode="historical")


def test_percentile_interpolates():
    assert _percentile([], 0.5) == 0
    assert _percentile([5.0], 0.9) == 5.0
    assert _percentile([0.0, 10.0], 0.25) == 2.5


def test_annual_return_floor():
    assert _clamp_annual_return(-3.0) == -0.95
    assert _clamp_annual_return(0.12) == 0.12
