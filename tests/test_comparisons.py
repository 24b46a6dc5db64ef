import pytest

from cfp.comparisons import (
    WITHDRAWAL_ORDERS,
    compute_sensitivity,
    compute_withdrawal_strategies,
)
from cfp.schema import Scenario, load_scenario
from tests.helpers import scenario_dict


def _retiree(**balances) -> Scenario:
    data = scenario_dict(
        [{"year": 2025}, {"year": 2026}, {"year": 2027}],
        asset_returns={"equity": 0.05, "fixed_income": 0.0, "cash": 0.0, "savings": 0.0},
    )
    data["opening_balances"] = balances
    return Scenario.from_dict(data)


def test_sensitivity_labels_and_ordering():
    analysis = compute_sensitivity(load_scenario("sample_scenario.json"))

    assert [item.label for item in analysis.scenarios] == ["-4%", "-2%", "Base", "+2%", "+4%"]
    assert analysis.base.label == "Base"
    finals = [item.final_net_worth for item in analysis.scenarios]
    assert finals == sorted(finals)


def test_sensitivity_leaves_scenario_untouched():
    scenario = load_scenario("sample_scenario.json")
    compute_sensitivity(scenario, offsets=(0.02,))
    assert scenario.assumptions.asset_returns.equity == 0.06


def test_withdrawal_strategies_cover_every_order():
    results = compute_withdrawal_strategies(_retiree(rrsp=100_000, tfsa=50_000, non_reg=50_000), 20_000)

    assert [item.name for item in results] == list(WITHDRAWAL_ORDERS)
    assert all(item.shortfall == 0 for item in results)
    assert all(len(item.yearly_tax) == 3 for item in results)


def test_rrif_first_pays_more_tax_than_tfsa_first():
    results = {item.name: item for item in compute_withdrawal_strategies(_retiree(rrsp=100_000, tfsa=100_000), 30_000)}

    assert results["rrif_first"].lifetime_tax > results["tfsa_first"].lifetime_tax
    assert results["tfsa_first"].lifetime_tax == 0


def test_shortfall_when_accounts_run_dry():
    results = {item.name: item for item in compute_withdrawal_strategies(_retiree(tfsa=10_000), 8_000)}
    # 8,000 then the 2,100 left after growth, then nothing.
    assert results["tfsa_first"].shortfall == pytest.approx(5_900 + 8_000)
    assert results["equal_split"].shortfall > results["tfsa_first"].shortfall


def test_zero_target_returns_nothing():
    assert compute_withdrawal_strategies(_retiree(rrsp=1_000), 0) == ()
