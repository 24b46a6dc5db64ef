import pytest

from cfp.accounts import (
    AccountBalances,
    CarryForwardState,
    accumulated_tfsa_room,
    advance_carry_forward,
    amortize_liability,
    apply_capital_loss,
    build_ledger,
    compute_account,
    compute_accounts,
    fhsa_annual_room,
    rrsp_room_grant,
    seed_state,
    track_acb,
)
from cfp.schema import Assumptions, AssetReturns, Liability, YearData
from tests.helpers import build_scenario


def _assumptions() -> Assumptions:
    return Assumptions.defaults("ON", 2025, 3)


def _advance(state: CarryForwardState, yd: YearData, is_rrif: bool = False):
    accounts = compute_accounts(yd, state.balances, AssetReturns())
    ledger = build_ledger(accounts, ())
    acb = track_acb(state.non_reg_acb, yd.non_reg_contribution, yd.non_reg_withdrawal, ledger.account("non_reg").eoy)
    return advance_carry_forward(state, yd, _assumptions(), ledger, acb, is_rrif, False, 1.0)


def test_compute_account_grows_the_base():
    result = compute_account("tfsa", 10_000, 2_000, 1_000, 0, 0.05, None)
    assert result.base == 11_000
    assert round(result.growth, 2) == 550.00
    assert round(result.eoy, 2) == 11_550.00


def test_eoy_override_back_solves_growth():
    result = compute_account("rrsp", 10_000, 0, 0, 0, 0.05, 9_000)
    assert result.eoy == 9_000
    assert result.growth == -1_000
    assert result.overridden


def test_eoy_never_negative():
    result = compute_account("savings", 1_000, 0, 5_000, 0, 0.02, None)
    assert result.eoy == 0

    overridden = compute_account("tfsa", 1_000, 0, 0, 0, 0.02, -500)
    assert overridden.eoy == 0
    assert overridden.growth == -1_000


def test_blended_allocation_rate():
    yd = YearData(year=2025, rrsp_equity_pct=0.6, rrsp_fixed_pct=0.3, rrsp_cash_pct=0.1)
    returns = AssetReturns(equity=0.10, fixed_income=0.04, cash=0.02, savings=0.01)
    accounts = compute_accounts(yd, AccountBalances(rrsp=100_000, savings=1_000), returns)
    rrsp = next(item for item in accounts if item.account == "rrsp")
    savings = next(item for item in accounts if item.account == "savings")

    assert rrsp.rate == pytest.approx(0.074)
    assert savings.rate == 0.01


def test_rrsp_grant_is_capped_and_zero_after_conversion():
    assumptions = _assumptions()
    state = CarryForwardState(balances=AccountBalances(), prior_year_earned_income=100_000)
    assert rrsp_room_grant(state, assumptions, False) == pytest.approx(18_000)

    rich = CarryForwardState(balances=AccountBalances(), prior_year_earned_income=1_000_000)
    assert rrsp_room_grant(rich, assumptions, False) == assumptions.rrsp_limit
    assert rrsp_room_grant(rich, assumptions, True) == 0


def test_rrsp_unused_room_is_not_clamped():
    state = CarryForwardState(balances=AccountBalances(), rrsp_unused_room=1_000)
    next_state, room = _advance(state, YearData(year=2025, rrsp_contribution=4_000))
    assert room.rrsp_unused_room == -3_000
    assert next_state.rrsp_unused_room == -3_000


def test_undeducted_rrsp_contributions_carry_forward():
    state = CarryForwardState(balances=AccountBalances(), rrsp_unused_room=20_000)
    next_state, _ = _advance(state, YearData(year=2025, rrsp_contribution=10_000, rrsp_deduction_claimed=4_000))
    assert next_state.rrsp_undeducted == 6_000


def test_tfsa_withdrawals_restore_room_next_year():
    state = CarryForwardState(balances=AccountBalances(tfsa=20_000), tfsa_unused_room=0)
    after_withdrawal, room = _advance(state, YearData(year=2025, tfsa_withdrawal=5_000))
    assert room.tfsa_unused_room == 7_000
    assert after_withdrawal.tfsa_prior_withdrawals == 5_000

    _, next_room = _advance(after_withdrawal, YearData(year=2026))
    assert next_room.tfsa_room_generated == 12_000
    assert next_room.tfsa_unused_room == 19_000


def test_fhsa_carry_is_capped_at_one_year_of_room():
    state = CarryForwardState(balances=AccountBalances())
    after_skip, _ = _advance(state, YearData(year=2025))
    assert after_skip.fhsa_unused_room == 8_000
    assert fhsa_annual_room(after_skip, _assumptions()) == 16_000

    after_second_skip, _ = _advance(after_skip, YearData(year=2026))
    assert after_second_skip.fhsa_unused_room == 8_000


def test_fhsa_lifetime_contributions_accumulate():
    state = CarryForwardState(balances=AccountBalances(), fhsa_contrib_lifetime=8_000)
    next_state, room = _advance(state, YearData(year=2025, fhsa_contribution=8_000))
    assert next_state.fhsa_contrib_lifetime == 16_000
    assert room.fhsa_lifetime_remaining == 32_000


def test_apply_capital_loss_never_goes_negative():
    assert apply_capital_loss(6_000, 0, 10_000) == (6_000, 6_000, 0)
    assert apply_capital_loss(6_000, 1_000, 2_000) == (7_000, 2_000, 5_000)
    assert apply_capital_loss(0, 0, -5) == (0, 0, 0)


def test_track_acb_removes_cost_proportionally():
    result = track_acb(opening_acb=8_000, contribution=2_000, withdrawal=5_000, eoy=15_000)
    assert result.acb_removed == 2_500
    assert result.closing_acb == 7_500
    assert result.computed_gain == 2_500


def test_track_acb_can_realize_a_loss():
    result = track_acb(opening_acb=20_000, contribution=0, withdrawal=5_000, eoy=5_000)
    assert result.computed_gain == -5_000


def test_amortize_liability_splits_interest_and_principal():
    result = amortize_liability(Liability("Loan", 10_000, 0.05, 3_000), 10_000)
    assert result.interest == 500
    assert result.principal == 2_500
    assert result.closing_balance == 7_500


def test_amortize_liability_final_payment_is_capped():
    result = amortize_liability(Liability("Loan", 1_000, 0.10, 3_000), 1_000)
    assert round(result.payment, 2) == 1_100.00
    assert result.closing_balance == 0


def test_ledger_net_worth_subtracts_liabilities():
    accounts = compute_accounts(YearData(year=2025), AccountBalances(tfsa=5_000, savings=2_000), AssetReturns())
    loan = amortize_liability(Liability("Loan", 3_000, 0.0, 1_000), 3_000)
    ledger = build_ledger(accounts, (loan,))
    assert ledger.total_assets == 7_000
    assert ledger.net_worth == 5_000


def test_accumulated_tfsa_room_from_birth_year():
    assert accumulated_tfsa_room(2005, 2025, 7_000) == 6_500 + 7_000
    assert accumulated_tfsa_room(1980, 2011, 5_000) == 10_000


def test_seed_state_accumulates_tfsa_room_when_unset():
    scenario = build_scenario([{"year": 2025}], birth_year=2005)
    assert seed_state(scenario).tfsa_unused_room == 13_500


def test_seed_state_keeps_explicit_zero_tfsa_room():
    scenario = build_scenario([{"year": 2025}], birth_year=2005)
    scenario.opening_carry_forwards.tfsa_unused_room = 0.0
    assert seed_state(scenario).tfsa_unused_room == 0


def test_seed_state_uses_balance_as_default_acb():
    scenario = build_scenario([{"year": 2025}])
    scenario.opening_balances.non_reg = 12_000
    assert seed_state(scenario).non_reg_acb == 12_000
