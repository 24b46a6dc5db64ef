import pytest

from tests.helpers import build_scenario, clone_scenario, write_scenario
from cfp.accounts import AccountBalances, CarryForwardState
from cfp.schema import Assumptions, ScenarioError, YearData, load_scenario
from cfp.validate import check_structure, validate_scenario, validate_year


def _run_validation(tmp_path, sample_scenario_dict, mutator):
    data = clone_scenario(sample_scenario_dict)
    mutator(data)
    path = write_scenario(tmp_path, data)
    scenario = load_scenario(path)
    return validate_scenario(scenario)


def test_sample_scenario_validates():
    scenario = load_scenario("sample_scenario.json")
    result = validate_scenario(scenario)
    assert result.errors == []
    assert result.is_valid


@pytest.mark.parametrize(
    ("mutator", "expected_error"),
    [
        (
            lambda d: d.update({"years": []}),
            "years: at least one year is required",
        ),
        (
            lambda d: d["years"][2].update({"year": 2028}),
            "years[2].year: expected 2027; years must be contiguous and in order",
        ),
        (
            lambda d: d["assumptions"].update({"province": "XX"}),
            "assumptions.province: 'XX' is not valid",
        ),
        (
            lambda d: d["assumptions"]["fhsa"].update({"disposition": "sell"}),
            "assumptions.fhsa.disposition: 'sell' is not valid",
        ),
        (
            lambda d: d["assumptions"]["fhsa"].update({"disposition_year": None}),
            "assumptions.fhsa.disposition_year: required when disposition is not 'active'",
        ),
        (
            lambda d: d["assumptions"].update(
                {"federal_brackets": [{"min": 0, "max": 60000, "rate": 0.15}, {"min": 50000, "max": None, "rate": 0.2}]}
            ),
            "assumptions.federal_brackets: bracket 0-60000 overlaps the next bracket",
        ),
        (
            lambda d: d["assumptions"].update(
                {"provincial_brackets": [{"min": 0, "max": None, "rate": 0.05}, {"min": 50000, "max": None, "rate": 0.1}]}
            ),
            "assumptions.provincial_brackets: only the top bracket may be open-ended",
        ),
        (
            lambda d: d["scheduled_items"][1].pop("amount_reference"),
            "scheduled_items[1].amount_reference: required when amount_type is 'percentage'",
        ),
        (
            lambda d: d["scheduled_items"][1]["conditions"][0].update({"operator": "between", "value": 10, "value2": 5}),
            "scheduled_items[1].conditions[0].value2: must be >= value for 'between'",
        ),
        (
            lambda d: d["scheduled_items"][0].update({"amount_type": "ratio"}),
            "scheduled_items[0].amount_type: 'ratio' is not valid",
        ),
        (
            lambda d: d["scheduled_items"][0].update({"start_year": 2030, "end_year": 2029}),
            "scheduled_items[0].start_year/scheduled_items[0].end_year: start_year must be <= end_year",
        ),
        (
            lambda d: d["liabilities"][0].update({"balance": -1}),
            "liabilities[0].balance: must be >= 0",
        ),
    ],
)
def test_validation_errors(tmp_path, sample_scenario_dict, mutator, expected_error):
    result = _run_validation(tmp_path, sample_scenario_dict, mutator)
    assert any(expected_error in error for error in result.errors)


def test_validation_warns_on_override_outside_projection(tmp_path, sample_scenario_dict):
    result = _run_validation(
        tmp_path, sample_scenario_dict, lambda d: d["assumption_overrides"].update({"2040": {"rrsp_limit": 1}})
    )
    assert result.is_valid
    assert "assumption_overrides.2040: year is outside the projection" in result.warnings


def test_check_structure_raises_scenario_error():
    scenario = build_scenario([{"year": 2025}, {"year": 2027}])
    with pytest.raises(ScenarioError, match=r"years\[1\]\.year: expected 2026"):
        check_structure(scenario)


def _year_warnings(yd: YearData, state: CarryForwardState | None = None, is_rrif: bool = False):
    assumptions = Assumptions.defaults("ON", 2025, 1)
    state = state or CarryForwardState(balances=AccountBalances())
    return {(w.field, w.severity) for w in validate_year(yd, assumptions, state, is_rrif)}


def test_rrsp_over_contribution_within_grace_is_a_warning():
    state = CarryForwardState(balances=AccountBalances(), rrsp_unused_room=5_000)
    assert ("rrsp_contribution", "warning") in _year_warnings(YearData(year=2025, rrsp_contribution=6_500), state)


def test_rrsp_over_contribution_beyond_grace_is_an_error():
    state = CarryForwardState(balances=AccountBalances(), rrsp_unused_room=5_000)
    assert ("rrsp_contribution", "error") in _year_warnings(YearData(year=2025, rrsp_contribution=7_500), state)


def test_rrsp_deduction_over_contributions():
    state = CarryForwardState(balances=AccountBalances(), rrsp_unused_room=5_000, rrsp_undeducted=1_000)
    warnings = _year_warnings(YearData(year=2025, rrsp_contribution=2_000, rrsp_deduction_claimed=3_500), state)
    assert ("rrsp_deduction_claimed", "error") in warnings


def test_tfsa_over_contribution_is_a_warning():
    assert ("tfsa_contribution", "warning") in _year_warnings(YearData(year=2025, tfsa_contribution=8_000))


def test_fhsa_limits():
    assert ("fhsa_contribution", "error") in _year_warnings(YearData(year=2025, fhsa_contribution=9_000))

    near_lifetime = CarryForwardState(balances=AccountBalances(), fhsa_contrib_lifetime=36_000)
    assert ("fhsa_contribution", "error") in _year_warnings(YearData(year=2025, fhsa_contribution=5_000), near_lifetime)

    closed = CarryForwardState(balances=AccountBalances(), fhsa_disposed=True)
    assert ("fhsa_contribution", "error") in _year_warnings(YearData(year=2025, fhsa_contribution=100), closed)

    assert ("fhsa_deduction_claimed", "error") in _year_warnings(
        YearData(year=2025, fhsa_contribution=1_000, fhsa_deduction_claimed=2_000)
    )


def test_capital_loss_applied_over_available():
    state = CarryForwardState(balances=AccountBalances(), capital_loss_cf=1_000)
    assert ("capital_loss_applied", "error") in _year_warnings(YearData(year=2025, capital_loss_applied=2_000), state)


def test_withdrawal_over_balance_is_a_warning():
    state = CarryForwardState(balances=AccountBalances(savings=1_000))
    assert ("savings_withdrawal", "warning") in _year_warnings(YearData(year=2025, savings_withdrawal=1_500), state)


def test_allocation_must_sum_to_one():
    warnings = _year_warnings(YearData(year=2025, tfsa_equity_pct=0.5, tfsa_fixed_pct=0.3))
    assert ("tfsa_equity_pct", "warning") in warnings


def test_eoy_override_is_flagged():
    assert ("rrsp_eoy_override", "warning") in _year_warnings(YearData(year=2025, rrsp_eoy_override=50_000))


def test_rrsp_contribution_after_conversion():
    assert ("rrsp_contribution", "error") in _year_warnings(YearData(year=2025, rrsp_contribution=100), is_rrif=True)


def test_clean_year_has_no_warnings():
    assert _year_warnings(YearData(year=2025)) == set()
