import pytest

from cfp.schema import Assumptions, CPPParams, EIParams, TaxBracket
from cfp.tax import (
    YearIncomeSummary,
    compute_cpp,
    compute_ei,
    compute_oas_clawback,
    compute_total_tax,
    ontario_surtax,
    progressive_tax,
    taxable_capital_gains,
)


def _tax(province: str = "ON", **income) -> tuple:
    assumptions = Assumptions.defaults(province, 2025, 1)
    summary = YearIncomeSummary(year=2025, **income)
    cpp = compute_cpp(summary.employment_income, summary.self_employment_income, assumptions.cpp)
    ei = compute_ei(summary.employment_income, summary.self_employment_income, assumptions.ei)
    return compute_total_tax(summary, assumptions, cpp, ei), cpp, ei


def test_progressive_tax_fills_brackets_in_order():
    brackets = [TaxBracket(0.0, 10_000.0, 0.10), TaxBracket(10_000.0, None, 0.20)]
    tax, detail = progressive_tax(15_000, brackets)

    assert round(tax, 2) == 2_000.00
    assert [round(item.taxable, 2) for item in detail] == [10_000.00, 5_000.00]


def test_cpp_employee_below_ympe():
    cpp = compute_cpp(50_000, 0, CPPParams())
    assert round(cpp.employee_cpp, 2) == 2_766.75
    assert cpp.employee_cpp2 == 0
    assert cpp.se_deductible_half == 0


def test_cpp_second_tier_above_ympe():
    cpp = compute_cpp(80_000, 0, CPPParams())
    assert round(cpp.employee_cpp, 2) == 3_867.50
    assert round(cpp.employee_cpp2, 2) == 188.00


def test_cpp_self_employed_pays_both_halves():
    cpp = compute_cpp(0, 50_000, CPPParams())
    assert round(cpp.self_employed_cpp, 2) == 5_533.50
    assert round(cpp.se_deductible_half, 2) == 2_766.75


def test_ei_caps_at_max_insurable_earnings():
    ei = compute_ei(80_000, 0, EIParams())
    assert round(ei.total, 2) == 1_049.12


def test_ei_self_employed_requires_opt_in():
    assert compute_ei(0, 40_000, EIParams()).total == 0
    assert round(compute_ei(0, 40_000, EIParams(se_opt_in=True)).total, 2) == 664.00


def test_taxable_capital_gains_nets_losses():
    assumptions = Assumptions.defaults("ON", 2025, 1)
    assert taxable_capital_gains(10_000, 6_000, assumptions) == 2_000
    assert taxable_capital_gains(5_000, 8_000, assumptions) == 0


def test_taxable_capital_gains_tiered():
    assumptions = Assumptions.defaults("ON", 2025, 1)
    assumptions.capital_gains_tiered = True
    taxable = taxable_capital_gains(300_000, 0, assumptions)
    assert round(taxable, 2) == round(125_000 + 50_000 * 2 / 3, 2)


def test_ontario_surtax_thresholds():
    assert ontario_surtax(4_000) == 0
    assert round(ontario_surtax(6_000), 2) == 201.80
    assert round(ontario_surtax(7_000), 2) == round(0.20 * 2_009 + 0.36 * 613, 2)


def test_oas_clawback_is_capped_at_benefit():
    assert round(compute_oas_clawback(100_000, 8_000, 86_912), 2) == 1_963.20
    assert compute_oas_clawback(200_000, 8_000, 86_912) == 8_000
    assert compute_oas_clawback(200_000, 0, 86_912) == 0


def test_rrsp_deduction_reduces_net_taxable_income():
    result, _, _ = _tax(employment_income=80_000, rrsp_deduction=5_000)
    assert result.net_taxable_income == 75_000


def test_self_employed_half_is_deducted():
    result, cpp, _ = _tax(self_employment_income=50_000)
    assert round(result.net_taxable_income, 2) == round(50_000 - cpp.se_deductible_half, 2)


@pytest.mark.parametrize("income", [-5_000, 0, 1_000, 15_000, 50_000, 250_000, 2_000_000])
def test_tax_is_never_negative(income):
    result, _, _ = _tax(employment_income=income, eligible_dividends=max(0, income) / 10)
    assert result.federal_tax >= 0
    assert result.provincial_tax >= 0
    assert result.total_income_tax >= 0


def test_low_income_owes_no_tax():
    result, _, _ = _tax(employment_income=12_000)
    assert result.total_income_tax == 0


def test_eligible_dividends_taxed_less_than_interest():
    dividends, _, _ = _tax(eligible_dividends=40_000)
    interest, _, _ = _tax(interest_income=40_000)
    assert dividends.grossed_up_dividends == pytest.approx(55_200)
    assert dividends.total_income_tax < interest.total_income_tax


def test_donations_add_credits():
    without, _, _ = _tax(employment_income=90_000)
    with_gift, _, _ = _tax(employment_income=90_000, charitable_donations=1_200)
    assert round(with_gift.federal_credits - without.federal_credits, 2) == round(200 * 0.15 + 1_000 * 0.29, 2)


def test_quebec_abatement_applies_only_in_quebec():
    quebec, _, _ = _tax("QC", employment_income=90_000)
    ontario, _, _ = _tax("ON", employment_income=90_000)
    assert quebec.quebec_abatement > 0
    assert ontario.quebec_abatement == 0
    assert quebec.ontario_surtax == 0


def test_oas_clawback_is_part_of_total_tax():
    result, _, _ = _tax(other_taxable_income=160_000, oas_income=8_000)
    assert result.oas_clawback == 8_000
    assert round(result.total_income_tax, 2) == round(result.federal_tax + result.provincial_tax + 8_000, 2)


def test_marginal_rates_follow_brackets():
    result, _, _ = _tax(employment_income=120_000)
    assert result.marginal_federal_rate == 0.26
    assert result.marginal_combined_rate == pytest.approx(0.26 + 0.1116)
    assert 0 < result.average_tax_rate < result.average_all_in_rate
