import pytest

from cfp.retirement import (
    age_in_year,
    benefit_income,
    compute_cpp_deferral,
    compute_oas_deferral,
    compute_retirement,
    rrif_factor,
    rrif_minimum,
)
from cfp.schema import Assumptions, BenefitSettings
from cfp.tax_data import RRIF_FACTOR_AGE_95_PLUS


def test_cpp_deferral_adjusts_monthly_amount():
    analysis = compute_cpp_deferral(1_000)

    assert analysis.first_age == 60
    assert [item.start_age for item in analysis.options] == list(range(60, 71))
    assert analysis.option(60).monthly_amount == pytest.approx(640)
    assert analysis.option(65).monthly_amount == pytest.approx(1_000)
    assert analysis.option(70).monthly_amount == pytest.approx(1_420)


@pytest.mark.parametrize("start_age", [60, 65, 70])
def test_cumulative_at_start_age_is_one_year_of_benefit(start_age):
    analysis = compute_cpp_deferral(1_000)
    option = analysis.option(start_age)

    assert analysis.cumulative_at(start_age, start_age) == pytest.approx(option.annual_amount)
    if start_age > 60:
        assert analysis.cumulative_at(start_age, start_age - 1) == 0


def test_cpp_break_even_ages():
    analysis = compute_cpp_deferral(1_000)

    assert analysis.option(70).break_even_vs_65 == 81
    assert analysis.option(60).break_even_vs_65 == 73
    assert analysis.option(65).break_even_vs_65 is None


def test_oas_cannot_start_before_65():
    analysis = compute_oas_deferral(700)

    assert [item.start_age for item in analysis.options] == list(range(65, 71))
    assert analysis.option(70).monthly_amount == pytest.approx(952)
    with pytest.raises(KeyError):
        analysis.option(64)


def test_deferral_cumulative_grows_with_inflation():
    flat = compute_cpp_deferral(1_000)
    indexed = compute_cpp_deferral(1_000, inflation_rate=0.02)
    assert indexed.cumulative_at(65, 66) == pytest.approx(12_000 + 12_240)
    assert indexed.cumulative_at(65, 80) > flat.cumulative_at(65, 80)


def test_rrif_factor_table():
    assert rrif_factor(70) == 0
    assert rrif_factor(71) == 0.0528
    assert rrif_factor(75) == 0.0582
    assert rrif_factor(100) == RRIF_FACTOR_AGE_95_PLUS
    assert rrif_minimum(0, 80) == 0
    assert rrif_minimum(100_000, 75) == pytest.approx(5_820)


def test_benefit_income_indexes_from_start_age():
    settings = BenefitSettings(enabled=True, monthly_amount=1_000, start_age=65)

    assert benefit_income(settings, 1960, 2024, 0.02) == 0
    assert benefit_income(settings, 1960, 2025, 0.02) == pytest.approx(12_000)
    assert benefit_income(settings, 1960, 2026, 0.02) == pytest.approx(12_240)
    assert benefit_income(settings, None, 2026, 0.02) == 0
    assert benefit_income(BenefitSettings(enabled=False, monthly_amount=1_000), 1960, 2026, 0.0) == 0


def test_compute_retirement_flags_rrif_conversion():
    assumptions = Assumptions.defaults("ON", 2025, 1)
    assumptions.birth_year = 1950

    result = compute_retirement(assumptions, 2025, 100_000, 0.0)
    assert result.age == 75
    assert result.is_rrif
    assert result.rrif_minimum == pytest.approx(5_820)

    assumptions.birth_year = 1960
    younger = compute_retirement(assumptions, 2025, 100_000, 0.0)
    assert not younger.is_rrif
    assert younger.rrif_minimum == 0


def test_age_is_unavailable_without_birth_year():
    assert age_in_year(None, 2025) is None
    assert age_in_year(1985, 2025) == 40


def test_compute_retirement_indexes_at_the_base_rate():
    assumptions = Assumptions.defaults("ON", 2025, 1)
    assumptions.birth_year = 1960
    assumptions.inflation_rate = 0.10
    assumptions.retirement.cpp_benefit = BenefitSettings(enabled=True, monthly_amount=1_000, start_age=60)

    result = compute_retirement(assumptions, 2025, 0.0, 0.02)
    assert result.cpp_income == pytest.approx(12_000 * 1.02**5)
