import pytest

from cfp.assumptions import effective_inflation_rate, resolve_assumptions, round_half_up
from cfp.schema import AssumptionOverrides, Assumptions, TaxBracket, YearData

DOLLAR_FIELDS = (
    "federal_bpa",
    "provincial_bpa",
    "federal_employment_amount",
    "rrsp_limit",
    "tfsa_annual_limit",
    "fhsa_annual_limit",
    "fhsa_lifetime_limit",
    "oas_clawback_threshold",
    "capital_gains_tier_threshold",
)


def _base() -> Assumptions:
    return Assumptions.defaults("ON", 2025, 5)


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(3.5) == 4
    assert round_half_up(7_249.0, 500) == 7_000
    assert round_half_up(7_250.0, 500) == 7_500


def test_start_year_resolution_is_identity():
    base = _base()
    resolved = resolve_assumptions(base, 2025, 1.0, {})

    for name in DOLLAR_FIELDS:
        assert getattr(resolved, name) == getattr(base, name)
    assert resolved.federal_brackets == base.federal_brackets
    assert resolved.cpp == base.cpp
    assert resolved.ei == base.ei


def test_indexing_scales_dollars_but_not_rates():
    base = _base()
    resolved = resolve_assumptions(base, 2026, 1.1, {})

    assert resolved.federal_bpa == round_half_up(base.federal_bpa * 1.1)
    assert resolved.cpp.ympe == round_half_up(base.cpp.ympe * 1.1)
    assert resolved.federal_brackets[1].min == round_half_up(base.federal_brackets[1].min * 1.1)
    assert resolved.federal_brackets[-1].max is None
    assert [b.rate for b in resolved.federal_brackets] == [b.rate for b in base.federal_brackets]
    assert resolved.cpp.employee_rate == base.cpp.employee_rate
    assert resolved.tfsa_annual_limit % 500 == 0


def test_auto_index_disabled_keeps_dollars():
    base = _base()
    base.auto_index = False
    resolved = resolve_assumptions(base, 2030, 1.3, {})

    assert resolved.federal_bpa == base.federal_bpa
    assert resolved.rrsp_limit == base.rrsp_limit


def test_resolution_never_mutates_base():
    base = _base()
    original_bpa = base.federal_bpa
    original_min = base.federal_brackets[1].min
    resolve_assumptions(base, 2027, 1.2, {2027: AssumptionOverrides(federal_bpa=1.0)})

    assert base.federal_bpa == original_bpa
    assert base.federal_brackets[1].min == original_min


@pytest.mark.parametrize("factor", [1.0, 1.05, 1.5])
def test_override_wins_regardless_of_factor(factor):
    overrides = {
        2027: AssumptionOverrides(
            rrsp_limit=33_333.0,
            federal_brackets=[TaxBracket(0.0, None, 0.2)],
            eligible_gross_up=0.5,
        )
    }
    resolved = resolve_assumptions(_base(), 2027, factor, overrides)

    assert resolved.rrsp_limit == 33_333.0
    assert resolved.federal_brackets == [TaxBracket(0.0, None, 0.2)]
    assert resolved.dividend_rates.eligible.gross_up == 0.5


def test_overrides_for_other_years_are_ignored():
    base = _base()
    resolved = resolve_assumptions(base, 2026, 1.0, {2027: AssumptionOverrides(rrsp_limit=1.0)})
    assert resolved.rrsp_limit == base.rrsp_limit


def test_effective_inflation_rate_precedence():
    base = _base()
    base.inflation_rate = 0.02

    assert effective_inflation_rate(base, YearData(year=2026), None) == 0.02
    assert effective_inflation_rate(base, YearData(year=2026), AssumptionOverrides(inflation_rate=0.04)) == 0.04
    assert (
        effective_inflation_rate(
            base, YearData(year=2026, inflation_rate_override=0.06), AssumptionOverrides(inflation_rate=0.04)
        )
        == 0.06
    )
