"""CPP/OAS benefit income, RRIF minimums and deferral comparisons."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from .schema import Assumptions, BenefitSettings
from .tax_data import (
    CPP_DEFERRAL_INCREASE_PER_YEAR,
    CPP_EARLIEST_START_AGE,
    CPP_EARLY_REDUCTION_PER_YEAR,
    CPP_LATEST_START_AGE,
    CPP_STANDARD_START_AGE,
    DEFERRAL_HORIZON_AGE,
    OAS_DEFERRAL_INCREASE_PER_YEAR,
    OAS_LATEST_START_AGE,
    OAS_STANDARD_START_AGE,
    RRIF_FACTOR_AGE_95_PLUS,
    RRIF_MINIMUM_FACTORS,
)

# CPP and OAS deferral tables are both measured against a start at 65.
STANDARD_START_AGE = CPP_STANDARD_START_AGE


@dataclass(slots=True, frozen=True)
class RetirementResult:
    age: int | None
    cpp_income: float
    oas_income: float
    is_rrif: bool
    rrif_minimum: float


@dataclass(slots=True, frozen=True)
class DeferralOption:
    start_age: int
    adjustment_pct: float
    monthly_amount: float
    annual_amount: float
    cumulative_by_age: tuple[float, ...]
    break_even_vs_65: int | None


@dataclass(slots=True, frozen=True)
class DeferralAnalysis:
    first_age: int
    options: tuple[DeferralOption, ...]

    def option(self, start_age: int) -> DeferralOption:
        for item in self.options:
            if item.start_age == start_age:
                return item
        raise KeyError(start_age)

    def cumulative_at(self, start_age: int, age: int) -> float:
        return self.option(start_age).cumulative_by_age[age - self.first_age]


def age_in_year(birth_year: int | None, year: int) -> int | None:
    if birth_year is None:
        return None
    return year - birth_year


def rrif_factor(age: int) -> float:
    if age < min(RRIF_MINIMUM_FACTORS):
        return 0.0
    return RRIF_MINIMUM_FACTORS.get(age, RRIF_FACTOR_AGE_95_PLUS)


def rrif_minimum(opening_balance: float, age: int) -> float:
    if opening_balance <= 0:
        return 0.0
    return opening_balance * rrif_factor(age)


def benefit_income(settings: BenefitSettings, birth_year: int | None, year: int, inflation_rate: float) -> float:
    """Annual benefit for ``year``, indexed from the year payments begin."""
    age = age_in_year(birth_year, year)
    if not settings.enabled or age is None or age < settings.start_age:
        return 0.0
    years_receiving = age - settings.start_age
    return max(0.0, settings.monthly_amount) * 12.0 * ((1.0 + inflation_rate) ** years_receiving)


def compute_retirement(
    assumptions: Assumptions, year: int, opening_rrsp: float, base_inflation_rate: float
) -> RetirementResult:
    """Benefits index at the scenario's base rate; per-year inflation overrides do not re-index them."""
    settings = assumptions.retirement
    age = age_in_year(assumptions.birth_year, year)
    is_rrif = age is not None and age >= settings.rrif_conversion_age
    return RetirementResult(
        age=age,
        cpp_income=benefit_income(settings.cpp_benefit, assumptions.birth_year, year, base_inflation_rate),
        oas_income=benefit_income(settings.oas_benefit, assumptions.birth_year, year, base_inflation_rate),
        is_rrif=is_rrif,
        rrif_minimum=rrif_minimum(opening_rrsp, age) if is_rrif and age is not None else 0.0,
    )


def _cpp_adjustment(start_age: int) -> float:
    diff = start_age - CPP_STANDARD_START_AGE
    if diff < 0:
        return diff * CPP_EARLY_REDUCTION_PER_YEAR
    return diff * CPP_DEFERRAL_INCREASE_PER_YEAR


def _oas_adjustment(start_age: int) -> float:
    return (start_age - OAS_STANDARD_START_AGE) * OAS_DEFERRAL_INCREASE_PER_YEAR


def _cumulative(annual: float, start_age: int, first_age: int, inflation_rate: float) -> tuple[float, ...]:
    totals: list[float] = []
    running = 0.0
    for age in range(first_age, DEFERRAL_HORIZON_AGE + 1):
        if age >= start_age:
            running += annual * ((1.0 + inflation_rate) ** (age - start_age))
        totals.append(running)
    return tuple(totals)


def _break_even(option: tuple[float, ...], base: tuple[float, ...], start_age: int, first_age: int) -> int | None:
    for idx, (ours, theirs) in enumerate(zip(option, base)):
        if start_age > STANDARD_START_AGE and ours > 0 and ours >= theirs:
            return first_age + idx
        if start_age < STANDARD_START_AGE and theirs > 0 and theirs >= ours:
            return first_age + idx
    return None


def _deferral_analysis(
    monthly_at_65: float,
    inflation_rate: float,
    first_age: int,
    last_age: int,
    adjustment: Callable[[int], float],
) -> DeferralAnalysis:
    raw: list[tuple[int, float, float, tuple[float, ...]]] = []
    for start_age in range(first_age, last_age + 1):
        pct = adjustment(start_age)
        monthly = monthly_at_65 * (1.0 + pct)
        raw.append((start_age, pct, monthly, _cumulative(monthly * 12.0, start_age, first_age, inflation_rate)))

    base = next(cumulative for start_age, _, _, cumulative in raw if start_age == STANDARD_START_AGE)
    options = tuple(
        DeferralOption(
            start_age=start_age,
            adjustment_pct=pct,
            monthly_amount=monthly,
            annual_amount=monthly * 12.0,
            cumulative_by_age=cumulative,
            break_even_vs_65=(
                None if start_age == STANDARD_START_AGE else _break_even(cumulative, base, start_age, first_age)
            ),
        )
        for start_age, pct, monthly, cumulative in raw
    )
    return DeferralAnalysis(first_age=first_age, options=options)


def compute_cpp_deferral(monthly_at_65: float, inflation_rate: float = 0.0) -> DeferralAnalysis:
    """Compare CPP start ages 60 to 70 against starting at 65."""
    return _deferral_analysis(monthly_at_65, inflation_rate, CPP_EARLIEST_START_AGE, CPP_LATEST_START_AGE, _cpp_adjustment)


def compute_oas_deferral(monthly_at_65: float, inflation_rate: float = 0.0) -> DeferralAnalysis:
    """Compare OAS start ages 65 to 70; OAS cannot start early."""
    return _deferral_analysis(monthly_at_65, inflation_rate, OAS_STANDARD_START_AGE, OAS_LATEST_START_AGE, _oas_adjustment)
