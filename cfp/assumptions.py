"""Per-year assumption resolution: inflation indexing plus manual overrides."""

from __future__ import annotations

from dataclasses import replace
import logging
import math

from .schema import AssumptionOverrides, Assumptions, DividendRate, DividendRates, TaxBracket, YearData

logger = logging.getLogger(__name__)

TFSA_ROUNDING_INCREMENT = 500.0


def round_half_up(value: float, increment: float = 1.0) -> float:
    """Round to the nearest increment with halves going up, as published thresholds are."""
    return math.floor(value / increment + 0.5) * increment


def _index(value: float, factor: float, increment: float = 1.0) -> float:
    if factor == 1.0:
        return value
    return round_half_up(value * factor, increment)


def _index_brackets(brackets: list[TaxBracket], factor: float) -> list[TaxBracket]:
    return [
        TaxBracket(
            min=_index(bracket.min, factor),
            max=None if bracket.max is None else _index(bracket.max, factor),
            rate=bracket.rate,
        )
        for bracket in brackets
    ]


def effective_inflation_rate(base: Assumptions, year_data: YearData | None, overrides: AssumptionOverrides | None) -> float:
    """Inflation for one year: the year's own override, then the override map, then the base rate."""
    if year_data is not None and year_data.inflation_rate_override is not None:
        return year_data.inflation_rate_override
    if overrides is not None and overrides.inflation_rate is not None:
        return overrides.inflation_rate
    return base.inflation_rate


def _pick(override: float | None, value: float) -> float:
    return value if override is None else override


def _apply_overrides(resolved: Assumptions, overrides: AssumptionOverrides) -> Assumptions:
    eligible = resolved.dividend_rates.eligible
    non_eligible = resolved.dividend_rates.non_eligible
    return replace(
        resolved,
        inflation_rate=_pick(overrides.inflation_rate, resolved.inflation_rate),
        federal_brackets=(
            [replace(b) for b in overrides.federal_brackets]
            if overrides.federal_brackets is not None
            else resolved.federal_brackets
        ),
        provincial_brackets=(
            [replace(b) for b in overrides.provincial_brackets]
            if overrides.provincial_brackets is not None
            else resolved.provincial_brackets
        ),
        federal_bpa=_pick(overrides.federal_bpa, resolved.federal_bpa),
        provincial_bpa=_pick(overrides.provincial_bpa, resolved.provincial_bpa),
        federal_employment_amount=_pick(overrides.federal_employment_amount, resolved.federal_employment_amount),
        cpp=replace(
            resolved.cpp,
            basic_exemption=_pick(overrides.cpp_basic_exemption, resolved.cpp.basic_exemption),
            ympe=_pick(overrides.cpp_ympe, resolved.cpp.ympe),
            yampe=_pick(overrides.cpp_yampe, resolved.cpp.yampe),
            employee_rate=_pick(overrides.cpp_employee_rate, resolved.cpp.employee_rate),
            cpp2_rate=_pick(overrides.cpp2_rate, resolved.cpp.cpp2_rate),
        ),
        ei=replace(
            resolved.ei,
            max_insurable_earnings=_pick(overrides.ei_max_insurable_earnings, resolved.ei.max_insurable_earnings),
            employee_rate=_pick(overrides.ei_employee_rate, resolved.ei.employee_rate),
        ),
        rrsp_limit=_pick(overrides.rrsp_limit, resolved.rrsp_limit),
        rrsp_pct_earned_income=_pick(overrides.rrsp_pct_earned_income, resolved.rrsp_pct_earned_income),
        tfsa_annual_limit=_pick(overrides.tfsa_annual_limit, resolved.tfsa_annual_limit),
        fhsa_annual_limit=_pick(overrides.fhsa_annual_limit, resolved.fhsa_annual_limit),
        fhsa_lifetime_limit=_pick(overrides.fhsa_lifetime_limit, resolved.fhsa_lifetime_limit),
        capital_gains_inclusion_rate=_pick(overrides.capital_gains_inclusion_rate, resolved.capital_gains_inclusion_rate),
        dividend_rates=DividendRates(
            eligible=DividendRate(
                gross_up=_pick(overrides.eligible_gross_up, eligible.gross_up),
                federal_credit=_pick(overrides.eligible_federal_credit, eligible.federal_credit),
                provincial_credit=_pick(overrides.eligible_provincial_credit, eligible.provincial_credit),
            ),
            non_eligible=DividendRate(
                gross_up=_pick(overrides.non_eligible_gross_up, non_eligible.gross_up),
                federal_credit=_pick(overrides.non_eligible_federal_credit, non_eligible.federal_credit),
                provincial_credit=_pick(overrides.non_eligible_provincial_credit, non_eligible.provincial_credit),
            ),
        ),
        oas_clawback_threshold=_pick(overrides.oas_clawback_threshold, resolved.oas_clawback_threshold),
    )


def resolve_assumptions(
    base: Assumptions,
    year: int,
    cumulative_factor: float,
    overrides: dict[int, AssumptionOverrides] | None = None,
) -> Assumptions:
    """Return the assumptions in force for ``year``.

    Dollar thresholds are multiplied by ``cumulative_factor`` and rounded to whole
    dollars (the TFSA limit to the nearest $500); rates are left alone. The year's
    entry in ``overrides`` then replaces individual fields. ``base`` is never mutated.
    """
    factor = cumulative_factor if base.auto_index else 1.0
    resolved = replace(
        base,
        federal_brackets=_index_brackets(base.federal_brackets, factor),
        provincial_brackets=_index_brackets(base.provincial_brackets, factor),
        federal_bpa=_index(base.federal_bpa, factor),
        provincial_bpa=_index(base.provincial_bpa, factor),
        federal_employment_amount=_index(base.federal_employment_amount, factor),
        cpp=replace(
            base.cpp,
            basic_exemption=_index(base.cpp.basic_exemption, factor),
            ympe=_index(base.cpp.ympe, factor),
            yampe=_index(base.cpp.yampe, factor),
        ),
        ei=replace(base.ei, max_insurable_earnings=_index(base.ei.max_insurable_earnings, factor)),
        rrsp_limit=_index(base.rrsp_limit, factor),
        tfsa_annual_limit=_index(base.tfsa_annual_limit, factor, TFSA_ROUNDING_INCREMENT),
        fhsa_annual_limit=_index(base.fhsa_annual_limit, factor),
        fhsa_lifetime_limit=_index(base.fhsa_lifetime_limit, factor),
        oas_clawback_threshold=_index(base.oas_clawback_threshold, factor),
        capital_gains_tier_threshold=_index(base.capital_gains_tier_threshold, factor),
    )

    year_overrides = (overrides or {}).get(year)
    if year_overrides is not None:
        logger.debug("applying assumption overrides for %s", year)
        resolved = _apply_overrides(resolved, year_overrides)
    return resolved
