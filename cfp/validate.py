"""Structural scenario validation and per-year business-rule warnings."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from .accounts import CarryForwardState, fhsa_annual_room, rrsp_room_grant, tfsa_room_grant
from .schema import (
    ACCOUNTS,
    AMOUNT_TYPES,
    FHSA_DISPOSITIONS,
    GROWTH_TYPES,
    INVESTED_ACCOUNTS,
    Assumptions,
    CapReference,
    Comparator,
    ConditionField,
    Scenario,
    ScenarioError,
    ScheduledField,
    TaxBracket,
    YearData,
)
from .tax_data import PROVINCES, RRSP_OVER_CONTRIBUTION_BUFFER

ALLOCATION_TOLERANCE = 0.005


@dataclass(slots=True)
class ValidationResult:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


@dataclass(slots=True, frozen=True)
class ValidationWarning:
    field: str
    message: str
    severity: str = "warning"


def _check_enum(result: ValidationResult, path: str, value: str, allowed: Iterable[str]) -> None:
    allowed_set = set(allowed)
    if value not in allowed_set:
        expected = ", ".join(sorted(allowed_set))
        result.errors.append(f"{path}: '{value}' is not valid; expected one of [{expected}]")


def _bracket_errors(path: str, brackets: list[TaxBracket]) -> list[str]:
    errors: list[str] = []
    if not brackets:
        return [f"{path}: at least one bracket is required"]
    ordered = sorted(brackets, key=lambda b: b.min)
    for idx, bracket in enumerate(ordered):
        if bracket.min < 0:
            errors.append(f"{path}: bracket minimum {bracket.min:g} must be >= 0")
        if bracket.max is not None and bracket.max <= bracket.min:
            errors.append(f"{path}: bracket {bracket.min:g}-{bracket.max:g} must have max > min")
        if idx + 1 < len(ordered):
            following = ordered[idx + 1]
            if following.min == bracket.min:
                errors.append(f"{path}: two brackets start at {bracket.min:g}")
            elif bracket.max is None:
                errors.append(f"{path}: only the top bracket may be open-ended")
            elif bracket.max > following.min:
                errors.append(f"{path}: bracket {bracket.min:g}-{bracket.max:g} overlaps the next bracket")
    return errors


def _is_member(enum_cls, value) -> bool:
    try:
        enum_cls(value)
    except ValueError:
        return False
    return True


def structural_errors(scenario: Scenario) -> list[str]:
    """Problems that make a scenario impossible to project."""
    errors: list[str] = []
    if not scenario.years:
        errors.append("years: at least one year is required")
    for idx, yd in enumerate(scenario.years[1:], start=1):
        expected = scenario.years[idx - 1].year + 1
        if yd.year != expected:
            errors.append(f"years[{idx}].year: expected {expected}; years must be contiguous and in order")

    assumptions = scenario.assumptions
    errors.extend(_bracket_errors("assumptions.federal_brackets", assumptions.federal_brackets))
    errors.extend(_bracket_errors("assumptions.provincial_brackets", assumptions.provincial_brackets))
    for year, overrides in sorted(scenario.assumption_overrides.items()):
        if overrides.federal_brackets is not None:
            errors.extend(_bracket_errors(f"assumption_overrides.{year}.federal_brackets", overrides.federal_brackets))
        if overrides.provincial_brackets is not None:
            errors.extend(
                _bracket_errors(f"assumption_overrides.{year}.provincial_brackets", overrides.provincial_brackets)
            )

    for idx, item in enumerate(scenario.scheduled_items):
        path = f"scheduled_items[{idx}]"
        if not _is_member(ScheduledField, item.field):
            errors.append(f"{path}.field: '{item.field}' is not a schedulable field")
        if item.amount_reference is not None and not _is_member(ConditionField, item.amount_reference):
            errors.append(f"{path}.amount_reference: '{item.amount_reference}' is not a known quantity")
        if item.cap_reference is not None and not _is_member(CapReference, item.cap_reference):
            errors.append(f"{path}.cap_reference: '{item.cap_reference}' is not a known cap")
        if item.amount_type == "percentage" and item.amount_reference is None:
            errors.append(f"{path}.amount_reference: required when amount_type is 'percentage'")
        for cidx, condition in enumerate(item.conditions):
            cpath = f"{path}.conditions[{cidx}]"
            if not _is_member(ConditionField, condition.field):
                errors.append(f"{cpath}.field: '{condition.field}' is not a known quantity")
            if not _is_member(Comparator, condition.operator):
                errors.append(f"{cpath}.operator: '{condition.operator}' is not a known comparator")
            elif condition.operator == Comparator.BETWEEN and condition.value2 is not None and condition.value2 < condition.value:
                errors.append(f"{cpath}.value2: must be >= value for 'between'")
    return errors


def check_structure(scenario: Scenario) -> None:
    errors = structural_errors(scenario)
    if errors:
        raise ScenarioError("; ".join(errors))


def validate_scenario(scenario: Scenario) -> ValidationResult:
    result = ValidationResult()
    result.errors.extend(structural_errors(scenario))
    assumptions = scenario.assumptions

    _check_enum(result, "assumptions.province", assumptions.province, PROVINCES)
    _check_enum(result, "assumptions.fhsa.disposition", assumptions.fhsa.disposition, FHSA_DISPOSITIONS)
    if assumptions.fhsa.disposition != "active" and assumptions.fhsa.disposition_year is None:
        result.errors.append("assumptions.fhsa.disposition_year: required when disposition is not 'active'")
    if assumptions.inflation_rate <= -1.0:
        result.errors.append("assumptions.inflation_rate: must be > -1")
    if scenario.years and scenario.years[0].year != assumptions.start_year:
        result.warnings.append(
            f"years[0].year: {scenario.years[0].year} does not match assumptions.start_year {assumptions.start_year}"
        )
    for name, benefit in (("cpp_benefit", assumptions.retirement.cpp_benefit), ("oas_benefit", assumptions.retirement.oas_benefit)):
        if benefit.enabled and assumptions.birth_year is None:
            result.warnings.append(f"assumptions.retirement.{name}: enabled but birth_year is missing; no benefit is paid")

    known_years = {yd.year for yd in scenario.years}
    for year in sorted(scenario.assumption_overrides):
        if year not in known_years:
            result.warnings.append(f"assumption_overrides.{year}: year is outside the projection")

    seen_ids: set[str] = set()
    for idx, item in enumerate(scenario.scheduled_items):
        path = f"scheduled_items[{idx}]"
        _check_enum(result, f"{path}.amount_type", item.amount_type, AMOUNT_TYPES)
        _check_enum(result, f"{path}.growth_type", item.growth_type, GROWTH_TYPES)
        if item.end_year is not None and item.end_year < item.start_year:
            result.errors.append(f"{path}.start_year/{path}.end_year: start_year must be <= end_year")
        if item.amount_min > 0 and item.amount_max > 0 and item.amount_min > item.amount_max:
            result.warnings.append(f"{path}.amount_min: exceeds amount_max; amount_max wins")
        if item.id in seen_ids:
            result.warnings.append(f"{path}.id: duplicate id '{item.id}'")
        seen_ids.add(item.id)

    for idx, liability in enumerate(scenario.liabilities):
        if liability.balance < 0:
            result.errors.append(f"liabilities[{idx}].balance: must be >= 0")
        if liability.interest_rate < 0:
            result.errors.append(f"liabilities[{idx}].interest_rate: must be >= 0")

    if scenario.monte_carlo.num_trials < 1:
        result.errors.append("monte_carlo.num_trials: must be >= 1")
    return result


def _withdrawal_checks(yd: YearData, state: CarryForwardState) -> list[ValidationWarning]:
    warnings: list[ValidationWarning] = []
    flows = {
        "rrsp": (yd.rrsp_contribution, yd.rrsp_withdrawal, "rrsp_withdrawal"),
        "tfsa": (yd.tfsa_contribution, yd.tfsa_withdrawal, "tfsa_withdrawal"),
        "fhsa": (yd.fhsa_contribution, yd.fhsa_withdrawal, "fhsa_withdrawal"),
        "non_reg": (yd.non_reg_contribution, yd.non_reg_withdrawal, "non_reg_withdrawal"),
        "savings": (yd.savings_deposit, yd.savings_withdrawal, "savings_withdrawal"),
    }
    for account in ACCOUNTS:
        contribution, withdrawal, field_name = flows[account]
        available = state.balances.get(account) + contribution
        if withdrawal > available + 0.01:
            warnings.append(
                ValidationWarning(
                    field_name,
                    f"Withdrawal ${withdrawal:,.0f} exceeds available balance ${available:,.0f}",
                )
            )
    return warnings


def validate_year(
    yd: YearData,
    assumptions: Assumptions,
    state: CarryForwardState,
    is_rrif: bool,
) -> tuple[ValidationWarning, ...]:
    """Check one effective year against the room and balances it opens with."""
    warnings: list[ValidationWarning] = []

    rrsp_available = state.rrsp_unused_room + rrsp_room_grant(state, assumptions, is_rrif)
    if is_rrif and yd.rrsp_contribution > 0:
        warnings.append(
            ValidationWarning("rrsp_contribution", "RRSP has converted to a RRIF; contributions are not allowed", "error")
        )
    elif yd.rrsp_contribution > rrsp_available + RRSP_OVER_CONTRIBUTION_BUFFER:
        warnings.append(
            ValidationWarning(
                "rrsp_contribution",
                f"RRSP contribution ${yd.rrsp_contribution:,.0f} exceeds available room ${rrsp_available:,.0f} "
                f"plus the ${RRSP_OVER_CONTRIBUTION_BUFFER:,.0f} over-contribution allowance",
                "error",
            )
        )
    elif yd.rrsp_contribution > rrsp_available:
        warnings.append(
            ValidationWarning(
                "rrsp_contribution",
                f"RRSP contribution ${yd.rrsp_contribution:,.0f} exceeds available room ${rrsp_available:,.0f}",
            )
        )

    deductible = state.rrsp_undeducted + yd.rrsp_contribution
    if yd.rrsp_deduction_claimed > deductible + 0.01:
        warnings.append(
            ValidationWarning(
                "rrsp_deduction_claimed",
                f"RRSP deduction ${yd.rrsp_deduction_claimed:,.0f} exceeds contributions available to deduct ${deductible:,.0f}",
                "error",
            )
        )

    tfsa_available = state.tfsa_unused_room + tfsa_room_grant(state, assumptions)
    if yd.tfsa_contribution > tfsa_available:
        warnings.append(
            ValidationWarning(
                "tfsa_contribution",
                f"TFSA contribution ${yd.tfsa_contribution:,.0f} exceeds available room ${tfsa_available:,.0f}",
            )
        )

    if state.fhsa_disposed and yd.fhsa_contribution > 0:
        warnings.append(ValidationWarning("fhsa_contribution", "FHSA has been closed; contributions are not allowed", "error"))
    else:
        fhsa_room = fhsa_annual_room(state, assumptions)
        if yd.fhsa_contribution > fhsa_room:
            warnings.append(
                ValidationWarning(
                    "fhsa_contribution",
                    f"FHSA contribution ${yd.fhsa_contribution:,.0f} exceeds annual room ${fhsa_room:,.0f}",
                    "error",
                )
            )
        if state.fhsa_contrib_lifetime + yd.fhsa_contribution > assumptions.fhsa_lifetime_limit:
            warnings.append(
                ValidationWarning(
                    "fhsa_contribution",
                    f"FHSA lifetime contributions would exceed ${assumptions.fhsa_lifetime_limit:,.0f}",
                    "error",
                )
            )
    if yd.fhsa_deduction_claimed > yd.fhsa_contribution + 0.01:
        warnings.append(
            ValidationWarning(
                "fhsa_deduction_claimed",
                f"FHSA deduction ${yd.fhsa_deduction_claimed:,.0f} exceeds this year's contribution ${yd.fhsa_contribution:,.0f}",
                "error",
            )
        )

    loss_available = state.capital_loss_cf + yd.capital_losses_realized
    if yd.capital_loss_applied > loss_available + 0.01:
        warnings.append(
            ValidationWarning(
                "capital_loss_applied",
                f"Capital loss applied ${yd.capital_loss_applied:,.0f} exceeds available losses ${loss_available:,.0f}",
                "error",
            )
        )

    warnings.extend(_withdrawal_checks(yd, state))

    for account in INVESTED_ACCOUNTS:
        total = sum(yd.allocation(account))
        if abs(total - 1.0) > ALLOCATION_TOLERANCE:
            warnings.append(
                ValidationWarning(f"{account}_equity_pct", f"{account} allocation sums to {total:.1%}, not 100%")
            )

    for account in ACCOUNTS:
        override = yd.eoy_override(account)
        if override is not None:
            warnings.append(
                ValidationWarning(f"{account}_eoy_override", f"{account} EOY balance overridden to ${override:,.0f}")
            )
    return tuple(warnings)
