"""What-if adjustments: a pure scenario-to-scenario transform."""

from __future__ import annotations

import copy
from dataclasses import dataclass, fields
import logging
from typing import Any

from .assumptions import round_half_up
from .schema import INVESTED_ACCOUNTS, Scenario, SchemaError, TaxBracket, YearData, _number, _optional

logger = logging.getLogger(__name__)

CONTRIBUTION_STRATEGIES = ("unchanged", "max_rrsp", "max_tfsa")

_MULTIPLIERS = (
    "income_scale",
    "employment_scale",
    "dividend_scale",
    "interest_scale",
    "capital_gains_scale",
    "contribution_scale",
    "rrsp_contribution_scale",
    "tfsa_contribution_scale",
)

_INCOME_FIELDS = (
    "employment_income",
    "self_employment_income",
    "eligible_dividends",
    "non_eligible_dividends",
    "interest_income",
    "capital_gains_realized",
    "other_taxable_income",
)

_CONTRIBUTION_FIELDS = (
    "rrsp_contribution",
    "rrsp_deduction_claimed",
    "tfsa_contribution",
    "fhsa_contribution",
    "fhsa_deduction_claimed",
    "non_reg_contribution",
    "savings_deposit",
)


@dataclass(slots=True, frozen=True)
class WhatIfAdjustments:
    inflation_adj: float = 0.0
    equity_return_adj: float = 0.0
    fixed_income_return_adj: float = 0.0
    cash_return_adj: float = 0.0
    savings_return_adj: float = 0.0
    federal_bracket_shift: float = 0.0
    provincial_bracket_shift: float = 0.0
    income_scale: float = 1.0
    employment_scale: float = 1.0
    dividend_scale: float = 1.0
    interest_scale: float = 1.0
    capital_gains_scale: float = 1.0
    contribution_scale: float = 1.0
    rrsp_contribution_scale: float = 1.0
    tfsa_contribution_scale: float = 1.0
    contribution_strategy: str = "unchanged"
    equity_allocation: float | None = None
    capital_gains_inclusion_rate: float | None = None
    cpp_start_age: int | None = None
    oas_start_age: int | None = None
    rrsp_withdrawal_delta: float = 0.0
    oas_threshold_delta: float = 0.0

    @property
    def is_neutral(self) -> bool:
        return self == WhatIfAdjustments()

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "what_if") -> "WhatIfAdjustments":
        known = {item.name for item in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise SchemaError(f"{path}.{unknown[0]}: unknown adjustment")
        strategy = str(_optional(data, "contribution_strategy", "unchanged"))
        if strategy not in CONTRIBUTION_STRATEGIES:
            expected = ", ".join(CONTRIBUTION_STRATEGIES)
            raise SchemaError(f"{path}.contribution_strategy: '{strategy}' is not valid; expected one of [{expected}]")

        values: dict[str, Any] = {"contribution_strategy": strategy}
        for item in fields(cls):
            if item.name == "contribution_strategy":
                continue
            if item.name in ("cpp_start_age", "oas_start_age"):
                raw = _optional(data, item.name)
                values[item.name] = int(raw) if raw is not None else None
            elif item.default is None:
                values[item.name] = None if data.get(item.name) is None else _number(data, item.name, path)
            else:
                values[item.name] = _number(data, item.name, path, item.default)
        return cls(**values)


def _shift_brackets(brackets: list[TaxBracket], shift: float) -> list[TaxBracket]:
    multiplier = 1.0 + shift
    return [
        TaxBracket(
            min=round_half_up(bracket.min * multiplier),
            max=None if bracket.max is None else round_half_up(bracket.max * multiplier),
            rate=bracket.rate,
        )
        for bracket in brackets
    ]


def _apply_macro(scenario: Scenario, adj: WhatIfAdjustments) -> None:
    assumptions = scenario.assumptions
    assumptions.inflation_rate += adj.inflation_adj
    returns = assumptions.asset_returns
    returns.equity += adj.equity_return_adj
    returns.fixed_income += adj.fixed_income_return_adj
    returns.cash += adj.cash_return_adj
    returns.savings += adj.savings_return_adj


def _apply_bracket_shifts(scenario: Scenario, adj: WhatIfAdjustments) -> None:
    assumptions = scenario.assumptions
    if adj.federal_bracket_shift != 0:
        factor = 1.0 + adj.federal_bracket_shift
        assumptions.federal_brackets = _shift_brackets(assumptions.federal_brackets, adj.federal_bracket_shift)
        assumptions.federal_bpa = round_half_up(assumptions.federal_bpa * factor)
        for overrides in scenario.assumption_overrides.values():
            if overrides.federal_brackets is not None:
                overrides.federal_brackets = _shift_brackets(overrides.federal_brackets, adj.federal_bracket_shift)
            if overrides.federal_bpa is not None:
                overrides.federal_bpa = round_half_up(overrides.federal_bpa * factor)
    if adj.provincial_bracket_shift != 0:
        factor = 1.0 + adj.provincial_bracket_shift
        assumptions.provincial_brackets = _shift_brackets(
            assumptions.provincial_brackets, adj.provincial_bracket_shift
        )
        assumptions.provincial_bpa = round_half_up(assumptions.provincial_bpa * factor)
        for overrides in scenario.assumption_overrides.values():
            if overrides.provincial_brackets is not None:
                overrides.provincial_brackets = _shift_brackets(
                    overrides.provincial_brackets, adj.provincial_bracket_shift
                )
            if overrides.provincial_bpa is not None:
                overrides.provincial_bpa = round_half_up(overrides.provincial_bpa * factor)


def _scale(yd: YearData, names: tuple[str, ...], factor: float) -> None:
    if factor == 1.0:
        return
    for name in names:
        setattr(yd, name, getattr(yd, name) * factor)


def _apply_scaling(yd: YearData, adj: WhatIfAdjustments) -> None:
    _scale(yd, _INCOME_FIELDS, adj.income_scale)
    _scale(yd, ("employment_income",), adj.employment_scale)
    _scale(yd, ("eligible_dividends", "non_eligible_dividends"), adj.dividend_scale)
    _scale(yd, ("interest_income",), adj.interest_scale)
    _scale(yd, ("capital_gains_realized",), adj.capital_gains_scale)
    _scale(yd, _CONTRIBUTION_FIELDS, adj.contribution_scale)
    _scale(yd, ("rrsp_contribution", "rrsp_deduction_claimed"), adj.rrsp_contribution_scale)
    _scale(yd, ("tfsa_contribution",), adj.tfsa_contribution_scale)


def _apply_strategy(yd: YearData, strategy: str) -> None:
    """Redirect registered contributions; the total contributed is unchanged."""
    if strategy == "max_rrsp":
        moved = yd.tfsa_contribution + yd.fhsa_contribution
        yd.rrsp_contribution += moved
        yd.rrsp_deduction_claimed += moved
        yd.tfsa_contribution = 0.0
        yd.fhsa_contribution = 0.0
        yd.fhsa_deduction_claimed = 0.0
    elif strategy == "max_tfsa":
        yd.tfsa_contribution += yd.rrsp_contribution + yd.fhsa_contribution
        yd.rrsp_contribution = 0.0
        yd.rrsp_deduction_claimed = 0.0
        yd.fhsa_contribution = 0.0
        yd.fhsa_deduction_claimed = 0.0


def _apply_allocation(yd: YearData, equity: float) -> None:
    equity = min(1.0, max(0.0, equity))
    for account in INVESTED_ACCOUNTS:
        setattr(yd, f"{account}_equity_pct", equity)
        setattr(yd, f"{account}_fixed_pct", 1.0 - equity)
        setattr(yd, f"{account}_cash_pct", 0.0)


def _apply_policy(scenario: Scenario, adj: WhatIfAdjustments) -> None:
    assumptions = scenario.assumptions
    if adj.capital_gains_inclusion_rate is not None:
        assumptions.capital_gains_inclusion_rate = adj.capital_gains_inclusion_rate
        for overrides in scenario.assumption_overrides.values():
            overrides.capital_gains_inclusion_rate = None
    if adj.cpp_start_age is not None:
        assumptions.retirement.cpp_benefit.start_age = adj.cpp_start_age
    if adj.oas_start_age is not None:
        assumptions.retirement.oas_benefit.start_age = adj.oas_start_age


def _apply_flat_deltas(scenario: Scenario, adj: WhatIfAdjustments) -> None:
    if adj.rrsp_withdrawal_delta != 0:
        for yd in scenario.years:
            yd.rrsp_withdrawal = max(0.0, yd.rrsp_withdrawal + adj.rrsp_withdrawal_delta)
    if adj.oas_threshold_delta != 0:
        assumptions = scenario.assumptions
        assumptions.oas_clawback_threshold = max(0.0, assumptions.oas_clawback_threshold + adj.oas_threshold_delta)
        for overrides in scenario.assumption_overrides.values():
            if overrides.oas_clawback_threshold is not None:
                overrides.oas_clawback_threshold = max(0.0, overrides.oas_clawback_threshold + adj.oas_threshold_delta)


def apply_what_if_adjustments(scenario: Scenario, adjustments: WhatIfAdjustments) -> Scenario:
    """Return an adjusted copy of ``scenario``; neutral adjustments return it unchanged."""
    if adjustments.is_neutral:
        return scenario
    logger.debug("applying what-if adjustments to scenario %s", scenario.id)
    adjusted = copy.deepcopy(scenario)
    _apply_macro(adjusted, adjustments)
    _apply_bracket_shifts(adjusted, adjustments)
    for yd in adjusted.years:
        _apply_scaling(yd, adjustments)
        _apply_strategy(yd, adjustments.contribution_strategy)
        if adjustments.equity_allocation is not None:
            _apply_allocation(yd, adjustments.equity_allocation)
    _apply_policy(adjusted, adjustments)
    _apply_flat_deltas(adjusted, adjustments)
    return adjusted
