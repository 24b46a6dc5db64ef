"""Batch comparisons: equity-return sensitivity and withdrawal sequencing."""

from __future__ import annotations

import copy
from dataclasses import dataclass, replace
import logging

from .accounts import AccountBalances, seed_state
from .engine import ComputedScenario, compute, next_inflation_factor, project_year
from .schema import Scenario, YearData

logger = logging.getLogger(__name__)

DEFAULT_EQUITY_OFFSETS = (-0.04, -0.02, 0.0, 0.02, 0.04)

_WITHDRAWAL_FIELDS = {
    "rrsp": "rrsp_withdrawal",
    "tfsa": "tfsa_withdrawal",
    "non_reg": "non_reg_withdrawal",
}

WITHDRAWAL_ORDERS: dict[str, tuple[str, ...]] = {
    "rrif_first": ("rrsp", "non_reg", "tfsa"),
    "non_reg_first": ("non_reg", "rrsp", "tfsa"),
    "tfsa_first": ("tfsa", "non_reg", "rrsp"),
    "equal_split": (),
}


@dataclass(slots=True, frozen=True)
class SensitivityResult:
    label: str
    equity_offset: float
    final_net_worth: float
    final_real_net_worth: float
    lifetime_after_tax: float
    lifetime_tax: float
    yearly_net_worth: tuple[float, ...]


@dataclass(slots=True, frozen=True)
class SensitivityAnalysis:
    base: SensitivityResult
    scenarios: tuple[SensitivityResult, ...]


@dataclass(slots=True, frozen=True)
class WithdrawalStrategyResult:
    name: str
    order: tuple[str, ...]
    lifetime_tax: float
    lifetime_after_tax: float
    final_net_worth: float
    avg_tax_rate: float
    yearly_tax: tuple[float, ...]
    yearly_net_worth: tuple[float, ...]
    shortfall: float


def _offset_label(offset: float) -> str:
    if offset == 0:
        return "Base"
    return f"{offset * 100:+.0f}%"


def _final(result: ComputedScenario) -> tuple[float, float]:
    if not result.years:
        return 0.0, 0.0
    last = result.years[-1]
    return last.ledger.net_worth, last.real.net_worth


def compute_sensitivity(
    scenario: Scenario,
    offsets: tuple[float, ...] = DEFAULT_EQUITY_OFFSETS,
) -> SensitivityAnalysis:
    """Recompute the scenario with the equity return shifted by each offset."""
    results: list[SensitivityResult] = []
    for offset in offsets:
        variant = copy.deepcopy(scenario)
        variant.assumptions.asset_returns.equity += offset
        computed = compute(variant)
        final_nominal, final_real = _final(computed)
        results.append(
            SensitivityResult(
                label=_offset_label(offset),
                equity_offset=offset,
                final_net_worth=final_nominal,
                final_real_net_worth=final_real,
                lifetime_after_tax=computed.analytics.lifetime_after_tax_income,
                lifetime_tax=computed.analytics.lifetime_total_tax,
                yearly_net_worth=computed.analytics.net_worth,
            )
        )
    base = next((item for item in results if item.equity_offset == 0), results[len(results) // 2])
    return SensitivityAnalysis(base=base, scenarios=tuple(results))


def _draws(yd: YearData, opening: AccountBalances, target: float, order: tuple[str, ...]) -> tuple[dict[str, float], float]:
    """Split ``target`` across accounts, never drawing more than an account holds."""
    available = {
        "rrsp": max(0.0, opening.rrsp + yd.rrsp_contribution),
        "tfsa": max(0.0, opening.tfsa + yd.tfsa_contribution),
        "non_reg": max(0.0, opening.non_reg + yd.non_reg_contribution),
    }
    draws = {account: 0.0 for account in _WITHDRAWAL_FIELDS}
    remaining = target
    if not order:
        share = target / len(draws)
        for account in draws:
            draws[account] = min(share, available[account])
            remaining -= draws[account]
        return draws, max(0.0, remaining)

    for account in order:
        if remaining <= 0:
            break
        amount = min(available[account], remaining)
        draws[account] = amount
        remaining -= amount
    return draws, max(0.0, remaining)


def _sequenced_scenario(scenario: Scenario, target: float, start_index: int, order: tuple[str, ...]) -> tuple[Scenario, float]:
    variant = copy.deepcopy(scenario)
    variant.scheduled_items = []
    state = seed_state(variant)
    shortfall = 0.0
    years: list[YearData] = []
    for idx, yd in enumerate(variant.years):
        if idx >= start_index:
            cleared = replace(yd, rrsp_withdrawal=0.0, tfsa_withdrawal=0.0, non_reg_withdrawal=0.0)
            draws, missing = _draws(cleared, state.balances, target, order)
            yd = replace(cleared, **{_WITHDRAWAL_FIELDS[account]: amount for account, amount in draws.items()})
            shortfall += missing
        factor = next_inflation_factor(variant, idx, yd, state)
        _, state = project_year(variant, yd, state, factor)
        years.append(yd)
    variant.years = years
    return variant, shortfall


def compute_withdrawal_strategies(
    scenario: Scenario,
    annual_target: float,
    start_index: int = 0,
) -> tuple[WithdrawalStrategyResult, ...]:
    """Compare drawing ``annual_target`` a year under each account ordering.

    Scheduled items are dropped so the strategy alone decides withdrawals.
    """
    if annual_target <= 0:
        return ()
    results: list[WithdrawalStrategyResult] = []
    for name, order in WITHDRAWAL_ORDERS.items():
        variant, shortfall = _sequenced_scenario(scenario, annual_target, start_index, order)
        computed = compute(variant)
        if shortfall > 0:
            logger.debug("withdrawal strategy %s left %.2f unfunded", name, shortfall)
        results.append(
            WithdrawalStrategyResult(
                name=name,
                order=order,
                lifetime_tax=computed.analytics.lifetime_total_tax,
                lifetime_after_tax=computed.analytics.lifetime_after_tax_income,
                final_net_worth=_final(computed)[0],
                avg_tax_rate=computed.analytics.lifetime_avg_tax_rate,
                yearly_tax=tuple(item.tax.total_income_tax for item in computed.years),
                yearly_net_worth=computed.analytics.net_worth,
                shortfall=shortfall,
            )
        )
    return tuple(results)
