"""Core year-by-year deterministic projection engine."""

from __future__ import annotations

from dataclasses import dataclass, replace
import logging
from typing import Mapping

from .accounts import (
    ACBResult,
    CarryForwardState,
    LedgerResult,
    RoomSnapshot,
    advance_carry_forward,
    amortize_liability,
    build_ledger,
    compute_accounts,
    seed_state,
    track_acb,
)
from .analytics import ScenarioAnalytics, compute_analytics
from .assumptions import effective_inflation_rate, resolve_assumptions
from .retirement import RetirementResult, compute_retirement
from .scheduling import PriorPass, layer_scheduled, needs_second_pass, resolve_scheduled_fields
from .schema import Assumptions, AssetReturns, Scenario, ScenarioError, ScheduledField, YearData
from .tax import CPPResult, EIResult, TaxResult, YearIncomeSummary, compute_cpp, compute_ei, compute_total_tax, gross_income_of
from .validate import ValidationWarning, check_structure, validate_year

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class Waterfall:
    gross_income: float
    rrsp_deduction: float
    fhsa_deduction: float
    cpp_se_deduction: float
    net_taxable_income: float
    federal_tax: float
    provincial_tax: float
    oas_clawback: float
    total_income_tax: float
    cpp_contributions: float
    ei_premiums: float
    after_tax_income: float
    contributions_total: float
    withdrawals_total: float
    liability_payments: float
    net_cash_flow: float


@dataclass(slots=True, frozen=True)
class RealValues:
    """Nominal figures deflated to start-year dollars."""

    gross_income: float
    after_tax_income: float
    net_cash_flow: float
    net_worth: float


@dataclass(slots=True, frozen=True)
class ComputedYear:
    year: int
    inflation_factor: float
    assumptions: Assumptions
    year_data: YearData
    scheduled_fields: Mapping[ScheduledField, float]
    cpp: CPPResult
    ei: EIResult
    tax: TaxResult
    ledger: LedgerResult
    acb: ACBResult
    retirement: RetirementResult
    waterfall: Waterfall
    room: RoomSnapshot
    real: RealValues
    warnings: tuple[ValidationWarning, ...]

    @property
    def pnl(self) -> dict[str, float]:
        """Investment growth by account for the year."""
        return self.ledger.growth_by_account


@dataclass(slots=True, frozen=True)
class ComputedScenario:
    scenario_id: str
    years: tuple[ComputedYear, ...]
    analytics: ScenarioAnalytics
    passes: int

    def year(self, year: int) -> ComputedYear:
        for item in self.years:
            if item.year == year:
                return item
        raise KeyError(year)


def _year_returns(
    assumptions: Assumptions,
    yd: YearData,
    annual_return_overrides: Mapping[int, AssetReturns] | None,
) -> AssetReturns:
    base = assumptions.asset_returns
    sampled = (annual_return_overrides or {}).get(yd.year)
    if sampled is not None:
        base = sampled
    return AssetReturns(
        equity=base.equity if yd.equity_return_override is None else yd.equity_return_override,
        fixed_income=base.fixed_income if yd.fixed_income_return_override is None else yd.fixed_income_return_override,
        cash=base.cash if yd.cash_return_override is None else yd.cash_return_override,
        savings=base.savings if yd.savings_return_override is None else yd.savings_return_override,
    )


def _apply_fhsa_disposition(
    yd: YearData,
    assumptions: Assumptions,
    state: CarryForwardState,
) -> tuple[YearData, dict[str, float], bool, float]:
    """Return (year data, transfers, disposed flag, taxable FHSA amount)."""
    settings = assumptions.fhsa
    if state.fhsa_disposed:
        return yd, {}, True, 0.0
    if settings.disposition == "active" or settings.disposition_year != yd.year:
        return yd, {}, False, 0.0

    balance = max(0.0, state.balances.fhsa + yd.fhsa_contribution)
    logger.debug("FHSA %s in %s: moving %.2f", settings.disposition, yd.year, balance)
    if settings.disposition == "transfer_rrsp":
        return replace(yd, fhsa_withdrawal=0.0), {"fhsa": -balance, "rrsp": balance}, True, 0.0
    taxable = balance if settings.disposition == "taxable_close" else 0.0
    return replace(yd, fhsa_withdrawal=balance), {}, True, taxable


def _apply_rrif_minimum(yd: YearData, retirement: RetirementResult) -> YearData:
    if not retirement.is_rrif or yd.rrsp_withdrawal >= retirement.rrif_minimum:
        return yd
    logger.debug("RRIF minimum raises %s withdrawal to %.2f", yd.year, retirement.rrif_minimum)
    return replace(yd, rrsp_withdrawal=retirement.rrif_minimum)


def _apply_computed_gain(yd: YearData, acb: ACBResult) -> YearData:
    if acb.proceeds <= 0:
        return yd
    if acb.computed_gain >= 0:
        return replace(yd, capital_gains_realized=acb.computed_gain)
    return replace(yd, capital_losses_realized=yd.capital_losses_realized - acb.computed_gain)


def _income_summary(
    yd: YearData,
    retirement: RetirementResult,
    room: RoomSnapshot,
    taxable_fhsa: float,
) -> YearIncomeSummary:
    return YearIncomeSummary(
        year=yd.year,
        employment_income=yd.employment_income,
        self_employment_income=yd.self_employment_income,
        eligible_dividends=yd.eligible_dividends,
        non_eligible_dividends=yd.non_eligible_dividends,
        interest_income=yd.interest_income,
        capital_gains_realized=yd.capital_gains_realized,
        capital_loss_applied=room.capital_loss_applied,
        other_taxable_income=yd.other_taxable_income,
        registered_withdrawals=max(0.0, yd.rrsp_withdrawal) + taxable_fhsa,
        cpp_benefit_income=retirement.cpp_income,
        oas_income=retirement.oas_income,
        rrsp_deduction=yd.rrsp_deduction_claimed,
        fhsa_deduction=yd.fhsa_deduction_claimed,
        charitable_donations=yd.charitable_donations,
    )


def _build_waterfall(
    yd: YearData,
    summary: YearIncomeSummary,
    cpp: CPPResult,
    ei: EIResult,
    tax: TaxResult,
    ledger: LedgerResult,
    taxable_fhsa: float,
) -> Waterfall:
    gross = gross_income_of(summary)
    after_tax = gross - tax.total_income_tax - cpp.total - ei.total
    contributions = sum(
        max(0.0, value)
        for value in (
            yd.rrsp_contribution,
            yd.tfsa_contribution,
            yd.fhsa_contribution,
            yd.non_reg_contribution,
            yd.savings_deposit,
        )
    )
    # RRSP and taxable FHSA withdrawals already sit in gross income.
    withdrawals = (
        max(0.0, yd.tfsa_withdrawal)
        + max(0.0, yd.fhsa_withdrawal - taxable_fhsa)
        + max(0.0, yd.non_reg_withdrawal)
        + max(0.0, yd.savings_withdrawal)
    )
    payments = sum(item.payment for item in ledger.liabilities)
    return Waterfall(
        gross_income=gross,
        rrsp_deduction=max(0.0, summary.rrsp_deduction),
        fhsa_deduction=max(0.0, summary.fhsa_deduction),
        cpp_se_deduction=cpp.se_deductible_half,
        net_taxable_income=tax.net_taxable_income,
        federal_tax=tax.federal_tax,
        provincial_tax=tax.provincial_tax,
        oas_clawback=tax.oas_clawback,
        total_income_tax=tax.total_income_tax,
        cpp_contributions=cpp.total,
        ei_premiums=ei.total,
        after_tax_income=after_tax,
        contributions_total=contributions,
        withdrawals_total=withdrawals,
        liability_payments=payments,
        net_cash_flow=after_tax - contributions + withdrawals - payments,
    )


def _real_values(waterfall: Waterfall, ledger: LedgerResult, factor: float) -> RealValues:
    deflator = factor if factor > 0 else 1.0
    return RealValues(
        gross_income=waterfall.gross_income / deflator,
        after_tax_income=waterfall.after_tax_income / deflator,
        net_cash_flow=waterfall.net_cash_flow / deflator,
        net_worth=ledger.net_worth / deflator,
    )


def project_year(
    scenario: Scenario,
    yd: YearData,
    state: CarryForwardState,
    inflation_factor: float,
    prior: PriorPass | None = None,
    annual_return_overrides: Mapping[int, AssetReturns] | None = None,
) -> tuple[ComputedYear, CarryForwardState]:
    """Project a single year from its entering carry-forward state."""
    year = yd.year
    assumptions = resolve_assumptions(scenario.assumptions, year, inflation_factor, scenario.assumption_overrides)
    retirement = compute_retirement(assumptions, year, state.balances.rrsp, scenario.assumptions.inflation_rate)

    scheduled = resolve_scheduled_fields(
        scenario.scheduled_items,
        year,
        state,
        assumptions,
        retirement.is_rrif,
        prior,
        scenario.assumptions.inflation_rate,
    )
    effective = layer_scheduled(yd, scheduled)
    effective, transfers, fhsa_disposed, taxable_fhsa = _apply_fhsa_disposition(effective, assumptions, state)
    effective = _apply_rrif_minimum(effective, retirement)

    returns = _year_returns(assumptions, effective, annual_return_overrides)
    accounts = compute_accounts(effective, state.balances, returns, transfers)
    non_reg = next(item for item in accounts if item.account == "non_reg")
    acb = track_acb(state.non_reg_acb, non_reg.contributions, non_reg.withdrawals, non_reg.eoy)
    if scenario.acb_config.auto_compute_gains:
        effective = _apply_computed_gain(effective, acb)

    liabilities = tuple(
        amortize_liability(liability, balance)
        for liability, balance in zip(scenario.liabilities, state.liability_balances)
    )
    ledger = build_ledger(accounts, liabilities)

    warnings = validate_year(effective, assumptions, state, retirement.is_rrif)
    next_state, room = advance_carry_forward(
        state, effective, assumptions, ledger, acb, retirement.is_rrif, fhsa_disposed, inflation_factor
    )

    summary = _income_summary(effective, retirement, room, taxable_fhsa)
    cpp = compute_cpp(effective.employment_income, effective.self_employment_income, assumptions.cpp)
    ei = compute_ei(effective.employment_income, effective.self_employment_income, assumptions.ei)
    tax = compute_total_tax(summary, assumptions, cpp, ei)
    waterfall = _build_waterfall(effective, summary, cpp, ei, tax, ledger, taxable_fhsa)

    computed = ComputedYear(
        year=year,
        inflation_factor=inflation_factor,
        assumptions=assumptions,
        year_data=effective,
        scheduled_fields=dict(scheduled),
        cpp=cpp,
        ei=ei,
        tax=tax,
        ledger=ledger,
        acb=acb,
        retirement=retirement,
        waterfall=waterfall,
        room=room,
        real=_real_values(waterfall, ledger, inflation_factor),
        warnings=warnings,
    )
    return computed, next_state


def next_inflation_factor(scenario: Scenario, index: int, yd: YearData, state: CarryForwardState) -> float:
    """Cumulative inflation factor for the ``index``-th year; the first year is 1."""
    if index == 0:
        return 1.0
    rate = effective_inflation_rate(scenario.assumptions, yd, scenario.assumption_overrides.get(yd.year))
    return state.inflation_factor * (1.0 + rate)


def project_years(
    scenario: Scenario,
    prior: PriorPass | None = None,
    annual_return_overrides: Mapping[int, AssetReturns] | None = None,
) -> tuple[ComputedYear, ...]:
    """Run one full pass over every year, threading carry-forward state."""
    state = seed_state(scenario)
    computed: list[ComputedYear] = []
    for idx, yd in enumerate(scenario.years):
        factor = next_inflation_factor(scenario, idx, yd, state)
        try:
            result, state = project_year(scenario, yd, state, factor, prior, annual_return_overrides)
        except ScenarioError:
            raise
        except (ArithmeticError, ValueError, KeyError, TypeError) as exc:
            raise ScenarioError(f"years[{idx}] ({yd.year}): projection failed: {exc}") from exc
        computed.append(result)
    return tuple(computed)


def compute(
    scenario: Scenario,
    annual_return_overrides: Mapping[int, AssetReturns] | None = None,
) -> ComputedScenario:
    """Project a whole scenario.

    A second pass runs only when some scheduled item depends on computed results;
    that pass sees a frozen copy of the first. Either every year is returned or a
    ``ScenarioError`` is raised.
    """
    check_structure(scenario)
    first = project_years(scenario, None, annual_return_overrides)
    passes = 1
    years = first
    if needs_second_pass(scenario.scheduled_items):
        logger.debug("scenario %s: running second pass for context-dependent schedules", scenario.id)
        years = project_years(scenario, PriorPass.from_years(first), annual_return_overrides)
        passes = 2
    return ComputedScenario(
        scenario_id=scenario.id,
        years=years,
        analytics=compute_analytics(years),
        passes=passes,
    )
