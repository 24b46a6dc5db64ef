"""Tax computation helpers for federal/provincial income tax, CPP and EI."""

from __future__ import annotations

from dataclasses import dataclass

from .schema import Assumptions, CPPParams, EIParams, TaxBracket
from .tax_data import (
    DONATION_FEDERAL_HIGH_RATE,
    DONATION_LOW_TIER,
    OAS_CLAWBACK_RATE,
    ONTARIO_SURTAX,
    QUEBEC_ABATEMENT_RATE,
)


@dataclass(slots=True)
class YearIncomeSummary:
    year: int
    employment_income: float = 0.0
    self_employment_income: float = 0.0
    eligible_dividends: float = 0.0
    non_eligible_dividends: float = 0.0
    interest_income: float = 0.0
    capital_gains_realized: float = 0.0
    capital_loss_applied: float = 0.0
    other_taxable_income: float = 0.0
    registered_withdrawals: float = 0.0
    cpp_benefit_income: float = 0.0
    oas_income: float = 0.0
    rrsp_deduction: float = 0.0
    fhsa_deduction: float = 0.0
    charitable_donations: float = 0.0


@dataclass(slots=True, frozen=True)
class CPPResult:
    employee_cpp: float
    employee_cpp2: float
    self_employed_cpp: float
    self_employed_cpp2: float
    total: float
    se_deductible_half: float
    credit_base: float


@dataclass(slots=True, frozen=True)
class EIResult:
    employee_ei: float
    self_employed_ei: float
    total: float


@dataclass(slots=True, frozen=True)
class BracketDetail:
    min: float
    max: float | None
    rate: float
    taxable: float
    tax: float


@dataclass(slots=True, frozen=True)
class TaxResult:
    total_income: float
    net_taxable_income: float
    taxable_capital_gains: float
    grossed_up_dividends: float
    federal_tax_before_credits: float
    federal_credits: float
    federal_dividend_credit: float
    quebec_abatement: float
    federal_tax: float
    provincial_tax_before_credits: float
    provincial_credits: float
    provincial_dividend_credit: float
    ontario_surtax: float
    provincial_tax: float
    oas_clawback: float
    total_income_tax: float
    marginal_federal_rate: float
    marginal_provincial_rate: float
    marginal_combined_rate: float
    average_tax_rate: float
    average_all_in_rate: float
    federal_brackets: tuple[BracketDetail, ...]
    provincial_brackets: tuple[BracketDetail, ...]


def progressive_tax(income: float, brackets: list[TaxBracket]) -> tuple[float, tuple[BracketDetail, ...]]:
    """Return (tax, per-bracket detail) for ``income`` across sorted brackets."""
    detail: list[BracketDetail] = []
    tax = 0.0
    for bracket in brackets:
        taxable = 0.0
        if income > bracket.min:
            upper = income if bracket.max is None else min(income, bracket.max)
            taxable = max(0.0, upper - bracket.min)
        bracket_tax = taxable * bracket.rate
        tax += bracket_tax
        detail.append(BracketDetail(min=bracket.min, max=bracket.max, rate=bracket.rate, taxable=taxable, tax=bracket_tax))
    return max(0.0, tax), tuple(detail)


def lowest_rate(brackets: list[TaxBracket]) -> float:
    if not brackets:
        return 0.0
    return min(brackets, key=lambda b: b.min).rate


def highest_rate(brackets: list[TaxBracket]) -> float:
    if not brackets:
        return 0.0
    return max(brackets, key=lambda b: b.min).rate


def marginal_rate(income: float, brackets: list[TaxBracket]) -> float:
    rate = 0.0
    for bracket in brackets:
        if income >= bracket.min:
            rate = bracket.rate
    return rate


def compute_cpp(employment_income: float, self_employment_income: float, params: CPPParams) -> CPPResult:
    employment = max(0.0, employment_income)
    self_employment = max(0.0, self_employment_income)

    employee_base = max(0.0, min(employment, params.ympe) - params.basic_exemption)
    employee_cpp = employee_base * params.employee_rate
    employee_cpp2 = max(0.0, min(employment, params.yampe) - params.ympe) * params.cpp2_rate

    # Self-employed earnings share the ceilings with any employment earnings.
    se_top = min(employment + self_employment, params.ympe)
    se_base = max(0.0, se_top - max(employment, params.basic_exemption))
    self_employed_cpp = se_base * params.employee_rate * 2.0
    se_top2 = min(employment + self_employment, params.yampe)
    se_base2 = max(0.0, se_top2 - max(employment, params.ympe))
    self_employed_cpp2 = se_base2 * params.cpp2_rate * 2.0

    se_half = (self_employed_cpp + self_employed_cpp2) / 2.0
    total = employee_cpp + employee_cpp2 + self_employed_cpp + self_employed_cpp2
    return CPPResult(
        employee_cpp=employee_cpp,
        employee_cpp2=employee_cpp2,
        self_employed_cpp=self_employed_cpp,
        self_employed_cpp2=self_employed_cpp2,
        total=total,
        se_deductible_half=se_half,
        credit_base=employee_cpp + self_employed_cpp / 2.0,
    )


def compute_ei(employment_income: float, self_employment_income: float, params: EIParams) -> EIResult:
    employment = max(0.0, employment_income)
    employee_ei = min(employment, params.max_insurable_earnings) * params.employee_rate
    self_employed_ei = 0.0
    if params.se_opt_in:
        room = max(0.0, params.max_insurable_earnings - employment)
        self_employed_ei = min(max(0.0, self_employment_income), room) * params.employee_rate
    return EIResult(employee_ei=employee_ei, self_employed_ei=self_employed_ei, total=employee_ei + self_employed_ei)


def taxable_capital_gains(gains: float, loss_applied: float, assumptions: Assumptions) -> float:
    net_gains = max(0.0, gains - max(0.0, loss_applied))
    if not assumptions.capital_gains_tiered:
        return net_gains * assumptions.capital_gains_inclusion_rate
    threshold = max(0.0, assumptions.capital_gains_tier_threshold)
    tier1 = min(net_gains, threshold)
    tier2 = max(0.0, net_gains - threshold)
    return tier1 * assumptions.capital_gains_inclusion_rate + tier2 * assumptions.capital_gains_tier2_rate


def _donation_credit(donations: float, low_rate: float, high_rate: float) -> float:
    if donations <= 0:
        return 0.0
    low = min(donations, DONATION_LOW_TIER)
    return low * low_rate + (donations - low) * high_rate


def ontario_surtax(basic_provincial_tax: float) -> float:
    return sum(rate * max(0.0, basic_provincial_tax - threshold) for threshold, rate in ONTARIO_SURTAX)


def compute_oas_clawback(net_income: float, oas_income: float, threshold: float) -> float:
    if oas_income <= 0:
        return 0.0
    return min(oas_income, max(0.0, (net_income - threshold) * OAS_CLAWBACK_RATE))


def gross_income_of(summary: YearIncomeSummary) -> float:
    """Cash income before gross-up, inclusion or deductions."""
    return sum(
        max(0.0, value)
        for value in (
            summary.employment_income,
            summary.self_employment_income,
            summary.registered_withdrawals,
            summary.cpp_benefit_income,
            summary.oas_income,
            summary.eligible_dividends,
            summary.non_eligible_dividends,
            summary.interest_income,
            summary.capital_gains_realized,
            summary.other_taxable_income,
        )
    )


def compute_total_tax(summary: YearIncomeSummary, assumptions: Assumptions, cpp: CPPResult, ei: EIResult) -> TaxResult:
    rates = assumptions.dividend_rates
    eligible = max(0.0, summary.eligible_dividends)
    non_eligible = max(0.0, summary.non_eligible_dividends)
    grossed_eligible = eligible * (1.0 + rates.eligible.gross_up)
    grossed_non_eligible = non_eligible * (1.0 + rates.non_eligible.gross_up)
    taxable_gains = taxable_capital_gains(summary.capital_gains_realized, summary.capital_loss_applied, assumptions)

    total_income = (
        max(0.0, summary.employment_income)
        + max(0.0, summary.self_employment_income)
        + max(0.0, summary.registered_withdrawals)
        + max(0.0, summary.cpp_benefit_income)
        + max(0.0, summary.oas_income)
        + grossed_eligible
        + grossed_non_eligible
        + max(0.0, summary.interest_income)
        + taxable_gains
        + max(0.0, summary.other_taxable_income)
    )
    deductions = max(0.0, summary.rrsp_deduction) + max(0.0, summary.fhsa_deduction) + cpp.se_deductible_half
    net_taxable = max(0.0, total_income - deductions)

    federal = sorted(assumptions.federal_brackets, key=lambda b: b.min)
    provincial = sorted(assumptions.provincial_brackets, key=lambda b: b.min)
    fed_low = lowest_rate(federal)
    prov_low = lowest_rate(provincial)

    fed_before, fed_detail = progressive_tax(net_taxable, federal)
    employment_amount = min(max(0.0, summary.employment_income), assumptions.federal_employment_amount)
    fed_credits = fed_low * (assumptions.federal_bpa + cpp.credit_base + ei.total + employment_amount)
    fed_credits += _donation_credit(summary.charitable_donations, fed_low, DONATION_FEDERAL_HIGH_RATE)
    fed_div_credit = grossed_eligible * rates.eligible.federal_credit + grossed_non_eligible * rates.non_eligible.federal_credit
    federal_basic = max(0.0, fed_before - fed_credits - fed_div_credit)
    abatement = federal_basic * QUEBEC_ABATEMENT_RATE if assumptions.province == "QC" else 0.0
    federal_tax = federal_basic - abatement

    prov_before, prov_detail = progressive_tax(net_taxable, provincial)
    prov_credits = prov_low * (assumptions.provincial_bpa + cpp.credit_base + ei.total)
    prov_credits += _donation_credit(summary.charitable_donations, prov_low, highest_rate(provincial))
    prov_div_credit = (
        grossed_eligible * rates.eligible.provincial_credit + grossed_non_eligible * rates.non_eligible.provincial_credit
    )
    provincial_basic = max(0.0, prov_before - prov_credits - prov_div_credit)
    surtax = ontario_surtax(provincial_basic) if assumptions.province == "ON" else 0.0
    provincial_tax = provincial_basic + surtax

    clawback = compute_oas_clawback(net_taxable, summary.oas_income, assumptions.oas_clawback_threshold)
    total_tax = federal_tax + provincial_tax + clawback

    marginal_fed = marginal_rate(net_taxable, federal)
    marginal_prov = marginal_rate(net_taxable, provincial)
    gross_income = gross_income_of(summary)
    average_rate = total_tax / gross_income if gross_income > 0 else 0.0
    all_in_rate = (total_tax + cpp.total + ei.total) / gross_income if gross_income > 0 else 0.0

    return TaxResult(
        total_income=total_income,
        net_taxable_income=net_taxable,
        taxable_capital_gains=taxable_gains,
        grossed_up_dividends=grossed_eligible + grossed_non_eligible,
        federal_tax_before_credits=fed_before,
        federal_credits=fed_credits,
        federal_dividend_credit=fed_div_credit,
        quebec_abatement=abatement,
        federal_tax=max(0.0, federal_tax),
        provincial_tax_before_credits=prov_before,
        provincial_credits=prov_credits,
        provincial_dividend_credit=prov_div_credit,
        ontario_surtax=surtax,
        provincial_tax=max(0.0, provincial_tax),
        oas_clawback=clawback,
        total_income_tax=max(0.0, total_tax),
        marginal_federal_rate=marginal_fed,
        marginal_provincial_rate=marginal_prov,
        marginal_combined_rate=marginal_fed + marginal_prov,
        average_tax_rate=average_rate,
        average_all_in_rate=all_in_rate,
        federal_brackets=fed_detail,
        provincial_brackets=prov_detail,
    )
