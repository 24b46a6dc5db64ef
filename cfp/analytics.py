"""Lifetime and cumulative analytics over a computed trajectory."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Sequence

from .schema import ACCOUNTS

if TYPE_CHECKING:
    from .engine import ComputedYear


@dataclass(slots=True, frozen=True)
class ScenarioAnalytics:
    lifetime_gross_income: float
    lifetime_total_tax: float
    lifetime_cpp_ei: float
    lifetime_after_tax_income: float
    lifetime_cash_flow: float
    lifetime_avg_tax_rate: float
    lifetime_avg_all_in_rate: float
    lifetime_growth_by_account: dict[str, float]
    annual_cash_flow: tuple[float, ...]
    cumulative_cash_flow: tuple[float, ...]
    cumulative_gross_income: tuple[float, ...]
    cumulative_after_tax_income: tuple[float, ...]
    cumulative_total_tax: tuple[float, ...]
    cumulative_real_cash_flow: tuple[float, ...]
    net_worth: tuple[float, ...]
    real_net_worth: tuple[float, ...]


def compute_analytics(years: Sequence["ComputedYear"]) -> ScenarioAnalytics:
    """Single forward scan; series are aligned with ``years``."""
    gross = tax = cpp_ei = after_tax = cash_flow = real_cash_flow = 0.0
    growth = {account: 0.0 for account in ACCOUNTS}
    annual: list[float] = []
    cumulative_cash: list[float] = []
    cumulative_gross: list[float] = []
    cumulative_after_tax: list[float] = []
    cumulative_tax: list[float] = []
    cumulative_real: list[float] = []
    net_worth: list[float] = []
    real_net_worth: list[float] = []

    for item in years:
        waterfall = item.waterfall
        gross += waterfall.gross_income
        tax += item.tax.total_income_tax
        cpp_ei += item.cpp.total + item.ei.total
        after_tax += waterfall.after_tax_income
        cash_flow += waterfall.net_cash_flow
        real_cash_flow += item.real.net_cash_flow
        for account, amount in item.pnl.items():
            growth[account] = growth.get(account, 0.0) + amount

        annual.append(waterfall.net_cash_flow)
        cumulative_cash.append(cash_flow)
        cumulative_gross.append(gross)
        cumulative_after_tax.append(after_tax)
        cumulative_tax.append(tax)
        cumulative_real.append(real_cash_flow)
        net_worth.append(item.ledger.net_worth)
        real_net_worth.append(item.real.net_worth)

    return ScenarioAnalytics(
        lifetime_gross_income=gross,
        lifetime_total_tax=tax,
        lifetime_cpp_ei=cpp_ei,
        lifetime_after_tax_income=after_tax,
        lifetime_cash_flow=cash_flow,
        lifetime_avg_tax_rate=tax / gross if gross > 0 else 0.0,
        lifetime_avg_all_in_rate=(tax + cpp_ei) / gross if gross > 0 else 0.0,
        lifetime_growth_by_account=growth,
        annual_cash_flow=tuple(annual),
        cumulative_cash_flow=tuple(cumulative_cash),
        cumulative_gross_income=tuple(cumulative_gross),
        cumulative_after_tax_income=tuple(cumulative_after_tax),
        cumulative_total_tax=tuple(cumulative_tax),
        cumulative_real_cash_flow=tuple(cumulative_real),
        net_worth=tuple(net_worth),
        real_net_worth=tuple(real_net_worth),
    )
