"""Scheduled item evaluation: recurring rules resolved into per-year field values."""

from __future__ import annotations

from dataclasses import dataclass, replace
import logging
import math
from types import MappingProxyType
from typing import TYPE_CHECKING, Callable, Mapping

from .accounts import CarryForwardState, fhsa_annual_room, fhsa_lifetime_room, rrsp_room_grant, tfsa_room_grant
from .schema import (
    Assumptions,
    CapReference,
    Comparator,
    ConditionField,
    ScheduleCondition,
    ScheduledField,
    ScheduledItem,
    YearData,
)

if TYPE_CHECKING:
    from .engine import ComputedYear

logger = logging.getLogger(__name__)

EQUALITY_TOLERANCE = 0.01

CONDITION_QUANTITIES: dict[ConditionField, Callable[["ComputedYear"], float | None]] = {
    ConditionField.GROSS_INCOME: lambda y: y.waterfall.gross_income,
    ConditionField.NET_TAXABLE_INCOME: lambda y: y.tax.net_taxable_income,
    ConditionField.AFTER_TAX_INCOME: lambda y: y.waterfall.after_tax_income,
    ConditionField.NET_CASH_FLOW: lambda y: y.waterfall.net_cash_flow,
    ConditionField.NET_WORTH: lambda y: y.ledger.net_worth,
    ConditionField.TOTAL_INCOME_TAX: lambda y: y.tax.total_income_tax,
    ConditionField.EMPLOYMENT_INCOME: lambda y: y.year_data.employment_income,
    ConditionField.SELF_EMPLOYMENT_INCOME: lambda y: y.year_data.self_employment_income,
    ConditionField.RRSP_EOY: lambda y: y.ledger.account("rrsp").eoy,
    ConditionField.TFSA_EOY: lambda y: y.ledger.account("tfsa").eoy,
    ConditionField.FHSA_EOY: lambda y: y.ledger.account("fhsa").eoy,
    ConditionField.NON_REG_EOY: lambda y: y.ledger.account("non_reg").eoy,
    ConditionField.SAVINGS_EOY: lambda y: y.ledger.account("savings").eoy,
    ConditionField.RRSP_UNUSED_ROOM: lambda y: y.room.rrsp_unused_room,
    ConditionField.TFSA_UNUSED_ROOM: lambda y: y.room.tfsa_unused_room,
    ConditionField.CAPITAL_GAINS_REALIZED: lambda y: y.year_data.capital_gains_realized,
    ConditionField.CAPITAL_LOSS_CF: lambda y: y.room.capital_loss_cf,
    ConditionField.AGE: lambda y: y.retirement.age,
}

CAP_RESOLVERS: dict[CapReference, Callable[[CarryForwardState, Assumptions, bool], float]] = {
    CapReference.RRSP_ROOM: lambda s, a, rrif: s.rrsp_unused_room + rrsp_room_grant(s, a, rrif),
    CapReference.TFSA_ROOM: lambda s, a, rrif: s.tfsa_unused_room + tfsa_room_grant(s, a),
    CapReference.FHSA_ROOM: lambda s, a, rrif: fhsa_annual_room(s, a),
    CapReference.FHSA_LIFETIME_ROOM: lambda s, a, rrif: fhsa_lifetime_room(s, a),
    CapReference.RRSP_BALANCE: lambda s, a, rrif: s.balances.rrsp,
    CapReference.TFSA_BALANCE: lambda s, a, rrif: s.balances.tfsa,
    CapReference.FHSA_BALANCE: lambda s, a, rrif: s.balances.fhsa,
    CapReference.NON_REG_BALANCE: lambda s, a, rrif: s.balances.non_reg,
    CapReference.SAVINGS_BALANCE: lambda s, a, rrif: s.balances.savings,
    CapReference.CAPITAL_LOSS_CF: lambda s, a, rrif: s.capital_loss_cf,
}

COMPARATORS: dict[Comparator, Callable[[float, ScheduleCondition], bool]] = {
    Comparator.GT: lambda actual, c: actual > c.value,
    Comparator.LT: lambda actual, c: actual < c.value,
    Comparator.GE: lambda actual, c: actual >= c.value,
    Comparator.LE: lambda actual, c: actual <= c.value,
    Comparator.EQ: lambda actual, c: abs(actual - c.value) < EQUALITY_TOLERANCE,
    Comparator.BETWEEN: lambda actual, c: c.value <= actual <= (c.value if c.value2 is None else c.value2),
}


@dataclass(slots=True, frozen=True)
class PriorPass:
    """Read-only view of a completed pass, keyed by calendar year."""

    years: Mapping[int, "ComputedYear"]

    @classmethod
    def from_years(cls, computed: tuple["ComputedYear", ...]) -> "PriorPass":
        return cls(years=MappingProxyType({item.year: item for item in computed}))

    def quantity(self, year: int, field: ConditionField) -> float | None:
        computed = self.years.get(year)
        if computed is None:
            return None
        return CONDITION_QUANTITIES[field](computed)


def needs_second_pass(items: list[ScheduledItem]) -> bool:
    return any(item.needs_computed_context for item in items)


def is_in_window(item: ScheduledItem, year: int) -> bool:
    if year < item.start_year:
        return False
    return item.end_year is None or year <= item.end_year


def conditions_hold(item: ScheduledItem, year: int, prior: PriorPass) -> bool:
    for condition in item.conditions:
        actual = prior.quantity(year, condition.field)
        if actual is None:
            logger.debug("schedule %s: %s unavailable in %s; treating as inactive", item.id, condition.field, year)
            return False
        if not COMPARATORS[condition.operator](actual, condition):
            return False
    return True


def grown_amount(item: ScheduledItem, year: int, inflation_rate: float) -> float:
    rate = inflation_rate if item.growth_type == "inflation" else item.growth_rate
    elapsed = year - item.start_year
    if elapsed <= 0 or rate == 0:
        return item.amount
    try:
        return item.amount * ((1.0 + rate) ** elapsed)
    except OverflowError:
        return math.inf


def clamp_amount(item: ScheduledItem, amount: float, cap: float | None) -> float:
    if item.amount_min > 0:
        amount = max(amount, item.amount_min)
    if item.amount_max > 0:
        amount = min(amount, item.amount_max)
    if cap is not None:
        amount = min(amount, max(0.0, cap))
    return max(0.0, amount)


def evaluate_item(
    item: ScheduledItem,
    year: int,
    state: CarryForwardState,
    assumptions: Assumptions,
    is_rrif: bool,
    prior: PriorPass | None,
    inflation_rate: float,
) -> float | None:
    """Return the item's value for ``year``, or None when the item does not apply."""
    if not is_in_window(item, year):
        return None
    if item.needs_computed_context and prior is None:
        return None
    if prior is not None and not conditions_hold(item, year, prior):
        return None

    amount = grown_amount(item, year, inflation_rate)
    if item.amount_type == "percentage":
        reference = prior.quantity(year, item.amount_reference) if prior is not None and item.amount_reference else None
        if reference is None:
            logger.debug("schedule %s: reference unavailable in %s; treating as inactive", item.id, year)
            return None
        amount = amount * reference

    if not math.isfinite(amount):
        logger.debug("schedule %s: non-finite amount in %s; using 0", item.id, year)
        return 0.0
    cap = CAP_RESOLVERS[item.cap_reference](state, assumptions, is_rrif) if item.cap_reference is not None else None
    return clamp_amount(item, amount, cap)


def resolve_scheduled_fields(
    items: list[ScheduledItem],
    year: int,
    state: CarryForwardState,
    assumptions: Assumptions,
    is_rrif: bool,
    prior: PriorPass | None,
    inflation_rate: float,
) -> dict[ScheduledField, float]:
    """Evaluate every item in declaration order; a later item overwrites an earlier one on the same field."""
    resolved: dict[ScheduledField, float] = {}
    for item in items:
        value = evaluate_item(item, year, state, assumptions, is_rrif, prior, inflation_rate)
        if value is None:
            continue
        if item.field in resolved:
            logger.debug("schedule %s overrides an earlier item on %s in %s", item.id, item.field, year)
        resolved[item.field] = value
    return resolved


def layer_scheduled(year_data: YearData, scheduled: dict[ScheduledField, float]) -> YearData:
    """Fill zero-valued fields from the schedule; anything entered by hand wins."""
    updates = {
        str(field): value
        for field, value in scheduled.items()
        if getattr(year_data, str(field)) == 0
    }
    if not updates:
        return year_data
    return replace(year_data, **updates)
