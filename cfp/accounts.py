"""Account ledger: balances, returns, carry-forward room, ACB and liabilities."""

from __future__ import annotations

from dataclasses import dataclass

from .schema import ACCOUNTS, INVESTED_ACCOUNTS, Assumptions, AssetReturns, Liability, Scenario, YearData
from .tax_data import TFSA_ELIGIBILITY_AGE, TFSA_FIRST_YEAR, TFSA_HISTORICAL_LIMITS


@dataclass(slots=True, frozen=True)
class AccountBalances:
    rrsp: float = 0.0
    tfsa: float = 0.0
    fhsa: float = 0.0
    non_reg: float = 0.0
    savings: float = 0.0

    def as_dict(self) -> dict[str, float]:
        return {
            "rrsp": self.rrsp,
            "tfsa": self.tfsa,
            "fhsa": self.fhsa,
            "non_reg": self.non_reg,
            "savings": self.savings,
        }

    def get(self, account: str) -> float:
        return self.as_dict()[account]

    @property
    def total(self) -> float:
        return self.rrsp + self.tfsa + self.fhsa + self.non_reg + self.savings


@dataclass(slots=True, frozen=True)
class AccountResult:
    account: str
    opening: float
    contributions: float
    withdrawals: float
    transfers: float
    base: float
    rate: float
    growth: float
    eoy: float
    overridden: bool


@dataclass(slots=True, frozen=True)
class LiabilityResult:
    name: str
    opening_balance: float
    interest: float
    principal: float
    payment: float
    closing_balance: float


@dataclass(slots=True, frozen=True)
class ACBResult:
    opening_acb: float
    acb_added: float
    acb_removed: float
    closing_acb: float
    proceeds: float
    computed_gain: float


@dataclass(slots=True, frozen=True)
class LedgerResult:
    accounts: tuple[AccountResult, ...]
    liabilities: tuple[LiabilityResult, ...]
    total_assets: float
    total_liabilities: float
    net_worth: float

    def account(self, name: str) -> AccountResult:
        for item in self.accounts:
            if item.account == name:
                return item
        raise KeyError(name)

    @property
    def eoy(self) -> AccountBalances:
        return AccountBalances(**{item.account: item.eoy for item in self.accounts})

    @property
    def growth_by_account(self) -> dict[str, float]:
        return {item.account: item.growth for item in self.accounts}


@dataclass(slots=True, frozen=True)
class CarryForwardState:
    """Everything one year hands to the next. Replaced, never mutated."""

    balances: AccountBalances
    rrsp_unused_room: float = 0.0
    rrsp_undeducted: float = 0.0
    tfsa_unused_room: float = 0.0
    tfsa_prior_withdrawals: float = 0.0
    capital_loss_cf: float = 0.0
    fhsa_contrib_lifetime: float = 0.0
    fhsa_unused_room: float = 0.0
    fhsa_disposed: bool = False
    non_reg_acb: float = 0.0
    liability_balances: tuple[float, ...] = ()
    prior_year_earned_income: float = 0.0
    inflation_factor: float = 1.0


@dataclass(slots=True, frozen=True)
class RoomSnapshot:
    rrsp_room_grant: float
    rrsp_available: float
    rrsp_unused_room: float
    rrsp_undeducted: float
    tfsa_room_generated: float
    tfsa_available: float
    tfsa_unused_room: float
    fhsa_available: float
    fhsa_unused_room: float
    fhsa_lifetime_remaining: float
    fhsa_contrib_lifetime: float
    capital_loss_available: float
    capital_loss_applied: float
    capital_loss_cf: float


def accumulated_tfsa_room(birth_year: int, start_year: int, current_limit: float) -> float:
    """TFSA room built up from age 18 (or 2009) to the year before ``start_year``."""
    first_year = max(TFSA_FIRST_YEAR, birth_year + TFSA_ELIGIBILITY_AGE)
    return sum(TFSA_HISTORICAL_LIMITS.get(year, current_limit) for year in range(first_year, start_year))


def seed_state(scenario: Scenario) -> CarryForwardState:
    opening = scenario.opening_balances
    carry = scenario.opening_carry_forwards
    assumptions = scenario.assumptions

    # Built up from the birth year only when no room was entered.
    tfsa_room = carry.tfsa_unused_room
    if tfsa_room is None:
        tfsa_room = 0.0
        if opening.tfsa == 0 and assumptions.birth_year is not None:
            tfsa_room = accumulated_tfsa_room(assumptions.birth_year, assumptions.start_year, assumptions.tfsa_annual_limit)

    acb = scenario.acb_config.opening_acb
    return CarryForwardState(
        balances=AccountBalances(
            rrsp=opening.rrsp,
            tfsa=opening.tfsa,
            fhsa=opening.fhsa,
            non_reg=opening.non_reg,
            savings=opening.savings,
        ),
        rrsp_unused_room=carry.rrsp_unused_room,
        rrsp_undeducted=carry.rrsp_undeducted,
        tfsa_unused_room=tfsa_room,
        capital_loss_cf=carry.capital_loss_cf,
        fhsa_contrib_lifetime=carry.fhsa_contrib_lifetime,
        non_reg_acb=opening.non_reg if acb is None else acb,
        liability_balances=tuple(max(0.0, item.balance) for item in scenario.liabilities),
        prior_year_earned_income=carry.prior_year_earned_income,
    )


def rrsp_room_grant(state: CarryForwardState, assumptions: Assumptions, is_rrif: bool) -> float:
    if is_rrif:
        return 0.0
    return min(max(0.0, state.prior_year_earned_income) * assumptions.rrsp_pct_earned_income, assumptions.rrsp_limit)


def tfsa_room_grant(state: CarryForwardState, assumptions: Assumptions) -> float:
    return assumptions.tfsa_annual_limit + state.tfsa_prior_withdrawals


def fhsa_annual_room(state: CarryForwardState, assumptions: Assumptions) -> float:
    if state.fhsa_disposed:
        return 0.0
    carry = min(max(0.0, state.fhsa_unused_room), assumptions.fhsa_annual_limit)
    return assumptions.fhsa_annual_limit + carry


def fhsa_lifetime_room(state: CarryForwardState, assumptions: Assumptions) -> float:
    if state.fhsa_disposed:
        return 0.0
    return max(0.0, assumptions.fhsa_lifetime_limit - state.fhsa_contrib_lifetime)


def apply_capital_loss(carry_forward: float, losses_realized: float, requested: float) -> tuple[float, float, float]:
    """Return (available, applied, remaining carry-forward)."""
    available = max(0.0, carry_forward) + max(0.0, losses_realized)
    applied = max(0.0, min(requested, available))
    return available, applied, max(0.0, available - applied)


def blended_rate(weights: tuple[float, float, float], returns: AssetReturns) -> float:
    equity, fixed_income, cash = weights
    return equity * returns.equity + fixed_income * returns.fixed_income + cash * returns.cash


def _contribution(yd: YearData, account: str) -> float:
    return {
        "rrsp": yd.rrsp_contribution,
        "tfsa": yd.tfsa_contribution,
        "fhsa": yd.fhsa_contribution,
        "non_reg": yd.non_reg_contribution,
        "savings": yd.savings_deposit,
    }[account]


def _withdrawal(yd: YearData, account: str) -> float:
    return {
        "rrsp": yd.rrsp_withdrawal,
        "tfsa": yd.tfsa_withdrawal,
        "fhsa": yd.fhsa_withdrawal,
        "non_reg": yd.non_reg_withdrawal,
        "savings": yd.savings_withdrawal,
    }[account]


def compute_account(
    account: str,
    opening: float,
    contributions: float,
    withdrawals: float,
    transfers: float,
    rate: float,
    eoy_override: float | None,
) -> AccountResult:
    base = opening + contributions + transfers - withdrawals
    if eoy_override is not None:
        eoy = max(0.0, eoy_override)
        growth = eoy - base
    else:
        growth = base * rate
        eoy = max(0.0, base + growth)
    return AccountResult(
        account=account,
        opening=opening,
        contributions=contributions,
        withdrawals=withdrawals,
        transfers=transfers,
        base=base,
        rate=rate,
        growth=growth,
        eoy=eoy,
        overridden=eoy_override is not None,
    )


def compute_accounts(
    yd: YearData,
    opening: AccountBalances,
    returns: AssetReturns,
    transfers: dict[str, float] | None = None,
) -> tuple[AccountResult, ...]:
    """Run every tracked account for one year."""
    transfers = transfers or {}
    results: list[AccountResult] = []
    for account in ACCOUNTS:
        if account in INVESTED_ACCOUNTS:
            rate = blended_rate(yd.allocation(account), returns)
        else:
            rate = returns.savings
        results.append(
            compute_account(
                account,
                opening.get(account),
                max(0.0, _contribution(yd, account)),
                max(0.0, _withdrawal(yd, account)),
                transfers.get(account, 0.0),
                rate,
                yd.eoy_override(account),
            )
        )
    return tuple(results)


def track_acb(opening_acb: float, contribution: float, withdrawal: float, eoy: float) -> ACBResult:
    """Average-cost ACB for the non-registered account.

    Contributions add at cost; a withdrawal removes ACB in proportion to the share of
    the pre-withdrawal balance it takes.
    """
    acb_before = max(0.0, opening_acb) + max(0.0, contribution)
    balance_before = eoy + max(0.0, withdrawal)
    removed = 0.0
    gain = 0.0
    if withdrawal > 0 and balance_before > 0:
        fraction = min(1.0, withdrawal / balance_before)
        removed = acb_before * fraction
        gain = withdrawal - removed
    return ACBResult(
        opening_acb=opening_acb,
        acb_added=max(0.0, contribution),
        acb_removed=removed,
        closing_acb=max(0.0, acb_before - removed),
        proceeds=max(0.0, withdrawal),
        computed_gain=gain,
    )


def amortize_liability(liability: Liability, balance: float) -> LiabilityResult:
    """One year of interest and principal on a liability."""
    if balance <= 0:
        return LiabilityResult(liability.name, 0.0, 0.0, 0.0, 0.0, 0.0)
    interest = balance * max(0.0, liability.interest_rate)
    payment = min(max(0.0, liability.annual_payment), balance + interest)
    # Payments below the interest charge leave the shortfall capitalized.
    closing = balance + interest - payment
    return LiabilityResult(
        name=liability.name,
        opening_balance=balance,
        interest=interest,
        principal=max(0.0, payment - interest),
        payment=payment,
        closing_balance=max(0.0, closing),
    )


def build_ledger(accounts: tuple[AccountResult, ...], liabilities: tuple[LiabilityResult, ...]) -> LedgerResult:
    total_assets = sum(item.eoy for item in accounts)
    total_liabilities = sum(item.closing_balance for item in liabilities)
    return LedgerResult(
        accounts=accounts,
        liabilities=liabilities,
        total_assets=total_assets,
        total_liabilities=total_liabilities,
        net_worth=total_assets - total_liabilities,
    )


def advance_carry_forward(
    state: CarryForwardState,
    yd: YearData,
    assumptions: Assumptions,
    ledger: LedgerResult,
    acb: ACBResult,
    is_rrif: bool,
    fhsa_disposed: bool,
    inflation_factor: float,
) -> tuple[CarryForwardState, RoomSnapshot]:
    """Close out one year's room and balances; return the next year's opening state."""
    rrsp_grant = rrsp_room_grant(state, assumptions, is_rrif)
    rrsp_available = state.rrsp_unused_room + rrsp_grant
    rrsp_unused = rrsp_available - yd.rrsp_contribution
    rrsp_undeducted = max(0.0, state.rrsp_undeducted + yd.rrsp_contribution - yd.rrsp_deduction_claimed)

    tfsa_generated = tfsa_room_grant(state, assumptions)
    tfsa_available = state.tfsa_unused_room + tfsa_generated
    tfsa_unused = tfsa_available - yd.tfsa_contribution

    fhsa_available = fhsa_annual_room(state, assumptions)
    fhsa_lifetime_remaining = fhsa_lifetime_room(state, assumptions)
    fhsa_lifetime = state.fhsa_contrib_lifetime + yd.fhsa_contribution
    if fhsa_disposed:
        fhsa_unused = 0.0
    else:
        fhsa_unused = min(
            max(0.0, state.fhsa_unused_room) + assumptions.fhsa_annual_limit - yd.fhsa_contribution,
            assumptions.fhsa_annual_limit,
        )

    loss_available, loss_applied, loss_cf = apply_capital_loss(
        state.capital_loss_cf, yd.capital_losses_realized, yd.capital_loss_applied
    )

    snapshot = RoomSnapshot(
        rrsp_room_grant=rrsp_grant,
        rrsp_available=rrsp_available,
        rrsp_unused_room=rrsp_unused,
        rrsp_undeducted=rrsp_undeducted,
        tfsa_room_generated=tfsa_generated,
        tfsa_available=tfsa_available,
        tfsa_unused_room=tfsa_unused,
        fhsa_available=fhsa_available,
        fhsa_unused_room=fhsa_unused,
        fhsa_lifetime_remaining=fhsa_lifetime_remaining,
        fhsa_contrib_lifetime=fhsa_lifetime,
        capital_loss_available=loss_available,
        capital_loss_applied=loss_applied,
        capital_loss_cf=loss_cf,
    )
    next_state = CarryForwardState(
        balances=ledger.eoy,
        rrsp_unused_room=rrsp_unused,
        rrsp_undeducted=rrsp_undeducted,
        tfsa_unused_room=tfsa_unused,
        tfsa_prior_withdrawals=max(0.0, yd.tfsa_withdrawal),
        capital_loss_cf=loss_cf,
        fhsa_contrib_lifetime=fhsa_lifetime,
        fhsa_unused_room=fhsa_unused,
        fhsa_disposed=fhsa_disposed,
        non_reg_acb=acb.closing_acb,
        liability_balances=tuple(item.closing_balance for item in ledger.liabilities),
        prior_year_earned_income=max(0.0, yd.employment_income) + max(0.0, yd.self_employment_income),
        inflation_factor=inflation_factor,
    )
    return next_state, snapshot
