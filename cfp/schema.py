"""Scenario schema dataclasses and JSON loading."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import StrEnum
import json
from pathlib import Path
from typing import Any

from . import tax_data


class ScenarioError(ValueError):
    """Raised when a scenario is structurally malformed or cannot be projected."""


class SchemaError(ScenarioError):
    """Raised when raw JSON cannot be parsed into schema objects."""


class ScheduledField(StrEnum):
    """Year fields a scheduled item may fill."""

    EMPLOYMENT_INCOME = "employment_income"
    SELF_EMPLOYMENT_INCOME = "self_employment_income"
    ELIGIBLE_DIVIDENDS = "eligible_dividends"
    NON_ELIGIBLE_DIVIDENDS = "non_eligible_dividends"
    INTEREST_INCOME = "interest_income"
    CAPITAL_GAINS_REALIZED = "capital_gains_realized"
    CAPITAL_LOSSES_REALIZED = "capital_losses_realized"
    OTHER_TAXABLE_INCOME = "other_taxable_income"
    CHARITABLE_DONATIONS = "charitable_donations"
    RRSP_CONTRIBUTION = "rrsp_contribution"
    RRSP_DEDUCTION_CLAIMED = "rrsp_deduction_claimed"
    TFSA_CONTRIBUTION = "tfsa_contribution"
    FHSA_CONTRIBUTION = "fhsa_contribution"
    FHSA_DEDUCTION_CLAIMED = "fhsa_deduction_claimed"
    NON_REG_CONTRIBUTION = "non_reg_contribution"
    RRSP_WITHDRAWAL = "rrsp_withdrawal"
    TFSA_WITHDRAWAL = "tfsa_withdrawal"
    FHSA_WITHDRAWAL = "fhsa_withdrawal"
    NON_REG_WITHDRAWAL = "non_reg_withdrawal"
    SAVINGS_DEPOSIT = "savings_deposit"
    SAVINGS_WITHDRAWAL = "savings_withdrawal"
    CAPITAL_LOSS_APPLIED = "capital_loss_applied"
    RRSP_EQUITY_PCT = "rrsp_equity_pct"
    RRSP_FIXED_PCT = "rrsp_fixed_pct"
    RRSP_CASH_PCT = "rrsp_cash_pct"
    TFSA_EQUITY_PCT = "tfsa_equity_pct"
    TFSA_FIXED_PCT = "tfsa_fixed_pct"
    TFSA_CASH_PCT = "tfsa_cash_pct"
    FHSA_EQUITY_PCT = "fhsa_equity_pct"
    FHSA_FIXED_PCT = "fhsa_fixed_pct"
    FHSA_CASH_PCT = "fhsa_cash_pct"
    NON_REG_EQUITY_PCT = "non_reg_equity_pct"
    NON_REG_FIXED_PCT = "non_reg_fixed_pct"
    NON_REG_CASH_PCT = "non_reg_cash_pct"


class ConditionField(StrEnum):
    """Computed quantities a condition or percentage amount may reference."""

    GROSS_INCOME = "gross_income"
    NET_TAXABLE_INCOME = "net_taxable_income"
    AFTER_TAX_INCOME = "after_tax_income"
    NET_CASH_FLOW = "net_cash_flow"
    NET_WORTH = "net_worth"
    TOTAL_INCOME_TAX = "total_income_tax"
    EMPLOYMENT_INCOME = "employment_income"
    SELF_EMPLOYMENT_INCOME = "self_employment_income"
    RRSP_EOY = "rrsp_eoy"
    TFSA_EOY = "tfsa_eoy"
    FHSA_EOY = "fhsa_eoy"
    NON_REG_EOY = "non_reg_eoy"
    SAVINGS_EOY = "savings_eoy"
    RRSP_UNUSED_ROOM = "rrsp_unused_room"
    TFSA_UNUSED_ROOM = "tfsa_unused_room"
    CAPITAL_GAINS_REALIZED = "capital_gains_realized"
    CAPITAL_LOSS_CF = "capital_loss_cf"
    AGE = "age"


class CapReference(StrEnum):
    """Carry-forward quantities usable as a dynamic ceiling."""

    RRSP_ROOM = "rrsp_room"
    TFSA_ROOM = "tfsa_room"
    FHSA_ROOM = "fhsa_room"
    FHSA_LIFETIME_ROOM = "fhsa_lifetime_room"
    RRSP_BALANCE = "rrsp_balance"
    TFSA_BALANCE = "tfsa_balance"
    FHSA_BALANCE = "fhsa_balance"
    NON_REG_BALANCE = "non_reg_balance"
    SAVINGS_BALANCE = "savings_balance"
    CAPITAL_LOSS_CF = "capital_loss_cf"


class Comparator(StrEnum):
    GT = ">"
    LT = "<"
    GE = ">="
    LE = "<="
    EQ = "=="
    BETWEEN = "between"


AMOUNT_TYPES = {"fixed", "percentage"}
GROWTH_TYPES = {"fixed", "inflation"}
FHSA_DISPOSITIONS = {"active", "home_purchase", "transfer_rrsp", "taxable_close"}
INVESTED_ACCOUNTS = ("rrsp", "tfsa", "fhsa", "non_reg")
ACCOUNTS = INVESTED_ACCOUNTS + ("savings",)


def _expect_dict(value: Any, path: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise SchemaError(f"{path}: expected object")
    return value


def _expect_list(value: Any, path: str) -> list[Any]:
    if not isinstance(value, list):
        raise SchemaError(f"{path}: expected array")
    return value


def _require(data: dict[str, Any], key: str, path: str) -> Any:
    if key not in data:
        raise SchemaError(f"{path}.{key}: missing required field")
    return data[key]


def _optional(data: dict[str, Any], key: str, default: Any = None) -> Any:
    return data.get(key, default)


def _number(data: dict[str, Any], key: str, path: str, default: float = 0.0) -> float:
    value = data.get(key, default)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SchemaError(f"{path}.{key}: expected number")
    return float(value)


def _optional_number(data: dict[str, Any], key: str, path: str) -> float | None:
    if data.get(key) is None:
        return None
    return _number(data, key, path)


def _enum(enum_cls: type[StrEnum], value: Any, path: str) -> Any:
    try:
        return enum_cls(value)
    except ValueError:
        expected = ", ".join(member.value for member in enum_cls)
        raise SchemaError(f"{path}: '{value}' is not valid; expected one of [{expected}]") from None


@dataclass(slots=True)
class TaxBracket:
    min: float
    max: float | None
    rate: float

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "TaxBracket":
        upper = _optional(data, "max")
        return cls(
            min=_number(data, "min", path),
            max=float(upper) if upper is not None else None,
            rate=float(_require(data, "rate", path)),
        )


def _brackets_from_table(table: list[tuple[float, float | None, float]]) -> list[TaxBracket]:
    return [TaxBracket(min=lower, max=upper, rate=rate) for lower, upper, rate in table]


def _brackets_from_list(raw: Any, path: str) -> list[TaxBracket]:
    return [
        TaxBracket.from_dict(_expect_dict(item, f"{path}[{idx}]"), f"{path}[{idx}]")
        for idx, item in enumerate(_expect_list(raw, path))
    ]


@dataclass(slots=True)
class DividendRate:
    gross_up: float
    federal_credit: float
    provincial_credit: float

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str, default: "DividendRate") -> "DividendRate":
        return cls(
            gross_up=_number(data, "gross_up", path, default.gross_up),
            federal_credit=_number(data, "federal_credit", path, default.federal_credit),
            provincial_credit=_number(data, "provincial_credit", path, default.provincial_credit),
        )


@dataclass(slots=True)
class DividendRates:
    eligible: DividendRate
    non_eligible: DividendRate

    @classmethod
    def defaults(cls, province: str) -> "DividendRates":
        eligible_prov, non_eligible_prov = tax_data.PROVINCIAL_DIVIDEND_CREDITS.get(
            province, tax_data.PROVINCIAL_DIVIDEND_CREDITS[tax_data.DEFAULT_PROVINCE]
        )
        return cls(
            eligible=DividendRate(
                gross_up=tax_data.ELIGIBLE_DIVIDEND_GROSS_UP,
                federal_credit=tax_data.ELIGIBLE_DIVIDEND_FEDERAL_CREDIT,
                provincial_credit=eligible_prov,
            ),
            non_eligible=DividendRate(
                gross_up=tax_data.NON_ELIGIBLE_DIVIDEND_GROSS_UP,
                federal_credit=tax_data.NON_ELIGIBLE_DIVIDEND_FEDERAL_CREDIT,
                provincial_credit=non_eligible_prov,
            ),
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str, province: str) -> "DividendRates":
        default = cls.defaults(province)
        return cls(
            eligible=DividendRate.from_dict(
                _expect_dict(_optional(data, "eligible", {}), f"{path}.eligible"), f"{path}.eligible", default.eligible
            ),
            non_eligible=DividendRate.from_dict(
                _expect_dict(_optional(data, "non_eligible", {}), f"{path}.non_eligible"),
                f"{path}.non_eligible",
                default.non_eligible,
            ),
        )


@dataclass(slots=True)
class CPPParams:
    basic_exemption: float = tax_data.CPP_BASIC_EXEMPTION
    ympe: float = tax_data.CPP_YMPE
    yampe: float = tax_data.CPP_YAMPE
    employee_rate: float = tax_data.CPP_EMPLOYEE_RATE
    cpp2_rate: float = tax_data.CPP2_RATE

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "assumptions.cpp") -> "CPPParams":
        return cls(
            basic_exemption=_number(data, "basic_exemption", path, tax_data.CPP_BASIC_EXEMPTION),
            ympe=_number(data, "ympe", path, tax_data.CPP_YMPE),
            yampe=_number(data, "yampe", path, tax_data.CPP_YAMPE),
            employee_rate=_number(data, "employee_rate", path, tax_data.CPP_EMPLOYEE_RATE),
            cpp2_rate=_number(data, "cpp2_rate", path, tax_data.CPP2_RATE),
        )


@dataclass(slots=True)
class EIParams:
    max_insurable_earnings: float = tax_data.EI_MAX_INSURABLE_EARNINGS
    employee_rate: float = tax_data.EI_EMPLOYEE_RATE
    se_opt_in: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "assumptions.ei") -> "EIParams":
        return cls(
            max_insurable_earnings=_number(data, "max_insurable_earnings", path, tax_data.EI_MAX_INSURABLE_EARNINGS),
            employee_rate=_number(data, "employee_rate", path, tax_data.EI_EMPLOYEE_RATE),
            se_opt_in=bool(_optional(data, "se_opt_in", False)),
        )


@dataclass(slots=True)
class AssetReturns:
    equity: float = 0.0
    fixed_income: float = 0.0
    cash: float = 0.0
    savings: float = 0.0

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "assumptions.asset_returns") -> "AssetReturns":
        return cls(
            equity=_number(data, "equity", path),
            fixed_income=_number(data, "fixed_income", path),
            cash=_number(data, "cash", path),
            savings=_number(data, "savings", path),
        )


@dataclass(slots=True)
class BenefitSettings:
    enabled: bool = False
    monthly_amount: float = 0.0
    start_age: int = 65

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "BenefitSettings":
        return cls(
            enabled=bool(_optional(data, "enabled", False)),
            monthly_amount=_number(data, "monthly_amount", path),
            start_age=int(_optional(data, "start_age", 65)),
        )


@dataclass(slots=True)
class RetirementSettings:
    cpp_benefit: BenefitSettings = field(default_factory=BenefitSettings)
    oas_benefit: BenefitSettings = field(default_factory=BenefitSettings)
    rrif_conversion_age: int = tax_data.DEFAULT_RRIF_CONVERSION_AGE

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "assumptions.retirement") -> "RetirementSettings":
        return cls(
            cpp_benefit=BenefitSettings.from_dict(
                _expect_dict(_optional(data, "cpp_benefit", {}), f"{path}.cpp_benefit"), f"{path}.cpp_benefit"
            ),
            oas_benefit=BenefitSettings.from_dict(
                _expect_dict(_optional(data, "oas_benefit", {}), f"{path}.oas_benefit"), f"{path}.oas_benefit"
            ),
            rrif_conversion_age=int(_optional(data, "rrif_conversion_age", tax_data.DEFAULT_RRIF_CONVERSION_AGE)),
        )


@dataclass(slots=True)
class FHSASettings:
    disposition: str = "active"
    disposition_year: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "assumptions.fhsa") -> "FHSASettings":
        disposition_year = _optional(data, "disposition_year")
        return cls(
            disposition=_optional(data, "disposition", "active"),
            disposition_year=int(disposition_year) if disposition_year is not None else None,
        )


@dataclass(slots=True)
class Assumptions:
    province: str
    start_year: int
    num_years: int
    inflation_rate: float
    federal_brackets: list[TaxBracket]
    provincial_brackets: list[TaxBracket]
    federal_bpa: float
    provincial_bpa: float
    dividend_rates: DividendRates
    cpp: CPPParams = field(default_factory=CPPParams)
    ei: EIParams = field(default_factory=EIParams)
    asset_returns: AssetReturns = field(default_factory=AssetReturns)
    auto_index: bool = True
    capital_gains_inclusion_rate: float = tax_data.CAPITAL_GAINS_INCLUSION_RATE
    capital_gains_tiered: bool = False
    capital_gains_tier2_rate: float = tax_data.CAPITAL_GAINS_TIER2_RATE
    capital_gains_tier_threshold: float = tax_data.CAPITAL_GAINS_TIER_THRESHOLD
    federal_employment_amount: float = tax_data.FEDERAL_EMPLOYMENT_AMOUNT
    rrsp_limit: float = tax_data.RRSP_LIMIT
    rrsp_pct_earned_income: float = tax_data.RRSP_PCT_EARNED_INCOME
    tfsa_annual_limit: float = tax_data.TFSA_ANNUAL_LIMIT
    fhsa_annual_limit: float = tax_data.FHSA_ANNUAL_LIMIT
    fhsa_lifetime_limit: float = tax_data.FHSA_LIFETIME_LIMIT
    oas_clawback_threshold: float = tax_data.OAS_CLAWBACK_THRESHOLD
    birth_year: int | None = None
    retirement: RetirementSettings = field(default_factory=RetirementSettings)
    fhsa: FHSASettings = field(default_factory=FHSASettings)

    @classmethod
    def defaults(cls, province: str = tax_data.DEFAULT_PROVINCE, start_year: int = tax_data.BASE_TAX_YEAR, num_years: int = 1) -> "Assumptions":
        """Reference assumptions for a province, used to backfill absent fields."""
        prov_table = tax_data.PROVINCIAL_BRACKETS.get(province, tax_data.PROVINCIAL_BRACKETS[tax_data.DEFAULT_PROVINCE])
        return cls(
            province=province,
            start_year=start_year,
            num_years=num_years,
            inflation_rate=tax_data.DEFAULT_INFLATION_RATE,
            federal_brackets=_brackets_from_table(tax_data.FEDERAL_BRACKETS),
            provincial_brackets=_brackets_from_table(prov_table),
            federal_bpa=tax_data.FEDERAL_BPA,
            provincial_bpa=tax_data.PROVINCIAL_BPA.get(province, tax_data.PROVINCIAL_BPA[tax_data.DEFAULT_PROVINCE]),
            dividend_rates=DividendRates.defaults(province),
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "assumptions") -> "Assumptions":
        province = str(_optional(data, "province", tax_data.DEFAULT_PROVINCE))
        start_year = int(_require(data, "start_year", path))
        base = cls.defaults(province, start_year, int(_optional(data, "num_years", 1)))

        federal_raw = _optional(data, "federal_brackets")
        provincial_raw = _optional(data, "provincial_brackets")
        birth_year = _optional(data, "birth_year")
        return cls(
            province=province,
            start_year=start_year,
            num_years=base.num_years,
            inflation_rate=_number(data, "inflation_rate", path, base.inflation_rate),
            federal_brackets=(
                _brackets_from_list(federal_raw, f"{path}.federal_brackets") if federal_raw is not None else base.federal_brackets
            ),
            provincial_brackets=(
                _brackets_from_list(provincial_raw, f"{path}.provincial_brackets")
                if provincial_raw is not None
                else base.provincial_brackets
            ),
            federal_bpa=_number(data, "federal_bpa", path, base.federal_bpa),
            provincial_bpa=_number(data, "provincial_bpa", path, base.provincial_bpa),
            dividend_rates=DividendRates.from_dict(
                _expect_dict(_optional(data, "dividend_rates", {}), f"{path}.dividend_rates"), f"{path}.dividend_rates", province
            ),
            cpp=CPPParams.from_dict(_expect_dict(_optional(data, "cpp", {}), f"{path}.cpp"), f"{path}.cpp"),
            ei=EIParams.from_dict(_expect_dict(_optional(data, "ei", {}), f"{path}.ei"), f"{path}.ei"),
            asset_returns=AssetReturns.from_dict(
                _expect_dict(_optional(data, "asset_returns", {}), f"{path}.asset_returns"), f"{path}.asset_returns"
            ),
            auto_index=bool(_optional(data, "auto_index", True)),
            capital_gains_inclusion_rate=_number(
                data, "capital_gains_inclusion_rate", path, tax_data.CAPITAL_GAINS_INCLUSION_RATE
            ),
            capital_gains_tiered=bool(_optional(data, "capital_gains_tiered", False)),
            capital_gains_tier2_rate=_number(data, "capital_gains_tier2_rate", path, tax_data.CAPITAL_GAINS_TIER2_RATE),
            capital_gains_tier_threshold=_number(
                data, "capital_gains_tier_threshold", path, tax_data.CAPITAL_GAINS_TIER_THRESHOLD
            ),
            federal_employment_amount=_number(data, "federal_employment_amount", path, tax_data.FEDERAL_EMPLOYMENT_AMOUNT),
            rrsp_limit=_number(data, "rrsp_limit", path, tax_data.RRSP_LIMIT),
            rrsp_pct_earned_income=_number(data, "rrsp_pct_earned_income", path, tax_data.RRSP_PCT_EARNED_INCOME),
            tfsa_annual_limit=_number(data, "tfsa_annual_limit", path, tax_data.TFSA_ANNUAL_LIMIT),
            fhsa_annual_limit=_number(data, "fhsa_annual_limit", path, tax_data.FHSA_ANNUAL_LIMIT),
            fhsa_lifetime_limit=_number(data, "fhsa_lifetime_limit", path, tax_data.FHSA_LIFETIME_LIMIT),
            oas_clawback_threshold=_number(data, "oas_clawback_threshold", path, tax_data.OAS_CLAWBACK_THRESHOLD),
            birth_year=int(birth_year) if birth_year is not None else None,
            retirement=RetirementSettings.from_dict(
                _expect_dict(_optional(data, "retirement", {}), f"{path}.retirement"), f"{path}.retirement"
            ),
            fhsa=FHSASettings.from_dict(_expect_dict(_optional(data, "fhsa", {}), f"{path}.fhsa"), f"{path}.fhsa"),
        )


@dataclass(slots=True)
class AssumptionOverrides:
    """Per-year replacements; any field left as None keeps the indexed value."""

    inflation_rate: float | None = None
    federal_brackets: list[TaxBracket] | None = None
    provincial_brackets: list[TaxBracket] | None = None
    federal_bpa: float | None = None
    provincial_bpa: float | None = None
    federal_employment_amount: float | None = None
    cpp_basic_exemption: float | None = None
    cpp_ympe: float | None = None
    cpp_yampe: float | None = None
    cpp_employee_rate: float | None = None
    cpp2_rate: float | None = None
    ei_max_insurable_earnings: float | None = None
    ei_employee_rate: float | None = None
    rrsp_limit: float | None = None
    rrsp_pct_earned_income: float | None = None
    tfsa_annual_limit: float | None = None
    fhsa_annual_limit: float | None = None
    fhsa_lifetime_limit: float | None = None
    capital_gains_inclusion_rate: float | None = None
    eligible_gross_up: float | None = None
    eligible_federal_credit: float | None = None
    eligible_provincial_credit: float | None = None
    non_eligible_gross_up: float | None = None
    non_eligible_federal_credit: float | None = None
    non_eligible_provincial_credit: float | None = None
    oas_clawback_threshold: float | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "AssumptionOverrides":
        values: dict[str, Any] = {}
        for item in fields(cls):
            if item.name in ("federal_brackets", "provincial_brackets"):
                raw = _optional(data, item.name)
                values[item.name] = _brackets_from_list(raw, f"{path}.{item.name}") if raw is not None else None
            else:
                values[item.name] = _optional_number(data, item.name, path)
        unknown = sorted(set(data) - {item.name for item in fields(cls)})
        if unknown:
            raise SchemaError(f"{path}.{unknown[0]}: unknown override field")
        return cls(**values)


@dataclass(slots=True)
class OpeningBalances:
    rrsp: float = 0.0
    tfsa: float = 0.0
    fhsa: float = 0.0
    non_reg: float = 0.0
    savings: float = 0.0

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "opening_balances") -> "OpeningBalances":
        return cls(**{name: _number(data, name, path) for name in ACCOUNTS})


@dataclass(slots=True)
class OpeningCarryForwards:
    rrsp_unused_room: float = 0.0
    tfsa_unused_room: float | None = None
    capital_loss_cf: float = 0.0
    fhsa_contrib_lifetime: float = 0.0
    prior_year_earned_income: float = 0.0
    rrsp_undeducted: float = 0.0

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "opening_carry_forwards") -> "OpeningCarryForwards":
        return cls(
            rrsp_unused_room=_number(data, "rrsp_unused_room", path),
            tfsa_unused_room=_optional_number(data, "tfsa_unused_room", path),
            capital_loss_cf=_number(data, "capital_loss_cf", path),
            fhsa_contrib_lifetime=_number(data, "fhsa_contrib_lifetime", path),
            prior_year_earned_income=_number(data, "prior_year_earned_income", path),
            rrsp_undeducted=_number(data, "rrsp_undeducted", path),
        )


@dataclass(slots=True)
class YearData:
    year: int
    employment_income: float = 0.0
    self_employment_income: float = 0.0
    eligible_dividends: float = 0.0
    non_eligible_dividends: float = 0.0
    interest_income: float = 0.0
    capital_gains_realized: float = 0.0
    capital_losses_realized: float = 0.0
    other_taxable_income: float = 0.0
    charitable_donations: float = 0.0
    rrsp_contribution: float = 0.0
    rrsp_deduction_claimed: float = 0.0
    tfsa_contribution: float = 0.0
    fhsa_contribution: float = 0.0
    fhsa_deduction_claimed: float = 0.0
    non_reg_contribution: float = 0.0
    rrsp_withdrawal: float = 0.0
    tfsa_withdrawal: float = 0.0
    fhsa_withdrawal: float = 0.0
    non_reg_withdrawal: float = 0.0
    savings_deposit: float = 0.0
    savings_withdrawal: float = 0.0
    capital_loss_applied: float = 0.0
    rrsp_equity_pct: float = 1.0
    rrsp_fixed_pct: float = 0.0
    rrsp_cash_pct: float = 0.0
    tfsa_equity_pct: float = 1.0
    tfsa_fixed_pct: float = 0.0
    tfsa_cash_pct: float = 0.0
    fhsa_equity_pct: float = 1.0
    fhsa_fixed_pct: float = 0.0
    fhsa_cash_pct: float = 0.0
    non_reg_equity_pct: float = 1.0
    non_reg_fixed_pct: float = 0.0
    non_reg_cash_pct: float = 0.0
    rrsp_eoy_override: float | None = None
    tfsa_eoy_override: float | None = None
    fhsa_eoy_override: float | None = None
    non_reg_eoy_override: float | None = None
    savings_eoy_override: float | None = None
    equity_return_override: float | None = None
    fixed_income_return_override: float | None = None
    cash_return_override: float | None = None
    savings_return_override: float | None = None
    inflation_rate_override: float | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "YearData":
        values: dict[str, Any] = {"year": int(_require(data, "year", path))}
        for item in fields(cls):
            if item.name == "year":
                continue
            if item.default is None:
                values[item.name] = _optional_number(data, item.name, path)
            else:
                values[item.name] = _number(data, item.name, path, item.default)
        return cls(**values)

    def allocation(self, account: str) -> tuple[float, float, float]:
        """Return (equity, fixed_income, cash) weights for an invested account."""
        if account == "rrsp":
            return self.rrsp_equity_pct, self.rrsp_fixed_pct, self.rrsp_cash_pct
        if account == "tfsa":
            return self.tfsa_equity_pct, self.tfsa_fixed_pct, self.tfsa_cash_pct
        if account == "fhsa":
            return self.fhsa_equity_pct, self.fhsa_fixed_pct, self.fhsa_cash_pct
        if account == "non_reg":
            return self.non_reg_equity_pct, self.non_reg_fixed_pct, self.non_reg_cash_pct
        raise KeyError(account)

    def eoy_override(self, account: str) -> float | None:
        if account == "rrsp":
            return self.rrsp_eoy_override
        if account == "tfsa":
            return self.tfsa_eoy_override
        if account == "fhsa":
            return self.fhsa_eoy_override
        if account == "non_reg":
            return self.non_reg_eoy_override
        if account == "savings":
            return self.savings_eoy_override
        raise KeyError(account)


@dataclass(slots=True)
class ScheduleCondition:
    field: ConditionField
    operator: Comparator
    value: float
    value2: float | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "ScheduleCondition":
        return cls(
            field=_enum(ConditionField, _require(data, "field", path), f"{path}.field"),
            operator=_enum(Comparator, _require(data, "operator", path), f"{path}.operator"),
            value=_number(data, "value", path),
            value2=_optional_number(data, "value2", path),
        )


@dataclass(slots=True)
class ScheduledItem:
    id: str
    field: ScheduledField
    start_year: int
    amount: float
    end_year: int | None = None
    label: str = ""
    amount_type: str = "fixed"
    amount_reference: ConditionField | None = None
    amount_min: float = 0.0
    amount_max: float = 0.0
    cap_reference: CapReference | None = None
    growth_rate: float = 0.0
    growth_type: str = "fixed"
    conditions: list[ScheduleCondition] = field(default_factory=list)

    @property
    def needs_computed_context(self) -> bool:
        return bool(self.conditions) or self.amount_type == "percentage" or self.cap_reference is not None

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "ScheduledItem":
        end_year = _optional(data, "end_year")
        reference = _optional(data, "amount_reference")
        cap_reference = _optional(data, "cap_reference")
        return cls(
            id=str(_require(data, "id", path)),
            label=str(_optional(data, "label", "")),
            field=_enum(ScheduledField, _require(data, "field", path), f"{path}.field"),
            start_year=int(_require(data, "start_year", path)),
            end_year=int(end_year) if end_year is not None else None,
            amount=_number(data, "amount", path),
            amount_type=_optional(data, "amount_type", "fixed"),
            amount_reference=(
                _enum(ConditionField, reference, f"{path}.amount_reference") if reference is not None else None
            ),
            amount_min=_number(data, "amount_min", path),
            amount_max=_number(data, "amount_max", path),
            cap_reference=(
                _enum(CapReference, cap_reference, f"{path}.cap_reference") if cap_reference is not None else None
            ),
            growth_rate=_number(data, "growth_rate", path),
            growth_type=_optional(data, "growth_type", "fixed"),
            conditions=[
                ScheduleCondition.from_dict(_expect_dict(item, f"{path}.conditions[{idx}]"), f"{path}.conditions[{idx}]")
                for idx, item in enumerate(_expect_list(_optional(data, "conditions", []), f"{path}.conditions"))
            ],
        )


@dataclass(slots=True)
class Liability:
    name: str
    balance: float
    interest_rate: float
    annual_payment: float

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "Liability":
        return cls(
            name=str(_require(data, "name", path)),
            balance=_number(data, "balance", path),
            interest_rate=_number(data, "interest_rate", path),
            annual_payment=_number(data, "annual_payment", path),
        )


@dataclass(slots=True)
class ACBConfig:
    opening_acb: float | None = None
    auto_compute_gains: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "acb_config") -> "ACBConfig":
        return cls(
            opening_acb=_optional_number(data, "opening_acb", path),
            auto_compute_gains=bool(_optional(data, "auto_compute_gains", False)),
        )


@dataclass(slots=True)
class ReturnDistribution:
    mean: float
    std_dev: float

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str, default: "ReturnDistribution") -> "ReturnDistribution":
        return cls(
            mean=_number(data, "mean", path, default.mean),
            std_dev=_number(data, "std_dev", path, default.std_dev),
        )


@dataclass(slots=True)
class MonteCarloSettings:
    num_trials: int = 500
    equity: ReturnDistribution = field(default_factory=lambda: ReturnDistribution(0.06, 0.16))
    fixed_income: ReturnDistribution = field(default_factory=lambda: ReturnDistribution(0.03, 0.05))
    cash: ReturnDistribution = field(default_factory=lambda: ReturnDistribution(0.02, 0.01))
    savings: ReturnDistribution = field(default_factory=lambda: ReturnDistribution(0.02, 0.005))

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "monte_carlo") -> "MonteCarloSettings":
        default = cls()
        return cls(
            num_trials=int(_optional(data, "num_trials", default.num_trials)),
            equity=ReturnDistribution.from_dict(
                _expect_dict(_optional(data, "equity", {}), f"{path}.equity"), f"{path}.equity", default.equity
            ),
            fixed_income=ReturnDistribution.from_dict(
                _expect_dict(_optional(data, "fixed_income", {}), f"{path}.fixed_income"),
                f"{path}.fixed_income",
                default.fixed_income,
            ),
            cash=ReturnDistribution.from_dict(
                _expect_dict(_optional(data, "cash", {}), f"{path}.cash"), f"{path}.cash", default.cash
            ),
            savings=ReturnDistribution.from_dict(
                _expect_dict(_optional(data, "savings", {}), f"{path}.savings"), f"{path}.savings", default.savings
            ),
        )


@dataclass(slots=True)
class Scenario:
    id: str
    name: str
    assumptions: Assumptions
    opening_balances: OpeningBalances
    opening_carry_forwards: OpeningCarryForwards
    years: list[YearData]
    scheduled_items: list[ScheduledItem] = field(default_factory=list)
    assumption_overrides: dict[int, AssumptionOverrides] = field(default_factory=dict)
    liabilities: list[Liability] = field(default_factory=list)
    acb_config: ACBConfig = field(default_factory=ACBConfig)
    monte_carlo: MonteCarloSettings = field(default_factory=MonteCarloSettings)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Scenario":
        overrides_raw = _expect_dict(_optional(data, "assumption_overrides", {}), "assumption_overrides")
        overrides: dict[int, AssumptionOverrides] = {}
        for key, value in overrides_raw.items():
            try:
                year = int(key)
            except ValueError:
                raise SchemaError(f"assumption_overrides.{key}: expected a calendar year key") from None
            path = f"assumption_overrides.{key}"
            overrides[year] = AssumptionOverrides.from_dict(_expect_dict(value, path), path)

        return cls(
            id=str(_optional(data, "id", "scenario")),
            name=str(_optional(data, "name", "Scenario")),
            assumptions=Assumptions.from_dict(_expect_dict(_require(data, "assumptions", "scenario"), "assumptions")),
            opening_balances=OpeningBalances.from_dict(
                _expect_dict(_optional(data, "opening_balances", {}), "opening_balances")
            ),
            opening_carry_forwards=OpeningCarryForwards.from_dict(
                _expect_dict(_optional(data, "opening_carry_forwards", {}), "opening_carry_forwards")
            ),
            years=[
                YearData.from_dict(_expect_dict(item, f"years[{idx}]"), f"years[{idx}]")
                for idx, item in enumerate(_expect_list(_require(data, "years", "scenario"), "years"))
            ],
            scheduled_items=[
                ScheduledItem.from_dict(_expect_dict(item, f"scheduled_items[{idx}]"), f"scheduled_items[{idx}]")
                for idx, item in enumerate(_expect_list(_optional(data, "scheduled_items", []), "scheduled_items"))
            ],
            assumption_overrides=overrides,
            liabilities=[
                Liability.from_dict(_expect_dict(item, f"liabilities[{idx}]"), f"liabilities[{idx}]")
                for idx, item in enumerate(_expect_list(_optional(data, "liabilities", []), "liabilities"))
            ],
            acb_config=ACBConfig.from_dict(_expect_dict(_optional(data, "acb_config", {}), "acb_config")),
            monte_carlo=MonteCarloSettings.from_dict(_expect_dict(_optional(data, "monte_carlo", {}), "monte_carlo")),
        )


def load_scenario(path: str | Path) -> Scenario:
    """Load scenario JSON into strongly-typed dataclasses."""
    source = Path(path)
    raw = json.loads(source.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise SchemaError("scenario: root must be a JSON object")
    return Scenario.from_dict(raw)
