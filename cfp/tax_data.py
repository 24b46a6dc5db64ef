"""Federal/provincial tax and benefit reference data for CFP."""

from __future__ import annotations

from typing import Final

BASE_TAX_YEAR: Final[int] = 2025
DEFAULT_INFLATION_RATE: Final[float] = 0.025
DEFAULT_PROVINCE: Final[str] = "ON"

# Brackets are (lower_bound, upper_bound, marginal_rate). Upper bound None means infinity.
FEDERAL_BRACKETS: Final[list[tuple[float, float | None, float]]] = [
    (0.0, 57_375.0, 0.15),
    (57_375.0, 114_750.0, 0.205),
    (114_750.0, 158_519.0, 0.26),
    (158_519.0, 220_000.0, 0.29),
    (220_000.0, None, 0.33),
]

PROVINCIAL_BRACKETS: Final[dict[str, list[tuple[float, float | None, float]]]] = {
    "ON": [
        (0.0, 51_446.0, 0.0505),
        (51_446.0, 102_894.0, 0.0915),
        (102_894.0, 150_000.0, 0.1116),
        (150_000.0, 220_000.0, 0.1216),
        (220_000.0, None, 0.1316),
    ],
    "BC": [
        (0.0, 45_654.0, 0.0506),
        (45_654.0, 91_310.0, 0.077),
        (91_310.0, 104_835.0, 0.105),
        (104_835.0, 127_299.0, 0.1229),
        (127_299.0, None, 0.205),
    ],
    "AB": [
        (0.0, 148_269.0, 0.10),
        (148_269.0, 177_922.0, 0.12),
        (177_922.0, 237_230.0, 0.13),
        (237_230.0, 355_845.0, 0.14),
        (355_845.0, None, 0.15),
    ],
    "QC": [
        (0.0, 51_780.0, 0.14),
        (51_780.0, 103_545.0, 0.19),
        (103_545.0, 126_000.0, 0.24),
        (126_000.0, None, 0.2575),
    ],
    "MB": [
        (0.0, 47_000.0, 0.108),
        (47_000.0, 100_000.0, 0.1275),
        (100_000.0, None, 0.174),
    ],
    "SK": [
        (0.0, 49_720.0, 0.105),
        (49_720.0, 142_058.0, 0.125),
        (142_058.0, None, 0.145),
    ],
    "NS": [
        (0.0, 29_590.0, 0.0879),
        (29_590.0, 59_180.0, 0.1495),
        (59_180.0, 93_000.0, 0.1667),
        (93_000.0, 150_000.0, 0.175),
        (150_000.0, None, 0.21),
    ],
    "NB": [
        (0.0, 49_958.0, 0.094),
        (49_958.0, 99_916.0, 0.14),
        (99_916.0, 185_064.0, 0.16),
        (185_064.0, None, 0.195),
    ],
    "NL": [
        (0.0, 43_198.0, 0.087),
        (43_198.0, 86_395.0, 0.145),
        (86_395.0, 154_244.0, 0.158),
        (154_244.0, 215_943.0, 0.178),
        (215_943.0, None, 0.198),
    ],
    "PE": [
        (0.0, 32_656.0, 0.0965),
        (32_656.0, 64_313.0, 0.1363),
        (64_313.0, 105_000.0, 0.1665),
        (105_000.0, 140_000.0, 0.18),
        (140_000.0, None, 0.1875),
    ],
    "NT": [
        (0.0, 50_597.0, 0.059),
        (50_597.0, 101_198.0, 0.086),
        (101_198.0, 164_525.0, 0.122),
        (164_525.0, None, 0.1405),
    ],
    "NU": [
        (0.0, 53_268.0, 0.04),
        (53_268.0, 106_537.0, 0.07),
        (106_537.0, 173_205.0, 0.09),
        (173_205.0, None, 0.115),
    ],
    "YT": [
        (0.0, 57_375.0, 0.064),
        (57_375.0, 114_750.0, 0.09),
        (114_750.0, 158_519.0, 0.109),
        (158_519.0, 500_000.0, 0.128),
        (500_000.0, None, 0.15),
    ],
}

PROVINCES: Final[set[str]] = set(PROVINCIAL_BRACKETS)

FEDERAL_BPA: Final[float] = 15_705.0
FEDERAL_EMPLOYMENT_AMOUNT: Final[float] = 1_368.0

PROVINCIAL_BPA: Final[dict[str, float]] = {
    "ON": 11_865.0,
    "BC": 11_981.0,
    "AB": 21_003.0,
    "QC": 17_183.0,
    "MB": 15_780.0,
    "SK": 17_661.0,
    "NS": 8_481.0,
    "NB": 12_458.0,
    "NL": 10_818.0,
    "PE": 12_000.0,
    "NT": 16_593.0,
    "NU": 17_925.0,
    "YT": 15_705.0,
}

# (eligible, non_eligible) provincial dividend tax credit rates on the grossed-up amount.
PROVINCIAL_DIVIDEND_CREDITS: Final[dict[str, tuple[float, float]]] = {
    "ON": (0.100, 0.036),
    "BC": (0.12, 0.02),
    "AB": (0.10, 0.0234),
    "QC": (0.0977, 0.055),
    "MB": (0.08, 0.0263),
    "SK": (0.11, 0.0334),
    "NS": (0.0885, 0.035),
    "NB": (0.105, 0.04),
    "NL": (0.05, 0.03),
    "PE": (0.105, 0.04),
    "NT": (0.06, 0.02),
    "NU": (0.04, 0.02),
    "YT": (0.064, 0.02),
}

ELIGIBLE_DIVIDEND_GROSS_UP: Final[float] = 0.38
ELIGIBLE_DIVIDEND_FEDERAL_CREDIT: Final[float] = 0.150198
NON_ELIGIBLE_DIVIDEND_GROSS_UP: Final[float] = 0.15
NON_ELIGIBLE_DIVIDEND_FEDERAL_CREDIT: Final[float] = 0.090301

CPP_BASIC_EXEMPTION: Final[float] = 3_500.0
CPP_YMPE: Final[float] = 68_500.0
CPP_YAMPE: Final[float] = 73_200.0
CPP_EMPLOYEE_RATE: Final[float] = 0.0595
CPP2_RATE: Final[float] = 0.04

EI_MAX_INSURABLE_EARNINGS: Final[float] = 63_200.0
EI_EMPLOYEE_RATE: Final[float] = 0.0166

CAPITAL_GAINS_INCLUSION_RATE: Final[float] = 0.5
CAPITAL_GAINS_TIER2_RATE: Final[float] = 2.0 / 3.0
CAPITAL_GAINS_TIER_THRESHOLD: Final[float] = 250_000.0

RRSP_LIMIT: Final[float] = 31_560.0
RRSP_PCT_EARNED_INCOME: Final[float] = 0.18
RRSP_OVER_CONTRIBUTION_BUFFER: Final[float] = 2_000.0
TFSA_ANNUAL_LIMIT: Final[float] = 7_000.0
FHSA_ANNUAL_LIMIT: Final[float] = 8_000.0
FHSA_LIFETIME_LIMIT: Final[float] = 40_000.0

OAS_CLAWBACK_THRESHOLD: Final[float] = 86_912.0
OAS_CLAWBACK_RATE: Final[float] = 0.15

ONTARIO_SURTAX: Final[list[tuple[float, float]]] = [
    (4_991.0, 0.20),
    (6_387.0, 0.36),
]
QUEBEC_ABATEMENT_RATE: Final[float] = 0.165

DONATION_LOW_TIER: Final[float] = 200.0
DONATION_FEDERAL_HIGH_RATE: Final[float] = 0.29

DEFAULT_RRIF_CONVERSION_AGE: Final[int] = 71

# Prescribed RRIF minimum withdrawal factors by age at the start of the year.
RRIF_MINIMUM_FACTORS: Final[dict[int, float]] = {
    71: 0.0528,
    72: 0.0540,
    73: 0.0553,
    74: 0.0567,
    75: 0.0582,
    76: 0.0598,
    77: 0.0617,
    78: 0.0636,
    79: 0.0658,
    80: 0.0682,
    81: 0.0708,
    82: 0.0738,
    83: 0.0771,
    84: 0.0808,
    85: 0.0851,
    86: 0.0899,
    87: 0.0955,
    88: 0.1021,
    89: 0.1099,
    90: 0.1192,
    91: 0.1306,
    92: 0.1449,
    93: 0.1634,
    94: 0.1879,
}
RRIF_FACTOR_AGE_95_PLUS: Final[float] = 0.20

TFSA_FIRST_YEAR: Final[int] = 2009
TFSA_ELIGIBILITY_AGE: Final[int] = 18
TFSA_HISTORICAL_LIMITS: Final[dict[int, float]] = {
    2009: 5_000.0,
    2010: 5_000.0,
    2011: 5_000.0,
    2012: 5_000.0,
    2013: 5_500.0,
    2014: 5_500.0,
    2015: 10_000.0,
    2016: 5_500.0,
    2017: 5_500.0,
    2018: 5_500.0,
    2019: 6_000.0,
    2020: 6_000.0,
    2021: 6_000.0,
    2022: 6_000.0,
    2023: 6_500.0,
    2024: 7_000.0,
    2025: 7_000.0,
    2026: 7_000.0,
}

CPP_STANDARD_START_AGE: Final[int] = 65
CPP_EARLIEST_START_AGE: Final[int] = 60
CPP_LATEST_START_AGE: Final[int] = 70
CPP_EARLY_REDUCTION_PER_YEAR: Final[float] = 0.072
CPP_DEFERRAL_INCREASE_PER_YEAR: Final[float] = 0.084
OAS_STANDARD_START_AGE: Final[int] = 65
OAS_LATEST_START_AGE: Final[int] = 70
OAS_DEFERRAL_INCREASE_PER_YEAR: Final[float] = 0.072
DEFERRAL_HORIZON_AGE: Final[int] = 90
