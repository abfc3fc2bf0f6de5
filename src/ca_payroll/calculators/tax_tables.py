"""Static tax bracket and contribution tables by tax year."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from types import MappingProxyType
from typing import Mapping

from ca_payroll.calculators.types import Province
from ca_payroll.exceptions import TaxTableNotFoundError


@dataclass(frozen=True)
class TaxBracket:
    """Marginal rate applied to income above ``threshold``."""

    threshold: Decimal
    rate: Decimal


@dataclass(frozen=True)
class ContributionRates:
    """CPP/EI (and QPP/QPIP) parameters for one year."""

    cpp_max_pensionable_earnings: Decimal
    cpp_basic_exemption: Decimal
    cpp_employee_rate: Decimal
    cpp_max_contribution: Decimal
    ei_max_insurable_earnings: Decimal
    ei_employee_rate: Decimal
    ei_employer_multiplier: Decimal
    ei_max_premium: Decimal
    qpp_employee_rate: Decimal
    qpp_max_contribution: Decimal
    qpip_employee_rate: Decimal
    qpip_max_premium: Decimal
    cpp_min_age: int = 18
    cpp_max_age: int = 70


def validate_brackets(brackets: tuple[TaxBracket, ...], label: str) -> None:
    """Brackets must start at zero and ascend strictly."""
    if not brackets:
        raise ValueError(f"{label}: bracket table is empty")
    if brackets[0].threshold != 0:
        raise ValueError(f"{label}: first bracket must start at 0")
    for lower, upper in zip(brackets, brackets[1:]):
        if upper.threshold <= lower.threshold:
            raise ValueError(
                f"{label}: thresholds must ascend ({lower.threshold} >= {upper.threshold})"
            )


@dataclass(frozen=True)
class TaxYearTables:
    """All statutory parameters for a tax year."""

    year: int
    federal_brackets: tuple[TaxBracket, ...]
    provincial_brackets: Mapping[Province, tuple[TaxBracket, ...]]
    contributions: ContributionRates

    def __post_init__(self) -> None:
        validate_brackets(self.federal_brackets, f"{self.year} federal")
        for province, brackets in self.provincial_brackets.items():
            validate_brackets(brackets, f"{self.year} {province.value}")

    def brackets_for(self, province: Province) -> tuple[TaxBracket, ...]:
        try:
            return self.provincial_brackets[province]
        except KeyError:
            raise TaxTableNotFoundError(
                f"No {self.year} provincial tax table for {province}"
            ) from None


def _brackets(*rows: tuple[str, str]) -> tuple[TaxBracket, ...]:
    return tuple(TaxBracket(threshold=Decimal(t), rate=Decimal(r)) for t, r in rows)


TAX_TABLES_2024 = TaxYearTables(
    year=2024,
    federal_brackets=_brackets(
        ("0", "0.15"),
        ("55867", "0.205"),
        ("111733", "0.26"),
        ("173205", "0.29"),
        ("246752", "0.33"),
    ),
    provincial_brackets=MappingProxyType({
        Province.ON: _brackets(
            ("0", "0.0505"),
            ("51446", "0.0915"),
            ("102894", "0.1116"),
            ("150000", "0.1216"),
            ("220000", "0.1316"),
        ),
        Province.QC: _brackets(
            ("0", "0.14"),
            ("51780", "0.19"),
            ("103545", "0.24"),
            ("126000", "0.2575"),
        ),
        Province.BC: _brackets(
            ("0", "0.0506"),
            ("47937", "0.077"),
            ("95875", "0.105"),
            ("110076", "0.1229"),
            ("133664", "0.147"),
            ("181232", "0.168"),
            ("252753", "0.205"),
        ),
        Province.AB: _brackets(
            ("0", "0.10"),
            ("148269", "0.12"),
            ("177922", "0.13"),
            ("237230", "0.14"),
            ("355845", "0.15"),
        ),
        Province.MB: _brackets(
            ("0", "0.108"),
            ("47000", "0.1275"),
            ("100000", "0.174"),
        ),
        Province.SK: _brackets(
            ("0", "0.105"),
            ("52057", "0.125"),
            ("148734", "0.145"),
        ),
        Province.NS: _brackets(
            ("0", "0.0879"),
            ("29590", "0.1495"),
            ("59180", "0.1667"),
            ("93000", "0.175"),
            ("150000", "0.21"),
        ),
        Province.NB: _brackets(
            ("0", "0.094"),
            ("49958", "0.14"),
            ("99916", "0.16"),
            ("184576", "0.17"),
        ),
        Province.NL: _brackets(
            ("0", "0.087"),
            ("43457", "0.145"),
            ("86914", "0.158"),
            ("155169", "0.178"),
            ("217228", "0.198"),
            ("275870", "0.208"),
            ("551739", "0.213"),
            ("1103479", "0.218"),
        ),
        Province.PE: _brackets(
            ("0", "0.098"),
            ("32500", "0.138"),
            ("65000", "0.167"),
        ),
    }),
    contributions=ContributionRates(
        cpp_max_pensionable_earnings=Decimal("68500.00"),
        cpp_basic_exemption=Decimal("3500.00"),
        cpp_employee_rate=Decimal("0.0595"),
        cpp_max_contribution=Decimal("3867.50"),
        # CPP2 (earnings between 68,500 and 73,200) is not modelled.
        ei_max_insurable_earnings=Decimal("63200.00"),
        ei_employee_rate=Decimal("0.0166"),
        ei_employer_multiplier=Decimal("1.4"),
        ei_max_premium=Decimal("1049.12"),
        qpp_employee_rate=Decimal("0.064"),
        qpp_max_contribution=Decimal("4160.00"),
        qpip_employee_rate=Decimal("0.00494"),
        qpip_max_premium=Decimal("464.36"),
    ),
)

_TABLES_BY_YEAR: dict[int, TaxYearTables] = {2024: TAX_TABLES_2024}


def get_tax_tables(year: int) -> TaxYearTables:
    """Get the statutory tables for a tax year."""
    try:
        return _TABLES_BY_YEAR[year]
    except KeyError:
        raise TaxTableNotFoundError(f"No tax tables defined for {year}") from None
