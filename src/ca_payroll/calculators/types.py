"""Type definitions for calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any

ZERO = Decimal("0")


class PayFrequency(str, Enum):
    """Pay frequencies and their labels."""

    WEEKLY = "Weekly"
    BI_WEEKLY = "Bi-Weekly"
    SEMI_MONTHLY = "Semi-Monthly"
    MONTHLY = "Monthly"


PAY_PERIODS_PER_YEAR: dict[str, int] = {
    PayFrequency.WEEKLY.value: 52,
    PayFrequency.BI_WEEKLY.value: 26,
    PayFrequency.SEMI_MONTHLY.value: 24,
    PayFrequency.MONTHLY.value: 12,
}

DEFAULT_PERIODS_PER_YEAR = 24


def periods_per_year(frequency: PayFrequency | str) -> int:
    """Pay frequency multiplier; unmapped frequencies fall back to 24."""
    key = frequency.value if isinstance(frequency, PayFrequency) else str(frequency)
    return PAY_PERIODS_PER_YEAR.get(key, DEFAULT_PERIODS_PER_YEAR)


class Province(str, Enum):
    """Provinces with 2024 tax tables."""

    ON = "Ontario"
    QC = "Quebec"
    BC = "British Columbia"
    AB = "Alberta"
    MB = "Manitoba"
    SK = "Saskatchewan"
    NS = "Nova Scotia"
    NB = "New Brunswick"
    NL = "Newfoundland and Labrador"
    PE = "Prince Edward Island"


class LineCategory(str, Enum):
    """Paystub line categories."""

    EARNING = "EARNING"
    STATUTORY = "STATUTORY"
    GARNISHMENT = "GARNISHMENT"
    PRE_TAX = "PRE_TAX"
    POST_TAX = "POST_TAX"


class EarningType(str, Enum):
    """Earning line types."""

    REGULAR = "Regular Pay"
    OVERTIME = "Overtime"
    BONUS = "Bonus"
    VACATION = "Vacation Pay"
    STAT_HOLIDAY = "Statutory Holiday Pay"
    EARNING = "Earning"
    TAXABLE_BENEFIT = "Taxable Benefit"
    REIMBURSEMENT = "Reimbursement"


class DeductionType(str, Enum):
    """Deduction line types."""

    FEDERAL_TAX = "Federal Income Tax"
    PROVINCIAL_TAX = "Provincial Income Tax"
    CPP = "Canada Pension Plan"
    EI = "Employment Insurance"
    GARNISHMENT = "Garnishment"
    PRE_TAX = "Pre-Tax"
    POST_TAX = "Post-Tax"


class AdjustmentKind(str, Enum):
    """Ad hoc earning that can be swapped in during preview."""

    BONUS = "bonus"
    VACATION_PAYOUT = "vacation"
    OVERTIME = "overtime"


@dataclass(frozen=True)
class PaystubItem:
    """One paystub line. Amounts are always positive."""

    category: LineCategory
    type: str
    description: str
    amount: Decimal
    code_id: str | None = None
    rate: Decimal | None = None
    hours: Decimal | None = None

    @property
    def is_earning(self) -> bool:
        return self.category == LineCategory.EARNING

    def to_canonical_dict(self) -> dict[str, Any]:
        """Return canonical dict for hashing (deterministic ordering)."""
        return {
            "category": self.category.value,
            "type": str(self.type),
            "description": self.description,
            "amount": str(self.amount),
            "code_id": self.code_id,
            "rate": str(self.rate) if self.rate is not None else None,
            "hours": str(self.hours) if self.hours is not None else None,
        }


@dataclass(frozen=True)
class EmployerContributions:
    """Employer-side statutory contributions (liability, not deducted)."""

    cpp: Decimal = ZERO
    ei: Decimal = ZERO


@dataclass(frozen=True)
class Paystub:
    """Assembled paystub for one employee and one pay period."""

    employee_id: int
    employee_name: str
    pay_period: str
    gross_pay: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    earnings: tuple[PaystubItem, ...]
    deductions: tuple[PaystubItem, ...]
    employer_contributions: EmployerContributions
    accrued_vacation_pay: Decimal | None = None

    @property
    def total_cost(self) -> Decimal:
        """Employer cost: gross plus employer CPP and EI."""
        return (
            self.gross_pay
            + self.employer_contributions.cpp
            + self.employer_contributions.ei
        )

    def deduction_amount(self, deduction_type: DeductionType) -> Decimal:
        return sum(
            (d.amount for d in self.deductions if d.type == deduction_type.value),
            ZERO,
        )

    def earning_amount(self, earning_type: EarningType) -> Decimal:
        return sum(
            (e.amount for e in self.earnings if e.type == earning_type.value),
            ZERO,
        )

    def to_canonical_dict(self) -> dict[str, Any]:
        """Return canonical dict for hashing (deterministic ordering)."""
        return {
            "employee_id": self.employee_id,
            "employee_name": self.employee_name,
            "pay_period": self.pay_period,
            "gross_pay": str(self.gross_pay),
            "total_deductions": str(self.total_deductions),
            "net_pay": str(self.net_pay),
            "earnings": [e.to_canonical_dict() for e in self.earnings],
            "deductions": [d.to_canonical_dict() for d in self.deductions],
            "employer_cpp": str(self.employer_contributions.cpp),
            "employer_ei": str(self.employer_contributions.ei),
            "accrued_vacation_pay": (
                str(self.accrued_vacation_pay)
                if self.accrued_vacation_pay is not None
                else None
            ),
        }


@dataclass(frozen=True)
class IncomeBases:
    """Period income subject to income tax, CPP and EI."""

    taxable: Decimal = ZERO
    pensionable: Decimal = ZERO
    insurable: Decimal = ZERO


@dataclass(frozen=True)
class StatutoryDeductions:
    """Statutory withholding for one pay period."""

    federal_tax: Decimal
    provincial_tax: Decimal
    cpp: Decimal
    ei: Decimal
    employer_cpp: Decimal
    employer_ei: Decimal
    bases: IncomeBases
    province: Province

    @property
    def employee_total(self) -> Decimal:
        return self.federal_tax + self.provincial_tax + self.cpp + self.ei
