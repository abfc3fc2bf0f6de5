"""Employee aggregate and effective-dated profile history."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from enum import Enum

from ca_payroll.calculators.types import (
    ZERO,
    DeductionType,
    EarningType,
    PayFrequency,
    Paystub,
    Province,
    periods_per_year,
)
from ca_payroll.exceptions import DataIntegrityError

WEEKS_PER_YEAR = 52


class PayType(str, Enum):
    SALARIED = "Salaried"
    HOURLY = "Hourly"


@dataclass(frozen=True)
class EmployeeProfile:
    """Snapshot of an employee's pay-relevant data at a point in time."""

    name: str
    pay_type: PayType
    province: Province
    date_of_birth: date
    annual_salary: Decimal = ZERO
    hourly_rate: Decimal | None = None
    weekly_hours: Decimal | None = None
    role: str = ""

    def annual_pay(self) -> Decimal:
        if self.pay_type == PayType.HOURLY:
            if self.hourly_rate is None or self.weekly_hours is None:
                raise DataIntegrityError(
                    f"Hourly profile for {self.name} is missing rate or weekly hours"
                )
            return self.hourly_rate * self.weekly_hours * WEEKS_PER_YEAR
        return self.annual_salary


@dataclass(frozen=True)
class ProfileRecord:
    effective_date: date
    profile: EmployeeProfile
    status: str = "Hire"


@dataclass(frozen=True)
class YearToDate:
    """Year-to-date totals used for contribution caps."""

    gross_pay: Decimal = ZERO
    cpp: Decimal = ZERO
    ei: Decimal = ZERO
    vacation_pay: Decimal = ZERO


@dataclass(frozen=True)
class TaxCredits:
    """TD1 personal tax credit claim amounts."""

    federal: Decimal = ZERO
    provincial: Decimal = ZERO


@dataclass(frozen=True)
class BankAccount:
    institution: str
    transit: str
    account: str
    allocation_percent: Decimal = Decimal("100")
    nickname: str | None = None

    @property
    def routing(self) -> str:
        return f"{self.institution}-{self.transit}-{self.account}"


@dataclass(frozen=True)
class EmployeeEarning:
    code_id: str
    amount: Decimal


@dataclass(frozen=True)
class EmployeeDeduction:
    # amount is dollars for fixed codes and a percentage for % of gross codes
    code_id: str
    amount: Decimal


@dataclass(frozen=True)
class EmployeeGarnishment:
    config_id: str
    amount: Decimal


@dataclass(frozen=True)
class Employee:
    """Employee aggregate as delivered by the data layer."""

    id: int
    pay_frequency: PayFrequency | str
    profile_history: tuple[ProfileRecord, ...]
    employee_number: str = ""
    ytd: YearToDate = field(default_factory=YearToDate)
    recurring_earnings: tuple[EmployeeEarning, ...] = ()
    recurring_deductions: tuple[EmployeeDeduction, ...] = ()
    garnishments: tuple[EmployeeGarnishment, ...] = ()
    bank_accounts: tuple[BankAccount, ...] = ()
    time_off_balances: dict[str, Decimal] = field(default_factory=dict)
    tax_credits: TaxCredits | None = None

    def __post_init__(self) -> None:
        allocated = sum((a.allocation_percent for a in self.bank_accounts), ZERO)
        if allocated > 100:
            raise DataIntegrityError(
                f"Bank allocations for employee {self.id} sum to {allocated}%"
            )

    @property
    def periods_per_year(self) -> int:
        return periods_per_year(self.pay_frequency)

    @property
    def primary_bank_account(self) -> BankAccount | None:
        return self.bank_accounts[0] if self.bank_accounts else None

    def profile_as_of(self, as_of_date: date) -> ProfileRecord:
        """Latest record effective on or before ``as_of_date``.

        Falls back to the earliest record when every record is dated later.
        """
        if not self.profile_history:
            raise DataIntegrityError(f"Employee {self.id} has no profile history")

        effective = [r for r in self.profile_history if r.effective_date <= as_of_date]
        if effective:
            return max(effective, key=lambda r: r.effective_date)
        return min(self.profile_history, key=lambda r: r.effective_date)

    def with_ytd(self, ytd: YearToDate) -> Employee:
        return replace(self, ytd=ytd)


def roll_ytd_forward(ytd: YearToDate, paystub: Paystub) -> YearToDate:
    """Add a committed paystub to year-to-date totals."""
    vacation_paid = paystub.earning_amount(EarningType.VACATION)
    vacation_accrued = paystub.accrued_vacation_pay or ZERO
    return YearToDate(
        gross_pay=ytd.gross_pay + paystub.gross_pay,
        cpp=ytd.cpp + paystub.deduction_amount(DeductionType.CPP),
        ei=ytd.ei + paystub.deduction_amount(DeductionType.EI),
        vacation_pay=ytd.vacation_pay + vacation_accrued - vacation_paid,
    )
