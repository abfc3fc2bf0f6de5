"""Tenant-wide payroll configuration snapshot."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING

from ca_payroll.calculators.types import EarningType, PayFrequency, Province

if TYPE_CHECKING:
    from ca_payroll.domain.employee import Employee


class CalculationMethod(str, Enum):
    """How a deduction or garnishment amount is interpreted."""

    FIXED_AMOUNT = "Fixed Amount"
    PERCENTAGE_OF_GROSS = "% of Gross Pay"


class DeductionKind(str, Enum):
    PRE_TAX = "Pre-Tax"
    POST_TAX = "Post-Tax"


class VacationPayoutMethod(str, Enum):
    ACCRUE = "accrue"
    PAYOUT = "payout"


@dataclass(frozen=True)
class EarningCode:
    """Configurable earning definition with taxability flags."""

    id: str
    name: str
    type: EarningType = EarningType.EARNING
    is_taxable: bool = True
    is_pensionable: bool = True
    is_insurable: bool = True


@dataclass(frozen=True)
class DeductionCode:
    """Configurable deduction definition.

    Some pre-tax deductions (RRSP, for instance) reduce taxable income
    without reducing the CPP/EI bases, hence the three separate flags.
    """

    id: str
    name: str
    type: DeductionKind
    calculation_method: CalculationMethod = CalculationMethod.FIXED_AMOUNT
    reduces_taxable_income: bool = False
    reduces_pensionable_earnings: bool = False
    reduces_insurable_earnings: bool = False

    @property
    def is_pretax(self) -> bool:
        return self.type == DeductionKind.PRE_TAX


@dataclass(frozen=True)
class GarnishmentConfiguration:
    """Court or agency order template. Lower priority is deducted first."""

    id: str
    name: str
    calculation_type: CalculationMethod
    priority: int
    jurisdiction: str = "Federal"
    description: str = ""


@dataclass(frozen=True)
class VacationPolicy:
    id: str
    name: str
    accrual_percent: Decimal


@dataclass(frozen=True)
class PayrollSchedule:
    frequency: PayFrequency
    day_of_month_1: int | None = None
    day_of_month_2: int | None = None
    day_of_week: str | None = None
    anchor_date: date | None = None


@dataclass(frozen=True)
class StatutoryHoliday:
    date: date
    name: str
    # None means the holiday applies in every province.
    provinces: tuple[Province, ...] | None = None

    def applies_to(self, province: Province) -> bool:
        return self.provinces is None or province in self.provinces


@dataclass(frozen=True)
class CompanyConfigurations:
    """Catalog of codes and policies used by payroll calculations."""

    earning_codes: tuple[EarningCode, ...] = ()
    deduction_codes: tuple[DeductionCode, ...] = ()
    garnishments: tuple[GarnishmentConfiguration, ...] = ()
    vacation_policies: tuple[VacationPolicy, ...] = ()
    vacation_payout_method: VacationPayoutMethod = VacationPayoutMethod.ACCRUE
    payroll_schedule: PayrollSchedule | None = None
    statutory_holidays: tuple[StatutoryHoliday, ...] = ()

    def garnishment_map(self) -> dict[str, GarnishmentConfiguration]:
        return {g.id: g for g in self.garnishments}


@dataclass(frozen=True)
class CompanySettings:
    """Immutable settings snapshot.

    Calculations read a loaded snapshot; changes go through ``save`` which
    returns the next version instead of mutating in place.
    """

    legal_name: str
    configurations: CompanyConfigurations = field(default_factory=CompanyConfigurations)
    version: int = 1

    def save(self, **changes) -> CompanySettings:
        """Return a new settings version with updated configuration fields."""
        configurations = replace(self.configurations, **changes)
        return replace(self, configurations=configurations, version=self.version + 1)

    def vacation_policy_for(self, employee: Employee) -> VacationPolicy | None:
        """First vacation policy the employee holds a balance under."""
        for policy in self.configurations.vacation_policies:
            if policy.id in employee.time_off_balances:
                return policy
        return None
