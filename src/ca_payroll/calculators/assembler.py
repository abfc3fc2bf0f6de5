"""Paystub assembly from calculated lines."""

from __future__ import annotations

from decimal import Decimal
from typing import Sequence

from ca_payroll.calculators.line_builder import LineItemBuilder
from ca_payroll.calculators.types import (
    DeductionType,
    EarningType,
    EmployerContributions,
    Paystub,
    PaystubItem,
    Province,
    StatutoryDeductions,
)
from ca_payroll.domain.company import VacationPolicy


def statutory_lines(statutory: StatutoryDeductions) -> list[PaystubItem]:
    """Federal, provincial, CPP and EI lines, always in that order."""
    quebec = statutory.province == Province.QC
    return [
        LineItemBuilder.create_statutory_line(DeductionType.FEDERAL_TAX, statutory.federal_tax),
        LineItemBuilder.create_statutory_line(
            DeductionType.PROVINCIAL_TAX,
            statutory.provincial_tax,
            description=f"{statutory.province.value} Income Tax",
        ),
        LineItemBuilder.create_statutory_line(
            DeductionType.CPP,
            statutory.cpp,
            description="Quebec Pension Plan" if quebec else None,
        ),
        LineItemBuilder.create_statutory_line(
            DeductionType.EI,
            statutory.ei,
            description="Quebec Parental Insurance Plan" if quebec else None,
        ),
    ]


def accrued_vacation_pay(
    earnings: Sequence[PaystubItem], policy: VacationPolicy | None
) -> Decimal | None:
    """Vacation earned this period under the employee's policy.

    Reported under both payout methods. With ``payout`` the same amount is
    also paid as a "Vacation Pay" earning, so the banked balance nets to
    zero on commit. Vacation earnings are excluded from the base.
    """
    if policy is None or policy.accrual_percent <= 0:
        return None
    vacationable = sum(
        (e.amount for e in earnings if e.type != EarningType.VACATION.value),
        Decimal("0"),
    )
    return LineItemBuilder.round_to_cents(vacationable * policy.accrual_percent / 100)


def assemble(
    employee_id: int,
    employee_name: str,
    pay_period: str,
    earnings: Sequence[PaystubItem],
    statutory: StatutoryDeductions,
    garnishment_deductions: Sequence[PaystubItem],
    recurring_deductions: Sequence[PaystubItem],
    vacation_policy: VacationPolicy | None = None,
) -> Paystub:
    """Combine all lines into a paystub.

    Deduction order: statutory, garnishments (already in priority order),
    recurring deductions (declaration order).
    """
    deductions = (
        statutory_lines(statutory)
        + list(garnishment_deductions)
        + list(recurring_deductions)
    )

    gross_pay = LineItemBuilder.sum_amounts(earnings)
    total_deductions = LineItemBuilder.sum_amounts(deductions)

    return Paystub(
        employee_id=employee_id,
        employee_name=employee_name,
        pay_period=pay_period,
        gross_pay=gross_pay,
        total_deductions=total_deductions,
        net_pay=gross_pay - total_deductions,
        earnings=tuple(earnings),
        deductions=tuple(deductions),
        employer_contributions=EmployerContributions(
            cpp=statutory.employer_cpp,
            ei=statutory.employer_ei,
        ),
        accrued_vacation_pay=accrued_vacation_pay(earnings, vacation_policy),
    )
