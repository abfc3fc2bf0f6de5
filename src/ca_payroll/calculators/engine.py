"""Payroll calculation engine - per-employee pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from ca_payroll.calculators.assembler import accrued_vacation_pay, assemble
from ca_payroll.calculators.classification import (
    BONUS_CODE,
    REGULAR_PAY_CODE,
    VACATION_PAYOUT_CODE,
    CodeCatalog,
    build_recurring_earnings,
    compute_recurring_deductions,
)
from ca_payroll.calculators.garnishments import apply_garnishments
from ca_payroll.calculators.line_builder import LineItemBuilder
from ca_payroll.calculators.premium_pay import overtime_line, stat_holiday_lines
from ca_payroll.calculators.tax_calculator import StatutoryCalculator
from ca_payroll.calculators.tax_tables import TaxYearTables
from ca_payroll.calculators.types import (
    ZERO,
    AdjustmentKind,
    EarningType,
    LineCategory,
    Paystub,
    PaystubItem,
)
from ca_payroll.domain.company import CompanySettings, VacationPayoutMethod
from ca_payroll.domain.employee import Employee, EmployeeProfile


@dataclass(frozen=True)
class EarningAdjustment:
    """One ad hoc earning applied on top of regular pay.

    Overtime is given in ``hours`` and priced from the employee's profile;
    the other kinds carry a dollar ``amount``.
    """

    kind: AdjustmentKind
    amount: Decimal = ZERO
    hours: Decimal | None = None

    def to_line(self, profile: EmployeeProfile) -> PaystubItem | None:
        if self.kind == AdjustmentKind.OVERTIME:
            return overtime_line(profile, self.hours) if self.hours else None
        if self.amount == 0:
            return None
        if self.kind == AdjustmentKind.VACATION_PAYOUT:
            return LineItemBuilder.create_earning_line(
                EarningType.VACATION, "Vacation Payout", self.amount, code_id=VACATION_PAYOUT_CODE
            )
        return LineItemBuilder.create_earning_line(
            EarningType.BONUS, "One-time adjustment", self.amount, code_id=BONUS_CODE
        )


@dataclass(frozen=True)
class EmployeeCalculation:
    """Result of calculating pay for one employee."""

    paystub: Paystub
    warnings: tuple[str, ...] = ()


class PayrollEngine:
    """Per-employee calculation pipeline.

    Stable order per employee:
    1) Resolve the profile in effect on ``as_of_date``
    2) Build earnings: regular pay, statutory holiday pay (hourly only),
       recurring earnings, ad hoc adjustment, vacation payout (``payout``
       policy only)
    3) Compute recurring deductions against gross
    4) Statutory withholding from the classified bases
    5) Garnishments against net-of-statutory pay (priority order)
    6) Assemble the paystub

    The engine reads an immutable settings snapshot and performs no I/O, so
    identical inputs yield identical paystubs.
    """

    def __init__(self, settings: CompanySettings, tables: TaxYearTables):
        self.settings = settings
        self.tables = tables
        self.catalog = CodeCatalog.from_configurations(settings.configurations)
        self.garnishment_configs = settings.configurations.garnishment_map()
        self.statutory_calculator = StatutoryCalculator(tables)

    def base_gross_pay(self, employee: Employee, profile: EmployeeProfile) -> Decimal:
        """Regular pay for one period: annual pay / periods per year."""
        return LineItemBuilder.round_to_cents(profile.annual_pay() / employee.periods_per_year)

    def build_earnings(
        self,
        employee: Employee,
        profile: EmployeeProfile,
        adjustment: EarningAdjustment | None = None,
        pay_period: str = "",
    ) -> list[PaystubItem]:
        configurations = self.settings.configurations
        earnings = [
            LineItemBuilder.create_earning_line(
                EarningType.REGULAR,
                "Regular Pay",
                self.base_gross_pay(employee, profile),
                code_id=REGULAR_PAY_CODE,
            )
        ]
        earnings.extend(
            stat_holiday_lines(profile, configurations.statutory_holidays, pay_period)
        )
        earnings.extend(build_recurring_earnings(employee.recurring_earnings, self.catalog))

        if adjustment is not None:
            line = adjustment.to_line(profile)
            if line is not None:
                earnings.append(line)

        if configurations.vacation_payout_method == VacationPayoutMethod.PAYOUT:
            payout = accrued_vacation_pay(earnings, self.settings.vacation_policy_for(employee))
            if payout:
                earnings.append(
                    LineItemBuilder.create_earning_line(
                        EarningType.VACATION, "Vacation Pay", payout, code_id=VACATION_PAYOUT_CODE
                    )
                )

        return earnings

    def calculate(
        self,
        employee: Employee,
        pay_period: str,
        as_of_date: date,
        adjustment: EarningAdjustment | None = None,
    ) -> EmployeeCalculation:
        """Calculate one employee's paystub."""
        profile = employee.profile_as_of(as_of_date).profile

        earnings = self.build_earnings(employee, profile, adjustment, pay_period)
        gross = LineItemBuilder.sum_amounts(earnings)

        recurring = compute_recurring_deductions(
            employee.recurring_deductions, self.catalog, gross
        )
        pre_tax = [d for d in recurring if d.category == LineCategory.PRE_TAX]

        statutory = self.statutory_calculator.compute(
            earnings,
            pre_tax,
            self.catalog,
            ytd=employee.ytd,
            birth_date=profile.date_of_birth,
            province=profile.province,
            pay_frequency=employee.pay_frequency,
            as_of_date=as_of_date,
            tax_credits=employee.tax_credits,
        )

        garnishments = apply_garnishments(
            employee.garnishments,
            self.garnishment_configs,
            gross_pay=gross,
            net_before_garnishment=gross - statutory.employee_total,
        )

        paystub = assemble(
            employee_id=employee.id,
            employee_name=profile.name,
            pay_period=pay_period,
            earnings=earnings,
            statutory=statutory,
            garnishment_deductions=garnishments.lines,
            recurring_deductions=recurring,
            vacation_policy=self.settings.vacation_policy_for(employee),
        )
        return EmployeeCalculation(paystub=paystub, warnings=garnishments.warnings)
