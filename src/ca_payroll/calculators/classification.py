"""Earning/deduction code resolution and income base classification."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Sequence

from ca_payroll.calculators.line_builder import LineItemBuilder
from ca_payroll.calculators.types import ZERO, EarningType, IncomeBases, PaystubItem
from ca_payroll.domain.company import (
    CalculationMethod,
    CompanyConfigurations,
    DeductionCode,
    EarningCode,
)
from ca_payroll.domain.employee import EmployeeDeduction, EmployeeEarning
from ca_payroll.exceptions import DataIntegrityError

REGULAR_PAY_CODE = "reg-pay"
BONUS_CODE = "bonus-disc"
VACATION_PAYOUT_CODE = "vacation-payout"
OVERTIME_CODE = "overtime"
STAT_HOLIDAY_CODE = "stat-holiday"

# Codes the engine itself emits; always resolvable.
SYSTEM_EARNING_CODES: tuple[EarningCode, ...] = (
    EarningCode(id=REGULAR_PAY_CODE, name="Regular Pay", type=EarningType.REGULAR),
    EarningCode(id=BONUS_CODE, name="Bonus", type=EarningType.BONUS),
    EarningCode(id=VACATION_PAYOUT_CODE, name="Vacation Payout", type=EarningType.VACATION),
    EarningCode(id=OVERTIME_CODE, name="Overtime", type=EarningType.OVERTIME),
    EarningCode(id=STAT_HOLIDAY_CODE, name="Statutory Holiday Pay", type=EarningType.STAT_HOLIDAY),
)


@dataclass(frozen=True)
class CodeCatalog:
    """Lookup of earning and deduction codes active for a calculation."""

    earning_codes: dict[str, EarningCode]
    deduction_codes: dict[str, DeductionCode]

    @classmethod
    def from_configurations(cls, configurations: CompanyConfigurations) -> CodeCatalog:
        earning_codes = {c.id: c for c in SYSTEM_EARNING_CODES}
        earning_codes.update({c.id: c for c in configurations.earning_codes})
        return cls(
            earning_codes=earning_codes,
            deduction_codes={c.id: c for c in configurations.deduction_codes},
        )

    def earning_code(self, code_id: str) -> EarningCode:
        try:
            return self.earning_codes[code_id]
        except KeyError:
            raise DataIntegrityError(f"Unknown earning code '{code_id}'") from None

    def deduction_code(self, code_id: str) -> DeductionCode:
        try:
            return self.deduction_codes[code_id]
        except KeyError:
            raise DataIntegrityError(f"Unknown deduction code '{code_id}'") from None


def build_recurring_earnings(
    recurring: Sequence[EmployeeEarning], catalog: CodeCatalog
) -> list[PaystubItem]:
    """Recurring earnings become earning lines described by their code."""
    lines: list[PaystubItem] = []
    for earning in recurring:
        code = catalog.earning_code(earning.code_id)
        lines.append(
            LineItemBuilder.create_earning_line(
                earning_type=code.type,
                description=code.name,
                amount=earning.amount,
                code_id=code.id,
            )
        )
    return lines


def compute_recurring_deductions(
    recurring: Sequence[EmployeeDeduction],
    catalog: CodeCatalog,
    gross_pay: Decimal,
) -> list[PaystubItem]:
    """Recurring deduction lines in declaration order."""
    lines: list[PaystubItem] = []
    for deduction in recurring:
        code = catalog.deduction_code(deduction.code_id)

        if code.calculation_method == CalculationMethod.PERCENTAGE_OF_GROSS:
            amount = gross_pay * deduction.amount / 100
        else:
            amount = deduction.amount

        amount = LineItemBuilder.round_to_cents(amount)
        if amount <= 0:
            continue

        lines.append(
            LineItemBuilder.create_deduction_line(
                code_id=code.id,
                description=code.name,
                amount=amount,
                pretax=code.is_pretax,
            )
        )
    return lines


def classify_income(
    earnings: Iterable[PaystubItem],
    pre_tax_deductions: Iterable[PaystubItem],
    catalog: CodeCatalog,
) -> IncomeBases:
    """Split period income into taxable, pensionable and insurable bases.

    Earnings without a code count toward every base. Bases are clamped at
    zero after pre-tax reductions.
    """
    taxable = pensionable = insurable = ZERO

    for item in earnings:
        if item.code_id is None:
            taxable += item.amount
            pensionable += item.amount
            insurable += item.amount
            continue
        code = catalog.earning_code(item.code_id)
        if code.is_taxable:
            taxable += item.amount
        if code.is_pensionable:
            pensionable += item.amount
        if code.is_insurable:
            insurable += item.amount

    for item in pre_tax_deductions:
        if item.code_id is None:
            continue
        code = catalog.deduction_code(item.code_id)
        if not code.is_pretax:
            continue
        if code.reduces_taxable_income:
            taxable -= item.amount
        if code.reduces_pensionable_earnings:
            pensionable -= item.amount
        if code.reduces_insurable_earnings:
            insurable -= item.amount

    return IncomeBases(
        taxable=max(taxable, ZERO),
        pensionable=max(pensionable, ZERO),
        insurable=max(insurable, ZERO),
    )
