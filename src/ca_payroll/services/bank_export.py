"""Direct deposit file generation."""

from __future__ import annotations

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Mapping, Sequence

from ca_payroll.calculators.types import Paystub
from ca_payroll.domain.employee import Employee

BANK_FILE_HEADER = (
    "RecordType,PayorName,FileCreationNumber,PaymentDate,"
    "PayeeBankDetails,PayeeName,Amount"
)
CREDIT_RECORD = "C"
FILE_CREATION_NUMBER = "001"
MISSING_BANK_DETAILS = "MISSING_BANK_DETAILS"
DEFAULT_PAYOR_NAME = "NorthStar_HCM_Inc"


def payor_name(legal_name: str | None, default: str = DEFAULT_PAYOR_NAME) -> str:
    """Legal name with commas and spaces removed."""
    if not legal_name:
        return default
    cleaned = legal_name.replace(",", "").replace(" ", "")
    return cleaned or default


def amount_in_cents(net_pay: Decimal) -> int:
    return int((net_pay * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def payee_bank_details(employee: Employee | None) -> str:
    account = employee.primary_bank_account if employee is not None else None
    if account is None:
        return MISSING_BANK_DETAILS
    return account.routing


def generate_bank_file(
    paystubs: Sequence[Paystub],
    employees: Mapping[int, Employee],
    payment_date: date,
    legal_name: str | None = None,
    default_payor: str = DEFAULT_PAYOR_NAME,
) -> str:
    """Render one credit record per paystub under a fixed header.

    Only the employee's first bank account is used.
    """
    payor = payor_name(legal_name, default_payor)
    paid_on = payment_date.strftime("%Y%m%d")

    rows = [BANK_FILE_HEADER]
    for paystub in paystubs:
        rows.append(
            ",".join(
                [
                    CREDIT_RECORD,
                    payor,
                    FILE_CREATION_NUMBER,
                    paid_on,
                    payee_bank_details(employees.get(paystub.employee_id)),
                    paystub.employee_name.replace(" ", "_"),
                    str(amount_in_cents(paystub.net_pay)),
                ]
            )
        )
    return "\n".join(rows)
