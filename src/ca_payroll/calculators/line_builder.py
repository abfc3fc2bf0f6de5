"""Paystub line builder with idempotent hashing."""

from __future__ import annotations

import hashlib
import json
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from ca_payroll.calculators.types import (
    ZERO,
    DeductionType,
    EarningType,
    LineCategory,
    Paystub,
    PaystubItem,
)
from ca_payroll.exceptions import DataIntegrityError


class LineItemBuilder:
    """Builds paystub lines with consistent rounding.

    Conventions:
    - every line amount is positive; the category decides whether it adds
      to gross or to total deductions. Deduction amounts are taken as
      absolute values, negative earnings are rejected
    - amounts are rounded to cents (ROUND_HALF_UP) when a line is created;
      intermediate calculations keep full precision
    """

    OUTPUT_PRECISION = Decimal("0.01")

    @staticmethod
    def round_to_cents(amount: Decimal) -> Decimal:
        """Round amount to 2 decimal places (cents)."""
        return amount.quantize(LineItemBuilder.OUTPUT_PRECISION, rounding=ROUND_HALF_UP)

    @staticmethod
    def create_earning_line(
        earning_type: EarningType | str,
        description: str,
        amount: Decimal,
        code_id: str | None = None,
        rate: Decimal | None = None,
        hours: Decimal | None = None,
    ) -> PaystubItem:
        """Earning line. Negative amounts raise DataIntegrityError."""
        if amount < 0:
            raise DataIntegrityError(f"Earning '{description}' has negative amount {amount}")
        type_value = earning_type.value if isinstance(earning_type, EarningType) else earning_type
        return PaystubItem(
            category=LineCategory.EARNING,
            type=type_value,
            description=description,
            amount=LineItemBuilder.round_to_cents(amount),
            code_id=code_id,
            rate=rate,
            hours=hours,
        )

    @staticmethod
    def create_statutory_line(
        deduction_type: DeductionType, amount: Decimal, description: str | None = None
    ) -> PaystubItem:
        return PaystubItem(
            category=LineCategory.STATUTORY,
            type=deduction_type.value,
            description=description or deduction_type.value,
            amount=LineItemBuilder.round_to_cents(abs(amount)),
        )

    @staticmethod
    def create_garnishment_line(
        config_id: str, description: str, amount: Decimal
    ) -> PaystubItem:
        return PaystubItem(
            category=LineCategory.GARNISHMENT,
            type=DeductionType.GARNISHMENT.value,
            description=description,
            amount=LineItemBuilder.round_to_cents(abs(amount)),
            code_id=config_id,
        )

    @staticmethod
    def create_deduction_line(
        code_id: str, description: str, amount: Decimal, pretax: bool
    ) -> PaystubItem:
        category = LineCategory.PRE_TAX if pretax else LineCategory.POST_TAX
        deduction_type = DeductionType.PRE_TAX if pretax else DeductionType.POST_TAX
        return PaystubItem(
            category=category,
            type=deduction_type.value,
            description=description,
            amount=LineItemBuilder.round_to_cents(abs(amount)),
            code_id=code_id,
        )

    @staticmethod
    def sum_amounts(lines: Iterable[PaystubItem]) -> Decimal:
        return LineItemBuilder.round_to_cents(sum((line.amount for line in lines), ZERO))

    @staticmethod
    def compute_paystub_hash(paystub: Paystub) -> str:
        """Deterministic hash of a paystub's defining fields."""
        json_str = json.dumps(paystub.to_canonical_dict(), sort_keys=True)
        return hashlib.sha256(json_str.encode()).hexdigest()[:32]

    @staticmethod
    def compute_run_fingerprint(paystubs: Iterable[Paystub]) -> str:
        """Order-independent fingerprint of a whole run."""
        hashes = sorted(LineItemBuilder.compute_paystub_hash(p) for p in paystubs)
        return hashlib.sha256(json.dumps(hashes).encode()).hexdigest()[:32]
