"""Garnishment resolution in configured priority order."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping, Sequence

from ca_payroll.calculators.line_builder import LineItemBuilder
from ca_payroll.calculators.types import ZERO, PaystubItem
from ca_payroll.domain.company import CalculationMethod, GarnishmentConfiguration
from ca_payroll.domain.employee import EmployeeGarnishment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GarnishmentResult:
    lines: tuple[PaystubItem, ...]
    warnings: tuple[str, ...]

    @property
    def total(self) -> Decimal:
        return LineItemBuilder.sum_amounts(self.lines)


def apply_garnishments(
    employee_garnishments: Sequence[EmployeeGarnishment],
    configs: Mapping[str, GarnishmentConfiguration],
    gross_pay: Decimal,
    net_before_garnishment: Decimal,
) -> GarnishmentResult:
    """Deduct garnishments by (priority, configuration id).

    Assignments whose configuration does not resolve are not charged; each
    produces a warning so the skip is visible to the caller. No minimum-net
    floor is enforced.
    """
    warnings: list[str] = []
    resolved: list[tuple[GarnishmentConfiguration, EmployeeGarnishment]] = []

    for assignment in employee_garnishments:
        config = configs.get(assignment.config_id)
        if config is None:
            logger.warning(
                "Skipping garnishment with unknown configuration %s", assignment.config_id
            )
            warnings.append(
                f"Garnishment configuration '{assignment.config_id}' not found; "
                f"assigned amount {assignment.amount} was not deducted"
            )
            continue
        resolved.append((config, assignment))

    resolved.sort(key=lambda pair: (pair[0].priority, pair[0].id, pair[1].amount))

    lines: list[PaystubItem] = []
    for config, assignment in resolved:
        if config.calculation_type == CalculationMethod.PERCENTAGE_OF_GROSS:
            amount = gross_pay * assignment.amount / 100
        else:
            amount = assignment.amount

        amount = LineItemBuilder.round_to_cents(amount)
        if amount <= 0:
            continue

        lines.append(
            LineItemBuilder.create_garnishment_line(
                config_id=config.id,
                description=config.name,
                amount=amount,
            )
        )

    total = LineItemBuilder.sum_amounts(lines)
    if lines and total > max(net_before_garnishment, ZERO):
        warnings.append(
            f"Garnishments of {total} exceed net pay before garnishment of {net_before_garnishment}"
        )

    return GarnishmentResult(lines=tuple(lines), warnings=tuple(warnings))
