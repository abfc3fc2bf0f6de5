"""Run-over-run cost variance and its advisory explanation.

Explanations are advisory only. An explainer receives finished paystubs
and returns text; it never feeds back into any amount.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol, Sequence

from ca_payroll.calculators.classification import BONUS_CODE
from ca_payroll.calculators.line_builder import LineItemBuilder
from ca_payroll.calculators.types import ZERO, Paystub

# Individual gross pay changes above this percentage are called out.
SIGNIFICANT_CHANGE_PERCENT = Decimal("10")


@dataclass(frozen=True)
class VarianceSummary:
    """Total employer cost of the current run against the previous run."""

    current_total_cost: Decimal
    previous_total_cost: Decimal
    variance: Decimal
    variance_percent: Decimal

    @property
    def has_variance(self) -> bool:
        return self.variance != 0


def total_cost(paystubs: Sequence[Paystub]) -> Decimal:
    """Sum of gross pay plus employer CPP and EI."""
    return sum((p.total_cost for p in paystubs), ZERO)


def compute_variance(
    current: Sequence[Paystub], previous: Sequence[Paystub]
) -> VarianceSummary:
    current_cost = total_cost(current)
    previous_cost = total_cost(previous)
    variance = current_cost - previous_cost
    if previous_cost > 0:
        percent = LineItemBuilder.round_to_cents(variance / previous_cost * 100)
    else:
        percent = ZERO
    return VarianceSummary(
        current_total_cost=current_cost,
        previous_total_cost=previous_cost,
        variance=variance,
        variance_percent=percent,
    )


class VarianceExplainer(Protocol):
    """Produces a human-readable explanation of a run-over-run change."""

    async def explain(
        self, current: Sequence[Paystub], previous: Sequence[Paystub]
    ) -> str:
        ...


@dataclass(frozen=True)
class GrossChange:
    employee_id: int
    employee_name: str
    previous_gross: Decimal
    current_gross: Decimal

    @property
    def change(self) -> Decimal:
        return self.current_gross - self.previous_gross

    @property
    def percent(self) -> Decimal:
        if self.previous_gross <= 0:
            return ZERO
        return self.change / self.previous_gross * 100


def significant_gross_changes(
    current: Sequence[Paystub],
    previous: Sequence[Paystub],
    threshold: Decimal = SIGNIFICANT_CHANGE_PERCENT,
) -> list[GrossChange]:
    """Employees present in both runs whose gross moved more than ``threshold``%."""
    previous_by_id = {p.employee_id: p for p in previous}
    changes = []
    for paystub in current:
        before = previous_by_id.get(paystub.employee_id)
        if before is None:
            continue
        change = GrossChange(
            employee_id=paystub.employee_id,
            employee_name=paystub.employee_name,
            previous_gross=before.gross_pay,
            current_gross=paystub.gross_pay,
        )
        if abs(change.percent) > threshold:
            changes.append(change)
    return changes


class RulesBaselineExplainer:
    """Deterministic explainer used when no language model is configured.

    Covers headcount changes, large individual gross pay changes and one-time
    bonus lines, then summarizes the totals.
    """

    model_name = "rules_baseline"

    async def explain(
        self, current: Sequence[Paystub], previous: Sequence[Paystub]
    ) -> str:
        return self.render(current, previous)

    def render(self, current: Sequence[Paystub], previous: Sequence[Paystub]) -> str:
        current_ids = {p.employee_id for p in current}
        previous_ids = {p.employee_id for p in previous}

        new_hires = [p.employee_name for p in current if p.employee_id not in previous_ids]
        departures = [p.employee_name for p in previous if p.employee_id not in current_ids]

        current_gross = sum((p.gross_pay for p in current), ZERO)
        previous_gross = sum((p.gross_pay for p in previous), ZERO)

        lines = [
            f"- Total gross pay: ${previous_gross:,.2f} ({len(previous)} employees) "
            f"-> ${current_gross:,.2f} ({len(current)} employees)",
            f"- New hires: {', '.join(new_hires) if new_hires else 'None'}",
            f"- Terminations: {', '.join(departures) if departures else 'None'}",
        ]

        changes = significant_gross_changes(current, previous)
        if changes:
            lines.append("- Significant individual pay changes:")
            for change in changes:
                sign = "+" if change.change > 0 else "-"
                lines.append(
                    f"  - {change.employee_name}: Gross pay changed by "
                    f"{change.percent:.1f}% ({sign}${abs(change.change):.2f})"
                )
        else:
            lines.append("- Significant individual pay changes: None")

        one_time = [
            p.employee_name
            for p in current
            if any(e.code_id == BONUS_CODE or "adjustment" in e.description.lower()
                   for e in p.earnings)
        ]
        if one_time:
            lines.append(f"- One-time payments this run: {', '.join(one_time)}")

        return "\n".join(lines)
