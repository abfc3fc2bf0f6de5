"""Pay run service - orchestrates a batch run from selection to commit."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Sequence

from ca_payroll.calculators.engine import EarningAdjustment, PayrollEngine
from ca_payroll.calculators.tax_tables import TaxYearTables, get_tax_tables
from ca_payroll.calculators.types import AdjustmentKind, Paystub
from ca_payroll.config import Settings, get_settings
from ca_payroll.domain.company import CompanySettings
from ca_payroll.domain.employee import Employee
from ca_payroll.exceptions import (
    CommitError,
    ConcurrentAdjustmentError,
    PayrollRunFailedError,
    PerEmployeeCalculationError,
    RunStartError,
    ValidationError,
)
from ca_payroll.services.bank_export import generate_bank_file
from ca_payroll.services.data_source import CommitReceipt, CommittedRun, PayrollDataSource
from ca_payroll.services.state_machine import PayRunStateMachine, PayRunStep
from ca_payroll.services.variance import (
    RulesBaselineExplainer,
    VarianceExplainer,
    VarianceSummary,
    compute_variance,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]

EXPLANATION_UNAVAILABLE = (
    "An error occurred while analyzing the data. "
    "The variance could not be explained automatically."
)


@dataclass
class PayrollRunResult:
    """Outcome of a batch calculation."""

    paystubs: list[Paystub]
    failures: dict[int, str] = field(default_factory=dict)
    warnings: dict[int, list[str]] = field(default_factory=dict)

    @property
    def success_count(self) -> int:
        return len(self.paystubs)

    @property
    def failure_count(self) -> int:
        return len(self.failures)


class PayRunService:
    """Service for managing one tenant's payroll run lifecycle.

    Operations:
    - load: fetch employees, company settings and history
    - run_payroll: calculate every selected employee (select → calculating → preview)
    - recalculate_single: swap an ad hoc earning into one previewed paystub
    - commit: persist the preview through the data source (preview → committed)
    - discard / start_new_run: back to select

    Employees are calculated one at a time on the event loop. A failure is
    recorded against that employee and the batch continues.
    """

    def __init__(
        self,
        data_source: PayrollDataSource,
        tenant_id: str,
        tables: TaxYearTables | None = None,
        explainer: VarianceExplainer | None = None,
        config: Settings | None = None,
    ):
        self.data_source = data_source
        self.tenant_id = tenant_id
        self.config = config or get_settings()
        self.tables = tables or get_tax_tables(self.config.tax_year)
        self.explainer = explainer or RulesBaselineExplainer()

        self.step = PayRunStep.SELECT
        self.employees: dict[int, Employee] = {}
        self.total_employees = 0
        self.company_settings: CompanySettings | None = None
        self.previous_run: CommittedRun | None = None

        self.pay_period = ""
        self.as_of_date: date | None = None
        self.progress = 0.0
        self.selected_ids: list[int] = []
        self.run_employees: dict[int, Employee] = {}
        self.paystubs: dict[int, Paystub] = {}
        self.failures: dict[int, str] = {}
        self.warnings: dict[int, list[str]] = {}
        self.last_receipt: CommitReceipt | None = None

        self._engine: PayrollEngine | None = None
        self._busy: set[int] = set()

    # -- loading ---------------------------------------------------------

    async def load(self) -> None:
        """Fetch employees, settings and history for the tenant."""
        try:
            page = await self.data_source.fetch_employees(
                self.tenant_id, self.config.employee_fetch_limit
            )
            company_settings = await self.data_source.fetch_company_settings(self.tenant_id)
            history = await self.data_source.fetch_payroll_history(self.tenant_id)
        except Exception as e:
            logger.exception("Failed to load payroll data for tenant %s", self.tenant_id)
            raise RunStartError(f"Could not load payroll data: {e}") from e

        self.employees = {e.id: e for e in page.data}
        self.total_employees = page.total
        self.company_settings = company_settings
        self.previous_run = history[0] if history else None

    def select_employees(self, employee_ids: Sequence[int]) -> list[Employee]:
        """Resolve ids against the loaded employees."""
        unknown = [i for i in employee_ids if i not in self.employees]
        if unknown:
            raise ValidationError(f"Unknown employee id(s): {unknown}")
        return [self.employees[i] for i in employee_ids]

    # -- batch run -------------------------------------------------------

    @property
    def current_paystubs(self) -> list[Paystub]:
        """Paystubs in selection order."""
        return [self.paystubs[i] for i in self.selected_ids if i in self.paystubs]

    async def run_payroll(
        self,
        employees: Sequence[Employee],
        pay_period: str,
        on_progress: ProgressCallback | None = None,
        as_of_date: date | None = None,
    ) -> PayrollRunResult:
        """Calculate paystubs for the selected employees.

        Progress is reported after every employee, success or failure.

        Raises:
            InvalidTransitionError: The run is not in ``select``
            ValidationError: Empty selection or blank pay period
            PayrollRunFailedError: Every employee failed; the run returns to ``select``
        """
        PayRunStateMachine.validate_transition(self.step, PayRunStep.CALCULATING)
        if not employees:
            raise ValidationError("Select at least one employee to run payroll")
        if not pay_period or not pay_period.strip():
            raise ValidationError("Pay period is required")

        if self.company_settings is None:
            await self.load()
        if self.company_settings is None:
            raise RunStartError("Company settings are not loaded")

        self._engine = PayrollEngine(self.company_settings, self.tables)
        self.pay_period = pay_period
        self.as_of_date = as_of_date or date.today()
        self.selected_ids = [e.id for e in employees]
        self.run_employees = {e.id: e for e in employees}
        self.paystubs = {}
        self.failures = {}
        self.warnings = {}
        self.progress = 0.0
        self.step = PayRunStep.CALCULATING

        total = len(employees)
        for index, employee in enumerate(employees):
            try:
                calculation = self._engine.calculate(employee, pay_period, self.as_of_date)
            except Exception as e:
                error = PerEmployeeCalculationError(employee.id, str(e))
                logger.exception("%s", error.message)
                self.failures[employee.id] = error.message
            else:
                self.paystubs[employee.id] = calculation.paystub
                if calculation.warnings:
                    self.warnings[employee.id] = list(calculation.warnings)

            self.progress = (index + 1) / total * 100
            if on_progress is not None:
                on_progress(self.progress)
            await asyncio.sleep(0)

        if not self.paystubs:
            PayRunStateMachine.validate_transition(self.step, PayRunStep.SELECT)
            self.step = PayRunStep.SELECT
            raise PayrollRunFailedError(dict(self.failures))

        PayRunStateMachine.validate_transition(self.step, PayRunStep.PREVIEW)
        self.step = PayRunStep.PREVIEW
        logger.info(
            "Payroll run %s for tenant %s: %d calculated, %d failed",
            pay_period,
            self.tenant_id,
            len(self.paystubs),
            len(self.failures),
        )
        return PayrollRunResult(
            paystubs=self.current_paystubs,
            failures=dict(self.failures),
            warnings={k: list(v) for k, v in self.warnings.items()},
        )

    # -- adjustments -----------------------------------------------------

    def is_busy(self, employee_id: int) -> bool:
        return employee_id in self._busy

    def _validate_adjustment(self, employee_id: int, adjustment: EarningAdjustment) -> Employee:
        if not PayRunStateMachine.can_adjust(self.step):
            raise ValidationError(
                f"Adjustments are only allowed in preview (current step: {self.step.value})"
            )
        if employee_id not in self.run_employees:
            raise ValidationError(f"Employee {employee_id} is not part of this run")
        if adjustment.amount < 0:
            raise ValidationError("Adjustment amount cannot be negative")

        employee = self.run_employees[employee_id]
        if adjustment.kind == AdjustmentKind.OVERTIME and (
            adjustment.hours is None or adjustment.hours <= 0
        ):
            raise ValidationError("Overtime adjustments need a positive number of hours")
        if adjustment.kind == AdjustmentKind.VACATION_PAYOUT:
            balance = employee.ytd.vacation_pay
            if adjustment.amount > balance:
                raise ValidationError(
                    f"Vacation payout of {adjustment.amount} exceeds available "
                    f"balance of {balance}"
                )
        return employee

    async def recalculate_single(
        self,
        employee_id: int,
        adjustment: EarningAdjustment,
    ) -> Paystub:
        """Recalculate one employee with ``adjustment`` and replace their paystub.

        The adjustment replaces any earlier one for the same employee. A
        rejected adjustment leaves the preview untouched.
        """
        if employee_id in self._busy:
            raise ConcurrentAdjustmentError(employee_id)
        employee = self._validate_adjustment(employee_id, adjustment)
        if self._engine is None or self.as_of_date is None:
            raise ValidationError("The run has no calculated preview to adjust")

        self._busy.add(employee_id)
        try:
            await asyncio.sleep(0)
            if not PayRunStateMachine.can_adjust(self.step):
                raise ValidationError("The run left preview while the adjustment was pending")
            try:
                calculation = self._engine.calculate(
                    employee, self.pay_period, self.as_of_date, adjustment=adjustment
                )
            except Exception as e:
                logger.exception("Adjustment failed for employee %s", employee_id)
                raise PerEmployeeCalculationError(employee_id, str(e)) from e
        finally:
            self._busy.discard(employee_id)

        self.paystubs[employee_id] = calculation.paystub
        self.failures.pop(employee_id, None)
        if calculation.warnings:
            self.warnings[employee_id] = list(calculation.warnings)
        else:
            self.warnings.pop(employee_id, None)
        return calculation.paystub

    # -- commit ----------------------------------------------------------

    async def commit(self, confirm: bool) -> CommitReceipt:
        """Persist the previewed paystubs in one atomic data source call.

        On failure the run stays in preview and can be retried.
        """
        PayRunStateMachine.validate_transition(self.step, PayRunStep.COMMITTED)
        if not confirm:
            raise ValidationError("Commit must be explicitly confirmed")
        if self._busy:
            raise ValidationError("Wait for pending adjustments before committing")

        paystubs = self.current_paystubs
        try:
            receipt = await self.data_source.commit_payroll_run(paystubs, self.tenant_id)
        except Exception as e:
            logger.exception("Commit failed for tenant %s", self.tenant_id)
            raise CommitError(f"Failed to commit payroll run: {e}") from e

        self.step = PayRunStep.COMMITTED
        self.last_receipt = receipt
        logger.info(
            "Committed %d paystubs for tenant %s (fingerprint %s)",
            receipt.paystub_count,
            self.tenant_id,
            receipt.fingerprint,
        )
        return receipt

    def discard(self) -> None:
        """Throw away the preview and return to selection."""
        PayRunStateMachine.validate_transition(self.step, PayRunStep.SELECT)
        self._reset()

    async def start_new_run(self) -> None:
        """Reload data after a commit; the committed run becomes the baseline."""
        PayRunStateMachine.validate_transition(self.step, PayRunStep.SELECT)
        await self.load()
        self._reset()

    def _reset(self) -> None:
        self.step = PayRunStep.SELECT
        self.pay_period = ""
        self.as_of_date = None
        self.progress = 0.0
        self.selected_ids = []
        self.run_employees = {}
        self.paystubs = {}
        self.failures = {}
        self.warnings = {}
        self._engine = None

    # -- reporting -------------------------------------------------------

    @property
    def previous_paystubs(self) -> list[Paystub]:
        return list(self.previous_run.paystubs) if self.previous_run else []

    def variance(self) -> VarianceSummary:
        return compute_variance(self.current_paystubs, self.previous_paystubs)

    async def explain_variance(self) -> str:
        """Advisory explanation of the cost change against the previous run."""
        if self.previous_run is None:
            return "No previous payroll run to compare against."
        try:
            return await self.explainer.explain(self.current_paystubs, self.previous_paystubs)
        except Exception:
            logger.exception("Variance explanation failed for tenant %s", self.tenant_id)
            return EXPLANATION_UNAVAILABLE

    def bank_file(self, payment_date: date) -> str:
        if self.step not in (PayRunStep.PREVIEW, PayRunStep.COMMITTED):
            raise ValidationError("Bank file requires a calculated run")
        legal_name = self.company_settings.legal_name if self.company_settings else None
        return generate_bank_file(
            self.current_paystubs,
            {**self.employees, **self.run_employees},
            payment_date,
            legal_name=legal_name,
            default_payor=self.config.default_payor_name,
        )
