"""Persistence boundary for employees, settings and payroll history."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Protocol, Sequence

from ca_payroll.calculators.line_builder import LineItemBuilder
from ca_payroll.calculators.types import Paystub
from ca_payroll.domain.company import CompanySettings
from ca_payroll.domain.employee import Employee, roll_ytd_forward
from ca_payroll.exceptions import DataIntegrityError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmployeePage:
    data: list[Employee]
    total: int


@dataclass(frozen=True)
class CommittedRun:
    """A payroll run as recorded in history."""

    fingerprint: str
    paystubs: tuple[Paystub, ...]
    committed_at: datetime
    pay_period: str = ""


@dataclass(frozen=True)
class CommitReceipt:
    fingerprint: str
    paystub_count: int
    already_committed: bool = False


class PayrollDataSource(Protocol):
    """Everything the run orchestrator needs from storage.

    ``commit_payroll_run`` is atomic: either every paystub and every YTD
    update is recorded or nothing is. Committing a run whose fingerprint
    is already recorded is a no-op.
    """

    async def fetch_employees(self, tenant_id: str, limit: int) -> EmployeePage:
        ...

    async def fetch_company_settings(self, tenant_id: str) -> CompanySettings:
        ...

    async def fetch_payroll_history(self, tenant_id: str) -> list[CommittedRun]:
        """Committed runs, most recent first."""
        ...

    async def commit_payroll_run(
        self, paystubs: Sequence[Paystub], tenant_id: str
    ) -> CommitReceipt:
        ...

    async def save_company_settings(
        self, settings: CompanySettings, tenant_id: str
    ) -> CompanySettings:
        ...


def run_pay_period(paystubs: Sequence[Paystub]) -> str:
    return paystubs[0].pay_period if paystubs else ""


@dataclass
class TenantData:
    settings: CompanySettings
    employees: dict[int, Employee] = field(default_factory=dict)
    history: list[CommittedRun] = field(default_factory=list)


class InMemoryDataSource:
    """Dict-backed data source for tests, demos and local runs.

    ``fail_next`` flags make the next call of that kind raise, which is how
    tests exercise the orchestrator's error paths.
    """

    def __init__(self) -> None:
        self._tenants: dict[str, TenantData] = {}
        self.fail_next_fetch = False
        self.fail_next_commit = False

    def add_tenant(
        self,
        tenant_id: str,
        settings: CompanySettings,
        employees: Sequence[Employee] = (),
        history: Sequence[CommittedRun] = (),
    ) -> None:
        self._tenants[tenant_id] = TenantData(
            settings=settings,
            employees={e.id: e for e in employees},
            history=list(history),
        )

    def _tenant(self, tenant_id: str) -> TenantData:
        try:
            return self._tenants[tenant_id]
        except KeyError:
            raise LookupError(f"Unknown tenant '{tenant_id}'") from None

    def _check_fetch(self) -> None:
        if self.fail_next_fetch:
            self.fail_next_fetch = False
            raise ConnectionError("Simulated fetch failure")

    async def fetch_employees(self, tenant_id: str, limit: int) -> EmployeePage:
        self._check_fetch()
        employees = sorted(self._tenant(tenant_id).employees.values(), key=lambda e: e.id)
        return EmployeePage(data=employees[:limit], total=len(employees))

    async def fetch_company_settings(self, tenant_id: str) -> CompanySettings:
        self._check_fetch()
        return self._tenant(tenant_id).settings

    async def fetch_payroll_history(self, tenant_id: str) -> list[CommittedRun]:
        self._check_fetch()
        return list(self._tenant(tenant_id).history)

    async def get_employee(self, tenant_id: str, employee_id: int) -> Employee | None:
        return self._tenant(tenant_id).employees.get(employee_id)

    async def commit_payroll_run(
        self, paystubs: Sequence[Paystub], tenant_id: str
    ) -> CommitReceipt:
        if self.fail_next_commit:
            self.fail_next_commit = False
            raise ConnectionError("Simulated commit failure")

        tenant = self._tenant(tenant_id)
        fingerprint = LineItemBuilder.compute_run_fingerprint(paystubs)
        if any(run.fingerprint == fingerprint for run in tenant.history):
            logger.info("Run %s already committed for tenant %s", fingerprint, tenant_id)
            return CommitReceipt(fingerprint, len(paystubs), already_committed=True)

        # All or nothing: stage YTD updates before touching tenant state.
        updated: dict[int, Employee] = {}
        for paystub in paystubs:
            employee = tenant.employees.get(paystub.employee_id)
            if employee is None:
                raise DataIntegrityError(
                    f"Paystub references unknown employee {paystub.employee_id}"
                )
            updated[employee.id] = employee.with_ytd(roll_ytd_forward(employee.ytd, paystub))

        tenant.employees.update(updated)
        tenant.history.insert(
            0,
            CommittedRun(
                fingerprint=fingerprint,
                paystubs=tuple(paystubs),
                committed_at=datetime.now(timezone.utc),
                pay_period=run_pay_period(paystubs),
            ),
        )
        return CommitReceipt(fingerprint, len(paystubs))

    async def save_company_settings(
        self, settings: CompanySettings, tenant_id: str
    ) -> CompanySettings:
        tenant = self._tenant(tenant_id)
        saved = replace(settings, version=tenant.settings.version + 1)
        tenant.settings = saved
        return saved
