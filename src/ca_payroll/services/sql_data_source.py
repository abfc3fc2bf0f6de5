"""Async SQLAlchemy implementation of the payroll data source."""

from __future__ import annotations

import logging
from typing import Any, Sequence

from pydantic import TypeAdapter
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from ca_payroll.calculators.line_builder import LineItemBuilder
from ca_payroll.calculators.types import ZERO, Paystub
from ca_payroll.domain.company import CompanySettings
from ca_payroll.domain.employee import Employee, roll_ytd_forward
from ca_payroll.exceptions import DataIntegrityError
from ca_payroll.models import (
    CompanySettingsRecord,
    EmployeeRecord,
    PayrollRunRecord,
    PaystubRecord,
)
from ca_payroll.services.data_source import (
    CommitReceipt,
    CommittedRun,
    EmployeePage,
    run_pay_period,
)

logger = logging.getLogger(__name__)

employee_adapter = TypeAdapter(Employee)
settings_adapter = TypeAdapter(CompanySettings)
paystub_adapter = TypeAdapter(Paystub)


def dump_payload(adapter: TypeAdapter, value: Any) -> dict[str, Any]:
    return adapter.dump_python(value, mode="json")


def employee_name(employee: Employee) -> str:
    if not employee.profile_history:
        return ""
    return max(employee.profile_history, key=lambda r: r.effective_date).profile.name


class SqlAlchemyDataSource:
    """Data source over the ``employee``, ``company_settings``, ``payroll_run``
    and ``paystub`` tables.

    Each call uses its own session. ``commit_payroll_run`` writes the run,
    its paystubs and every YTD update in a single transaction.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def fetch_employees(self, tenant_id: str, limit: int) -> EmployeePage:
        async with self.session_factory() as session:
            total = await session.scalar(
                select(func.count())
                .select_from(EmployeeRecord)
                .where(EmployeeRecord.tenant_id == tenant_id)
            )
            result = await session.execute(
                select(EmployeeRecord)
                .where(EmployeeRecord.tenant_id == tenant_id)
                .order_by(EmployeeRecord.employee_id)
                .limit(limit)
            )
            rows = result.scalars().all()
        return EmployeePage(
            data=[employee_adapter.validate_python(r.payload) for r in rows],
            total=total or 0,
        )

    async def fetch_company_settings(self, tenant_id: str) -> CompanySettings:
        async with self.session_factory() as session:
            record = await session.get(CompanySettingsRecord, tenant_id)
        if record is None:
            raise DataIntegrityError(f"No company settings for tenant '{tenant_id}'")
        settings = settings_adapter.validate_python(record.payload)
        if settings.version != record.version:
            settings = CompanySettings(
                legal_name=settings.legal_name,
                configurations=settings.configurations,
                version=record.version,
            )
        return settings

    async def fetch_payroll_history(self, tenant_id: str) -> list[CommittedRun]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(PayrollRunRecord)
                .where(PayrollRunRecord.tenant_id == tenant_id)
                .order_by(PayrollRunRecord.committed_at.desc(), PayrollRunRecord.run_id.desc())
                .options(selectinload(PayrollRunRecord.paystubs))
            )
            runs = result.scalars().all()
        return [
            CommittedRun(
                fingerprint=run.fingerprint,
                paystubs=tuple(paystub_adapter.validate_python(p.payload) for p in run.paystubs),
                committed_at=run.committed_at,
                pay_period=run.pay_period,
            )
            for run in runs
        ]

    async def commit_payroll_run(
        self, paystubs: Sequence[Paystub], tenant_id: str
    ) -> CommitReceipt:
        fingerprint = LineItemBuilder.compute_run_fingerprint(paystubs)

        async with self.session_factory() as session, session.begin():
            existing = await session.scalar(
                select(PayrollRunRecord.run_id).where(
                    PayrollRunRecord.tenant_id == tenant_id,
                    PayrollRunRecord.fingerprint == fingerprint,
                )
            )
            if existing is not None:
                logger.info("Run %s already committed for tenant %s", fingerprint, tenant_id)
                return CommitReceipt(fingerprint, len(paystubs), already_committed=True)

            result = await session.execute(
                select(EmployeeRecord).where(
                    EmployeeRecord.tenant_id == tenant_id,
                    EmployeeRecord.employee_id.in_([p.employee_id for p in paystubs]),
                )
            )
            records = {r.employee_id: r for r in result.scalars().all()}

            run = PayrollRunRecord(
                tenant_id=tenant_id,
                fingerprint=fingerprint,
                pay_period=run_pay_period(paystubs),
                paystub_count=len(paystubs),
                total_gross=sum((p.gross_pay for p in paystubs), ZERO),
                total_net=sum((p.net_pay for p in paystubs), ZERO),
            )
            for position, paystub in enumerate(paystubs):
                record = records.get(paystub.employee_id)
                if record is None:
                    # Raising inside session.begin() rolls the whole run back.
                    raise DataIntegrityError(
                        f"Paystub references unknown employee {paystub.employee_id}"
                    )
                employee = employee_adapter.validate_python(record.payload)
                rolled = employee.with_ytd(roll_ytd_forward(employee.ytd, paystub))
                record.payload = dump_payload(employee_adapter, rolled)

                run.paystubs.append(
                    PaystubRecord(
                        position=position,
                        employee_id=paystub.employee_id,
                        paystub_hash=LineItemBuilder.compute_paystub_hash(paystub),
                        gross_pay=paystub.gross_pay,
                        net_pay=paystub.net_pay,
                        payload=dump_payload(paystub_adapter, paystub),
                    )
                )
            session.add(run)

        return CommitReceipt(fingerprint, len(paystubs))

    async def save_company_settings(
        self, settings: CompanySettings, tenant_id: str
    ) -> CompanySettings:
        async with self.session_factory() as session, session.begin():
            record = await session.get(CompanySettingsRecord, tenant_id)
            if record is None:
                saved = settings
                session.add(
                    CompanySettingsRecord(
                        tenant_id=tenant_id,
                        legal_name=saved.legal_name,
                        version=saved.version,
                        payload=dump_payload(settings_adapter, saved),
                    )
                )
            else:
                saved = CompanySettings(
                    legal_name=settings.legal_name,
                    configurations=settings.configurations,
                    version=record.version + 1,
                )
                record.legal_name = saved.legal_name
                record.version = saved.version
                record.payload = dump_payload(settings_adapter, saved)
        return saved

    async def save_employee(self, employee: Employee, tenant_id: str) -> None:
        """Insert or replace one employee record."""
        async with self.session_factory() as session, session.begin():
            record = await session.scalar(
                select(EmployeeRecord).where(
                    EmployeeRecord.tenant_id == tenant_id,
                    EmployeeRecord.employee_id == employee.id,
                )
            )
            payload = dump_payload(employee_adapter, employee)
            if record is None:
                session.add(
                    EmployeeRecord(
                        tenant_id=tenant_id,
                        employee_id=employee.id,
                        name=employee_name(employee),
                        payload=payload,
                    )
                )
            else:
                record.name = employee_name(employee)
                record.payload = payload

    async def get_employee(self, tenant_id: str, employee_id: int) -> Employee | None:
        async with self.session_factory() as session:
            record = await session.scalar(
                select(EmployeeRecord).where(
                    EmployeeRecord.tenant_id == tenant_id,
                    EmployeeRecord.employee_id == employee_id,
                )
            )
        if record is None:
            return None
        return employee_adapter.validate_python(record.payload)
