"""Tenant-scoped employee, settings and payroll history tables.

Domain records are stored as JSON payloads next to a few indexed columns,
the same way rule payloads are versioned as JSON documents.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ca_payroll.models.base import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EmployeeRecord(Base):
    """Employee aggregate, including YTD totals."""

    __tablename__ = "employee"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    employee_id: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "employee_id", name="employee_tenant_id_unique"),
    )


class CompanySettingsRecord(Base):
    """Current company settings version for a tenant."""

    __tablename__ = "company_settings"

    tenant_id: Mapped[str] = mapped_column(String, primary_key=True)
    legal_name: Mapped[str] = mapped_column(String, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    payload: Mapped[dict[str, Any]] = mapped_column(nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )


class PayrollRunRecord(Base):
    """A committed payroll run. The fingerprint makes commits idempotent."""

    __tablename__ = "payroll_run"

    run_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    fingerprint: Mapped[str] = mapped_column(String(32), nullable=False)
    pay_period: Mapped[str] = mapped_column(String, nullable=False, default="")
    paystub_count: Mapped[int] = mapped_column(Integer, nullable=False)
    total_gross: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    total_net: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    committed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "fingerprint", name="payroll_run_fingerprint_unique"),
    )

    paystubs: Mapped[list[PaystubRecord]] = relationship(
        back_populates="run",
        cascade="all, delete-orphan",
        order_by="PaystubRecord.position",
    )


class PaystubRecord(Base):
    """One committed paystub."""

    __tablename__ = "paystub"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    run_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("payroll_run.run_id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    employee_id: Mapped[int] = mapped_column(Integer, nullable=False)
    paystub_hash: Mapped[str] = mapped_column(String(32), nullable=False)
    gross_pay: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    net_pay: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(nullable=False)

    __table_args__ = (
        UniqueConstraint("run_id", "employee_id", name="paystub_run_employee_unique"),
    )

    run: Mapped[PayrollRunRecord] = relationship(back_populates="paystubs")
