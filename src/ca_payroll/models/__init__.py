"""SQLAlchemy ORM models."""

from ca_payroll.models.base import Base
from ca_payroll.models.records import (
    CompanySettingsRecord,
    EmployeeRecord,
    PayrollRunRecord,
    PaystubRecord,
)

__all__ = [
    "Base",
    "CompanySettingsRecord",
    "EmployeeRecord",
    "PayrollRunRecord",
    "PaystubRecord",
]
