"""Payroll run services."""

from ca_payroll.services.data_source import (
    CommittedRun,
    EmployeePage,
    InMemoryDataSource,
    PayrollDataSource,
)
from ca_payroll.services.pay_run_service import PayRunService, PayrollRunResult
from ca_payroll.services.state_machine import (
    InvalidTransitionError,
    PayRunStateMachine,
    PayRunStep,
)

__all__ = [
    "CommittedRun",
    "EmployeePage",
    "InMemoryDataSource",
    "InvalidTransitionError",
    "PayRunService",
    "PayRunStateMachine",
    "PayRunStep",
    "PayrollDataSource",
    "PayrollRunResult",
]
