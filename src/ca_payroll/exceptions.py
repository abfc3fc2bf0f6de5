"""Error taxonomy for the payroll engine.

Every error carries a stable ``code`` and the HTTP ``status_code`` the API
layer should answer with.
"""

from __future__ import annotations


class PayrollError(Exception):
    """Base exception for payroll operations."""

    code = "PAYROLL_ERROR"
    status_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(PayrollError):
    """Invalid caller input: empty selection, adjustment over balance, etc."""

    code = "VALIDATION_ERROR"
    status_code = 422


class ConcurrentAdjustmentError(ValidationError):
    """An adjustment for the same employee is already in flight."""

    code = "ADJUSTMENT_IN_PROGRESS"
    status_code = 409

    def __init__(self, employee_id: int):
        self.employee_id = employee_id
        super().__init__(f"An adjustment for employee {employee_id} is already in progress")


class DataIntegrityError(PayrollError):
    """A record references a code or configuration that does not resolve."""

    code = "DATA_INTEGRITY_ERROR"
    status_code = 422


class PerEmployeeCalculationError(PayrollError):
    """Calculating one employee's paystub failed."""

    code = "EMPLOYEE_CALCULATION_FAILED"
    status_code = 422

    def __init__(self, employee_id: int, reason: str):
        self.employee_id = employee_id
        self.reason = reason
        super().__init__(f"Payroll calculation failed for employee {employee_id}: {reason}")


class PayrollRunFailedError(PayrollError):
    """Every employee in the batch failed."""

    code = "PAYROLL_RUN_FAILED"
    status_code = 422

    def __init__(self, failures: dict[int, str]):
        self.failures = failures
        super().__init__(
            f"Payroll run failed for all {len(failures)} selected employee(s)"
        )


class CommitError(PayrollError):
    """The external commit call failed; the run stays in preview."""

    code = "COMMIT_FAILED"
    status_code = 502


class RunStartError(PayrollError):
    """Employees, settings or history could not be loaded."""

    code = "RUN_START_FAILED"
    status_code = 503


class TaxTableNotFoundError(PayrollError):
    """No tax tables are defined for the requested year or province."""

    code = "TAX_TABLE_NOT_FOUND"
    status_code = 404
