"""Pydantic schemas for API request/response models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from ca_payroll.calculators.types import AdjustmentKind, LineCategory


class ErrorResponse(BaseModel):
    """Error body returned for every PayrollError."""

    detail: str
    code: str
    failures: dict[int, str] | None = None


# ============================================================================
# Employees
# ============================================================================


class EmployeeSummary(BaseModel):
    id: int
    employee_number: str
    name: str
    province: str
    pay_frequency: str


class EmployeeListResponse(BaseModel):
    items: list[EmployeeSummary]
    total: int


# ============================================================================
# Paystubs
# ============================================================================


class PaystubItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    category: LineCategory
    type: str
    description: str
    amount: Decimal
    code_id: str | None = None
    rate: Decimal | None = None
    hours: Decimal | None = None


class EmployerContributionsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    cpp: Decimal
    ei: Decimal


class PaystubResponse(BaseModel):
    """One calculated paystub."""

    model_config = ConfigDict(from_attributes=True)

    employee_id: int
    employee_name: str
    pay_period: str
    gross_pay: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    earnings: list[PaystubItemResponse]
    deductions: list[PaystubItemResponse]
    employer_contributions: EmployerContributionsResponse
    accrued_vacation_pay: Decimal | None = None


# ============================================================================
# Payroll runs
# ============================================================================


class PayrollRunCreate(BaseModel):
    """Start a run for the selected employees."""

    employee_ids: list[int] = Field(min_length=1)
    pay_period: str = Field(min_length=1)
    as_of_date: date | None = None


class PayrollRunResponse(BaseModel):
    run_id: str
    step: str
    pay_period: str
    progress: float
    paystubs: list[PaystubResponse]
    failures: dict[int, str]
    warnings: dict[int, list[str]]


class AdjustmentRequest(BaseModel):
    """Ad hoc earning for one employee in a previewed run."""

    employee_id: int
    kind: AdjustmentKind
    amount: Decimal = Field(default=Decimal("0"), ge=0)
    hours: Decimal | None = Field(default=None, gt=0)


class CommitRequest(BaseModel):
    confirm: bool = False


class CommitResponse(BaseModel):
    run_id: str
    step: str
    fingerprint: str
    paystub_count: int
    already_committed: bool


class VarianceResponse(BaseModel):
    current_total_cost: Decimal
    previous_total_cost: Decimal
    variance: Decimal
    variance_percent: Decimal
    explanation: str | None = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: datetime
    version: str
