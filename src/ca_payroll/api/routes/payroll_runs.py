"""Payroll run API endpoints."""

from __future__ import annotations

from datetime import date
from typing import Annotated
from uuid import uuid4

from fastapi import APIRouter, Query, status
from fastapi.responses import PlainTextResponse

from ca_payroll.api.dependencies import ActiveRun, Config, DataSource, Registry, TenantId
from ca_payroll.api.schemas import (
    AdjustmentRequest,
    CommitRequest,
    CommitResponse,
    EmployeeListResponse,
    EmployeeSummary,
    ErrorResponse,
    PayrollRunCreate,
    PayrollRunResponse,
    PaystubResponse,
    VarianceResponse,
)
from ca_payroll.calculators.engine import EarningAdjustment
from ca_payroll.services.pay_run_service import PayRunService

router = APIRouter(prefix="/payroll-runs", tags=["payroll-runs"])
employees_router = APIRouter(prefix="/employees", tags=["employees"])


def to_run_response(run_id: str, service: PayRunService) -> PayrollRunResponse:
    return PayrollRunResponse(
        run_id=run_id,
        step=service.step.value,
        pay_period=service.pay_period,
        progress=service.progress,
        paystubs=[PaystubResponse.model_validate(p) for p in service.current_paystubs],
        failures=dict(service.failures),
        warnings={k: list(v) for k, v in service.warnings.items()},
    )


# ============================================================================
# Employees
# ============================================================================


@employees_router.get("", response_model=EmployeeListResponse)
async def list_employees(
    tenant_id: TenantId,
    data_source: DataSource,
    config: Config,
    as_of_date: date | None = None,
) -> EmployeeListResponse:
    """Employees available for selection, with the profile in effect today."""
    page = await data_source.fetch_employees(tenant_id, config.employee_fetch_limit)
    on = as_of_date or date.today()
    items = []
    for employee in page.data:
        profile = employee.profile_as_of(on).profile
        frequency = employee.pay_frequency
        items.append(
            EmployeeSummary(
                id=employee.id,
                employee_number=employee.employee_number,
                name=profile.name,
                province=profile.province.value,
                pay_frequency=getattr(frequency, "value", frequency),
            )
        )
    return EmployeeListResponse(items=items, total=page.total)


# ============================================================================
# Payroll runs
# ============================================================================


@router.post(
    "",
    response_model=PayrollRunResponse,
    status_code=status.HTTP_201_CREATED,
    responses={422: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def start_payroll_run(
    tenant_id: TenantId,
    data_source: DataSource,
    config: Config,
    registry: Registry,
    payload: PayrollRunCreate,
) -> PayrollRunResponse:
    """Load tenant data and calculate the selected employees into a preview."""
    service = PayRunService(data_source, tenant_id, config=config)
    await service.load()
    employees = service.select_employees(payload.employee_ids)
    await service.run_payroll(employees, payload.pay_period, as_of_date=payload.as_of_date)

    run_id = str(uuid4())
    registry.add(run_id, tenant_id, service)
    return to_run_response(run_id, service)


@router.get("/{run_id}", response_model=PayrollRunResponse)
async def get_payroll_run(run_id: str, service: ActiveRun) -> PayrollRunResponse:
    return to_run_response(run_id, service)


@router.post(
    "/{run_id}/calculate",
    response_model=PayrollRunResponse,
    responses={409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def calculate_payroll_run(
    run_id: str,
    service: ActiveRun,
    payload: PayrollRunCreate,
) -> PayrollRunResponse:
    """Calculate a new selection on a run that is back in ``select``."""
    employees = service.select_employees(payload.employee_ids)
    await service.run_payroll(employees, payload.pay_period, as_of_date=payload.as_of_date)
    return to_run_response(run_id, service)


@router.post(
    "/{run_id}/adjustments",
    response_model=PaystubResponse,
    responses={409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def adjust_paystub(
    run_id: str,
    service: ActiveRun,
    payload: AdjustmentRequest,
) -> PaystubResponse:
    """Swap an ad hoc earning into one employee's previewed paystub."""
    paystub = await service.recalculate_single(
        payload.employee_id,
        EarningAdjustment(kind=payload.kind, amount=payload.amount, hours=payload.hours),
    )
    return PaystubResponse.model_validate(paystub)


@router.post(
    "/{run_id}/commit",
    response_model=CommitResponse,
    responses={409: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)
async def commit_payroll_run(
    run_id: str,
    service: ActiveRun,
    payload: CommitRequest,
) -> CommitResponse:
    receipt = await service.commit(payload.confirm)
    return CommitResponse(
        run_id=run_id,
        step=service.step.value,
        fingerprint=receipt.fingerprint,
        paystub_count=receipt.paystub_count,
        already_committed=receipt.already_committed,
    )


@router.post(
    "/{run_id}/discard",
    response_model=PayrollRunResponse,
    responses={409: {"model": ErrorResponse}},
)
async def discard_payroll_run(
    run_id: str, service: ActiveRun, registry: Registry
) -> PayrollRunResponse:
    """Throw the preview away and release the run id."""
    service.discard()
    registry.remove(run_id)
    return to_run_response(run_id, service)


@router.post(
    "/{run_id}/new-run",
    response_model=PayrollRunResponse,
    responses={409: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def start_new_run(run_id: str, service: ActiveRun) -> PayrollRunResponse:
    """Return a committed run to selection with refreshed data.

    The run can then be calculated again through ``/{run_id}/calculate``.
    """
    await service.start_new_run()
    return to_run_response(run_id, service)


@router.get("/{run_id}/variance", response_model=VarianceResponse)
async def get_variance(
    run_id: str,
    service: ActiveRun,
    explain: bool = False,
) -> VarianceResponse:
    summary = service.variance()
    explanation = await service.explain_variance() if explain else None
    return VarianceResponse(
        current_total_cost=summary.current_total_cost,
        previous_total_cost=summary.previous_total_cost,
        variance=summary.variance,
        variance_percent=summary.variance_percent,
        explanation=explanation,
    )


@router.get(
    "/{run_id}/bank-file",
    response_class=PlainTextResponse,
    responses={422: {"model": ErrorResponse}},
)
async def get_bank_file(
    run_id: str,
    service: ActiveRun,
    payment_date: Annotated[date | None, Query()] = None,
) -> PlainTextResponse:
    """Direct deposit file for the run's paystubs."""
    content = service.bank_file(payment_date or date.today())
    return PlainTextResponse(content, media_type="text/csv")
