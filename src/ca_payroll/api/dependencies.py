"""FastAPI dependencies for dependency injection."""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Path, Request, status

from ca_payroll.config import Settings
from ca_payroll.services.data_source import PayrollDataSource
from ca_payroll.services.pay_run_service import PayRunService

logger = logging.getLogger(__name__)


class RunRegistry:
    """Active payroll runs by id, each owned by one tenant.

    Holds at most ``capacity`` runs; adding past that evicts the least
    recently added run.
    """

    def __init__(self, capacity: int = 100) -> None:
        self.capacity = capacity
        self._runs: OrderedDict[str, tuple[str, PayRunService]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._runs)

    def add(self, run_id: str, tenant_id: str, service: PayRunService) -> None:
        self._runs[run_id] = (tenant_id, service)
        self._runs.move_to_end(run_id)
        while len(self._runs) > self.capacity:
            evicted, _ = self._runs.popitem(last=False)
            logger.info("Evicted payroll run %s from the active run registry", evicted)

    def get(self, run_id: str, tenant_id: str) -> PayRunService | None:
        entry = self._runs.get(run_id)
        if entry is None or entry[0] != tenant_id:
            return None
        return entry[1]

    def remove(self, run_id: str) -> None:
        self._runs.pop(run_id, None)


async def get_tenant_id(
    x_tenant_id: Annotated[str | None, Header()] = None
) -> str:
    """Extract tenant ID from header."""
    if not x_tenant_id or not x_tenant_id.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Tenant-ID header is required",
        )
    return x_tenant_id.strip()


def get_data_source(request: Request) -> PayrollDataSource:
    return request.app.state.data_source


def get_config(request: Request) -> Settings:
    return request.app.state.config


def get_registry(request: Request) -> RunRegistry:
    return request.app.state.runs


# Type aliases for cleaner dependency injection
TenantId = Annotated[str, Depends(get_tenant_id)]
DataSource = Annotated[PayrollDataSource, Depends(get_data_source)]
Config = Annotated[Settings, Depends(get_config)]
Registry = Annotated[RunRegistry, Depends(get_registry)]


def get_run(
    tenant_id: TenantId,
    registry: Registry,
    run_id: Annotated[str, Path()],
) -> PayRunService:
    """Look up an active run owned by the calling tenant."""
    service = registry.get(run_id, tenant_id)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Payroll run {run_id} not found",
        )
    return service


ActiveRun = Annotated[PayRunService, Depends(get_run)]
