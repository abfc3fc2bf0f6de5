"""API routes."""

from ca_payroll.api.routes.health import router as health_router
from ca_payroll.api.routes.payroll_runs import employees_router, router as payroll_runs_router

__all__ = ["employees_router", "health_router", "payroll_runs_router"]
