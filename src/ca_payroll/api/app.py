"""FastAPI application factory."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ca_payroll import __version__
from ca_payroll.api.dependencies import RunRegistry
from ca_payroll.api.routes import employees_router, health_router, payroll_runs_router
from ca_payroll.config import Settings, get_settings
from ca_payroll.database import create_all, dispose_db, init_db
from ca_payroll.exceptions import PayrollError, PayrollRunFailedError
from ca_payroll.services.data_source import PayrollDataSource
from ca_payroll.services.sql_data_source import SqlAlchemyDataSource
from ca_payroll.services.state_machine import InvalidTransitionError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup: fall back to the configured database when no data source was injected
    owns_database = app.state.data_source is None
    if owns_database:
        engine, session_factory = init_db(app.state.config.database_url)
        await create_all(engine)
        app.state.data_source = SqlAlchemyDataSource(session_factory)
    yield
    # Shutdown
    if owns_database:
        await dispose_db()


def create_app(
    data_source: PayrollDataSource | None = None,
    config: Settings | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Canadian Payroll Engine API",
        description="Statutory payroll calculation and pay run workflow",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config or get_settings()
    app.state.data_source = data_source
    app.state.runs = RunRegistry(app.state.config.max_active_runs)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(PayrollError)
    async def payroll_error_handler(request: Request, exc: PayrollError) -> JSONResponse:
        content = {"detail": exc.message, "code": exc.code}
        if isinstance(exc, PayrollRunFailedError):
            content["failures"] = {str(k): v for k, v in exc.failures.items()}
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(InvalidTransitionError)
    async def transition_error_handler(
        request: Request, exc: InvalidTransitionError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "code": exc.code},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(employees_router, prefix="/api/v1")
    app.include_router(payroll_runs_router, prefix="/api/v1")

    return app
