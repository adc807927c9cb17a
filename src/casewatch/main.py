"""
CaseWatch - Main Application
============================

SLA tracking for marketplace cases (returns, complaints, disputes).

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities, value objects, deadline resolution and statistics
- Infrastructure: Database, YAML seeding, scheduler, metrics export
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from casewatch.config import settings
from casewatch.infrastructure.database import (
    init_database, close_database, create_tables, get_session_context
)
from casewatch.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    global_exception_handler,
)
from casewatch.shared.infrastructure.grafana import get_grafana_exporter
from casewatch.shared.infrastructure.logging import setup_logging, get_logger
from casewatch.sla.infrastructure import (
    SLAScheduler,
    SQLAlchemySlaConfigurationRepository,
    YAMLConfigurationSeeder,
)
from casewatch.sla.interfaces import sla_router
from casewatch.sla.services import SlaBreachSweepJob

logger = get_logger(__name__)

sla_scheduler: Optional[SLAScheduler] = None


async def seed_sla_configurations() -> int:
    """Insert the YAML default configurations into an empty store."""
    seeder = YAMLConfigurationSeeder(settings.sla_config_path)
    async with get_session_context() as session:
        return await seeder.seed(SQLAlchemySlaConfigurationRepository(session))


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database and create tables
    3. Seed default SLA configurations
    4. Start the breach sweep scheduler

    SHUTDOWN:
    1. Stop the scheduler
    2. Close database connections
    """
    global sla_scheduler

    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting CaseWatch", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    init_database()
    await create_tables()
    await seed_sla_configurations()

    if settings.sla_evaluation_interval > 0:
        sla_scheduler = SLAScheduler(interval_seconds=settings.sla_evaluation_interval)
        await sla_scheduler.start(SlaBreachSweepJob(exporter=get_grafana_exporter()))
    else:
        logger.info("SLA scheduler disabled")

    logger.info("CaseWatch started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down CaseWatch")

    if sla_scheduler:
        await sla_scheduler.stop()
        sla_scheduler = None

    await close_database()
    logger.info("CaseWatch shutdown complete")


def create_app(use_lifespan: bool = True) -> FastAPI:
    """Build the FastAPI application. Tests skip the lifespan and wire their own database."""
    app = FastAPI(
        title="CaseWatch API",
        description="""
        ## Marketplace Case SLA Tracking

        - Deadlines are resolved from SLA configurations when a case opens
        - Seller responses and resolutions are recorded idempotently
        - A background sweep flags breached cases
        - Dashboards report platform-wide and per-seller compliance
        """,
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan if use_lifespan else None
    )

    # === Middleware ===
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(CorrelationIDMiddleware)
    app.add_exception_handler(Exception, global_exception_handler)

    # === Routers ===
    app.include_router(sla_router)

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Health check endpoint for load balancers and orchestrators."""
        return {
            "status": "healthy",
            "version": settings.app_version,
            "environment": settings.environment,
            "checks": {
                "sla_scheduler": "running" if sla_scheduler and sla_scheduler.is_running else "stopped",
                "metrics_export": "enabled" if get_grafana_exporter().is_enabled() else "disabled",
            }
        }

    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint with API information."""
        return {
            "service": settings.app_name,
            "version": settings.app_version,
            "docs": "/docs",
            "health": "/health",
            "modules": {"sla": {"prefix": "/sla"}},
        }

    return app


app = create_app()


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "casewatch.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower()
    )
