import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from looms.config import settings
from looms.database import async_session, engine
from looms.middleware.exceptions import register_exception_handlers
from looms.middleware.security import SecurityHeadersMiddleware
from looms.routers import (
    dashboard,
    health,
    machines,
    productions,
    qualities,
    reports,
    takas,
    workers,
)
from looms.services.reconciliation import find_ledger_drift

logger = logging.getLogger("looms")


async def _startup_ledger_check() -> None:
    """Log any lot whose totals drifted while the service was down."""
    try:
        async with async_session() as db:
            drifts = await find_ledger_drift(db)
    except Exception:
        logger.exception("Startup ledger check failed")
        return
    for drift in drifts:
        logger.warning(
            "Lot %s stores %s m but its %d entries sum to %s m",
            drift.taka_number, drift.stored_meters, drift.entry_count, drift.entry_meters,
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Starting looms API (%s)", settings.environment)
    await _startup_ledger_check()
    try:
        yield
    finally:
        await engine.dispose()
        logger.info("Database engine disposed")


app = FastAPI(
    title="Looms",
    description="Textile weaving production and lot ledger management",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware (outermost first) ─────────────────────────────
app.add_middleware(SecurityHeadersMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ──────────────────────────────────────────────────
app.include_router(health.router)
app.include_router(qualities.router, prefix="/api/qualities", tags=["qualities"])
app.include_router(machines.router, prefix="/api/machines", tags=["machines"])
app.include_router(workers.router, prefix="/api/workers", tags=["workers"])
app.include_router(takas.router, prefix="/api/takas", tags=["takas"])
app.include_router(productions.router, prefix="/api/productions", tags=["productions"])
app.include_router(dashboard.router, prefix="/api/dashboard", tags=["dashboard"])
app.include_router(reports.router, prefix="/api/reports", tags=["reports"])
