"""FastAPI application for the messaging portal."""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from .cache.context import CacheMaintenance, PerformanceContext
from .config import settings
from .database import async_session_factory
from .services import auth_svc
from .worker import import_worker

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Auto-create tables for SQLite (local dev); PostgreSQL uses Alembic migrations
    if "sqlite" in settings.database_url:
        from .database import engine
        from .models import Base
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    if settings.is_production and settings.auth_secret == "dev-portal-secret":
        raise RuntimeError("PORTAL_AUTH_SECRET must be set in production.")
    async with async_session_factory() as db:
        await auth_svc.ensure_bootstrap_admin(db)

    maintenance = CacheMaintenance(app.state.performance)
    import_worker.start()
    maintenance.start()
    yield
    await maintenance.stop()
    await import_worker.stop()


app = FastAPI(title=settings.app_title, lifespan=lifespan)

# Set outside the lifespan so in-process test clients see them too.
app.state.performance = PerformanceContext()
app.state.import_worker = import_worker
app.state.gateway_transport = None


@app.middleware("http")
async def record_latency(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    route = request.scope.get("route")
    path = getattr(route, "path", None)
    if path:
        elapsed_ms = (time.perf_counter() - started) * 1000
        request.app.state.performance.monitor.record(f"{request.method} {path}", elapsed_ms)
    return response


# Import and register routers
from .routers import (  # noqa: E402
    admin, admin_security, analytics, auth, billing, campaigns, contacts, data_hub, gateway,
    health, notifications, services, system,
)

app.include_router(auth.router)
app.include_router(contacts.router)
app.include_router(campaigns.router)
app.include_router(billing.router)
app.include_router(services.router)
app.include_router(admin.router)
app.include_router(admin_security.router)
app.include_router(notifications.router)
app.include_router(analytics.router)
app.include_router(data_hub.router)
app.include_router(gateway.router)
app.include_router(system.router)
app.include_router(health.router)
