from fastapi import FastAPI
from prometheus_fastapi_instrumentator import Instrumentator
import structlog

from .shared.logging import setup_logging
from .shared.middleware import RequestIDMiddleware
from .shared.settings import settings
from .api.routes_health import router as health_router
from .api.routes_activity import router as activity_router
from .infrastructure.db import ensure_migrations, shutdown

setup_logging()
log = structlog.get_logger()

app = FastAPI(title=settings.app_name)
app.add_middleware(RequestIDMiddleware)

# Routers
app.include_router(health_router, tags=["system"])
app.include_router(activity_router, tags=["activity"])

# Metrics
if settings.enable_metrics:
    Instrumentator().instrument(app).expose(app)

@app.on_event("startup")
async def on_startup():
    if settings.storage_backend == "postgres":
        await ensure_migrations()
    log.info("app_started", env=settings.env, storage=settings.storage_backend)

@app.on_event("shutdown")
async def on_shutdown():
    if settings.storage_backend == "postgres":
        await shutdown()
    log.info("app_stopped")
