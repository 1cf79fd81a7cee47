"""
Roho WhatsApp marketplace backend

Run with:
    uvicorn roho.main:app --app-dir backend --port 8000
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from roho.api.deps import get_order_locks
from roho.api.v1 import admin, webhook
from roho.core.config import settings
from roho.core.scheduler import start_scheduler, stop_scheduler

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start and stop the background scheduler when enabled"""
    logger.info(f"🚀 {settings.SERVICE_NAME} starting ({settings.ENVIRONMENT})")
    if settings.ENABLE_SCHEDULER:
        start_scheduler(get_order_locks())
    else:
        logger.info("Scheduler disabled (set ENABLE_SCHEDULER=true to enable)")

    yield

    if settings.ENABLE_SCHEDULER:
        stop_scheduler()


app = FastAPI(
    title="Roho API",
    description="WhatsApp food marketplace: buyer ordering and rider booking",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(webhook.router, tags=["webhook"])
app.include_router(admin.router, prefix="/admin", tags=["admin"])


@app.get("/health")
async def health():
    return {"status": "ok", "service": settings.SERVICE_NAME}
