import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from travelcrm.api.v1.api import api_router
from travelcrm.core.config import settings
from travelcrm.core.logging import configure_logging
from travelcrm.core.redis import get_redis_client
from travelcrm.core.seed import ensure_seed_data
from travelcrm.db.session import SessionLocal
from travelcrm.services.lead_import.service import build_worker_pool

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


def seed_dev_data():
    db = SessionLocal()
    try:
        ensure_seed_data(db)
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    seed_dev_data()
    pool = None
    if settings.LEAD_IMPORT_WORKERS_ENABLED:
        pool = build_worker_pool(get_redis_client(), SessionLocal)
        pool.start()
    app.state.lead_import_pool = pool
    try:
        yield
    finally:
        if pool is not None:
            if not pool.stop():
                logger.warning("lead import workers abandoned in-flight batches on shutdown")
        app.state.lead_import_pool = None


app = FastAPI(
    title=settings.PROJECT_NAME,
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix=settings.API_V1_STR)


@app.get("/healthz")
def healthz():
    return {"status": "ok"}


@app.get("/api/v1/worker/health")
def worker_health(request: Request):
    pool = getattr(request.app.state, "lead_import_pool", None)
    if pool is None:
        return {"status": "ok", "worker": "disabled", "consumers": []}
    consumers = pool.health()
    running = all(c["running"] for c in consumers)
    return {"status": "ok" if running else "degraded", "worker": "lead-import", "consumers": consumers}
