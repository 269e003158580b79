# rollcall/main.py
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from rollcall.api.errors import install_error_handlers
from rollcall.api.v1.router import api_router
from rollcall.core.config import settings
from rollcall.core.logging import setup_logging
from rollcall.db.bootstrap import run_migrations_and_seed

setup_logging()
logger = logging.getLogger(__name__)

api = FastAPI(
    title="Rollcall - QR attendance API",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    swagger_ui_parameters={"persistAuthorization": True},
)

api.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_credentials="*" not in settings.CORS_ALLOW_ORIGINS,
    allow_methods=["GET", "POST"],
    allow_headers=["Authorization", "Content-Type"],
)

# /metrics for Prometheus
Instrumentator(excluded_handlers=["/healthz", "/metrics"]).instrument(api).expose(api, include_in_schema=False)

install_error_handlers(api)
api.include_router(api_router, prefix="/api/v1")

@api.get("/healthz", tags=["health"])
def healthz():
    return {"status": "ok"}

@api.on_event("startup")
def startup():
    if settings.RUN_MIGRATIONS_ON_STARTUP:
        run_migrations_and_seed()
    else:
        logger.info("skipping migrations (RUN_MIGRATIONS_ON_STARTUP is off)")
