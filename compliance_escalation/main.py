"""Compliance Escalation FastAPI Application."""

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from compliance_escalation import __version__
from compliance_escalation.config import settings
from compliance_escalation.logging_config import get_logger, setup_logging
from compliance_escalation.middleware import CorrelationIdMiddleware
from compliance_escalation.routers import escalation_chains, escalations, health
from compliance_escalation.services.scheduler import start_scheduler, stop_scheduler

setup_logging(
    log_format=settings.log_format,
    log_level=settings.log_level,
    service_name=settings.service_name,
)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Compliance escalation API started")
    start_scheduler()

    yield

    logger.info("Shutting down compliance escalation API...")
    stop_scheduler()
    logger.info("Compliance escalation API shutdown complete")


app = FastAPI(
    title="Compliance Escalation API",
    description="Escalation of overdue compliance deadlines",
    version=__version__,
    lifespan=lifespan,
)

# Middleware (order matters: first added = last executed)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(CorrelationIdMiddleware)

app.include_router(health.router)
app.include_router(escalation_chains.router)
app.include_router(escalations.router)


@app.get("/")
async def root() -> dict[str, Any]:
    """Root endpoint."""
    return {
        "name": "Compliance Escalation API",
        "version": __version__,
        "docs": "/docs",
    }
