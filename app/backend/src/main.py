"""Entrypoint for the FastAPI application."""

import os
from dotenv import load_dotenv

# Load .env locally only; deployments inject env vars
env_path = os.path.join(os.path.dirname(__file__), "../.env")
if os.path.exists(env_path):
    load_dotenv(dotenv_path=os.path.abspath(env_path))

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import approvals, health, metadata
from .core.config import get_settings
from .core.errors import register_error_handlers
from .core.logging import configure_logging
from .db import create_tables

LOGGER = structlog.get_logger(__name__)


def create_app() -> FastAPI:
    configure_logging()
    settings = get_settings()
    app = FastAPI(title="Graph Approvals", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    app.include_router(health.router, prefix="/api")
    app.include_router(approvals.router, prefix="/api")
    app.include_router(metadata.router, prefix="/api")

    create_tables()
    LOGGER.info("application_ready", frontend_url=settings.frontend_url)
    return app


app = create_app()
