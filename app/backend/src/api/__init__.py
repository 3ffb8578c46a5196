"""Public API routers exposed by the FastAPI application."""

from . import approvals, health, metadata

__all__ = ["approvals", "health", "metadata"]
