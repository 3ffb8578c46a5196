"""FastAPI dependencies wiring the outbound service clients."""

from __future__ import annotations

from collections.abc import Iterator

import httpx
from fastapi import Depends
from sqlalchemy.orm import Session

from app.backend.src.core.config import get_settings
from app.backend.src.core.security import (
    AppTokenProvider,
    get_access_token,
    get_app_token_provider,
)
from app.backend.src.db import get_session_dependency
from app.backend.src.services.graph_approvals import GraphApprovalsClient
from app.backend.src.services.metadata_store import SqlMetadataStore
from app.backend.src.services.onedrive import OneDriveClient


def get_http_client() -> Iterator[httpx.Client]:
    """Yield an HTTP client scoped to the current request."""

    with httpx.Client() as client:
        yield client


def get_graph_client(
    http_client: httpx.Client = Depends(get_http_client),
    access_token: str | None = Depends(get_access_token),
) -> GraphApprovalsClient:
    """Graph client using the caller's token, else the app's own credentials."""

    settings = get_settings()
    if access_token:
        token_provider = lambda: access_token  # noqa: E731
    else:
        token_provider = get_app_token_provider()
    return GraphApprovalsClient(
        http_client,
        token_provider,
        base_url=settings.graph_base_url,
        version=settings.graph_approvals_version,
    )


def get_app_graph_client(
    http_client: httpx.Client = Depends(get_http_client),
    token_provider: AppTokenProvider = Depends(get_app_token_provider),
) -> GraphApprovalsClient:
    """Graph client that always uses the app's own credentials.

    Store-wide maintenance must not see Graph through a single caller's
    permissions: items hidden from the caller would look deleted.
    """

    settings = get_settings()
    return GraphApprovalsClient(
        http_client,
        token_provider,
        base_url=settings.graph_base_url,
        version=settings.graph_approvals_version,
    )


def get_onedrive_client(
    http_client: httpx.Client = Depends(get_http_client),
) -> OneDriveClient:
    settings = get_settings()
    return OneDriveClient(
        http_client,
        base_url=settings.graph_base_url,
        version=settings.graph_drive_version,
    )


def get_metadata_store(
    session: Session = Depends(get_session_dependency),
) -> SqlMetadataStore:
    return SqlMetadataStore(session)


__all__ = [
    "get_app_graph_client",
    "get_graph_client",
    "get_http_client",
    "get_metadata_store",
    "get_onedrive_client",
]
