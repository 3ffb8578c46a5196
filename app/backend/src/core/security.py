"""Caller identity and Graph token helpers."""

from __future__ import annotations

from functools import lru_cache
from typing import Any

import msal
import structlog
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from app.backend.src.core.config import Settings, get_settings
from app.backend.src.core.errors import UnauthorizedError, UpstreamError

LOGGER = structlog.get_logger(__name__)

IDENTITY_CLAIMS = ("preferred_username", "upn", "email", "unique_name", "oid")
_scheme = HTTPBearer(auto_error=False)


def get_access_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(_scheme),
) -> str | None:
    """Return the delegated Graph token forwarded by the SPA, if any."""

    if credentials is None or not credentials.credentials:
        return None
    return credentials.credentials


def identity_from_claims(claims: dict[str, Any]) -> str | None:
    """Pick the first identity claim Graph uses for approvers."""

    for claim in IDENTITY_CLAIMS:
        value = claims.get(claim)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def get_current_user_identity(token: str | None = Depends(get_access_token)) -> str:
    """Resolve the caller's identity from the forwarded bearer token.

    The signature is not verified here; Graph validates the same token on
    every forwarded call.
    """

    if not token:
        raise UnauthorizedError("Authorization header missing")
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError as exc:
        raise UnauthorizedError("Invalid authorization header") from exc

    identity = identity_from_claims(claims)
    if not identity:
        raise UnauthorizedError("Token missing user identity")
    return identity


class AppTokenProvider:
    """Client-credential Graph tokens for app-level calls."""

    def __init__(self, settings: Settings) -> None:
        self.scopes = [settings.graph_api_scope]
        self._app: msal.ConfidentialClientApplication | None = None
        self._settings = settings

    def _application(self) -> msal.ConfidentialClientApplication:
        if self._app is None:
            if not self._settings.graph_credentials_configured:
                raise UpstreamError(
                    "Graph client credentials (TENANT_ID, CLIENT_ID, CLIENT_SECRET) are not configured"
                )
            self._app = msal.ConfidentialClientApplication(
                client_id=self._settings.client_id,
                client_credential=self._settings.client_secret,
                authority=self._settings.authority,
            )
        return self._app

    def __call__(self) -> str:
        result = self._application().acquire_token_for_client(scopes=self.scopes)
        token = result.get("access_token") if result else None
        if not token:
            message = (result or {}).get("error_description") or "Unable to acquire Graph token"
            LOGGER.error("graph_token_acquisition_failed", error=(result or {}).get("error"))
            raise UpstreamError(message)
        return token


@lru_cache()
def get_app_token_provider() -> AppTokenProvider:
    """Return the cached client-credential provider (msal keeps its own token cache)."""

    return AppTokenProvider(get_settings())


__all__ = [
    "AppTokenProvider",
    "get_access_token",
    "get_app_token_provider",
    "get_current_user_identity",
    "identity_from_claims",
]
