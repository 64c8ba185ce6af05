"""
Authentication

Resolves the owner id of an inbound request. Session issuance lives in an
external identity service; this module only asks it who the caller is.

Modes:
    - ``AUTH_VERIFY_URL`` set: the ``session`` cookie (or bearer token) is
      forwarded to the verify endpoint, which answers
      ``{"authenticated": true, "uid": "..."}`` for a valid session.
    - ``AUTH_VERIFY_URL`` unset: trusted-gateway mode. An upstream proxy has
      already authenticated the request and sets ``X-User-Id``.
"""

from __future__ import annotations

import logging

import httpx
from fastapi import Header, HTTPException, Request, status

from mindnotes.core.config import settings

logger = logging.getLogger(__name__)

SESSION_COOKIE = "session"


def _unauthenticated(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _session_token(request: Request) -> str | None:
    token = request.cookies.get(SESSION_COOKIE)
    if token:
        return token
    auth_header = request.headers.get("Authorization", "")
    scheme, _, credentials = auth_header.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    return None


async def verify_session(
    token: str,
    verify_url: str,
    timeout: float = 5.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> str | None:
    """
    Ask the identity service to verify ``token``.

    Returns:
        The owner id for a valid session, None for an invalid one.

    Raises:
        httpx.HTTPError: If the identity service cannot be reached.
    """
    async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
        response = await client.get(verify_url, cookies={SESSION_COOKIE: token})

    if response.status_code != 200:
        return None
    try:
        data = response.json()
    except ValueError:
        return None
    if not isinstance(data, dict) or not data.get("authenticated") or not data.get("uid"):
        return None
    return str(data["uid"])


async def get_current_owner(
    request: Request,
    x_user_id: str | None = Header(default=None),
) -> str:
    """
    FastAPI dependency returning the authenticated owner id.

    Raises:
        HTTPException 401: No valid session / identity header.
        HTTPException 503: Identity service unreachable.
    """
    if settings.AUTH_VERIFY_URL is None:
        if not x_user_id or not x_user_id.strip():
            raise _unauthenticated("Missing X-User-Id header")
        return x_user_id.strip()

    token = _session_token(request)
    if token is None:
        raise _unauthenticated("No session cookie found")

    try:
        owner_id = await verify_session(token, settings.AUTH_VERIFY_URL)
    except httpx.HTTPError as e:
        logger.error("Session verification unavailable: %s", e)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication service unavailable",
        ) from e

    if owner_id is None:
        raise _unauthenticated("Invalid session token")
    return owner_id
