"""Authentication dependencies for the HTTP API.

Guards:
  - require_user()   any signed-in customer (Bearer access token)
  - require_admin()  a signed-in admin, or the ADMIN_API_KEY bearer token

Session restore resolves the token against the identity provider, then
reads the ``users`` row for the admin flag.  The resulting UserSession is
handed to route handlers explicitly.

Behavior matrix for admin routes:
  admin user token                  → allow
  ADMIN_API_KEY set + matching token → allow (service automation)
  non-admin user token              → 403 Forbidden
  missing / unknown token           → 401 Unauthorized
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from courtbooking.config import settings
from courtbooking.models import UserSession
from courtbooking.session import redact_pii
from courtbooking.stores.base import IdentityProvider, ResourceStore

log = logging.getLogger("courtbooking.auth")

_bearer_scheme = HTTPBearer(auto_error=False)

SERVICE_USER_ID = "service"


async def restore_session(
    identity: IdentityProvider,
    store: ResourceStore,
    access_token: str,
) -> Optional[UserSession]:
    """Rebuild the session context for a token, or None if it is not valid."""
    session = await identity.get_user(access_token)
    if session is None:
        return None

    record = await store.get_user(session.user_id)
    if record is not None:
        session = session.model_copy(update={"is_admin": record.is_admin})
    log.debug("Session restored for %s (admin=%s)", redact_pii(session.email), session.is_admin)
    return session


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def require_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> UserSession:
    """FastAPI dependency: the caller's session, or 401."""
    if credentials is None:
        raise _unauthorized("Sign in to continue.")

    session = await restore_session(
        request.app.state.identity, request.app.state.store, credentials.credentials
    )
    if session is None:
        raise _unauthorized("Invalid or expired session.")
    return session


async def require_admin(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> UserSession:
    """FastAPI dependency protecting admin endpoints."""
    key = settings.admin_api_key
    if key and credentials is not None and credentials.credentials == key:
        return UserSession(user_id=SERVICE_USER_ID, is_admin=True)

    session = await require_user(request, credentials)
    if not session.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required.",
        )
    return session
