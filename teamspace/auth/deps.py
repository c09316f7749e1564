from __future__ import annotations

from typing import Optional

from fastapi import Request

from teamspace.auth.config import ServiceConfig
from teamspace.auth.models import AuthUser
from teamspace.auth.session import decode_session, session_cookie_name
from teamspace.core.errors import UnauthorizedError


def authenticate_request(cfg: ServiceConfig, request: Request) -> Optional[AuthUser]:
    """
    Return the session user, or None when the cookie is missing/invalid/expired.

    A session is only issued after the team allow-list check passed, so a valid
    session means an authorized identity.
    """
    return decode_session(cfg, request.cookies.get(session_cookie_name(cfg)))


def require_user(request: Request) -> AuthUser:
    """FastAPI dependency: the user attached by the auth middleware, or 401."""
    user = getattr(request.state, "user", None)
    if not isinstance(user, AuthUser):
        raise UnauthorizedError("Unauthorized")
    return user
