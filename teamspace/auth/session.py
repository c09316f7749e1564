from __future__ import annotations

import json
from dataclasses import asdict
from typing import Optional

from itsdangerous import BadSignature, BadTimeSignature, URLSafeTimedSerializer

from teamspace.auth.config import ServiceConfig
from teamspace.auth.models import AuthUser


def session_cookie_name(cfg: ServiceConfig) -> str:
    # `__Host-` requires Secure + Path=/ + no Domain; browsers may reject it on HTTP.
    return "__Host-teamspace_session" if cfg.cookie_secure else "teamspace_session"


SESSION_SALT = "teamspace-session-v1"


def _serializer(cfg: ServiceConfig) -> Optional[URLSafeTimedSerializer]:
    if not cfg.session_secret:
        return None
    return URLSafeTimedSerializer(secret_key=cfg.session_secret, salt=SESSION_SALT)


def encode_session(cfg: ServiceConfig, user: AuthUser) -> Optional[str]:
    s = _serializer(cfg)
    if s is None:
        return None
    # Keep cookie small and non-sensitive (no access tokens).
    raw = json.dumps(asdict(user), separators=(",", ":"), sort_keys=True)
    return s.dumps(raw)


def decode_session(cfg: ServiceConfig, value: str | None) -> Optional[AuthUser]:
    if not value:
        return None
    s = _serializer(cfg)
    if s is None:
        return None
    try:
        raw = s.loads(value, max_age=cfg.session_ttl_seconds)
        data = json.loads(raw)
    except (BadSignature, BadTimeSignature, ValueError):
        return None
    if not isinstance(data, dict):
        return None
    username = str(data.get("username") or "").strip()
    if not username:
        return None
    provider = str(data.get("provider") or "").strip() or "github"
    return AuthUser(provider=provider, username=username)


def clear_session_cookie_kwargs(cfg: ServiceConfig) -> dict:
    return {
        "key": session_cookie_name(cfg),
        "value": "",
        "max_age": 0,
        "httponly": True,
        "secure": cfg.cookie_secure,
        "samesite": "lax",
        "path": "/",
    }


def session_cookie_kwargs(cfg: ServiceConfig, value: str) -> dict:
    return {
        "key": session_cookie_name(cfg),
        "value": value,
        "max_age": cfg.session_ttl_seconds,
        "httponly": True,
        "secure": cfg.cookie_secure,
        "samesite": "lax",
        "path": "/",
    }
