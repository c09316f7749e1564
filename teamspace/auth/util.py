from __future__ import annotations

import secrets
from urllib.parse import urljoin, urlsplit


def random_token(nbytes: int = 32) -> str:
    return secrets.token_urlsafe(nbytes)


def _origin(url: str) -> tuple[str, str]:
    parts = urlsplit(url)
    return parts.scheme.lower(), parts.netloc.lower()


def post_login_redirect(next_value: str | None, frontend_url: str) -> str:
    """
    Where to send the browser after a successful login.

    The frontend may live on another origin than the API, so relative paths are
    resolved against `frontend_url`. Absolute URLs are kept only when they point at
    the frontend's own origin; anything else falls back to `frontend_url`.
    """
    home = (frontend_url or "").strip() or "/"
    p = (next_value or "").replace("\r", "").replace("\n", "").strip()
    if not p:
        return home

    if p.startswith("/"):
        # Scheme-relative: `//evil.com`, `/\evil.com`
        if p.startswith("//") or p.startswith("/\\"):
            return home
        scheme, netloc = _origin(home)
        if scheme and netloc:
            return urljoin(f"{scheme}://{netloc}/", p)
        return p

    scheme, netloc = _origin(p)
    if scheme in ("http", "https") and netloc and (scheme, netloc) == _origin(home):
        return p
    return home
