"""Teamspace HTTP API.

Everything a request handler needs (config, lifecycle manager, OAuth client) lives on
one `AppContext` built at startup and attached to `app.state.context`.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse, Response

from teamspace.auth.config import ServiceConfig, load_service_config
from teamspace.auth.deps import authenticate_request, require_user
from teamspace.auth.github import GitHubAuthError, GitHubOAuthClient
from teamspace.auth.models import AuthUser
from teamspace.auth.session import clear_session_cookie_kwargs, encode_session, session_cookie_kwargs
from teamspace.auth.util import post_login_redirect, random_token
from teamspace.core.errors import ForbiddenError, NotFoundError, TeamspaceError
from teamspace.core.manager import TeamspaceManager
from teamspace.core.models import CreateTeamspaceRequest
from teamspace.core.reconcile import project
from teamspace.providers.k8s_provider import get_k8s_provider

logger = logging.getLogger(__name__)

_OAUTH_COOKIE_PATH = "/api/auth"
_OAUTH_TTL_SECONDS = 10 * 60
_OAUTH_STATE_COOKIE = "teamspace_oauth_state"
_OAUTH_NEXT_COOKIE = "teamspace_oauth_next"
_LOCALHOST_ORIGIN_RE = r"^https?://localhost(:\d+)?$"


@dataclass(frozen=True)
class AppContext:
    config: ServiceConfig
    manager: TeamspaceManager
    oauth: GitHubOAuthClient


def build_context(cfg: ServiceConfig) -> AppContext:
    provider = get_k8s_provider(request_timeout=cfg.k8s_request_timeout_seconds)
    manager = TeamspaceManager(
        provider,
        max_per_owner=cfg.max_teamspaces_per_owner,
        namespace_prefix=cfg.namespace_prefix,
    )
    return AppContext(config=cfg, manager=manager, oauth=GitHubOAuthClient(cfg))


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def _is_public_path(path: str) -> bool:
    if path == "/healthz":
        return True
    if path in ("/api/auth/login", "/api/auth/callback", "/api/auth/status"):
        return True
    # Allow logout even if the cookie is already missing/invalid.
    if path == "/api/auth/logout":
        return True
    return False


def _oauth_cookie_kwargs(cfg: ServiceConfig, *, key: str, value: str, max_age: int) -> dict:
    return {
        "key": key,
        "value": value,
        "max_age": max_age,
        "httponly": True,
        "secure": cfg.cookie_secure,
        "samesite": "lax",
        "path": _OAUTH_COOKIE_PATH,
    }


def _no_store(resp: Response) -> Response:
    resp.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
    resp.headers["Pragma"] = "no-cache"
    resp.headers["Expires"] = "0"
    return resp


def _require_owner(ctx: AppContext, name: str, user: AuthUser, action: str) -> None:
    # A missing namespace propagates as NotFoundError (404); never treated as owned.
    if not ctx.manager.is_owner(name, user.username):
        logger.info("User %s is not the owner of teamspace %s (%s)", user.username, name, action)
        raise ForbiddenError(f"You don't have permission to {action} this teamspace")


def create_app(context: Optional[AppContext] = None) -> FastAPI:
    """
    Build the FastAPI application.

    With no `context`, configuration is loaded from the environment when the app
    starts. Tests pass a context with fake collaborators.
    """
    app = FastAPI(title="Teamspace API")
    if context is not None:
        app.state.context = context
    cors_origins = list(context.config.cors_allowed_origins) if context is not None else []

    @app.on_event("startup")
    def _startup_build_context() -> None:
        if getattr(app.state, "context", None) is None:
            app.state.context = build_context(load_service_config())
        cfg = app.state.context.config
        logger.info(
            "Teamspace config: oauth_enabled=%s github_org=%s allowed_teams=%d max_per_owner=%d prefix=%s",
            cfg.oauth_enabled,
            cfg.github_org,
            len(cfg.allowed_teams),
            cfg.max_teamspaces_per_owner,
            cfg.namespace_prefix,
        )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all requests and enforce the session on non-public paths."""
        start_time = time.time()
        logger.debug("%s %s", request.method, request.url.path)
        try:
            path = request.url.path or ""
            if request.method != "OPTIONS" and not _is_public_path(path):
                # Fail closed: anything not explicitly public requires auth.
                user = authenticate_request(request.app.state.context.config, request)
                if user is None:
                    # No `WWW-Authenticate`: browsers would pop a basic-auth modal.
                    return JSONResponse(status_code=401, content={"detail": "Unauthorized", "kind": "unauthorized"})
                request.state.user = user

            response = await call_next(request)
            process_time = time.time() - start_time
            logger.debug("%s %s - %d (%.3fs)", request.method, path, response.status_code, process_time)
            return response
        except Exception as e:
            process_time = time.time() - start_time
            logger.exception("%s %s - ERROR after %.3fs: %s", request.method, request.url.path, process_time, str(e))
            raise

    # Added after the auth middleware so it wraps it: preflights and 401s carry CORS headers.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_origin_regex=_LOCALHOST_ORIGIN_RE,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.exception_handler(TeamspaceError)
    async def _teamspace_error_handler(request: Request, exc: TeamspaceError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.warning("%s %s - %s: %s", request.method, request.url.path, exc.kind, exc.message)
        else:
            logger.info("%s %s - %s: %s", request.method, request.url.path, exc.kind, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.get("/healthz")
    def healthz() -> Dict[str, Any]:
        return {"ok": True}

    @app.get("/api/auth/login")
    def auth_login(request: Request, next_path: str = Query("", alias="next")):
        """Start the GitHub OAuth flow."""
        ctx = get_context(request)
        cfg = ctx.config
        if not cfg.oauth_enabled:
            raise HTTPException(status_code=403, detail="GitHub OAuth is not configured")

        state = random_token(16)
        url = ctx.oauth.authorize_url(state=state)
        logger.info("Redirecting to GitHub for authorization")

        resp = RedirectResponse(url=url, status_code=302)
        resp.headers["Cache-Control"] = "no-store"
        resp.set_cookie(**_oauth_cookie_kwargs(cfg, key=_OAUTH_STATE_COOKIE, value=state, max_age=_OAUTH_TTL_SECONDS))
        if next_path:
            safe_next = post_login_redirect(next_path, cfg.frontend_url)
            resp.set_cookie(
                **_oauth_cookie_kwargs(cfg, key=_OAUTH_NEXT_COOKIE, value=safe_next, max_age=_OAUTH_TTL_SECONDS)
            )
        return resp

    @app.get("/api/auth/callback")
    def auth_callback(request: Request, code: str = Query(""), state: str = Query("")):
        """Finish the OAuth flow: verify state, resolve identity, apply the team gate."""
        ctx = get_context(request)
        cfg = ctx.config
        if not cfg.oauth_enabled:
            raise HTTPException(status_code=403, detail="GitHub OAuth is not configured")
        if not code or not state:
            raise HTTPException(status_code=400, detail="Missing required parameters")

        cookie_state = (request.cookies.get(_OAUTH_STATE_COOKIE) or "").strip()
        if not cookie_state or cookie_state != state.strip():
            logger.warning("OAuth callback state mismatch")
            raise HTTPException(status_code=400, detail="Invalid OAuth state")

        try:
            access_token = ctx.oauth.exchange_code(code)
            identity = ctx.oauth.resolve_identity(access_token)
        except GitHubAuthError as e:
            logger.warning("OAuth callback failed: %s", str(e))
            raise HTTPException(status_code=502, detail="Failed to authenticate with GitHub")

        if not identity.authorized:
            logger.info("User %s is not authorized", identity.username)
            raise HTTPException(status_code=403, detail="User not authorized")

        session_value = encode_session(cfg, AuthUser(provider="github", username=identity.username))
        if not session_value:
            raise HTTPException(status_code=500, detail="Session signing is not configured (AUTH_SESSION_SECRET)")

        target = post_login_redirect(request.cookies.get(_OAUTH_NEXT_COOKIE), cfg.frontend_url)
        logger.info("Authentication successful for %s", identity.username)

        resp = RedirectResponse(url=target, status_code=302)
        resp.headers["Cache-Control"] = "no-store"
        resp.set_cookie(**session_cookie_kwargs(cfg, session_value))
        resp.set_cookie(**_oauth_cookie_kwargs(cfg, key=_OAUTH_STATE_COOKIE, value="", max_age=0))
        resp.set_cookie(**_oauth_cookie_kwargs(cfg, key=_OAUTH_NEXT_COOKIE, value="", max_age=0))
        return resp

    @app.post("/api/auth/logout")
    def auth_logout(request: Request) -> JSONResponse:
        cfg = get_context(request).config
        resp = JSONResponse(content={"ok": True, "message": "Logged out successfully"})
        resp.set_cookie(**clear_session_cookie_kwargs(cfg))
        _no_store(resp)
        return resp

    @app.get("/api/auth/status")
    def auth_status(request: Request) -> Dict[str, Any]:
        user = authenticate_request(get_context(request).config, request)
        if user is None:
            return {"authenticated": False}
        return {"authenticated": True, "username": user.username}

    @app.get("/api/auth/me")
    def auth_me(user: AuthUser = Depends(require_user)) -> Dict[str, Any]:
        return {"ok": True, "user": {"provider": user.provider, "username": user.username}}

    @app.get("/api/teamspaces")
    def list_teamspaces(request: Request, user: AuthUser = Depends(require_user)) -> List[Dict[str, Any]]:
        ctx = get_context(request)
        teamspaces = ctx.manager.list_by_owner(user.username)
        logger.debug("Returning %d teamspaces for user %s", len(teamspaces), user.username)
        return [s.to_api() for s in project(teamspaces)]

    @app.post("/api/teamspaces", status_code=201)
    def create_teamspace(
        request: Request, body: CreateTeamspaceRequest, user: AuthUser = Depends(require_user)
    ) -> Dict[str, Any]:
        ctx = get_context(request)
        # Owner is always the session identity, never a client-supplied value.
        teamspace = ctx.manager.create(
            body.name,
            user.username,
            initial_release=body.initial_hosted_cluster_release,
            feature_set=body.feature_set,
        )
        return teamspace.to_api()

    @app.delete("/api/teamspaces/{name}", status_code=204)
    def delete_teamspace(request: Request, name: str, user: AuthUser = Depends(require_user)) -> Response:
        ctx = get_context(request)
        _require_owner(ctx, name, user, "delete")
        ctx.manager.delete(name)
        return Response(status_code=204)

    @app.get("/api/teamspaces/{name}/kubeconfig")
    def get_kubeconfig(request: Request, name: str, user: AuthUser = Depends(require_user)) -> Response:
        ctx = get_context(request)
        _require_owner(ctx, name, user, "access the kubeconfig of")
        try:
            data = ctx.manager.get_kubeconfig(name)
        except NotFoundError as e:
            # Tenant exists (ownership passed) but its credential is not there yet.
            raise NotFoundError(f"Kubeconfig for teamspace {name} is not available yet", resource=e.resource) from e
        return Response(
            content=data,
            media_type="application/yaml",
            headers={"Content-Disposition": "attachment; filename=kubeconfig.yaml"},
        )

    return app


def run(host: str = "0.0.0.0", port: Optional[int] = None, config_file: Optional[str] = None) -> None:
    import uvicorn

    log_level = os.getenv("LOG_LEVEL", "info").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn_log_level = (
        log_level.lower() if log_level.lower() in ["critical", "error", "warning", "info", "debug", "trace"] else "info"
    )

    cfg = load_service_config(config_file)
    app = create_app(build_context(cfg))
    listen_port = port if port is not None else cfg.port
    logger.info("Starting teamspace API on %s:%d (log_level=%s)", host, listen_port, log_level)
    uvicorn.run(app, host=host, port=listen_port, log_level=uvicorn_log_level)
