from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from teamspace.core.manager import DEFAULT_MAX_TEAMSPACES_PER_OWNER
from teamspace.core.naming import DEFAULT_NAMESPACE_PREFIX
from teamspace.providers.k8s_provider import DEFAULT_REQUEST_TIMEOUT_SECONDS

MIN_SESSION_SECRET_LENGTH = 32
DEFAULT_SESSION_TTL_SECONDS = 7 * 24 * 3600


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class ServiceConfig:
    # Server
    port: int

    # GitHub OAuth
    github_client_id: Optional[str]
    github_client_secret: Optional[str]
    redirect_url: Optional[str]  # Defaults to <public_base_url>/api/auth/callback
    github_org: Optional[str]
    allowed_teams: List[str]  # Empty: every org member is allowed

    # Session configuration
    public_base_url: Optional[str]
    frontend_url: str
    session_secret: Optional[str]
    session_ttl_seconds: int
    cookie_secure: bool

    # Teamspaces
    max_teamspaces_per_owner: int
    namespace_prefix: str
    k8s_request_timeout_seconds: float

    cors_allowed_origins: List[str]

    @property
    def oauth_enabled(self) -> bool:
        return bool(self.github_client_id and self.github_client_secret)

    def callback_url(self) -> Optional[str]:
        if self.redirect_url:
            return self.redirect_url
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/api/auth/callback"
        return None


def _parse_csv(value: str) -> List[str]:
    items = [x.strip() for x in (value or "").split(",")]
    return [x for x in items if x]


def _env_str(env: Mapping[str, str], name: str) -> Optional[str]:
    return (env.get(name, "") or "").strip() or None


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = (env.get(name) or "").strip()
    if not raw:
        return default
    try:
        return int(float(raw))
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")


def _file_int(section: Dict[str, Any], key: str, default: int, label: str) -> int:
    raw = section.get(key)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ConfigError(f"{label} must be an integer, got {raw!r}")


def load_config_file(path: str) -> Dict[str, Any]:
    """
    Read the JSON config file.

    Layout: {"server": {"port"}, "session": {"hash_key", "block_key"},
    "oauth": {"github_client_id", "github_client_secret", "redirect_url"},
    "app": {"frontend_url", "github_org", "allowed_teams"}}
    """
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"config file does not exist: {path}")
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"could not read config file: {e}")
    except json.JSONDecodeError as e:
        raise ConfigError(f"could not parse config file: {e}")
    if not isinstance(data, dict):
        raise ConfigError("config file must contain a JSON object")
    return data


def _section(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    sec = data.get(key) or {}
    return sec if isinstance(sec, dict) else {}


def load_service_config(
    config_file: Optional[str] = None, env: Optional[Mapping[str, str]] = None
) -> ServiceConfig:
    """
    Build the service configuration once at startup.

    Precedence: environment variables > JSON config file > defaults. The file is
    taken from `config_file` or TEAMSPACE_CONFIG_FILE.
    """
    env = os.environ if env is None else env
    path = config_file or _env_str(env, "TEAMSPACE_CONFIG_FILE")
    data = load_config_file(path) if path else {}
    server = _section(data, "server")
    session = _section(data, "session")
    oauth = _section(data, "oauth")
    app = _section(data, "app")

    public_base_url = _env_str(env, "AUTH_PUBLIC_BASE_URL")
    cookie_secure_env = (env.get("AUTH_COOKIE_SECURE", "") or "").strip().lower()
    if cookie_secure_env in ("1", "true", "yes", "on"):
        cookie_secure = True
    elif cookie_secure_env in ("0", "false", "no", "off"):
        cookie_secure = False
    else:
        # Default: secure cookies when base URL is https; otherwise allow local dev.
        cookie_secure = True if (public_base_url or "").startswith("https://") else False

    ttl = _env_int(env, "AUTH_SESSION_TTL_SECONDS", DEFAULT_SESSION_TTL_SECONDS)
    if ttl <= 60:
        ttl = 60

    # The file's hash_key doubles as the session signing secret.
    session_secret = _env_str(env, "AUTH_SESSION_SECRET") or (str(session.get("hash_key") or "").strip() or None)

    teams_env = env.get("GITHUB_ALLOWED_TEAMS")
    if teams_env is not None and teams_env.strip():
        allowed_teams = _parse_csv(teams_env)
    else:
        allowed_teams = [str(t).strip() for t in (app.get("allowed_teams") or []) if str(t).strip()]

    timeout_raw = (env.get("K8S_REQUEST_TIMEOUT_SECONDS") or "").strip()
    try:
        k8s_timeout = float(timeout_raw) if timeout_raw else DEFAULT_REQUEST_TIMEOUT_SECONDS
    except ValueError:
        raise ConfigError(f"K8S_REQUEST_TIMEOUT_SECONDS must be a number, got {timeout_raw!r}")

    cfg = ServiceConfig(
        port=_env_int(env, "PORT", _file_int(server, "port", 8080, "server.port")),
        github_client_id=_env_str(env, "GITHUB_CLIENT_ID") or (str(oauth.get("github_client_id") or "") or None),
        github_client_secret=_env_str(env, "GITHUB_CLIENT_SECRET")
        or (str(oauth.get("github_client_secret") or "") or None),
        redirect_url=_env_str(env, "AUTH_REDIRECT_URL") or (str(oauth.get("redirect_url") or "") or None),
        github_org=_env_str(env, "GITHUB_ORG") or (str(app.get("github_org") or "").strip() or None),
        allowed_teams=allowed_teams,
        public_base_url=public_base_url,
        frontend_url=_env_str(env, "FRONTEND_URL") or (str(app.get("frontend_url") or "").strip() or "/"),
        session_secret=session_secret,
        session_ttl_seconds=ttl,
        cookie_secure=cookie_secure,
        max_teamspaces_per_owner=_env_int(env, "TEAMSPACE_MAX_PER_OWNER", DEFAULT_MAX_TEAMSPACES_PER_OWNER),
        namespace_prefix=_env_str(env, "TEAMSPACE_NAMESPACE_PREFIX") or DEFAULT_NAMESPACE_PREFIX,
        k8s_request_timeout_seconds=k8s_timeout,
        cors_allowed_origins=_parse_csv(env.get("CORS_ALLOWED_ORIGINS", "")),
    )
    validate_config(cfg)
    return cfg


def validate_config(cfg: ServiceConfig) -> None:
    if cfg.session_secret and len(cfg.session_secret) < MIN_SESSION_SECRET_LENGTH:
        raise ConfigError(f"session secret must be at least {MIN_SESSION_SECRET_LENGTH} bytes")
    if cfg.max_teamspaces_per_owner < 1:
        raise ConfigError("TEAMSPACE_MAX_PER_OWNER must be >= 1")
    if cfg.k8s_request_timeout_seconds <= 0:
        raise ConfigError("K8S_REQUEST_TIMEOUT_SECONDS must be > 0")
