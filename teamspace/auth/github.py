"""GitHub OAuth2 client: authorize URL, code exchange, user and team lookup.

Identity is the GitHub login. Group memberships are the user's teams inside the
configured organization; a user outside the organization (or with no organization
configured) has no teams.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import requests

from teamspace.auth.config import ServiceConfig
from teamspace.authz.policy import Identity, authorize

logger = logging.getLogger(__name__)

AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
TOKEN_URL = "https://github.com/login/oauth/access_token"
API_BASE = "https://api.github.com"
SCOPES = ("read:org", "read:user", "user:email")
_ACCEPT = "application/vnd.github.v3+json"


class GitHubAuthError(Exception):
    """Code exchange or identity lookup against GitHub failed."""


def _json(r: requests.Response, what: str) -> Any:
    try:
        return r.json()
    except ValueError as e:
        raise GitHubAuthError(f"{what}: response is not JSON (status={r.status_code})") from e


class GitHubOAuthClient:
    def __init__(
        self,
        cfg: ServiceConfig,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
    ) -> None:
        self._cfg = cfg
        self._http = session or requests.Session()
        self._timeout = timeout

    def authorize_url(self, *, state: str) -> str:
        if not self._cfg.github_client_id:
            raise GitHubAuthError("GitHub client ID not configured")
        params = {
            "client_id": self._cfg.github_client_id,
            "scope": " ".join(SCOPES),
            "state": state,
            "allow_signup": "false",
        }
        redirect_uri = self._cfg.callback_url()
        if redirect_uri:
            params["redirect_uri"] = redirect_uri
        return f"{AUTHORIZE_URL}?{urlencode(params)}"

    def exchange_code(self, code: str) -> str:
        """Exchange an authorization code for an access token."""
        if not self._cfg.github_client_id or not self._cfg.github_client_secret:
            raise GitHubAuthError("GitHub client ID/secret not configured")
        payload = {
            "client_id": self._cfg.github_client_id,
            "client_secret": self._cfg.github_client_secret,
            "code": code,
        }
        redirect_uri = self._cfg.callback_url()
        if redirect_uri:
            payload["redirect_uri"] = redirect_uri
        try:
            r = self._http.post(TOKEN_URL, data=payload, headers={"Accept": "application/json"}, timeout=self._timeout)
        except requests.RequestException as e:
            raise GitHubAuthError(f"Token exchange failed: {e}") from e
        if r.status_code >= 400:
            # Avoid leaking sensitive info; include minimal context.
            raise GitHubAuthError(f"Token exchange failed (status={r.status_code})")
        data = _json(r, "Token exchange failed")
        if not isinstance(data, dict):
            raise GitHubAuthError("Invalid token response")
        if data.get("error"):
            raise GitHubAuthError(f"Token exchange failed ({data.get('error')})")
        token = str(data.get("access_token") or "").strip()
        if not token:
            raise GitHubAuthError("Missing access_token in token response")
        return token

    def _get(self, access_token: str, path: str, params: Optional[Dict[str, Any]] = None) -> requests.Response:
        headers = {"Authorization": f"Bearer {access_token}", "Accept": _ACCEPT}
        try:
            return self._http.get(f"{API_BASE}{path}", headers=headers, params=params, timeout=self._timeout)
        except requests.RequestException as e:
            raise GitHubAuthError(f"GitHub API request failed: {path}: {e}") from e

    def get_username(self, access_token: str) -> str:
        r = self._get(access_token, "/user")
        if r.status_code != 200:
            raise GitHubAuthError(f"Failed to get user info (status={r.status_code})")
        data = _json(r, "Failed to get user info")
        login = str((data or {}).get("login") or "").strip() if isinstance(data, dict) else ""
        if not login:
            raise GitHubAuthError("GitHub user response has no login")
        return login

    def is_org_member(self, access_token: str, org: str, username: str) -> bool:
        # 204: member; 302/404: not a member or membership is private to the caller.
        r = self._get(access_token, f"/orgs/{org}/members/{username}")
        logger.debug("Org membership status for %s in %s: %d", username, org, r.status_code)
        return r.status_code == 204

    def get_org_teams(self, access_token: str, username: str) -> List[str]:
        """Names of the user's teams in the configured org (empty when not a member)."""
        org = self._cfg.github_org
        if not org:
            logger.debug("No GitHub org configured, returning empty teams list")
            return []
        if not self.is_org_member(access_token, org, username):
            logger.info("User %s is not a member of org %s", username, org)
            return []

        teams: List[str] = []
        page = 1
        while True:
            r = self._get(access_token, "/user/teams", params={"per_page": 100, "page": page})
            if r.status_code != 200:
                raise GitHubAuthError(f"Failed to get teams (status={r.status_code})")
            data = _json(r, "Failed to get teams")
            if not isinstance(data, list):
                raise GitHubAuthError("Invalid teams response")
            for team in data:
                if not isinstance(team, dict):
                    continue
                team_org = str(((team.get("organization") or {}).get("login")) or "")
                if team_org == org and team.get("name"):
                    teams.append(str(team["name"]))
            if len(data) < 100:
                break
            page += 1

        logger.info("User %s belongs to %d teams in org %s", username, len(teams), org)
        return teams

    def resolve_identity(self, access_token: str) -> Identity:
        username = self.get_username(access_token)
        teams = self.get_org_teams(access_token, username)
        return authorize(username, teams, self._cfg.allowed_teams)
