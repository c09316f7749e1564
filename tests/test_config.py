from __future__ import annotations

import json

import pytest

from teamspace.auth.config import ConfigError, load_service_config

SECRET = "0123456789abcdef0123456789abcdef"


def test_defaults_from_empty_env():
    cfg = load_service_config(env={})
    assert cfg.port == 8080
    assert cfg.allowed_teams == []
    assert cfg.max_teamspaces_per_owner == 3
    assert cfg.namespace_prefix == "teamspace-"
    assert cfg.k8s_request_timeout_seconds == 10.0
    assert cfg.oauth_enabled is False
    assert cfg.cookie_secure is False
    assert cfg.frontend_url == "/"


def test_json_file_layout(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "server": {"port": 9090},
                "session": {"hash_key": SECRET, "block_key": SECRET},
                "oauth": {
                    "github_client_id": "cid",
                    "github_client_secret": "csecret",
                    "redirect_url": "https://ts.example.com/api/auth/callback",
                },
                "app": {
                    "frontend_url": "https://ts.example.com/",
                    "github_org": "acme",
                    "allowed_teams": ["platform", "sre"],
                },
            }
        )
    )

    cfg = load_service_config(str(path), env={})

    assert cfg.port == 9090
    assert cfg.session_secret == SECRET
    assert cfg.oauth_enabled is True
    assert cfg.callback_url() == "https://ts.example.com/api/auth/callback"
    assert cfg.frontend_url == "https://ts.example.com/"
    assert cfg.github_org == "acme"
    assert cfg.allowed_teams == ["platform", "sre"]


def test_env_overrides_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"app": {"github_org": "acme", "allowed_teams": ["platform"]}}))

    cfg = load_service_config(
        env={
            "TEAMSPACE_CONFIG_FILE": str(path),
            "GITHUB_ORG": "other",
            "GITHUB_ALLOWED_TEAMS": "a, b,,",
            "TEAMSPACE_MAX_PER_OWNER": "5",
            "AUTH_PUBLIC_BASE_URL": "https://ts.example.com",
        }
    )

    assert cfg.github_org == "other"
    assert cfg.allowed_teams == ["a", "b"]
    assert cfg.max_teamspaces_per_owner == 5
    assert cfg.cookie_secure is True
    assert cfg.callback_url() == "https://ts.example.com/api/auth/callback"


def test_missing_file_is_an_error(tmp_path):
    with pytest.raises(ConfigError, match="does not exist"):
        load_service_config(str(tmp_path / "nope.json"), env={})


def test_malformed_file_is_an_error(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json")
    with pytest.raises(ConfigError, match="could not parse"):
        load_service_config(str(path), env={})


def test_short_session_secret_rejected():
    with pytest.raises(ConfigError, match="at least 32"):
        load_service_config(env={"AUTH_SESSION_SECRET": "short"})


@pytest.mark.parametrize(
    "env",
    [
        {"TEAMSPACE_MAX_PER_OWNER": "0"},
        {"TEAMSPACE_MAX_PER_OWNER": "many"},
        {"K8S_REQUEST_TIMEOUT_SECONDS": "-1"},
    ],
)
def test_invalid_numbers_rejected(env):
    with pytest.raises(ConfigError):
        load_service_config(env=env)


def test_session_ttl_floor():
    assert load_service_config(env={"AUTH_SESSION_TTL_SECONDS": "5"}).session_ttl_seconds == 60


@pytest.mark.parametrize("port", ["http", [8080], {"value": 8080}])
def test_non_numeric_port_in_file_rejected(tmp_path, port):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"server": {"port": port}}))
    with pytest.raises(ConfigError, match="server.port"):
        load_service_config(str(path), env={})
