from __future__ import annotations

from itsdangerous import URLSafeTimedSerializer

from teamspace.auth.models import AuthUser
from teamspace.auth.session import (
    SESSION_SALT,
    clear_session_cookie_kwargs,
    decode_session,
    encode_session,
    session_cookie_kwargs,
    session_cookie_name,
)
from teamspace.auth.util import post_login_redirect, random_token


def test_session_roundtrip(service_config):
    value = encode_session(service_config, AuthUser(provider="github", username="alice"))
    assert decode_session(service_config, value) == AuthUser(provider="github", username="alice")


def test_tampered_or_foreign_session_is_rejected(service_config, config_factory):
    value = encode_session(service_config, AuthUser(provider="github", username="alice"))
    assert decode_session(service_config, value + "x") is None

    other = config_factory(session_secret="another-secret-that-is-long-enough-1234")
    assert decode_session(other, value) is None


def test_session_without_username_is_rejected(service_config):
    s = URLSafeTimedSerializer(secret_key=service_config.session_secret, salt=SESSION_SALT)
    assert decode_session(service_config, s.dumps('{"provider":"github"}')) is None


def test_no_secret_means_no_sessions(config_factory):
    cfg = config_factory(session_secret=None)
    assert encode_session(cfg, AuthUser(provider="github", username="alice")) is None
    assert decode_session(cfg, "anything") is None


def test_cookie_kwargs(service_config, config_factory):
    kw = session_cookie_kwargs(service_config, "v")
    assert kw["key"] == "teamspace_session"
    assert kw["httponly"] is True
    assert kw["samesite"] == "lax"
    assert kw["max_age"] == service_config.session_ttl_seconds
    assert clear_session_cookie_kwargs(service_config)["max_age"] == 0

    assert session_cookie_name(config_factory(cookie_secure=True)) == "__Host-teamspace_session"


def test_post_login_redirect_with_relative_frontend():
    assert post_login_redirect("/teamspaces", "/") == "/teamspaces"
    assert post_login_redirect("https://evil.com", "/") == "/"
    assert post_login_redirect("//evil.com", "/") == "/"
    assert post_login_redirect("/\\evil.com", "/") == "/"
    assert post_login_redirect(None, "/") == "/"
    assert post_login_redirect("/a\r\nSet-Cookie: x", "/") == "/aSet-Cookie: x"


def test_post_login_redirect_stays_on_frontend_origin():
    frontend = "https://ts.example.com/app/"
    assert post_login_redirect("", frontend) == frontend
    assert post_login_redirect("/teamspaces?tab=mine", frontend) == "https://ts.example.com/teamspaces?tab=mine"
    assert post_login_redirect("https://TS.example.com/teamspaces", frontend) == "https://TS.example.com/teamspaces"
    assert post_login_redirect("https://ts.example.com.evil.io/", frontend) == frontend
    assert post_login_redirect("http://ts.example.com/teamspaces", frontend) == frontend
    assert post_login_redirect("javascript:alert(1)", frontend) == frontend


def test_random_token_is_unique_and_url_safe():
    a, b = random_token(16), random_token(16)
    assert a != b
    assert all(c.isalnum() or c in "-_" for c in a)
