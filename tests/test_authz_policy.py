from __future__ import annotations

from teamspace.authz.policy import authorize, is_user_allowed


def test_empty_allow_list_allows_everyone():
    assert is_user_allowed([], []) is True
    assert is_user_allowed(["anything"], []) is True


def test_no_teams_is_denied_when_allow_list_set():
    assert is_user_allowed([], ["platform"]) is False


def test_any_matching_team_allows_regardless_of_others():
    assert is_user_allowed(["frontend", "platform", "qa"], ["platform"]) is True


def test_no_matching_team_is_denied():
    assert is_user_allowed(["frontend"], ["platform", "sre"]) is False


def test_match_is_exact():
    assert is_user_allowed(["Platform"], ["platform"]) is False


def test_authorize_builds_identity():
    ident = authorize("alice", ["platform"], ["platform"])
    assert ident.username == "alice"
    assert ident.teams == ["platform"]
    assert ident.authorized is True

    assert authorize("bob", [], ["platform"]).authorized is False
