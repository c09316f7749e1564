"""
Pytest config and shared fakes.

Local imports like `import teamspace` rely on the repo root being on sys.path; we pin
that here so a global `pytest` entrypoint can always import the local package.
"""

from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pytest


def _ensure_repo_root_on_syspath() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


_ensure_repo_root_on_syspath()

from teamspace.auth.config import ServiceConfig  # noqa: E402
from teamspace.core.errors import ConflictError, NotFoundError  # noqa: E402

SESSION_SECRET = "test-secret-key-for-testing-purposes-only"


def _matches(selector: str, labels: Dict[str, str]) -> bool:
    for term in [t for t in selector.split(",") if t]:
        key, _, value = term.partition("=")
        if labels.get(key) != value:
            return False
    return True


class FakeK8sProvider:
    """
    In-memory namespace store with asynchronous finalization.

    A deleted namespace keeps a deletion timestamp for `finalize_after_lists` more
    list calls and then disappears, along with its secrets.
    """

    def __init__(self, finalize_after_lists: int = 1) -> None:
        self.finalize_after_lists = finalize_after_lists
        self.namespaces: Dict[str, Dict[str, Any]] = {}
        self.secrets: Dict[Tuple[str, str], Dict[str, bytes]] = {}
        self.calls: List[Tuple[str, Any]] = []
        self.fail_with: Optional[Exception] = None
        self._finalize_countdown: Dict[str, int] = {}
        self._clock = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def _tick(self) -> datetime:
        self._clock += timedelta(seconds=1)
        return self._clock

    def _maybe_fail(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def _advance_finalization(self) -> None:
        for name in list(self._finalize_countdown):
            self._finalize_countdown[name] -= 1
            if self._finalize_countdown[name] <= 0:
                del self._finalize_countdown[name]
                self.namespaces.pop(name, None)
                for key in [k for k in self.secrets if k[0] == name]:
                    del self.secrets[key]

    def create_namespace(self, name: str, *, labels: Dict[str, str], annotations: Dict[str, str]) -> Dict[str, Any]:
        self.calls.append(("create_namespace", name))
        self._maybe_fail()
        if name in self.namespaces:
            raise ConflictError(f"Failed to create namespace {name}: already exists")
        ns = {
            "name": name,
            "labels": dict(labels),
            "annotations": dict(annotations),
            "creation_timestamp": self._tick(),
            "deletion_timestamp": None,
        }
        self.namespaces[name] = ns
        return dict(ns)

    def read_namespace(self, name: str) -> Dict[str, Any]:
        self.calls.append(("read_namespace", name))
        self._maybe_fail()
        if name not in self.namespaces:
            raise NotFoundError(f"Failed to get namespace {name}: not found", resource="namespace")
        return dict(self.namespaces[name])

    def list_namespaces(self, label_selector: str) -> List[Dict[str, Any]]:
        self.calls.append(("list_namespaces", label_selector))
        self._maybe_fail()
        out = [dict(ns) for ns in self.namespaces.values() if _matches(label_selector, ns["labels"])]
        self._advance_finalization()
        return out

    def delete_namespace(self, name: str) -> None:
        self.calls.append(("delete_namespace", name))
        self._maybe_fail()
        if name not in self.namespaces:
            raise NotFoundError(f"Failed to delete namespace {name}: not found", resource="namespace")
        ns = self.namespaces[name]
        if ns["deletion_timestamp"] is not None:
            # Matches the API server while finalizers are pending.
            raise ConflictError(f"Failed to delete namespace {name}: already terminating")
        ns["deletion_timestamp"] = self._tick()
        self._finalize_countdown[name] = self.finalize_after_lists

    def read_secret_data(self, namespace: str, name: str) -> Dict[str, bytes]:
        self.calls.append(("read_secret_data", (namespace, name)))
        self._maybe_fail()
        if (namespace, name) not in self.secrets:
            raise NotFoundError(f"Failed to get secret {name}: not found", resource="secret")
        return dict(self.secrets[(namespace, name)])

    def creates(self) -> List[str]:
        return [arg for op, arg in self.calls if op == "create_namespace"]


def make_config(**overrides: Any) -> ServiceConfig:
    values: Dict[str, Any] = dict(
        port=8080,
        github_client_id="test-client-id",
        github_client_secret="test-client-secret",
        redirect_url=None,
        github_org="acme",
        allowed_teams=[],
        public_base_url="http://testserver",
        frontend_url="/",
        session_secret=SESSION_SECRET,
        session_ttl_seconds=3600,
        cookie_secure=False,
        max_teamspaces_per_owner=3,
        namespace_prefix="teamspace-",
        k8s_request_timeout_seconds=10.0,
        cors_allowed_origins=[],
    )
    values.update(overrides)
    return ServiceConfig(**values)


@pytest.fixture
def fake_provider() -> FakeK8sProvider:
    return FakeK8sProvider()


@pytest.fixture
def service_config() -> ServiceConfig:
    return make_config()


@pytest.fixture
def config_factory():
    return make_config
