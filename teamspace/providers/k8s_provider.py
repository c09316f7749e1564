"""Kubernetes API client for namespace-scoped teamspace resources.

Only the calls the lifecycle manager needs: create/read/list/delete namespaces and
read a secret inside a namespace. Every failure leaves this module as a
`TeamspaceError` subclass; callers never see `ApiException`.
"""

from __future__ import annotations

import base64
import logging
import threading
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError as Urllib3HTTPError

from teamspace.core.errors import (
    BackendUnavailableError,
    ConflictError,
    InvalidInputError,
    NotFoundError,
    TeamspaceError,
)

logger = logging.getLogger(__name__)

DEFAULT_REQUEST_TIMEOUT_SECONDS = 10.0

_core_v1_api = None
_config_loaded = False
_init_lock = threading.Lock()


@runtime_checkable
class K8sProvider(Protocol):
    def create_namespace(
        self, name: str, *, labels: Dict[str, str], annotations: Dict[str, str]
    ) -> Dict[str, Any]: ...

    def read_namespace(self, name: str) -> Dict[str, Any]: ...

    def list_namespaces(self, label_selector: str) -> List[Dict[str, Any]]: ...

    def delete_namespace(self, name: str) -> None: ...

    def read_secret_data(self, namespace: str, name: str) -> Dict[str, bytes]: ...


class DefaultK8sProvider:
    def __init__(self, request_timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS) -> None:
        self.request_timeout = request_timeout

    def create_namespace(
        self, name: str, *, labels: Dict[str, str], annotations: Dict[str, str]
    ) -> Dict[str, Any]:
        return create_namespace(name, labels=labels, annotations=annotations, request_timeout=self.request_timeout)

    def read_namespace(self, name: str) -> Dict[str, Any]:
        return read_namespace(name, request_timeout=self.request_timeout)

    def list_namespaces(self, label_selector: str) -> List[Dict[str, Any]]:
        return list_namespaces(label_selector, request_timeout=self.request_timeout)

    def delete_namespace(self, name: str) -> None:
        delete_namespace(name, request_timeout=self.request_timeout)

    def read_secret_data(self, namespace: str, name: str) -> Dict[str, bytes]:
        return read_secret_data(namespace, name, request_timeout=self.request_timeout)


def get_k8s_provider(request_timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS) -> K8sProvider:
    """Seam for swapping provider implementations (tests use an in-memory store)."""
    return DefaultK8sProvider(request_timeout=request_timeout)


def _get_core_v1():
    """
    Return a cached CoreV1Api client.

    Config loading tries in-cluster first and falls back to the local kubeconfig.
    """
    global _core_v1_api, _config_loaded

    if _core_v1_api is not None:
        return _core_v1_api

    with _init_lock:
        if _core_v1_api is not None:
            return _core_v1_api

        if not _config_loaded:
            try:
                config.load_incluster_config()
            except config.ConfigException:
                try:
                    config.load_kube_config()
                except config.ConfigException as e:
                    raise BackendUnavailableError(f"Failed to get Kubernetes config: {e}", cause=e)
            _config_loaded = True

        _core_v1_api = client.CoreV1Api()
        return _core_v1_api


def _translate_error(e: Exception, what: str, *, resource: str = "namespace") -> TeamspaceError:
    if isinstance(e, TeamspaceError):
        return e
    if isinstance(e, ApiException):
        status = int(e.status or 0)
        if status == 404:
            return NotFoundError(f"{what}: not found", resource=resource, cause=e)
        if status == 409:
            return ConflictError(f"{what}: already exists", cause=e)
        if status in (400, 422):
            return InvalidInputError(f"{what}: rejected by the API server ({e.reason})", cause=e)
        # 401/403 mean the service account is missing RBAC, not that the end user is.
        return BackendUnavailableError(f"{what}: Kubernetes API error {status} ({e.reason})", cause=e)
    if isinstance(e, (Urllib3HTTPError, OSError)):
        return BackendUnavailableError(f"{what}: Kubernetes API unreachable ({e})", cause=e)
    return BackendUnavailableError(f"{what}: {e}", cause=e)


def _namespace_to_dict(ns: Any) -> Dict[str, Any]:
    md = ns.metadata
    creation: Optional[datetime] = getattr(md, "creation_timestamp", None)
    deletion: Optional[datetime] = getattr(md, "deletion_timestamp", None)
    return {
        "name": md.name,
        "labels": dict(md.labels or {}),
        "annotations": dict(md.annotations or {}),
        "creation_timestamp": creation,
        "deletion_timestamp": deletion,
    }


def create_namespace(
    name: str,
    *,
    labels: Dict[str, str],
    annotations: Dict[str, str],
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
) -> Dict[str, Any]:
    """
    Create a namespace with its labels and annotations in one call.

    Labels and annotations are part of the create body, so a namespace never exists
    without its owner label.
    """
    body = client.V1Namespace(
        metadata=client.V1ObjectMeta(name=name, labels=dict(labels), annotations=dict(annotations)),
    )
    try:
        v1 = _get_core_v1()
        ns = v1.create_namespace(body=body, _request_timeout=request_timeout)
        return _namespace_to_dict(ns)
    except Exception as e:
        raise _translate_error(e, f"Failed to create namespace {name}")


def read_namespace(name: str, *, request_timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS) -> Dict[str, Any]:
    try:
        v1 = _get_core_v1()
        ns = v1.read_namespace(name=name, _request_timeout=request_timeout)
        return _namespace_to_dict(ns)
    except Exception as e:
        raise _translate_error(e, f"Failed to get namespace {name}")


def list_namespaces(
    label_selector: str, *, request_timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS
) -> List[Dict[str, Any]]:
    """List namespaces matching a label selector (filtering happens server-side)."""
    try:
        v1 = _get_core_v1()
        ns_list = v1.list_namespace(label_selector=label_selector, _request_timeout=request_timeout)
        return [_namespace_to_dict(ns) for ns in (ns_list.items or [])]
    except Exception as e:
        raise _translate_error(e, "Failed to list namespaces")


def delete_namespace(name: str, *, request_timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS) -> None:
    """
    Request namespace deletion and return immediately.

    Finalization continues asynchronously in the cluster. While finalizers are still
    pending the API server answers a repeated delete with 409; that namespace is
    already on its way out, so the call succeeds.
    """
    try:
        v1 = _get_core_v1()
        v1.delete_namespace(name=name, _request_timeout=request_timeout)
    except ApiException as e:
        if int(e.status or 0) == 409:
            logger.info("Namespace %s is already terminating", name)
            return
        raise _translate_error(e, f"Failed to delete namespace {name}")
    except Exception as e:
        raise _translate_error(e, f"Failed to delete namespace {name}")


def read_secret_data(
    namespace: str, name: str, *, request_timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS
) -> Dict[str, bytes]:
    """Read a secret and return its data fields, base64-decoded."""
    try:
        v1 = _get_core_v1()
        secret = v1.read_namespaced_secret(name=name, namespace=namespace, _request_timeout=request_timeout)
    except Exception as e:
        raise _translate_error(e, f"Failed to get secret {name}", resource="secret")

    out: Dict[str, bytes] = {}
    for key, value in (secret.data or {}).items():
        if value is None:
            continue
        try:
            out[key] = base64.b64decode(value)
        except (ValueError, TypeError) as e:
            raise BackendUnavailableError(f"Secret {name} has undecodable field {key}", cause=e)
    return out
