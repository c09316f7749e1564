"""Teamspace lifecycle manager.

The namespace store is the database: there is no cache and no secondary index, so
the manager is stateless and every call is a direct read or a single write against
the Kubernetes API.

Quota enforcement is check-then-act (list, then create) without compare-and-swap.
Two concurrent creates by the same owner can both pass the check; the quota is
best-effort by construction.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from teamspace.core import naming
from teamspace.core.errors import ConflictError, NotFoundError, QuotaExceededError
from teamspace.core.models import Teamspace
from teamspace.providers.k8s_provider import K8sProvider

logger = logging.getLogger(__name__)

DEFAULT_MAX_TEAMSPACES_PER_OWNER = 3


class TeamspaceManager:
    def __init__(
        self,
        provider: K8sProvider,
        *,
        max_per_owner: int = DEFAULT_MAX_TEAMSPACES_PER_OWNER,
        namespace_prefix: str = naming.DEFAULT_NAMESPACE_PREFIX,
    ) -> None:
        if max_per_owner < 1:
            raise ValueError("max_per_owner must be >= 1")
        self._provider = provider
        self.max_per_owner = max_per_owner
        self.namespace_prefix = namespace_prefix

    def namespace_for(self, name: str) -> str:
        return naming.namespace_for(name, self.namespace_prefix)

    def _to_teamspace(self, ns: Dict[str, Any], *, owner: Optional[str] = None) -> Teamspace:
        labels = ns.get("labels") or {}
        return Teamspace(
            name=labels.get(naming.LABEL_NAME) or "",
            namespace=ns.get("name") or "",
            owner=owner if owner is not None else (labels.get(naming.LABEL_OWNER) or ""),
            created_at=ns.get("creation_timestamp"),
            deletion_timestamp=ns.get("deletion_timestamp"),
        )

    def create(self, name: str, owner: str, initial_release: str = "", feature_set: str = "") -> Teamspace:
        """
        Create a teamspace namespace for `owner`.

        `initial_release` and `feature_set` are passed through as annotations and are
        not validated here.

        Raises:
            InvalidInputError: empty or malformed name/owner
            UnauthorizedError: no owner identity
            QuotaExceededError: owner already has `max_per_owner` teamspaces
                (active or terminating)
            ConflictError: the derived namespace already exists, including one
                still being deleted
            BackendUnavailableError: any transport/platform failure
        """
        owner = naming.validate_owner(owner)
        name = naming.validate_name(name, self.namespace_prefix)

        existing = self.list_by_owner(owner)
        if len(existing) >= self.max_per_owner:
            logger.info(
                "Create rejected: owner=%s already has %d teamspaces (max %d)",
                owner,
                len(existing),
                self.max_per_owner,
            )
            raise QuotaExceededError(f"Maximum number of teamspaces ({self.max_per_owner}) reached for this user")

        for ts in existing:
            if ts.name == name and ts.terminating:
                raise ConflictError(f"Teamspace {name} is still being deleted; try again once it is gone")

        namespace = self.namespace_for(name)
        ns = self._provider.create_namespace(
            namespace,
            labels={
                naming.LABEL_TEAMSPACE: "true",
                naming.LABEL_OWNER: owner,
                naming.LABEL_NAME: name,
            },
            annotations={
                naming.ANNOTATION_RELEASE: initial_release or "",
                naming.ANNOTATION_FEATURE_SET: feature_set or "",
            },
        )
        ts = self._to_teamspace(ns)
        if ts.created_at is None:
            ts = ts.model_copy(update={"created_at": datetime.now(timezone.utc)})
        logger.info("Created teamspace name=%s namespace=%s owner=%s", name, namespace, owner)
        return ts

    def delete(self, name: str) -> None:
        """
        Request deletion and return without waiting for finalization.

        Deleting a teamspace that is already terminating is not an error.
        """
        name = naming.validate_name(name, self.namespace_prefix)
        namespace = self.namespace_for(name)
        try:
            self._provider.delete_namespace(namespace)
        except ConflictError:
            # The platform rejects a repeat delete while finalizers are pending.
            ns = self._provider.read_namespace(namespace)
            if ns.get("deletion_timestamp") is None:
                raise
            logger.info("Teamspace name=%s namespace=%s is already terminating", name, namespace)
            return
        logger.info("Deletion requested for teamspace name=%s namespace=%s", name, namespace)

    def list(self) -> List[Teamspace]:
        """All teamspaces regardless of owner (administrative use)."""
        return [self._to_teamspace(ns) for ns in self._provider.list_namespaces(naming.teamspace_selector())]

    def list_by_owner(self, owner: str) -> List[Teamspace]:
        owner = naming.validate_owner(owner)
        return [
            self._to_teamspace(ns, owner=owner)
            for ns in self._provider.list_namespaces(naming.owner_selector(owner))
        ]

    def is_owner(self, name: str, identity: str) -> bool:
        """
        Compare the namespace's owner label with `identity`.

        Raises NotFoundError when the namespace does not exist; callers must treat
        that as "not authorized". A namespace without an owner label belongs to
        nobody and yields False.
        """
        name = naming.validate_name(name, self.namespace_prefix)
        if not (identity or "").strip():
            return False
        ns = self._provider.read_namespace(self.namespace_for(name))
        labels = ns.get("labels") or {}
        if labels.get(naming.LABEL_TEAMSPACE) != "true":
            # Same name but not one of ours; do not leak its existence.
            raise NotFoundError(f"Teamspace {name} not found", resource="namespace")
        owner = labels.get(naming.LABEL_OWNER)
        if not owner:
            logger.warning("Namespace %s has no owner label", ns.get("name"))
            return False
        return owner == identity

    def get_secret_data(self, name: str, key: str) -> bytes:
        """
        Read one field of a secret scoped to the teamspace namespace.

        The secret name is derived from the teamspace name; `key` picks the field.
        Missing secret and missing field both raise NotFoundError, tagged with
        resource="secret" / "secret_key" so they are not mistaken for a missing
        namespace.
        """
        name = naming.validate_name(name, self.namespace_prefix)
        namespace = self.namespace_for(name)
        secret_name = naming.kubeconfig_secret_for(name, self.namespace_prefix)
        data = self._provider.read_secret_data(namespace, secret_name)
        if key not in data:
            raise NotFoundError(f"Secret {secret_name} has no field {key}", resource="secret_key")
        return data[key]

    def get_kubeconfig(self, name: str) -> bytes:
        return self.get_secret_data(name, naming.KUBECONFIG_DATA_KEY)
