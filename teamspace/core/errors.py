"""Error taxonomy shared by the lifecycle manager, the k8s provider and the API layer.

Every failure surfaced to a caller is one of these kinds. The API maps `status_code`
directly; nothing below the API layer knows about HTTP beyond that number.
"""

from __future__ import annotations

from typing import Optional


class TeamspaceError(Exception):
    kind = "error"
    status_code = 500

    def __init__(self, message: str, *, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause

    def to_dict(self) -> dict:
        return {"detail": self.message, "kind": self.kind}


class UnauthorizedError(TeamspaceError):
    kind = "unauthorized"
    status_code = 401


class ForbiddenError(TeamspaceError):
    kind = "forbidden"
    status_code = 403


class InvalidInputError(TeamspaceError):
    kind = "invalid_input"
    status_code = 400


class QuotaExceededError(TeamspaceError):
    # Clients key off 403 for a full quota.
    kind = "quota_exceeded"
    status_code = 403


class NotFoundError(TeamspaceError):
    """
    A namespace, secret or secret field is absent.

    `resource` keeps "tenant does not exist" apart from "tenant exists but has no
    credential yet": the remediation differs (wait for provisioning vs. give up).
    """

    kind = "not_found"
    status_code = 404

    def __init__(self, message: str, *, resource: str = "namespace", cause: Optional[BaseException] = None) -> None:
        super().__init__(message, cause=cause)
        self.resource = resource

    def to_dict(self) -> dict:
        out = super().to_dict()
        out["resource"] = self.resource
        return out


class ConflictError(TeamspaceError):
    kind = "conflict"
    status_code = 409


class BackendUnavailableError(TeamspaceError):
    kind = "backend_unavailable"
    status_code = 503
