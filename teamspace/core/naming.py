"""Namespace naming and labelling rules.

Nothing outside this module should build a namespace name or a label selector by hand.
"""

from __future__ import annotations

import re

from teamspace.core.errors import InvalidInputError, UnauthorizedError

DEFAULT_NAMESPACE_PREFIX = "teamspace-"

LABEL_TEAMSPACE = "teamspace"
LABEL_OWNER = "owner"
LABEL_NAME = "name"

ANNOTATION_RELEASE = "release"
ANNOTATION_FEATURE_SET = "feature-set"

KUBECONFIG_SECRET_SUFFIX = "-kubeconfig"
KUBECONFIG_DATA_KEY = "kubeconfig"

# Namespace names are DNS-1123 labels (<= 63 chars).
_DNS1123_LABEL = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")
# Label values: <= 63 chars, alphanumeric at both ends, `-_.` inside.
_LABEL_VALUE = re.compile(r"^[A-Za-z0-9]([-A-Za-z0-9_.]*[A-Za-z0-9])?$")


def namespace_for(name: str, prefix: str = DEFAULT_NAMESPACE_PREFIX) -> str:
    return f"{prefix}{name}"


def kubeconfig_secret_for(name: str, prefix: str = DEFAULT_NAMESPACE_PREFIX) -> str:
    return f"{prefix}{name}{KUBECONFIG_SECRET_SUFFIX}"


def teamspace_selector() -> str:
    return f"{LABEL_TEAMSPACE}=true"


def owner_selector(owner: str) -> str:
    return f"{LABEL_TEAMSPACE}=true,{LABEL_OWNER}={owner}"


def validate_name(name: str, prefix: str = DEFAULT_NAMESPACE_PREFIX) -> str:
    """
    Return the normalized tenant name or raise InvalidInputError.

    The derived namespace must be a valid DNS-1123 label, so the name inherits the
    same character set and a length cap of 63 minus the prefix.
    """
    n = (name or "").strip()
    if not n:
        raise InvalidInputError("Teamspace name cannot be empty")
    max_len = 63 - len(prefix)
    if len(n) > max_len:
        raise InvalidInputError(f"Teamspace name must be at most {max_len} characters")
    if not _DNS1123_LABEL.match(n):
        raise InvalidInputError(
            "Teamspace name must consist of lowercase letters, digits and '-', "
            "and start and end with a letter or digit"
        )
    return n


def validate_owner(owner: str) -> str:
    o = (owner or "").strip()
    if not o:
        raise UnauthorizedError("An authenticated identity is required")
    # Owner is stored as a label value and used in a label selector.
    if len(o) > 63 or not _LABEL_VALUE.match(o):
        raise InvalidInputError("Owner identity is not a valid label value")
    return o
