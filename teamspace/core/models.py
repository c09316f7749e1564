"""Teamspace domain model.

A Teamspace has no storage of its own: every field is read back from the namespace
object (labels, creation timestamp, deletion marker) on each listing.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Teamspace(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True, frozen=True)

    name: str
    namespace: str
    owner: str
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    deletion_timestamp: Optional[datetime] = Field(default=None, alias="deletionTimestamp")

    @field_validator("created_at", "deletion_timestamp")
    @classmethod
    def _ensure_timezone_aware(cls, v: Optional[datetime]) -> Optional[datetime]:
        if isinstance(v, datetime) and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @property
    def terminating(self) -> bool:
        """True once the platform has accepted a delete and finalization is pending."""
        return self.deletion_timestamp is not None

    def to_api(self) -> Dict[str, Any]:
        # `deletionTimestamp` is omitted (not null) for active teamspaces.
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class CreateTeamspaceRequest(BaseModel):
    name: str = ""
    initial_hosted_cluster_release: str = Field(default="", alias="initialHostedClusterRelease")
    feature_set: str = Field(default="", alias="featureSet")

    model_config = ConfigDict(populate_by_name=True)
