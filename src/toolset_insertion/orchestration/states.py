"""Pipeline states and terminal statuses."""

from __future__ import annotations

from enum import Enum


class PipelineState(str, Enum):
    """Stage an insertion run has reached, in required order."""

    START = "start"
    AUTHENTICATED = "authenticated"
    BUILD_RESOLVED = "build_resolved"
    BRANCH_CREATED = "branch_created"
    PACKAGES_UPDATED = "packages_updated"
    TOOLSET_UPDATED = "toolset_updated"
    COMPONENTS_UPDATED = "components_updated"
    BUILD_RETENTION_APPLIED = "build_retention_applied"
    PARTITIONS_VERIFIED = "partitions_verified"
    PULL_REQUEST_CREATED = "pull_request_created"
    VALIDATION_BUILD_QUEUED = "validation_build_queued"

    # Terminal
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class InsertionStatus(str, Enum):
    """Overall result of an insertion run, as reported to humans."""

    SUCCEEDED = "SUCCEEDED"
    CANCELLED = "CANCELLED"  # Nothing to do: explicit cancellation or empty commit
    FAILED = "FAILED"


__all__ = ["PipelineState", "InsertionStatus"]
