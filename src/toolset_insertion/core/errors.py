"""
Structured error types for toolset insertion.

Every failure an insertion run can hit is an ``InsertionError`` subclass
carrying a category, a ``benign`` flag, structured context and the chained
cause. The pipeline never branches on exception subtypes directly: it reads
``benign`` to decide whether a stop is a cancellation ("nothing to do") or a
failure ("broken"), so downstream reporting can tell the two apart.

Manifesto:
    - **Typed hierarchy:** One class per failure the pipeline must classify
    - **Benign vs fatal:** Explicit flag instead of ``except`` ladders
    - **Rich context:** Stage, build, branch and partition travel with the error
    - **Error chaining:** Collaborator exceptions are preserved as ``cause``

Architecture:
    ::

        ┌────────────────────────────────────────────────────────────────┐
        │                       InsertionError                            │
        │         (category, benign, context, cause)                      │
        ├────────────────────────────────────────────────────────────────┤
        │  AuthenticationFailure     MalformedVersionError                │
        │  (AUTH)                    (VERSION)                            │
        │                                                                 │
        │  AmbiguousOrMissingPackageError   PackageNotReferencedError     │
        │  (PACKAGE)                        (PACKAGE)                     │
        │                                                                 │
        │  PartitionBuildFailure     ValidationBuildFailure               │
        │  (BUILD)                   (BUILD)                              │
        │                                                                 │
        │  PullRequestCreationFailure   RollbackFailure                   │
        │  (SOURCE_CONTROL)             (SOURCE_CONTROL, never raised)    │
        │                                                                 │
        │  EmptyCommitCondition      InsertionCancelled   ← benign        │
        │  (SOURCE_CONTROL)          (CANCELLED)                          │
        │                                                                 │
        │  NotificationFailure       ConfigurationError                   │
        │  (NOTIFICATION)            (CONFIG)                             │
        └────────────────────────────────────────────────────────────────┘

Examples:
    >>> error = PartitionBuildFailure("Build of partition src/compilers failed")
    >>> error.benign
    False
    >>> EmptyCommitCondition("nothing to commit").benign
    True
    >>> error.with_context(partition="src/compilers").context.partition
    'src/compilers'

Guardrails:
    ❌ DON'T: Raise plain ``Exception`` from a stage
    ✅ DO: Raise the matching ``InsertionError`` subclass with ``cause=``

    ❌ DON'T: Propagate ``RollbackFailure`` or ``NotificationFailure``
    ✅ DO: Log them; the original failure stays authoritative

Tags:
    error-handling, exception-hierarchy, benign, insertion, observability

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and reporting."""

    AUTH = "AUTH"  # Collaborator authentication
    VERSION = "VERSION"  # Build identifier parsing
    PACKAGE = "PACKAGE"  # Package files and manifest entries
    BUILD = "BUILD"  # Partition and validation builds
    SOURCE_CONTROL = "SOURCE_CONTROL"  # Branch, commit, push, pull request
    NOTIFICATION = "NOTIFICATION"  # Mail transport
    CONFIG = "CONFIG"  # Missing or invalid settings
    CANCELLED = "CANCELLED"  # Explicit cancellation
    INTERNAL = "INTERNAL"  # Bugs, unexpected state


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an insertion error.

    Attributes:
        stage: Pipeline state being entered when the error occurred
        build: Resolved build identifier, rendered as a string
        branch: Working branch name
        partition: Partition being verified
        metadata: Additional key-value pairs
    """

    stage: str | None = None
    build: str | None = None
    branch: str | None = None
    partition: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["stage", "build", "branch", "partition"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class InsertionError(Exception):
    """
    Base exception for all insertion errors.

    Subclasses set ``default_category`` and ``default_benign``. A benign
    error ends the run as CANCELLED instead of FAILED.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_benign: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        benign: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.benign = benign if benign is not None else self.default_benign
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> InsertionError:
        """
        Add context to this error (fluent API).

        Usage:
            raise PartitionBuildFailure("Build failed").with_context(
                partition="src/compilers"
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "benign": self.benign,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# FATAL ERRORS
# =============================================================================


class AuthenticationFailure(InsertionError):
    """Collaborator credentials were rejected. Raised before any mutation."""

    default_category = ErrorCategory.AUTH


class MalformedVersionError(InsertionError):
    """A version string does not have the expected component structure."""

    default_category = ErrorCategory.VERSION

    def __init__(self, text: str, message: str | None = None, **kwargs: Any):
        self.text = text
        super().__init__(message or f"Malformed version: {text!r}", **kwargs)


class AmbiguousOrMissingPackageError(InsertionError):
    """Zero or several package files matched where exactly one was required."""

    default_category = ErrorCategory.PACKAGE

    def __init__(self, pattern: str, matches: list[str], **kwargs: Any):
        self.pattern = pattern
        self.matches = matches
        if matches:
            message = f"Expected one package matching {pattern!r}, found {len(matches)}: {', '.join(matches)}"
        else:
            message = f"No package matching {pattern!r}"
        super().__init__(message, **kwargs)


class PackageNotReferencedError(InsertionError):
    """A package that must already be installed is missing from the manifest."""

    default_category = ErrorCategory.PACKAGE

    def __init__(self, package_name: str, **kwargs: Any):
        self.package_name = package_name
        super().__init__(f"Package {package_name!r} is not installed in this enlistment", **kwargs)


class VersionFileUpdateFailure(InsertionError):
    """A drop file could not be copied or a version file could not be rewritten."""

    default_category = ErrorCategory.PACKAGE

    def __init__(self, path: str, message: str | None = None, **kwargs: Any):
        self.path = path
        super().__init__(message or f"Cannot update version file {path}", **kwargs)


class PartitionBuildFailure(InsertionError):
    """A verification build of a partition reported failure."""

    default_category = ErrorCategory.BUILD

    def __init__(self, partition: str, **kwargs: Any):
        self.partition = partition
        super().__init__(f"Build of partition {partition} failed", **kwargs)
        self.context.partition = partition


class PullRequestCreationFailure(InsertionError):
    """Pushing the branch or opening the pull request failed."""

    default_category = ErrorCategory.SOURCE_CONTROL


class ValidationBuildFailure(InsertionError):
    """Queueing the validation build or commenting on the pull request failed."""

    default_category = ErrorCategory.BUILD


class ConfigurationError(InsertionError):
    """Settings are missing or invalid for the requested run."""

    default_category = ErrorCategory.CONFIG

    def __init__(self, key: str, message: str | None = None, **kwargs: Any):
        self.key = key
        super().__init__(message or f"Invalid configuration for {key}", **kwargs)


# =============================================================================
# BENIGN CONDITIONS
# =============================================================================


class EmptyCommitCondition(InsertionError):
    """The working tree had no effective changes; nothing was committed."""

    default_category = ErrorCategory.SOURCE_CONTROL
    default_benign = True


class InsertionCancelled(InsertionError):
    """Cancellation was requested for the run."""

    default_category = ErrorCategory.CANCELLED
    default_benign = True

    def __init__(self, message: str = "Insertion cancelled", **kwargs: Any):
        super().__init__(message, **kwargs)


# =============================================================================
# SECONDARY ERRORS (logged, never propagated)
# =============================================================================


class RollbackFailure(InsertionError):
    """Restoring the working branch to its checkpoint failed."""

    default_category = ErrorCategory.SOURCE_CONTROL


class NotificationFailure(InsertionError):
    """Sending the outcome notification failed."""

    default_category = ErrorCategory.NOTIFICATION


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "InsertionError",
    "AuthenticationFailure",
    "MalformedVersionError",
    "AmbiguousOrMissingPackageError",
    "PackageNotReferencedError",
    "PartitionBuildFailure",
    "PullRequestCreationFailure",
    "ValidationBuildFailure",
    "VersionFileUpdateFailure",
    "ConfigurationError",
    "EmptyCommitCondition",
    "InsertionCancelled",
    "RollbackFailure",
    "NotificationFailure",
]
