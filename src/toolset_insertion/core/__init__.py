"""Core primitives: errors, logging, settings, cancellation and collaborator protocols.

Manifesto:
    Everything the insertion pipeline needs that is not about insertion
    itself lives here, so domain and orchestration code import one layer
    down and never sideways.

Tags:
    core, errors, logging, settings, protocols

Doc-Types:
    api-reference
"""

from toolset_insertion.core.cancellation import CancellationToken
from toolset_insertion.core.errors import (
    AmbiguousOrMissingPackageError,
    AuthenticationFailure,
    ConfigurationError,
    EmptyCommitCondition,
    ErrorCategory,
    ErrorContext,
    InsertionCancelled,
    InsertionError,
    MalformedVersionError,
    NotificationFailure,
    PackageNotReferencedError,
    PartitionBuildFailure,
    PullRequestCreationFailure,
    RollbackFailure,
    ValidationBuildFailure,
    VersionFileUpdateFailure,
)
from toolset_insertion.core.logging import (
    LogContext,
    bind_context,
    clear_context,
    configure_logging,
    flush_logs,
    get_logger,
    unbind_context,
)
from toolset_insertion.core.protocols import (
    BranchRef,
    BuildInfo,
    BuildQueue,
    MailTransport,
    ManifestStore,
    PullRequestRef,
    SourceControlHost,
)
from toolset_insertion.core.settings import InsertionSettings

__all__ = [
    # Cancellation
    "CancellationToken",
    # Errors
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
    # Logging
    "configure_logging",
    "get_logger",
    "flush_logs",
    "bind_context",
    "unbind_context",
    "clear_context",
    "LogContext",
    # Protocols
    "BuildInfo",
    "BranchRef",
    "PullRequestRef",
    "BuildQueue",
    "SourceControlHost",
    "ManifestStore",
    "MailTransport",
    # Settings
    "InsertionSettings",
]
