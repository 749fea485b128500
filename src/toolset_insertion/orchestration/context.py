"""
Insertion Context - explicit run-scoped state passed to every stage.

Everything one insertion run knows lives here: its settings, its
collaborators, the cancellation token, and the state the stages build up
(resolved build, working branch, rollback checkpoint, loaded manifest,
pull request). Nothing is kept in module globals, so two runs in one
process (or two tests) never see each other's state.

Lifecycle::

    create() ──► stages mutate ──► to_outcome() ──► clear_run_state()
                     │
                     ├── arm_rollback(branch)   BRANCH_CREATED
                     └── disarm_rollback()      push produced a PR, or empty commit

Design Principles:
- Single writer: only the pipeline runner and its stages touch a context
- Reporting reads the ``InsertionOutcome``, never the manifest

Tags:
    orchestration, context, run-state, checkpoint, rollback

Doc-Types:
    api-reference
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from toolset_insertion.core.cancellation import CancellationToken
from toolset_insertion.core.errors import InsertionError
from toolset_insertion.core.logging import get_logger
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
from toolset_insertion.domain.manifest import Manifest
from toolset_insertion.domain.versioning import BuildIdentifier, ResolvedBuild
from toolset_insertion.orchestration.states import InsertionStatus, PipelineState


@dataclass(frozen=True)
class Checkpoint:
    """Pre-mutation commit of the working branch."""

    branch_name: str
    commit: str


@dataclass(frozen=True)
class InsertionOutcome:
    """
    Terminal result of an insertion run. Produced once, rendered once.

    Attributes:
        status: SUCCEEDED, CANCELLED or FAILED
        final_state: Last state reached before termination
        build: Identifier of the inserted build, if it was resolved
        pull_request: Pull request opened by the run, if any
        validation_build: Validation build queued for the pull request, if any
        newly_inserted_packages: Package files absent from the manifest (manual follow-up)
        warnings: Unexpected but non-fatal conditions, in order
        error: The condition that stopped the run (CANCELLED and FAILED)
    """

    status: InsertionStatus
    final_state: PipelineState
    build: BuildIdentifier | None = None
    pull_request: PullRequestRef | None = None
    validation_build: BuildInfo | None = None
    newly_inserted_packages: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    error: BaseException | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize for logging."""
        result: dict[str, Any] = {
            "status": self.status.value,
            "final_state": self.final_state.value,
            "build": str(self.build) if self.build else None,
            "pull_request": self.pull_request.id if self.pull_request else None,
            "newly_inserted_packages": list(self.newly_inserted_packages),
            "warnings": list(self.warnings),
        }
        if self.validation_build is not None:
            result["validation_build"] = self.validation_build.id
        if isinstance(self.error, InsertionError):
            result["error"] = self.error.to_dict()
        elif self.error is not None:
            result["error"] = {"error_type": type(self.error).__name__, "message": str(self.error)}
        return result


@dataclass
class InsertionContext:
    """
    Mutable state of one insertion run.

    Attributes:
        settings: Validated configuration for the run
        build_queue: Build-queue collaborator
        source_control: Source-control collaborator
        manifest_store: Manifest-store collaborator
        mail_transport: Mail collaborator, None disables notification
        cancellation: Token checked before every stage
        run_id: Unique identifier bound into every log entry
        started_at: When the run began; the finished log reports the elapsed time
        state: Last state the run reached
        resolved: Build being inserted (from BUILD_RESOLVED on)
        branch: Working branch (if one was created)
        checkpoint: Commit to roll back to while rollback is armed
        rollback_armed: Whether unwind must reset the working branch
        manifest: Loaded manifest (loaded lazily by the first update stage)
        retain_build: True once any update stage mutated the manifest
        pull_request: Pull request opened by the run
        validation_build: Validation build queued for the pull request
        newly_inserted_packages: Package files the manifest did not reference
        warnings: Non-fatal conditions worth a human's attention
    """

    settings: InsertionSettings
    build_queue: BuildQueue
    source_control: SourceControlHost
    manifest_store: ManifestStore
    mail_transport: MailTransport | None = None
    cancellation: CancellationToken = field(default_factory=CancellationToken)
    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    state: PipelineState = PipelineState.START
    resolved: ResolvedBuild | None = None
    branch: BranchRef | None = None
    checkpoint: Checkpoint | None = None
    rollback_armed: bool = False
    manifest: Manifest | None = None
    retain_build: bool = False
    pull_request: PullRequestRef | None = None
    validation_build: BuildInfo | None = None
    newly_inserted_packages: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def __post_init__(self):
        self.logger = get_logger("toolset_insertion.pipeline").bind(
            insertion=self.settings.insertion_name,
            run_id=self.run_id,
        )

    # =========================================================================
    # Accessors
    # =========================================================================

    @property
    def identifier(self) -> BuildIdentifier:
        """Resolved build identifier. Only valid from BUILD_RESOLVED on."""
        if self.resolved is None:
            raise InsertionError("Build has not been resolved yet")
        return self.resolved.identifier

    @property
    def build(self) -> BuildInfo:
        if self.resolved is None:
            raise InsertionError("Build has not been resolved yet")
        return self.resolved.build

    # =========================================================================
    # Mutators
    # =========================================================================

    def warn(self, message: str, **fields: Any) -> None:
        """Record a warning for the outcome mail and log it."""
        self.warnings.append(message)
        self.logger.warning("insertion_warning", message=message, **fields)

    def load_manifest(self) -> Manifest:
        """The enlistment's manifest, loaded on first use."""
        if self.manifest is None:
            self.manifest = self.manifest_store.load(self.settings.enlistment_path)
        return self.manifest

    def arm_rollback(self, branch: BranchRef) -> None:
        self.branch = branch
        self.checkpoint = Checkpoint(branch_name=branch.name, commit=branch.base_commit)
        self.rollback_armed = True

    def disarm_rollback(self) -> None:
        self.rollback_armed = False
        self.checkpoint = None

    def to_outcome(self, status: InsertionStatus, error: BaseException | None = None) -> InsertionOutcome:
        return InsertionOutcome(
            status=status,
            final_state=self.state,
            build=self.resolved.identifier if self.resolved else None,
            pull_request=self.pull_request,
            validation_build=self.validation_build,
            newly_inserted_packages=tuple(self.newly_inserted_packages),
            warnings=tuple(self.warnings),
            error=error,
        )

    def clear_run_state(self) -> None:
        """Drop the mutable resources of the run once it has been reported."""
        self.manifest = None
        self.checkpoint = None
        self.rollback_armed = False


__all__ = ["Checkpoint", "InsertionOutcome", "InsertionContext"]
