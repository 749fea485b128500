"""Insertion Pipeline — ordered, fail-safe state machine for one insertion.

The pipeline takes an :class:`~toolset_insertion.orchestration.context.InsertionContext`
and drives it through a fixed sequence of stages. Each stage is a plain
function ``stage(ctx) -> StageResult``; the runner owns everything around
it:

- a cancellation check immediately before every transition,
- the stage's enable gate (feature flags, branch/pull-request existence),
- classification of raised exceptions into BENIGN or FATAL results,
- the unwind phase, which always runs.

Stage order::

    START
      → AUTHENTICATED
      → BUILD_RESOLVED
      → BRANCH_CREATED            (new_branch_name)        arms rollback
      → PACKAGES_UPDATED          (insert_packages)
      → TOOLSET_UPDATED           (insert_toolset)
      → COMPONENTS_UPDATED        (insert_components)
      → BUILD_RETENTION_APPLIED
      → PARTITIONS_VERIFIED       (verify_partitions + partitions)
      → PULL_REQUEST_CREATED      (branch exists)          disarms rollback
      → VALIDATION_BUILD_QUEUED   (queue_validation_build)
      → COMPLETED | CANCELLED | FAILED

Unwind (success or failure): flush logs, roll the working branch back to its
checkpoint while rollback is armed, render and send the outcome mail, clear
run-scoped state. Errors raised while unwinding are logged and swallowed; the
run's own status is authoritative. Interrupts raised by a stage unwind too and
are re-raised afterwards.

Example::

    from toolset_insertion.orchestration import InsertionContext, InsertionPipeline

    ctx = InsertionContext(
        settings=settings,
        build_queue=build_queue,
        source_control=source_control,
        manifest_store=JsonManifestStore(),
        mail_transport=SmtpMailTransport.from_settings(settings),
    )
    outcome = InsertionPipeline().run(ctx)
    if outcome.status is InsertionStatus.FAILED:
        sys.exit(1)
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from toolset_insertion.core.cancellation import CancellationToken
from toolset_insertion.core.errors import (
    AuthenticationFailure,
    EmptyCommitCondition,
    InsertionCancelled,
    InsertionError,
    NotificationFailure,
    PartitionBuildFailure,
    PullRequestCreationFailure,
    RollbackFailure,
    ValidationBuildFailure,
)
from toolset_insertion.core.logging import LogContext, configure_logging, flush_logs
from toolset_insertion.core.protocols import BuildQueue, MailTransport, ManifestStore, SourceControlHost
from toolset_insertion.core.settings import InsertionSettings
from toolset_insertion.domain import packages, version_files
from toolset_insertion.domain.manifest import compute_delta
from toolset_insertion.domain.versioning import resolve
from toolset_insertion.orchestration.context import InsertionContext, InsertionOutcome
from toolset_insertion.orchestration.stage_result import StageKind, StageResult
from toolset_insertion.orchestration.states import InsertionStatus, PipelineState

if TYPE_CHECKING:
    from toolset_insertion.framework.notifications.reporter import OutcomeReporter

StageHandler = Callable[[InsertionContext], StageResult]

# Interrupts end the run as CANCELLED; any other BaseException as FAILED
_INTERRUPTS = (KeyboardInterrupt, asyncio.CancelledError)

_TERMINAL_STATES = {
    InsertionStatus.SUCCEEDED: PipelineState.COMPLETED,
    InsertionStatus.CANCELLED: PipelineState.CANCELLED,
    InsertionStatus.FAILED: PipelineState.FAILED,
}


def _always(ctx: InsertionContext) -> bool:
    return True


@dataclass(frozen=True)
class Stage:
    """One transition of the pipeline.

    Attributes:
        state: State the run reaches when the handler returns OK
        handler: Stage body
        enabled: Gate; a closed gate skips the stage without advancing
        skip_reason: Logged when the gate is closed
    """

    state: PipelineState
    handler: StageHandler
    enabled: Callable[[InsertionContext], bool] = _always
    skip_reason: str = ""


# =============================================================================
# Stage handlers
# =============================================================================


def authenticate(ctx: InsertionContext) -> StageResult:
    try:
        ctx.build_queue.authenticate()
    except Exception as e:
        return StageResult.fatal(AuthenticationFailure("Could not authenticate with the build queue", cause=e))
    return StageResult.ok()


def resolve_build(ctx: InsertionContext) -> StageResult:
    ctx.resolved = resolve(ctx.settings.specific_build, ctx.settings.build_queue_name, ctx.build_queue)
    return StageResult.ok(version=str(ctx.identifier), build_id=ctx.build.id)


def create_branch(ctx: InsertionContext) -> StageResult:
    branch = ctx.source_control.create_branch(ctx.settings.target_branch, ctx.settings.new_branch_name)
    ctx.arm_rollback(branch)
    return StageResult.ok(branch=branch.name, checkpoint=branch.base_commit)


def update_packages(ctx: InsertionContext) -> StageResult:
    manifest = ctx.load_manifest()
    drop_dir = ctx.settings.package_drop_dir(ctx.identifier)
    delta = packages.update_packages(manifest.packages, drop_dir)

    for reference in delta.newly_added:
        ctx.newly_inserted_packages.append(reference.file_name or reference.name)
        ctx.logger.info("new_package_found", package=reference.name, file=reference.file_name)

    ctx.cancellation.raise_if_cancellation_requested()
    ctx.manifest_store.save_config()

    settings = ctx.settings
    ctx.cancellation.raise_if_cancellation_requested()
    copied = version_files.copy_drop_files(
        settings.build_drop_dir(ctx.identifier), settings.enlistment_path, settings.drop_files_to_copy
    )
    ctx.cancellation.raise_if_cancellation_requested()
    rewritten = version_files.update_assembly_versions(
        settings.enlistment_path,
        settings.assembly_version_files,
        settings.assembly_version_property,
        ctx.identifier,
    )

    ctx.retain_build = ctx.retain_build or delta.mutated or bool(rewritten)
    return StageResult.ok(
        applied=len(delta.applied),
        skipped=len(delta.skipped),
        new=len(delta.newly_added),
        copied=len(copied),
        versions_updated=len(rewritten),
    )


def update_toolset(ctx: InsertionContext) -> StageResult:
    manifest = ctx.load_manifest()
    drop_dir = ctx.settings.package_drop_dir(ctx.identifier)
    delta = packages.update_toolset(manifest.packages, drop_dir, ctx.settings.toolset_package_name)

    ctx.cancellation.raise_if_cancellation_requested()
    ctx.manifest_store.save_config()
    ctx.retain_build = ctx.retain_build or delta.mutated
    return StageResult.ok(applied=len(delta.applied))


def update_components(ctx: InsertionContext) -> StageResult:
    manifest = ctx.load_manifest()
    candidates = ctx.build_queue.get_components(ctx.build)
    delta = compute_delta(manifest.components, candidates)

    for reference in delta.newly_added:
        ctx.warn(f"Component {reference.name} is not in the component list and was not inserted")

    ctx.cancellation.raise_if_cancellation_requested()
    if delta.mutated:
        ctx.manifest_store.save_components()
        ctx.retain_build = True
    return StageResult.ok(applied=len(delta.applied), skipped=len(delta.skipped))


def apply_build_retention(ctx: InsertionContext) -> StageResult:
    build = ctx.build
    if not (ctx.settings.retain_inserted_build and ctx.retain_build):
        return StageResult.ok(retained=False)
    if build.keep_forever:
        return StageResult.ok(retained=False, already_retained=True)

    ctx.logger.info("retaining_build", build_id=build.id)
    ctx.build_queue.set_retention(build.id, True)
    build.keep_forever = True
    return StageResult.ok(retained=True)


def verify_partitions(ctx: InsertionContext) -> StageResult:
    for partition in ctx.settings.partitions_to_build:
        ctx.cancellation.raise_if_cancellation_requested()
        ctx.logger.info("partition_build_started", partition=partition)
        if not ctx.build_queue.queue_partition_build(partition):
            return StageResult.fatal(PartitionBuildFailure(partition))
        ctx.logger.info("partition_build_succeeded", partition=partition)
    return StageResult.ok(partitions=len(ctx.settings.partitions_to_build))


def create_pull_request(ctx: InsertionContext) -> StageResult:
    branch = ctx.branch
    title = f"Updating {ctx.settings.insertion_name} to {ctx.identifier}"

    try:
        ctx.source_control.commit_and_push(branch, title)
    except EmptyCommitCondition as e:
        # Nothing was committed, so there is nothing to roll back
        ctx.disarm_rollback()
        ctx.logger.warning("empty_commit", branch=branch.name)
        return StageResult.benign(e)
    except Exception as e:
        return StageResult.fatal(PullRequestCreationFailure(f"Unable to push '{branch.name}'", cause=e))

    try:
        pull_request = ctx.source_control.create_pull_request(branch, title)
    except Exception as e:
        return StageResult.fatal(
            PullRequestCreationFailure(f"Unable to create pull request for '{branch.name}'", cause=e)
        )
    if pull_request is None:
        return StageResult.fatal(PullRequestCreationFailure(f"Unable to create pull request for '{branch.name}'"))

    ctx.pull_request = pull_request
    ctx.disarm_rollback()
    return StageResult.ok(pull_request=pull_request.id, url=pull_request.url)


def queue_validation_build(ctx: InsertionContext) -> StageResult:
    pull_request = ctx.pull_request
    if pull_request is None:
        return StageResult.fatal(ValidationBuildFailure("Unable to create a validation build: no pull request"))

    try:
        build = ctx.build_queue.queue_validation_build(pull_request.source_ref)
    except Exception as e:
        return StageResult.fatal(
            ValidationBuildFailure(f"Unable to create a validation build for '{pull_request.source_ref}'", cause=e)
        )
    ctx.validation_build = build
    ctx.logger.info("validation_build_queued", build_id=build.id, url=build.web_url)

    comment = f"Validation build: [{build.id}]({build.web_url})"
    try:
        ctx.source_control.add_comment(pull_request.id, comment)
    except Exception as e:
        return StageResult.fatal(
            ValidationBuildFailure("Unable to add comment to pull request about validation build", cause=e)
        )
    return StageResult.ok(validation_build=build.id)


DEFAULT_STAGES: tuple[Stage, ...] = (
    Stage(PipelineState.AUTHENTICATED, authenticate),
    Stage(PipelineState.BUILD_RESOLVED, resolve_build),
    Stage(
        PipelineState.BRANCH_CREATED,
        create_branch,
        enabled=lambda ctx: ctx.settings.has_new_branch,
        skip_reason="no new branch name configured",
    ),
    Stage(
        PipelineState.PACKAGES_UPDATED,
        update_packages,
        enabled=lambda ctx: ctx.settings.insert_packages,
        skip_reason="package insertion disabled",
    ),
    Stage(
        PipelineState.TOOLSET_UPDATED,
        update_toolset,
        enabled=lambda ctx: ctx.settings.insert_toolset,
        skip_reason="toolset insertion disabled",
    ),
    Stage(
        PipelineState.COMPONENTS_UPDATED,
        update_components,
        enabled=lambda ctx: ctx.settings.insert_components,
        skip_reason="component insertion disabled",
    ),
    Stage(PipelineState.BUILD_RETENTION_APPLIED, apply_build_retention),
    Stage(
        PipelineState.PARTITIONS_VERIFIED,
        verify_partitions,
        enabled=lambda ctx: ctx.settings.verify_partitions and bool(ctx.settings.partitions_to_build),
        skip_reason="no partitions to verify",
    ),
    Stage(
        PipelineState.PULL_REQUEST_CREATED,
        create_pull_request,
        enabled=lambda ctx: ctx.branch is not None,
        skip_reason="no working branch",
    ),
    Stage(
        PipelineState.VALIDATION_BUILD_QUEUED,
        queue_validation_build,
        enabled=lambda ctx: ctx.settings.queue_validation_build,
        skip_reason="validation build disabled",
    ),
)


# =============================================================================
# Runner
# =============================================================================


class InsertionPipeline:
    """Runs the insertion stages against a context and always unwinds.

    Args:
        stages: Stage sequence, ``DEFAULT_STAGES`` unless a test substitutes one
        reporter: Renders the outcome mail; built from the context's settings if omitted
    """

    def __init__(
        self,
        stages: Sequence[Stage] = DEFAULT_STAGES,
        reporter: OutcomeReporter | None = None,
    ) -> None:
        self._stages = tuple(stages)
        self._reporter = reporter

    @property
    def stages(self) -> tuple[Stage, ...]:
        return self._stages

    def run(self, ctx: InsertionContext) -> InsertionOutcome:
        """Drive ``ctx`` to a terminal state, unwind, and return the outcome.

        Stage failures never propagate; they are reflected in the outcome's
        status. An interrupt (``KeyboardInterrupt``, ``SystemExit``, task
        cancellation) still unwinds and is then re-raised.
        """
        with LogContext(insertion=ctx.settings.insertion_name, run_id=ctx.run_id):
            ctx.logger.info(
                "insertion_started",
                target_branch=ctx.settings.target_branch,
                queue=ctx.settings.build_queue_name,
            )

            try:
                status, error = self._run_stages(ctx)
            except BaseException as e:
                status = InsertionStatus.CANCELLED if isinstance(e, _INTERRUPTS) else InsertionStatus.FAILED
                ctx.logger.error("insertion_interrupted", state=ctx.state.value, error_type=type(e).__name__)
                self._finish(ctx, status, e)
                raise
            return self._finish(ctx, status, error)

    def run_stage(self, state: PipelineState, ctx: InsertionContext) -> StageResult:
        """Run the single stage that leads to ``state``, with its gate and cancellation check."""
        for stage in self._stages:
            if stage.state == state:
                return self._execute(stage, ctx)
        raise KeyError(f"No stage leads to {state.value}")

    # =========================================================================
    # Internals
    # =========================================================================

    def _run_stages(self, ctx: InsertionContext) -> tuple[InsertionStatus, BaseException | None]:
        for stage in self._stages:
            result = self._execute(stage, ctx)
            if result.kind == StageKind.BENIGN:
                return InsertionStatus.CANCELLED, result.error
            if result.kind == StageKind.FATAL:
                return InsertionStatus.FAILED, result.error
        return InsertionStatus.SUCCEEDED, None

    def _finish(self, ctx: InsertionContext, status: InsertionStatus, error: BaseException | None) -> InsertionOutcome:
        outcome = ctx.to_outcome(status, error)
        ctx.state = _TERMINAL_STATES[status]
        elapsed = datetime.now(UTC) - ctx.started_at
        ctx.logger.info(
            "insertion_finished",
            duration_ms=int(elapsed.total_seconds() * 1000),
            **outcome.to_dict(),
        )
        self._unwind(ctx, outcome)
        return outcome

    def _execute(self, stage: Stage, ctx: InsertionContext) -> StageResult:
        if ctx.cancellation.is_cancellation_requested:
            result = StageResult.benign(InsertionCancelled(ctx.cancellation.reason or "Insertion cancelled"))
        elif not stage.enabled(ctx):
            ctx.logger.debug("stage_skipped", stage=stage.state.value, reason=stage.skip_reason)
            return StageResult.skip(stage.skip_reason)
        else:
            ctx.logger.info("stage_started", stage=stage.state.value)
            try:
                result = stage.handler(ctx)
            except Exception as e:
                result = StageResult.from_exception(e)

        if result.advances:
            ctx.state = stage.state
            ctx.logger.info("stage_completed", stage=stage.state.value, **result.detail)
        elif result.stops:
            if isinstance(result.error, InsertionError):
                result.error.with_context(stage=stage.state.value)
                if ctx.resolved is not None:
                    result.error.with_context(build=str(ctx.identifier))
            log = ctx.logger.warning if result.kind == StageKind.BENIGN else ctx.logger.error
            log("stage_stopped", stage=stage.state.value, exc_info=result.error, **result.to_dict())
        return result

    def _unwind(self, ctx: InsertionContext, outcome: InsertionOutcome) -> None:
        flush_logs()
        if ctx.rollback_armed:
            self._rollback(ctx)
        if ctx.mail_transport is not None and ctx.settings.mail_enabled:
            self._notify(ctx, outcome)
        ctx.clear_run_state()

    def _rollback(self, ctx: InsertionContext) -> None:
        checkpoint = ctx.checkpoint
        ctx.logger.info("rolling_back", branch=checkpoint.branch_name, commit=checkpoint.commit)
        try:
            ctx.source_control.reset_to_commit(checkpoint.commit)
            ctx.source_control.remove_untracked_files()
        except Exception as e:
            failure = RollbackFailure(f"Rolling back {checkpoint.branch_name} to {checkpoint.commit} failed", cause=e)
            ctx.logger.error("rollback_failed", exc_info=e, **failure.to_dict())
            return
        ctx.disarm_rollback()

    def _notify(self, ctx: InsertionContext, outcome: InsertionOutcome) -> None:
        from toolset_insertion.framework.notifications.reporter import OutcomeReporter

        reporter = self._reporter or OutcomeReporter.from_settings(ctx.settings)
        notification = reporter.render(outcome)
        flush_logs()
        try:
            ctx.mail_transport.send(
                notification.subject,
                notification.body,
                notification.attachment_path,
                html=notification.html,
            )
        except Exception as e:
            failure = NotificationFailure(
                f"Unable to send mail, server: '{ctx.settings.email_server_name}', "
                f"recipient: '{ctx.settings.mail_recipient}'",
                cause=e,
            )
            ctx.logger.error("notification_failed", exc_info=e, **failure.to_dict())
            return
        ctx.logger.info("notification_sent", subject=notification.subject)


def run_insertion(
    settings: InsertionSettings,
    build_queue: BuildQueue,
    source_control: SourceControlHost,
    *,
    manifest_store: ManifestStore | None = None,
    mail_transport: MailTransport | None = None,
    cancellation: CancellationToken | None = None,
) -> InsertionOutcome:
    """Validate settings, start the run's log file, and run one insertion.

    The manifest store defaults to the JSON files of the enlistment and the
    mail transport to SMTP when mail settings are present.

    Raises:
        ConfigurationError: Settings cannot produce a meaningful run. Nothing
            has been touched when this is raised.
    """
    from toolset_insertion.adapters.json_manifest_store import JsonManifestStore
    from toolset_insertion.framework.notifications.channels.email import SmtpMailTransport

    settings.validate_for_run()
    configure_logging(
        level=settings.log_level,
        json_format=settings.log_format == "json",
        log_file=settings.log_file_path,
        truncate=True,
    )

    if mail_transport is None and settings.mail_enabled:
        mail_transport = SmtpMailTransport.from_settings(settings)

    ctx = InsertionContext(
        settings=settings,
        build_queue=build_queue,
        source_control=source_control,
        manifest_store=manifest_store or JsonManifestStore(),
        mail_transport=mail_transport,
        cancellation=cancellation or CancellationToken(),
    )
    return InsertionPipeline().run(ctx)


__all__ = [
    "Stage",
    "StageHandler",
    "DEFAULT_STAGES",
    "InsertionPipeline",
    "run_insertion",
    "authenticate",
    "resolve_build",
    "create_branch",
    "update_packages",
    "update_toolset",
    "update_components",
    "apply_build_retention",
    "verify_partitions",
    "create_pull_request",
    "queue_validation_build",
]
