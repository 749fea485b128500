"""Test Harness — in-memory collaborators for insertion runs.

Manifesto:
Exercising the pipeline for real needs a build server, a git host, an
enlistment and a mail server. The fakes here stand in for all four with
plain Python state that tests can seed and inspect, so every stage and
every failure path runs in milliseconds.

ARCHITECTURE
────────────
::

    Collaborator fakes:
      FakeBuildQueue            → builds, components, partition results, retention
      FakeSourceControl         → head commit, untracked files, pushes, PRs, comments
      InMemoryManifestStore     → persisted package/component versions
      RecordingMailTransport    → records every message sent

    Factories:
      make_settings(**overrides)       → InsertionSettings with test defaults
      make_build(version, ...)         → BuildInfo with a queue build number
      make_drop(settings, version, *files) → package drop directory on disk
      make_context(...)                → InsertionContext wired to fakes

    Assertion helpers:
      assert_succeeded(outcome)
      assert_cancelled(outcome, error_type=None)
      assert_failed(outcome, error_type=None)

BEST PRACTICES
──────────────
- Seed failures through constructor arguments (``push_error=...``,
  ``partition_results={...}``) rather than patching methods.
- Assert on the fakes' recorded calls, not on log output.

Example::

    from toolset_insertion.orchestration.testing import (
        FakeBuildQueue,
        assert_succeeded,
        make_build,
        make_context,
    )

    def test_latest_build_is_inserted(tmp_path):
        ctx = make_context(tmp_path, build_queue=FakeBuildQueue(latest=make_build("3.9.0.21115")))
        outcome = InsertionPipeline().run(ctx)
        assert_succeeded(outcome)

Tags:
    orchestration, testing, fakes, harness, assertions

Doc-Types:
    api-reference
"""

from __future__ import annotations

import itertools
from pathlib import Path
from typing import Any

from toolset_insertion.core.cancellation import CancellationToken
from toolset_insertion.core.errors import EmptyCommitCondition, InsertionError
from toolset_insertion.core.protocols import BranchRef, BuildInfo, PullRequestRef
from toolset_insertion.core.settings import InsertionSettings
from toolset_insertion.domain.manifest import Manifest, ManifestState, PackageReference
from toolset_insertion.domain.versioning import BuildIdentifier
from toolset_insertion.orchestration.context import InsertionContext, InsertionOutcome
from toolset_insertion.orchestration.states import InsertionStatus

DEFAULT_QUEUE = "Roslyn-Signed"

# ---------------------------------------------------------------------------
# Collaborator fakes
# ---------------------------------------------------------------------------


class FakeBuildQueue:
    """In-memory ``BuildQueue``.

    Parameters
    ----------
    latest
        Build returned by ``get_latest_build``; also registered for ``get_build``.
    builds
        Further builds reachable through ``get_build``.
    components
        Candidates returned by ``get_components``.
    partition_results
        ``partition → success``; partitions not listed succeed.
    auth_error, validation_error
        Raised by ``authenticate`` / ``queue_validation_build`` when set.
    """

    def __init__(
        self,
        latest: BuildInfo | None = None,
        builds: list[BuildInfo] | None = None,
        *,
        components: list[PackageReference] | None = None,
        partition_results: dict[str, bool] | None = None,
        auth_error: Exception | None = None,
        validation_error: Exception | None = None,
    ) -> None:
        self.latest = latest
        self.builds: list[BuildInfo] = list(builds or [])
        if latest is not None:
            self.builds.append(latest)
        self.components = list(components or [])
        self.partition_results = dict(partition_results or {})
        self.auth_error = auth_error
        self.validation_error = validation_error

        self.authenticated = False
        self.retention: dict[int, bool] = {}
        self.partitions_built: list[str] = []
        self.validation_builds: list[BuildInfo] = []
        self.calls: list[tuple[str, Any]] = []
        self._ids = itertools.count(9000)

    def authenticate(self) -> None:
        self.calls.append(("authenticate", None))
        if self.auth_error is not None:
            raise self.auth_error
        self.authenticated = True

    def get_latest_build(self, queue_name: str) -> BuildInfo:
        self.calls.append(("get_latest_build", queue_name))
        if self.latest is None:
            raise LookupError(f"No completed build in queue {queue_name!r}")
        return self.latest

    def get_build(self, identifier: BuildIdentifier) -> BuildInfo:
        self.calls.append(("get_build", str(identifier)))
        for build in self.builds:
            if BuildIdentifier.from_build_number(build.build_number, build.queue_name) == identifier:
                return build
        raise LookupError(f"No build {identifier}")

    def set_retention(self, build_id: int, keep: bool) -> None:
        self.calls.append(("set_retention", build_id))
        self.retention[build_id] = keep

    def get_components(self, build: BuildInfo) -> list[PackageReference]:
        self.calls.append(("get_components", build.id))
        return list(self.components)

    def queue_validation_build(self, source_ref: str) -> BuildInfo:
        self.calls.append(("queue_validation_build", source_ref))
        if self.validation_error is not None:
            raise self.validation_error
        build_id = next(self._ids)
        build = BuildInfo(
            id=build_id,
            build_number=f"validation_{build_id}",
            web_url=f"https://builds.example.test/build/{build_id}",
            source_ref=source_ref,
        )
        self.validation_builds.append(build)
        return build

    def queue_partition_build(self, partition_name: str) -> bool:
        self.calls.append(("queue_partition_build", partition_name))
        self.partitions_built.append(partition_name)
        return self.partition_results.get(partition_name, True)


class FakeSourceControl:
    """In-memory ``SourceControlHost`` with a single working tree.

    ``head`` is the working tree's current commit. A successful push moves
    it; ``reset_to_commit`` moves it back. ``untracked_files`` is cleared by
    ``remove_untracked_files``.
    """

    def __init__(
        self,
        head: str = "0000base",
        *,
        empty_commit: bool = False,
        push_error: Exception | None = None,
        pull_request_error: Exception | None = None,
        decline_pull_request: bool = False,
        comment_error: Exception | None = None,
        reset_error: Exception | None = None,
    ) -> None:
        self.head = head
        self.untracked_files: set[str] = set()
        self.empty_commit = empty_commit
        self.push_error = push_error
        self.pull_request_error = pull_request_error
        self.decline_pull_request = decline_pull_request
        self.comment_error = comment_error
        self.reset_error = reset_error

        self.branches: dict[str, str] = {}
        self.pushes: list[tuple[str, str]] = []
        self.pull_requests: list[PullRequestRef] = []
        self.comments: list[tuple[int, str]] = []
        self.resets: list[str] = []
        self.cleanups = 0
        self._commits = itertools.count(1)
        self._pull_request_ids = itertools.count(100)

    def create_branch(self, from_branch: str, new_name: str) -> BranchRef:
        self.branches[new_name] = self.head
        return BranchRef(name=new_name, base_commit=self.head)

    def commit_and_push(self, branch: BranchRef, message: str) -> None:
        if self.empty_commit:
            raise EmptyCommitCondition(f"Nothing to commit on {branch.name}")
        if self.push_error is not None:
            raise self.push_error
        self.head = f"{next(self._commits):04d}push"
        self.branches[branch.name] = self.head
        self.pushes.append((branch.name, message))

    def create_pull_request(self, branch: BranchRef, title: str) -> PullRequestRef | None:
        if self.pull_request_error is not None:
            raise self.pull_request_error
        if self.decline_pull_request:
            return None
        pr_id = next(self._pull_request_ids)
        pull_request = PullRequestRef(
            id=pr_id,
            source_ref=f"refs/heads/{branch.name}",
            url=f"https://git.example.test/pullrequest/{pr_id}",
            title=title,
        )
        self.pull_requests.append(pull_request)
        return pull_request

    def add_comment(self, pull_request_id: int, text: str) -> None:
        if self.comment_error is not None:
            raise self.comment_error
        self.comments.append((pull_request_id, text))

    def reset_to_commit(self, commit: str) -> None:
        if self.reset_error is not None:
            raise self.reset_error
        self.resets.append(commit)
        self.head = commit

    def remove_untracked_files(self) -> None:
        self.cleanups += 1
        self.untracked_files.clear()


class InMemoryManifestStore:
    """In-memory ``ManifestStore``.

    ``packages`` and ``components`` map names to version strings and play the
    role of the files on disk: ``load`` reads them, ``save_*`` writes them.
    """

    def __init__(
        self,
        packages: dict[str, str] | None = None,
        components: dict[str, str] | None = None,
        *,
        save_error: Exception | None = None,
    ) -> None:
        self.packages = dict(packages or {})
        self.components = dict(components or {})
        self.save_error = save_error
        self.config_saves = 0
        self.component_saves = 0
        self.manifest: Manifest | None = None

    def load(self, path: Path) -> Manifest:
        self.manifest = Manifest(
            path=Path(path),
            packages=_state(self.packages),
            components=_state(self.components),
        )
        return self.manifest

    def save_config(self) -> None:
        if self.save_error is not None:
            raise self.save_error
        self.packages = self._loaded().packages.versions()
        self.config_saves += 1

    def save_components(self) -> None:
        if self.save_error is not None:
            raise self.save_error
        self.components = self._loaded().components.versions()
        self.component_saves += 1

    def try_get_by_name(self, name: str) -> PackageReference | None:
        return self._loaded().try_get_by_name(name)

    def _loaded(self) -> Manifest:
        if self.manifest is None:
            raise InsertionError("No manifest loaded")
        return self.manifest


def _state(versions: dict[str, str]) -> ManifestState:
    return ManifestState(
        PackageReference(name=name, current_version=BuildIdentifier.parse(version))
        for name, version in versions.items()
    )


class RecordingMailTransport:
    """``MailTransport`` that records messages instead of sending them."""

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.sent: list[dict[str, Any]] = []

    def send(
        self,
        subject: str,
        body: str,
        attachment_path: Path | None = None,
        *,
        html: bool = False,
    ) -> None:
        if self.error is not None:
            raise self.error
        self.sent.append({
            "subject": subject,
            "body": body,
            "attachment_path": attachment_path,
            "html": html,
        })


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def make_settings(tmp_path: Path, **overrides: Any) -> InsertionSettings:
    """Settings rooted in ``tmp_path`` with mail enabled and no stage flags."""
    values: dict[str, Any] = {
        "insertion_name": "Roslyn",
        "build_queue_name": DEFAULT_QUEUE,
        "source_branch_name": "main",
        "build_config": "Release",
        "target_branch": "main",
        "new_branch_name": "dev/insert-roslyn",
        "enlistment_path": tmp_path / "enlistment",
        "package_drop_root": tmp_path / "drops",
        "email_server_name": "smtp.example.test",
        "mail_recipient": "insertions@example.test",
        "log_file_path": tmp_path / "rit.log",
    }
    values.update(overrides)
    return InsertionSettings(**values)


def make_build(
    version: str = "3.9.0.21115",
    queue_name: str = DEFAULT_QUEUE,
    build_id: int = 1001,
    **kwargs: Any,
) -> BuildInfo:
    return BuildInfo(
        id=build_id,
        build_number=f"{queue_name}_{version}",
        queue_name=queue_name,
        web_url=f"https://builds.example.test/build/{build_id}",
        **kwargs,
    )


def make_drop(settings: InsertionSettings, version: str, *file_names: str) -> Path:
    """Create the drop directory for ``version`` holding empty package files."""
    drop_dir = settings.package_drop_dir(version)
    drop_dir.mkdir(parents=True, exist_ok=True)
    for file_name in file_names:
        (drop_dir / file_name).write_bytes(b"")
    return drop_dir


def make_context(
    tmp_path: Path,
    *,
    settings: InsertionSettings | None = None,
    build_queue: FakeBuildQueue | None = None,
    source_control: FakeSourceControl | None = None,
    manifest_store: InMemoryManifestStore | None = None,
    mail_transport: RecordingMailTransport | None = None,
    cancellation: CancellationToken | None = None,
) -> InsertionContext:
    """An ``InsertionContext`` wired to fresh fakes unless given."""
    return InsertionContext(
        settings=settings or make_settings(tmp_path),
        build_queue=build_queue or FakeBuildQueue(latest=make_build()),
        source_control=source_control or FakeSourceControl(),
        manifest_store=manifest_store or InMemoryManifestStore(),
        mail_transport=mail_transport if mail_transport is not None else RecordingMailTransport(),
        cancellation=cancellation or CancellationToken(),
    )


# ---------------------------------------------------------------------------
# Assertion helpers
# ---------------------------------------------------------------------------


def assert_succeeded(outcome: InsertionOutcome) -> None:
    assert outcome.status == InsertionStatus.SUCCEEDED, (
        f"Expected SUCCEEDED, got {outcome.status.value}: {outcome.error!r}"
    )
    assert outcome.error is None


def assert_cancelled(outcome: InsertionOutcome, error_type: type[BaseException] | None = None) -> None:
    assert outcome.status == InsertionStatus.CANCELLED, (
        f"Expected CANCELLED, got {outcome.status.value}: {outcome.error!r}"
    )
    if error_type is not None:
        assert isinstance(outcome.error, error_type), f"Expected {error_type.__name__}, got {outcome.error!r}"


def assert_failed(outcome: InsertionOutcome, error_type: type[BaseException] | None = None) -> None:
    assert outcome.status == InsertionStatus.FAILED, (
        f"Expected FAILED, got {outcome.status.value}"
    )
    if error_type is not None:
        assert isinstance(outcome.error, error_type), f"Expected {error_type.__name__}, got {outcome.error!r}"


__all__ = [
    "DEFAULT_QUEUE",
    "FakeBuildQueue",
    "FakeSourceControl",
    "InMemoryManifestStore",
    "RecordingMailTransport",
    "make_settings",
    "make_build",
    "make_drop",
    "make_context",
    "assert_succeeded",
    "assert_cancelled",
    "assert_failed",
]
