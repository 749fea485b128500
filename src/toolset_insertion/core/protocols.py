"""
Collaborator contracts consumed by the insertion pipeline.

The pipeline talks to four external systems and depends only on the shapes
defined here. Production code supplies real clients; tests and dry runs use
the in-memory fakes from ``toolset_insertion.orchestration.testing``.

Manifesto:
    Protocols define contracts without inheritance. They enable:
    - **Decoupling:** the state machine depends on shape, not implementation
    - **Testability:** every stage runs against in-memory fakes
    - **Narrow seams:** each protocol carries only what the pipeline calls

Architecture:
    ::

        protocols.py
        ├── BuildQueue          — resolve builds, retention, partition and validation builds
        ├── SourceControlHost   — branch, commit/push, pull request, reset, clean
        ├── ManifestStore       — load and persist the package manifest
        └── MailTransport       — deliver the outcome notification

        Value types: BuildInfo, BranchRef, PullRequestRef

Guardrails:
    ❌ DON'T: Add retry loops to the pipeline around these calls
    ✅ DO: Let a collaborator retry internally; failures surface as FAILED

Tags:
    protocol, collaborators, contracts, build-queue, source-control

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from toolset_insertion.domain.manifest import Manifest, PackageReference
    from toolset_insertion.domain.versioning import BuildIdentifier


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------


@dataclass
class BuildInfo:
    """What the build queue reports about one build."""

    id: int
    build_number: str
    queue_name: str = ""
    keep_forever: bool = False
    web_url: str | None = None
    source_ref: str | None = None


@dataclass(frozen=True)
class BranchRef:
    """A working branch and the commit it was created from."""

    name: str
    base_commit: str


@dataclass(frozen=True)
class PullRequestRef:
    """A pull request opened on the source-control host."""

    id: int
    source_ref: str
    url: str | None = None
    title: str = ""


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


@runtime_checkable
class BuildQueue(Protocol):
    """Build-queue service: where builds come from and where verification runs."""

    def authenticate(self) -> None:
        """Verify credentials. Raises on rejection."""
        ...

    def get_latest_build(self, queue_name: str) -> BuildInfo:
        """Most recent completed build of ``queue_name``."""
        ...

    def get_build(self, identifier: BuildIdentifier) -> BuildInfo:
        """The build that produced ``identifier``."""
        ...

    def set_retention(self, build_id: int, keep: bool) -> None:
        """Mark a build as kept (or not) by the build server."""
        ...

    def get_components(self, build: BuildInfo) -> list[PackageReference]:
        """Component-list entries produced by ``build``, as candidates."""
        ...

    def queue_validation_build(self, source_ref: str) -> BuildInfo:
        """Queue a validation build of ``source_ref``."""
        ...

    def queue_partition_build(self, partition_name: str) -> bool:
        """Build ``partition_name`` with the working tree; True on success."""
        ...


@runtime_checkable
class SourceControlHost(Protocol):
    """Source-control host and the local working tree it manages."""

    def create_branch(self, from_branch: str, new_name: str) -> BranchRef:
        """Fetch ``from_branch`` and create ``new_name`` from its head."""
        ...

    def commit_and_push(self, branch: BranchRef, message: str) -> None:
        """Commit the working tree and push it. Raises ``EmptyCommitCondition`` if nothing changed."""
        ...

    def create_pull_request(self, branch: BranchRef, title: str) -> PullRequestRef | None:
        """Open a pull request from ``branch``; None if the host declined."""
        ...

    def add_comment(self, pull_request_id: int, text: str) -> None:
        ...

    def reset_to_commit(self, commit: str) -> None:
        """Hard-reset the working tree to ``commit``."""
        ...

    def remove_untracked_files(self) -> None:
        ...


@runtime_checkable
class ManifestStore(Protocol):
    """Loads and persists the package manifest of an enlistment."""

    def load(self, path: Path) -> Manifest:
        ...

    def save_config(self) -> None:
        """Persist the package-config section of the loaded manifest."""
        ...

    def save_components(self) -> None:
        """Persist the component-list section of the loaded manifest."""
        ...

    def try_get_by_name(self, name: str) -> PackageReference | None:
        ...


@runtime_checkable
class MailTransport(Protocol):
    """Delivers the outcome notification."""

    def send(
        self,
        subject: str,
        body: str,
        attachment_path: Path | None = None,
        *,
        html: bool = False,
    ) -> None:
        ...


__all__ = [
    "BuildInfo",
    "BranchRef",
    "PullRequestRef",
    "BuildQueue",
    "SourceControlHost",
    "ManifestStore",
    "MailTransport",
]
