"""
Package manifest model and delta computation.

The manifest is the in-memory view of the product's package references. It
has two sections, loaded and persisted independently by the manifest store:
``packages`` (the package config) and ``components`` (the component list).

``compute_delta`` is the only code that mutates a section. It is safe to call
repeatedly on the same section: each call sees the versions written by the
previous ones, and re-applying a candidate that is already current changes
nothing.

Update policy per candidate::

    name not in section            → newly_added   (section untouched)
    candidate <= current version   → skipped       (no mutation, no warning)
    candidate >  current version   → applied       (entry takes candidate version)

Tags:
    manifest, package-references, delta, idempotent

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, MutableMapping
from dataclasses import dataclass, field, replace
from pathlib import Path

from toolset_insertion.core.logging import get_logger
from toolset_insertion.domain.versioning import BuildIdentifier

logger = get_logger(__name__)


@dataclass(frozen=True)
class PackageReference:
    """
    A package (or component) as referenced by the manifest or as offered by a build.

    Manifest entries carry ``current_version``; candidates from a build carry
    ``candidate_version``. ``source_uri`` is only used by components.
    """

    name: str
    current_version: BuildIdentifier | None = None
    candidate_version: BuildIdentifier | None = None
    source_uri: str | None = None
    file_name: str | None = None

    @property
    def needs_update(self) -> bool:
        """True iff a candidate is strictly newer than the current version."""
        if self.current_version is None or self.candidate_version is None:
            return False
        return self.candidate_version > self.current_version

    def with_candidate(self, candidate: PackageReference) -> PackageReference:
        """This entry, offered ``candidate``'s version and source."""
        return replace(
            self,
            candidate_version=candidate.candidate_version,
            source_uri=candidate.source_uri or self.source_uri,
        )

    def applied(self) -> PackageReference:
        """This entry with the candidate version made current."""
        return replace(self, current_version=self.candidate_version, candidate_version=None)


class ManifestState(MutableMapping[str, PackageReference]):
    """Mapping of package name to manifest entry. Names are unique."""

    def __init__(self, entries: Iterable[PackageReference] = ()):
        self._entries: dict[str, PackageReference] = {}
        for entry in entries:
            self[entry.name] = entry

    def __getitem__(self, name: str) -> PackageReference:
        return self._entries[name]

    def __setitem__(self, name: str, entry: PackageReference) -> None:
        if entry.name != name:
            raise KeyError(f"Entry {entry.name!r} cannot be stored under {name!r}")
        self._entries[name] = entry

    def __delitem__(self, name: str) -> None:
        del self._entries[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"ManifestState({list(self._entries.values())!r})"

    def try_get_by_name(self, name: str) -> PackageReference | None:
        return self._entries.get(name)

    def versions(self) -> dict[str, str]:
        """Current version of every entry, as strings."""
        return {
            name: str(entry.current_version)
            for name, entry in self._entries.items()
            if entry.current_version is not None
        }


@dataclass
class Manifest:
    """Both manifest sections of one enlistment."""

    path: Path
    packages: ManifestState = field(default_factory=ManifestState)
    components: ManifestState = field(default_factory=ManifestState)

    def try_get_by_name(self, name: str) -> PackageReference | None:
        """Look a name up in the package config first, then the component list."""
        return self.packages.try_get_by_name(name) or self.components.try_get_by_name(name)


@dataclass
class ManifestDelta:
    """What one ``compute_delta`` call did, in candidate order."""

    applied: list[PackageReference] = field(default_factory=list)
    skipped: list[PackageReference] = field(default_factory=list)
    newly_added: list[PackageReference] = field(default_factory=list)

    @property
    def mutated(self) -> bool:
        return bool(self.applied)


def compute_delta(manifest: ManifestState, candidates: Iterable[PackageReference]) -> ManifestDelta:
    """Apply every strictly newer candidate to ``manifest`` in place.

    Args:
        manifest: Section to update; mutated in place.
        candidates: References carrying ``candidate_version``.

    Returns:
        The applied, skipped, and newly added references. Applied entries are
        reported with their previous version as ``current_version`` and the
        new one as ``candidate_version``.
    """
    delta = ManifestDelta()
    for candidate in candidates:
        existing = manifest.try_get_by_name(candidate.name)
        if existing is None:
            delta.newly_added.append(candidate)
            continue

        offered = existing.with_candidate(candidate)
        if not offered.needs_update:
            delta.skipped.append(offered)
            continue

        manifest[candidate.name] = offered.applied()
        delta.applied.append(offered)
        logger.info(
            "package_updated",
            package=candidate.name,
            previous_version=str(offered.current_version),
            new_version=str(offered.candidate_version),
        )
    return delta


__all__ = [
    "PackageReference",
    "ManifestState",
    "Manifest",
    "ManifestDelta",
    "compute_delta",
]
