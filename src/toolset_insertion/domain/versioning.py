"""
Build identifiers: parsing, ordering, and resolution.

A ``BuildIdentifier`` is the single source of truth for a whole insertion:
every package inserted from one build carries the same version, and every
"is this newer" decision compares identifiers.

Two textual forms are accepted:

- explicit versions supplied by the user: ``major.minor.patch.build``
- queue build numbers: the same four components, optionally prefixed by the
  queue name and an underscore (``Roslyn-Signed_3.9.0.21115``)

Examples:
    >>> BuildIdentifier.parse("3.9.0.21115") > BuildIdentifier.parse("3.9.0.21020")
    True
    >>> str(BuildIdentifier.from_build_number("Roslyn-Signed_3.9.0.21115", "Roslyn-Signed"))
    '3.9.0.21115'

Tags:
    versioning, build-identifier, total-order, resolution

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from toolset_insertion.core.errors import MalformedVersionError
from toolset_insertion.core.logging import get_logger

if TYPE_CHECKING:
    from toolset_insertion.core.protocols import BuildInfo, BuildQueue

logger = get_logger(__name__)

_VERSION_PATTERN = re.compile(r"^(\d+)\.(\d+)\.(\d+)\.(\d+)$")


@dataclass(frozen=True, order=True)
class BuildIdentifier:
    """
    Immutable, totally ordered build identifier.

    Ordering and equality are lexicographic over
    ``(major, minor, patch, build_number)``. ``queue_name`` records where the
    identifier came from and takes no part in comparisons, so a manifest
    version and a queue build with the same numbers are equal.
    """

    major: int
    minor: int
    patch: int
    build_number: int
    queue_name: str = field(default="", compare=False)

    def __post_init__(self):
        for name in ("major", "minor", "patch", "build_number"):
            if getattr(self, name) < 0:
                raise MalformedVersionError(str(self), f"{name} must be non-negative")

    @classmethod
    def parse(cls, text: str, queue_name: str = "") -> BuildIdentifier:
        """Parse an explicit ``major.minor.patch.build`` string.

        Raises:
            MalformedVersionError: If ``text`` is not exactly four numeric parts.
        """
        match = _VERSION_PATTERN.match(text.strip()) if text else None
        if match is None:
            raise MalformedVersionError(text)
        major, minor, patch, build_number = (int(part) for part in match.groups())
        return cls(major, minor, patch, build_number, queue_name=queue_name)

    @classmethod
    def from_build_number(cls, build_number: str, queue_name: str) -> BuildIdentifier:
        """Derive an identifier from a build-queue build number.

        The queue prefix, when present, must name ``queue_name``.
        """
        text = build_number.strip()
        if "_" in text:
            prefix, _, text = text.rpartition("_")
            if queue_name and prefix != queue_name:
                raise MalformedVersionError(
                    build_number,
                    f"Build number {build_number!r} does not belong to queue {queue_name!r}",
                )
        try:
            return cls.parse(text, queue_name=queue_name)
        except MalformedVersionError as e:
            raise MalformedVersionError(build_number, cause=e) from e

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}.{self.build_number}"


@dataclass(frozen=True)
class ResolvedBuild:
    """The build an insertion takes its packages from."""

    identifier: BuildIdentifier
    build: BuildInfo


def resolve(explicit_version: str, queue_name: str, build_queue: BuildQueue) -> ResolvedBuild:
    """Resolve the build to insert.

    With an explicit version the string is parsed first, so a malformed
    override fails before the build queue is contacted. Without one the most
    recent completed build of ``queue_name`` is used.

    Raises:
        MalformedVersionError: Explicit version or queue build number is malformed.
    """
    if explicit_version:
        identifier = BuildIdentifier.parse(explicit_version, queue_name=queue_name)
        build = build_queue.get_build(identifier)
        logger.info("build_resolved", source="explicit", version=str(identifier), build_id=build.id)
    else:
        build = build_queue.get_latest_build(queue_name)
        identifier = BuildIdentifier.from_build_number(build.build_number, queue_name)
        logger.info("build_resolved", source="latest", version=str(identifier), build_id=build.id)
    return ResolvedBuild(identifier=identifier, build=build)


__all__ = ["BuildIdentifier", "ResolvedBuild", "resolve"]
