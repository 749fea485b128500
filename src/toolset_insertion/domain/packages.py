"""Package files in a build drop.

A build drop is a directory of ``<Name>.<major>.<minor>.<patch>.<build>.nupkg``
files. These helpers turn a drop into candidate ``PackageReference`` values
and locate the single toolset package.
"""

from __future__ import annotations

import re
from pathlib import Path

from toolset_insertion.core.errors import (
    AmbiguousOrMissingPackageError,
    MalformedVersionError,
    PackageNotReferencedError,
)
from toolset_insertion.core.logging import get_logger
from toolset_insertion.domain.manifest import ManifestDelta, ManifestState, PackageReference, compute_delta
from toolset_insertion.domain.versioning import BuildIdentifier

logger = get_logger(__name__)

PACKAGE_EXTENSION = ".nupkg"

_PACKAGE_FILE_PATTERN = re.compile(r"^(?P<name>.+?)\.(?P<version>\d+\.\d+\.\d+\.\d+)\.nupkg$", re.IGNORECASE)


def parse_package_file_name(file_name: str) -> PackageReference:
    """Split a package file name into a candidate reference.

    Raises:
        MalformedVersionError: If the name carries no four-part version.
    """
    match = _PACKAGE_FILE_PATTERN.match(file_name)
    if match is None:
        raise MalformedVersionError(file_name, f"Package file {file_name!r} has no version")
    return PackageReference(
        name=match.group("name"),
        candidate_version=BuildIdentifier.parse(match.group("version")),
        file_name=file_name,
    )


def discover_package_files(drop_dir: Path) -> list[Path]:
    """All package files directly inside ``drop_dir``, sorted by name."""
    if not drop_dir.is_dir():
        raise AmbiguousOrMissingPackageError(str(drop_dir / f"*{PACKAGE_EXTENSION}"), [])
    return sorted(p for p in drop_dir.iterdir() if p.is_file() and p.suffix.lower() == PACKAGE_EXTENSION)


def find_toolset_package(drop_dir: Path, package_name: str) -> Path:
    """Locate exactly one ``<package_name>*.nupkg`` anywhere under ``drop_dir``.

    Raises:
        AmbiguousOrMissingPackageError: Zero or more than one file matched.
    """
    pattern = f"{package_name}*{PACKAGE_EXTENSION}"
    matches = sorted(drop_dir.rglob(pattern)) if drop_dir.is_dir() else []
    if len(matches) != 1:
        raise AmbiguousOrMissingPackageError(pattern, [m.name for m in matches])
    return matches[0]


def update_packages(manifest: ManifestState, drop_dir: Path) -> ManifestDelta:
    """Apply every package file in ``drop_dir`` to the package config."""
    candidates = [parse_package_file_name(p.name) for p in discover_package_files(drop_dir)]
    logger.info("package_candidates_found", drop_dir=str(drop_dir), count=len(candidates))
    return compute_delta(manifest, candidates)


def update_toolset(manifest: ManifestState, drop_dir: Path, package_name: str) -> ManifestDelta:
    """Apply the toolset package found in ``drop_dir``.

    Unlike ordinary packages the toolset must already be referenced.

    Raises:
        AmbiguousOrMissingPackageError: The drop does not hold exactly one toolset package.
        PackageNotReferencedError: The manifest does not reference the toolset.
    """
    package_path = find_toolset_package(drop_dir, package_name)
    candidate = parse_package_file_name(package_path.name)
    if manifest.try_get_by_name(candidate.name) is None:
        raise PackageNotReferencedError(candidate.name)
    return compute_delta(manifest, [candidate])


__all__ = [
    "PACKAGE_EXTENSION",
    "parse_package_file_name",
    "discover_package_files",
    "find_toolset_package",
    "update_packages",
    "update_toolset",
]
