"""Insertion domain: build identifiers, package references and the manifest."""

from toolset_insertion.domain.manifest import (
    Manifest,
    ManifestDelta,
    ManifestState,
    PackageReference,
    compute_delta,
)
from toolset_insertion.domain.packages import (
    find_toolset_package,
    parse_package_file_name,
    update_packages,
    update_toolset,
)
from toolset_insertion.domain.version_files import copy_drop_files, update_assembly_versions
from toolset_insertion.domain.versioning import BuildIdentifier, ResolvedBuild, resolve

__all__ = [
    "BuildIdentifier",
    "ResolvedBuild",
    "resolve",
    "PackageReference",
    "ManifestState",
    "Manifest",
    "ManifestDelta",
    "compute_delta",
    "parse_package_file_name",
    "find_toolset_package",
    "update_packages",
    "update_toolset",
    "copy_drop_files",
    "update_assembly_versions",
]
