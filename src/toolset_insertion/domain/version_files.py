"""Version-bearing files refreshed alongside the package config.

Besides the package config, an enlistment tracks the inserted build in two
kinds of files:

- drop files, copied verbatim from the build drop into the enlistment
  (contract assembly props and similar)
- assembly version files, MSBuild-style documents whose
  ``<Property>M.m.p.b</Property>`` element names the inserted version

Both are rewritten while packages are inserted. Any failure is fatal to the
run; the branch rollback restores whatever was already written.
"""

from __future__ import annotations

import re
import shutil
from collections.abc import Iterable
from pathlib import Path

from toolset_insertion.core.errors import VersionFileUpdateFailure
from toolset_insertion.core.logging import get_logger
from toolset_insertion.domain.versioning import BuildIdentifier

logger = get_logger(__name__)


def copy_drop_files(drop_root: Path, enlistment: Path, relative_paths: Iterable[str]) -> list[Path]:
    """Copy each drop-relative file to the same relative path in the enlistment.

    Existing files are overwritten.

    Raises:
        VersionFileUpdateFailure: A source file is missing or the copy failed.
    """
    copied = []
    for relative in relative_paths:
        source = drop_root / relative
        target = enlistment / relative
        if not source.is_file():
            raise VersionFileUpdateFailure(relative, f"Drop file {source} does not exist")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, target)
        except OSError as e:
            raise VersionFileUpdateFailure(relative, f"Cannot copy {source} to {target}", cause=e) from e
        logger.info("drop_file_copied", source=str(source), target=str(target))
        copied.append(target)
    return copied


def update_assembly_versions(
    enlistment: Path,
    relative_paths: Iterable[str],
    property_name: str,
    identifier: BuildIdentifier,
) -> list[Path]:
    """Point every ``<property_name>`` element in the given files at ``identifier``.

    Returns:
        The files whose content changed.

    Raises:
        VersionFileUpdateFailure: A file is unreadable, unwritable, or has no
            ``<property_name>`` element.
    """
    name = re.escape(property_name)
    pattern = re.compile(rf"(<{name}>)[^<]*(</{name}>)")
    version = str(identifier)

    changed = []
    for relative in relative_paths:
        path = enlistment / relative
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise VersionFileUpdateFailure(relative, f"Cannot read version file {path}", cause=e) from e

        updated, count = pattern.subn(lambda m: f"{m.group(1)}{version}{m.group(2)}", text)
        if count == 0:
            raise VersionFileUpdateFailure(relative, f"Version file {path} has no <{property_name}> element")
        if updated == text:
            continue

        try:
            path.write_text(updated, encoding="utf-8")
        except OSError as e:
            raise VersionFileUpdateFailure(relative, f"Cannot write version file {path}", cause=e) from e
        logger.info("assembly_version_updated", path=str(path), version=version)
        changed.append(path)
    return changed


__all__ = ["copy_drop_files", "update_assembly_versions"]
