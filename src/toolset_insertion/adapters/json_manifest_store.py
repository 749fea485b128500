"""JSON-file manifest store.

Reads and writes the two manifest files of an enlistment::

    <enlistment>/.corext/Configs/packages.json
        {"packages": [{"name": "Microsoft.Net.Compilers.Toolset", "version": "3.9.0.21115"}, ...]}

    <enlistment>/.corext/Configs/components.json
        {"components": [{"name": "Microsoft.CodeAnalysis.Compilers", "version": "3.9.0.21115",
                         "url": "https://..."}, ...]}

Only the ``version`` (and, for components, ``url``) of existing entries is
rewritten on save; every other key in the documents is preserved as loaded.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from toolset_insertion.core.errors import InsertionError, MalformedVersionError
from toolset_insertion.core.logging import get_logger
from toolset_insertion.domain.manifest import Manifest, ManifestState, PackageReference
from toolset_insertion.domain.versioning import BuildIdentifier

logger = get_logger(__name__)

CONFIG_RELATIVE_PATH = Path(".corext") / "Configs" / "packages.json"
COMPONENTS_RELATIVE_PATH = Path(".corext") / "Configs" / "components.json"


class ManifestStoreError(InsertionError):
    """A manifest file could not be read or written."""


class JsonManifestStore:
    """File-backed ``ManifestStore``.

    ``load`` must be called before any save; the store keeps the loaded
    documents so saves rewrite them without losing unknown keys.
    """

    def __init__(self) -> None:
        self._manifest: Manifest | None = None
        self._config_doc: dict[str, Any] = {}
        self._components_doc: dict[str, Any] = {}

    @property
    def manifest(self) -> Manifest:
        if self._manifest is None:
            raise ManifestStoreError("No manifest loaded")
        return self._manifest

    def load(self, path: Path) -> Manifest:
        root = Path(path)
        self._config_doc = _read_document(root / CONFIG_RELATIVE_PATH, "packages")
        self._components_doc = _read_document(root / COMPONENTS_RELATIVE_PATH, "components")
        self._manifest = Manifest(
            path=root,
            packages=ManifestState(_entries(self._config_doc["packages"])),
            components=ManifestState(_entries(self._components_doc["components"])),
        )
        logger.info(
            "manifest_loaded",
            path=str(root),
            packages=len(self._manifest.packages),
            components=len(self._manifest.components),
        )
        return self._manifest

    def save_config(self) -> None:
        manifest = self.manifest
        _sync_versions(self._config_doc["packages"], manifest.packages)
        _write_document(manifest.path / CONFIG_RELATIVE_PATH, self._config_doc)

    def save_components(self) -> None:
        manifest = self.manifest
        _sync_versions(self._components_doc["components"], manifest.components)
        _write_document(manifest.path / COMPONENTS_RELATIVE_PATH, self._components_doc)

    def try_get_by_name(self, name: str) -> PackageReference | None:
        return self.manifest.try_get_by_name(name)


def _read_document(path: Path, section: str) -> dict[str, Any]:
    if not path.exists():
        return {section: []}
    try:
        doc = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ManifestStoreError(f"Cannot read manifest file {path}", cause=e) from e
    if not isinstance(doc, dict) or not isinstance(doc.get(section, []), list):
        raise ManifestStoreError(f"Manifest file {path} has no {section!r} list")
    doc.setdefault(section, [])
    return doc


def _write_document(path: Path, doc: dict[str, Any]) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(doc, indent=2) + "\n", encoding="utf-8")
    except OSError as e:
        raise ManifestStoreError(f"Cannot write manifest file {path}", cause=e) from e
    logger.info("manifest_saved", path=str(path))


def _entries(items: list[dict[str, Any]]) -> list[PackageReference]:
    entries = []
    for item in items:
        try:
            name = item["name"]
            version = BuildIdentifier.parse(str(item["version"]))
        except KeyError as e:
            raise ManifestStoreError(f"Manifest entry without name or version: {item!r}", cause=e) from e
        except MalformedVersionError as e:
            raise ManifestStoreError(f"Manifest entry {item.get('name')!r} has a malformed version", cause=e) from e
        entries.append(PackageReference(name=name, current_version=version, source_uri=item.get("url")))
    return entries


def _sync_versions(items: list[dict[str, Any]], state: ManifestState) -> None:
    for item in items:
        entry = state.try_get_by_name(item["name"])
        if entry is None or entry.current_version is None:
            continue
        item["version"] = str(entry.current_version)
        if entry.source_uri is not None and "url" in item:
            item["url"] = entry.source_uri


__all__ = ["JsonManifestStore", "ManifestStoreError", "CONFIG_RELATIVE_PATH", "COMPONENTS_RELATIVE_PATH"]
