"""File-backed collaborator implementations."""

from toolset_insertion.adapters.json_manifest_store import JsonManifestStore, ManifestStoreError

__all__ = ["JsonManifestStore", "ManifestStoreError"]
