"""Tests for drop-file copying and assembly version rewriting."""

import pytest

from toolset_insertion.core.errors import VersionFileUpdateFailure
from toolset_insertion.domain.version_files import copy_drop_files, update_assembly_versions
from toolset_insertion.domain.versioning import BuildIdentifier

PROPS = "ProductData/ContractAssemblies.props"
VERSION = BuildIdentifier.parse("3.9.0.21115")


@pytest.fixture
def drop_root(tmp_path):
    root = tmp_path / "drops" / str(VERSION)
    (root / "ProductData").mkdir(parents=True)
    (root / PROPS).write_text("<Project>new</Project>")
    return root


@pytest.fixture
def enlistment(tmp_path):
    root = tmp_path / "enlistment"
    root.mkdir()
    return root


class TestCopyDropFiles:
    def test_copies_into_enlistment(self, drop_root, enlistment):
        copied = copy_drop_files(drop_root, enlistment, [PROPS])

        assert copied == [enlistment / PROPS]
        assert (enlistment / PROPS).read_text() == "<Project>new</Project>"

    def test_overwrites_existing(self, drop_root, enlistment):
        (enlistment / "ProductData").mkdir()
        (enlistment / PROPS).write_text("<Project>old</Project>")

        copy_drop_files(drop_root, enlistment, [PROPS])

        assert (enlistment / PROPS).read_text() == "<Project>new</Project>"

    def test_missing_source(self, drop_root, enlistment):
        with pytest.raises(VersionFileUpdateFailure, match="does not exist") as excinfo:
            copy_drop_files(drop_root, enlistment, ["ProductData/Missing.props"])
        assert excinfo.value.path == "ProductData/Missing.props"

    def test_nothing_configured(self, drop_root, enlistment):
        assert copy_drop_files(drop_root, enlistment, []) == []


class TestUpdateAssemblyVersions:
    def _write(self, enlistment, text, relative="eng/Versions.props"):
        path = enlistment / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text)
        return path

    def test_rewrites_every_element(self, enlistment):
        path = self._write(
            enlistment,
            "<Project>\n"
            "  <ToolsetAssemblyVersion>3.9.0.21020</ToolsetAssemblyVersion>\n"
            "  <Other>1.0.0.0</Other>\n"
            "  <ToolsetAssemblyVersion></ToolsetAssemblyVersion>\n"
            "</Project>\n",
        )

        changed = update_assembly_versions(enlistment, ["eng/Versions.props"], "ToolsetAssemblyVersion", VERSION)

        assert changed == [path]
        text = path.read_text()
        assert text.count("<ToolsetAssemblyVersion>3.9.0.21115</ToolsetAssemblyVersion>") == 2
        assert "<Other>1.0.0.0</Other>" in text

    def test_unchanged_file_not_reported(self, enlistment):
        self._write(enlistment, "<ToolsetAssemblyVersion>3.9.0.21115</ToolsetAssemblyVersion>")

        assert update_assembly_versions(enlistment, ["eng/Versions.props"], "ToolsetAssemblyVersion", VERSION) == []

    def test_missing_property(self, enlistment):
        self._write(enlistment, "<Project />")

        with pytest.raises(VersionFileUpdateFailure, match="no <ToolsetAssemblyVersion> element"):
            update_assembly_versions(enlistment, ["eng/Versions.props"], "ToolsetAssemblyVersion", VERSION)

    def test_missing_file(self, enlistment):
        with pytest.raises(VersionFileUpdateFailure, match="Cannot read") as excinfo:
            update_assembly_versions(enlistment, ["eng/Versions.props"], "ToolsetAssemblyVersion", VERSION)
        assert isinstance(excinfo.value.__cause__, OSError)
