"""Tests for InsertionSettings."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from toolset_insertion.core.errors import ConfigurationError
from toolset_insertion.core.settings import InsertionSettings


class TestDefaults:
    """Defaults and derived properties."""

    def test_defaults(self):
        settings = InsertionSettings()
        assert settings.insertion_name == "Roslyn"
        assert settings.insert_packages is False
        assert settings.verify_partitions is True
        assert settings.partitions_to_build == []
        assert settings.log_file_path == Path("rit.log")

    def test_mail_needs_server_and_recipient(self):
        assert InsertionSettings(email_server_name="smtp").mail_enabled is False
        assert InsertionSettings(mail_recipient="a@b").mail_enabled is False
        assert InsertionSettings(email_server_name="smtp", mail_recipient="a@b").mail_enabled is True

    def test_has_new_branch(self):
        assert InsertionSettings().has_new_branch is False
        assert InsertionSettings(new_branch_name="dev/x").has_new_branch is True

    def test_package_drop_dir(self):
        settings = InsertionSettings(package_drop_root=Path("/drops"), package_drop_subdir="Packages")
        assert settings.package_drop_dir("3.9.0.1") == Path("/drops/3.9.0.1/Packages")
        assert settings.build_drop_dir("3.9.0.1") == Path("/drops/3.9.0.1")


class TestEnvironment:
    """INSERTION_* environment variables."""

    def test_reads_prefixed_variables(self, monkeypatch):
        monkeypatch.setenv("INSERTION_BUILD_QUEUE_NAME", "Roslyn-Signed")
        monkeypatch.setenv("INSERTION_INSERT_TOOLSET", "true")
        monkeypatch.setenv("INSERTION_PARTITIONS_TO_BUILD", '["src/compilers", "src/ide"]')
        settings = InsertionSettings()
        assert settings.build_queue_name == "Roslyn-Signed"
        assert settings.insert_toolset is True
        assert settings.partitions_to_build == ["src/compilers", "src/ide"]

    def test_reads_dotenv(self, tmp_path):
        (tmp_path / ".env").write_text("INSERTION_TARGET_BRANCH=release/16.9\n")
        assert InsertionSettings().target_branch == "release/16.9"

    def test_keyword_arguments_win(self, monkeypatch):
        monkeypatch.setenv("INSERTION_TARGET_BRANCH", "from-env")
        assert InsertionSettings(target_branch="explicit").target_branch == "explicit"


class TestValidation:
    """Field validators and validate_for_run."""

    def test_log_format_normalised(self):
        assert InsertionSettings(log_format="JSON").log_format == "json"

    def test_log_format_rejected(self):
        with pytest.raises(ValidationError):
            InsertionSettings(log_format="xml")

    def test_log_level_normalised(self):
        assert InsertionSettings(log_level="debug").log_level == "DEBUG"

    def test_log_level_rejected(self, monkeypatch):
        with pytest.raises(ValidationError, match="log_level"):
            InsertionSettings(log_level="verbose")
        monkeypatch.setenv("INSERTION_LOG_LEVEL", "loud")
        with pytest.raises(ValidationError):
            InsertionSettings()

    def test_valid_run(self):
        InsertionSettings(build_queue_name="Roslyn-Signed", specific_build="3.9.0.21115").validate_for_run()

    def test_missing_queue(self):
        with pytest.raises(ConfigurationError) as exc_info:
            InsertionSettings().validate_for_run()
        assert exc_info.value.key == "build_queue_name"

    @pytest.mark.parametrize("version", ["3.9", "3.9.0", "3.9.0.x", "v3.9.0.1", "3.9.0.1.2"])
    def test_malformed_specific_build(self, version):
        settings = InsertionSettings(build_queue_name="Roslyn-Signed", specific_build=version)
        with pytest.raises(ConfigurationError) as exc_info:
            settings.validate_for_run()
        assert exc_info.value.key == "specific_build"

    def test_missing_target_branch(self):
        settings = InsertionSettings(build_queue_name="Roslyn-Signed", target_branch="")
        with pytest.raises(ConfigurationError) as exc_info:
            settings.validate_for_run()
        assert exc_info.value.key == "target_branch"
