"""Insertion settings.

``InsertionSettings`` is the whole configuration surface of a run: where the
build comes from, which branch receives it, which update stages are enabled,
and where the outcome mail goes. Values come from keyword arguments,
``INSERTION_*`` environment variables, or a ``.env`` file.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.
    A run that starts with a bad version override or half-configured mail
    settings should fail before it touches the working tree.

Examples:
    >>> settings = InsertionSettings(
    ...     build_queue_name="Roslyn-Signed",
    ...     target_branch="main",
    ...     new_branch_name="dev/insert-roslyn",
    ...     insert_packages=True,
    ... )
    >>> settings.mail_enabled
    False

Tags:
    settings, configuration, pydantic, environment

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

import re
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from toolset_insertion.core.errors import ConfigurationError

_FOUR_PART_VERSION = re.compile(r"^\d+\.\d+\.\d+\.\d+$")
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class InsertionSettings(BaseSettings):
    """Configuration for one insertion run.

    Fields
    ──────
    insertion_name        : Human name of what is inserted (PR title, mail subject)
    build_queue_name      : Upstream build queue to take the build from
    specific_build        : Explicit version override, empty for "latest"
    target_branch         : Product branch the insertion targets
    new_branch_name       : Working branch to create, empty for no branch
    enlistment_path       : Root of the product working tree
    package_drop_root     : Root of per-build package drops
    insert_*              : Enable flags for the optional update stages
    partitions_to_build   : Partitions verified before the pull request
    email_server_name     : SMTP host; mail is sent only with a recipient too
    drop_files_to_copy    : Files copied from the drop when packages are inserted
    assembly_version_files: Files whose version property names the inserted build
    manual_followup_files : Files listed when new packages need manual work
    """

    model_config = SettingsConfigDict(
        env_prefix="INSERTION_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Identity ─────────────────────────────────────────────────
    insertion_name: str = Field(default="Roslyn")

    # ── Upstream build ───────────────────────────────────────────
    build_queue_name: str = Field(default="")
    source_branch_name: str = Field(default="main", description="Upstream branch, used in mail subjects")
    build_config: str = Field(default="Release", description="Upstream configuration, used in mail subjects")
    specific_build: str = Field(default="", description="Explicit M.m.p.b version override")

    # ── Downstream branch ────────────────────────────────────────
    target_branch: str = Field(default="main")
    new_branch_name: str = Field(default="")
    enlistment_path: Path = Field(default_factory=Path.cwd)

    # ── Package drops ────────────────────────────────────────────
    package_drop_root: Path = Field(default=Path("drops"))
    package_drop_subdir: str = Field(default="DevDivPackages")
    toolset_package_name: str = Field(default="Microsoft.Net.Compilers.Toolset")

    # ── Version files (refreshed with the packages) ──────────────
    drop_files_to_copy: list[str] = Field(
        default_factory=list,
        description="Drop-relative files copied into the enlistment, e.g. ProductData/ContractAssemblies.props",
    )
    assembly_version_files: list[str] = Field(default_factory=list)
    assembly_version_property: str = Field(default="ToolsetAssemblyVersion")

    # ── Stage flags ──────────────────────────────────────────────
    insert_packages: bool = False
    insert_toolset: bool = False
    insert_components: bool = False
    retain_inserted_build: bool = False
    verify_partitions: bool = True
    partitions_to_build: list[str] = Field(default_factory=list)
    queue_validation_build: bool = False

    # ── Mail ─────────────────────────────────────────────────────
    email_server_name: str = Field(default="")
    smtp_port: int = Field(default=25)
    mail_recipient: str = Field(default="")
    mail_sender: str = Field(default="insertion@localhost")
    manual_followup_files: list[str] = Field(default_factory=list)

    # ── Logging ──────────────────────────────────────────────────
    log_file_path: Path = Field(default=Path("rit.log"))
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console")

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        value = value.upper()
        if value not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(_LOG_LEVELS)}, got {value!r}")
        return value

    @field_validator("log_format")
    @classmethod
    def _check_log_format(cls, value: str) -> str:
        value = value.lower()
        if value not in ("json", "console"):
            raise ValueError(f"log_format must be 'json' or 'console', got {value!r}")
        return value

    @property
    def mail_enabled(self) -> bool:
        """Mail is attempted only when both server and recipient are set."""
        return bool(self.email_server_name and self.mail_recipient)

    @property
    def has_new_branch(self) -> bool:
        return bool(self.new_branch_name)

    def build_drop_dir(self, version: object) -> Path:
        """Root of the drop produced by ``version``."""
        return self.package_drop_root / str(version)

    def package_drop_dir(self, version: object) -> Path:
        """Directory holding the package files produced by ``version``."""
        return self.build_drop_dir(version) / self.package_drop_subdir

    def validate_for_run(self) -> None:
        """Reject settings that cannot produce a meaningful run.

        Raises:
            ConfigurationError: On the first invalid field found.
        """
        if not self.build_queue_name:
            raise ConfigurationError("build_queue_name", "A build queue name is required")
        if self.specific_build and not _FOUR_PART_VERSION.match(self.specific_build):
            raise ConfigurationError(
                "specific_build",
                f"specific_build must look like major.minor.patch.build, got {self.specific_build!r}",
            )
        if not self.target_branch:
            raise ConfigurationError("target_branch", "A target branch is required")


__all__ = ["InsertionSettings"]
