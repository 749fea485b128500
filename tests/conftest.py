"""
Shared pytest fixtures for toolset-insertion tests.

This module provides:
- Settings rooted in a per-test temporary directory
- Fresh in-memory collaborators (build queue, source control, manifest store, mail)
- An ``InsertionContext`` wired to those collaborators
- Logging context cleanup between tests

Usage:
    Fixtures are auto-discovered by pytest; request them by name.

    def test_something(ctx, source_control):
        ...
"""

import logging
import os
import sys
from pathlib import Path

import pytest
import structlog

# Ensure toolset_insertion is importable without installation
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from toolset_insertion.core.logging import _HANDLER_TAG
from toolset_insertion.core.protocols import BuildInfo
from toolset_insertion.core.settings import InsertionSettings
from toolset_insertion.orchestration.context import InsertionContext
from toolset_insertion.orchestration.testing import (
    FakeBuildQueue,
    FakeSourceControl,
    InMemoryManifestStore,
    RecordingMailTransport,
    make_build,
    make_context,
    make_settings,
)


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark scenario tests as integration, everything else as unit."""
    for item in items:
        if "scenarios" in Path(str(item.fspath)).name:
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def clean_log_context():
    """Drop contextvars bound by a previous test."""
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()


@pytest.fixture(autouse=True)
def reset_logging():
    """Remove handlers installed by configure_logging and restore structlog defaults."""
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_TAG, False):
            root.removeHandler(handler)
            handler.close()
    structlog.reset_defaults()


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Keep INSERTION_* variables and a stray .env out of settings."""
    for key in list(os.environ):
        if key.startswith("INSERTION_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)


# =============================================================================
# Collaborators
# =============================================================================


@pytest.fixture
def settings(tmp_path) -> InsertionSettings:
    return make_settings(tmp_path)


@pytest.fixture
def build() -> BuildInfo:
    return make_build("3.9.0.21115")


@pytest.fixture
def build_queue(build) -> FakeBuildQueue:
    return FakeBuildQueue(latest=build)


@pytest.fixture
def source_control() -> FakeSourceControl:
    return FakeSourceControl()


@pytest.fixture
def manifest_store() -> InMemoryManifestStore:
    return InMemoryManifestStore(
        packages={
            "Microsoft.Net.Compilers.Toolset": "3.9.0.21020",
            "Microsoft.CodeAnalysis": "3.9.0.21020",
        },
        components={"Microsoft.CodeAnalysis.Compilers": "3.9.0.21020"},
    )


@pytest.fixture
def mail() -> RecordingMailTransport:
    return RecordingMailTransport()


@pytest.fixture
def ctx(tmp_path, settings, build_queue, source_control, manifest_store, mail) -> InsertionContext:
    return make_context(
        tmp_path,
        settings=settings,
        build_queue=build_queue,
        source_control=source_control,
        manifest_store=manifest_store,
        mail_transport=mail,
    )
