"""Tests for the manifest model and compute_delta."""

from pathlib import Path

import pytest

from toolset_insertion.domain.manifest import (
    Manifest,
    ManifestState,
    PackageReference,
    compute_delta,
)
from toolset_insertion.domain.versioning import BuildIdentifier


def v(text: str) -> BuildIdentifier:
    return BuildIdentifier.parse(text)


def entry(name: str, version: str) -> PackageReference:
    return PackageReference(name=name, current_version=v(version))


def candidate(name: str, version: str, **kwargs) -> PackageReference:
    return PackageReference(name=name, candidate_version=v(version), **kwargs)


class TestPackageReference:
    """needs_update, with_candidate and applied."""

    def test_needs_update_only_when_strictly_newer(self):
        assert entry("A", "1.0.0.1").with_candidate(candidate("A", "1.0.0.2")).needs_update is True
        assert entry("A", "1.0.0.2").with_candidate(candidate("A", "1.0.0.2")).needs_update is False
        assert entry("A", "1.0.0.3").with_candidate(candidate("A", "1.0.0.2")).needs_update is False

    def test_needs_update_without_versions(self):
        assert PackageReference(name="A").needs_update is False
        assert candidate("A", "1.0.0.1").needs_update is False

    def test_applied(self):
        applied = entry("A", "1.0.0.1").with_candidate(candidate("A", "1.0.0.2")).applied()
        assert applied.current_version == v("1.0.0.2")
        assert applied.candidate_version is None

    def test_with_candidate_keeps_source_when_candidate_has_none(self):
        existing = PackageReference(name="C", current_version=v("1.0.0.1"), source_uri="https://old")
        assert existing.with_candidate(candidate("C", "1.0.0.2")).source_uri == "https://old"
        assert existing.with_candidate(candidate("C", "1.0.0.2", source_uri="https://new")).source_uri == "https://new"


class TestManifestState:
    """Mapping behaviour."""

    def test_lookup(self):
        state = ManifestState([entry("A", "1.0.0.1")])
        assert state.try_get_by_name("A").current_version == v("1.0.0.1")
        assert state.try_get_by_name("B") is None
        assert len(state) == 1
        assert "A" in state

    def test_key_must_match_name(self):
        state = ManifestState()
        with pytest.raises(KeyError):
            state["B"] = entry("A", "1.0.0.1")

    def test_versions(self):
        state = ManifestState([entry("A", "1.0.0.1"), PackageReference(name="B")])
        assert state.versions() == {"A": "1.0.0.1"}

    def test_manifest_lookup_checks_both_sections(self):
        manifest = Manifest(
            path=Path("."),
            packages=ManifestState([entry("P", "1.0.0.1")]),
            components=ManifestState([entry("C", "2.0.0.1")]),
        )
        assert manifest.try_get_by_name("P").current_version == v("1.0.0.1")
        assert manifest.try_get_by_name("C").current_version == v("2.0.0.1")
        assert manifest.try_get_by_name("X") is None


class TestComputeDelta:
    """Update policy: newer applied, older/equal skipped, absent reported."""

    def test_newer_is_applied(self):
        state = ManifestState([entry("A", "3.9.0.21020")])
        delta = compute_delta(state, [candidate("A", "3.9.0.21115")])

        assert [r.name for r in delta.applied] == ["A"]
        assert delta.applied[0].current_version == v("3.9.0.21020")
        assert delta.applied[0].candidate_version == v("3.9.0.21115")
        assert state["A"].current_version == v("3.9.0.21115")
        assert delta.mutated is True

    @pytest.mark.parametrize("offered", ["3.9.0.21115", "3.9.0.21020"])
    def test_equal_or_older_is_skipped(self, offered):
        state = ManifestState([entry("A", "3.9.0.21115")])
        delta = compute_delta(state, [candidate("A", offered)])

        assert delta.applied == []
        assert [r.name for r in delta.skipped] == ["A"]
        assert state["A"].current_version == v("3.9.0.21115")
        assert delta.mutated is False

    def test_absent_is_newly_added_and_not_inserted(self):
        state = ManifestState([entry("A", "1.0.0.1")])
        delta = compute_delta(state, [candidate("New", "1.0.0.2")])

        assert [r.name for r in delta.newly_added] == ["New"]
        assert "New" not in state
        assert delta.mutated is False

    def test_mixed_preserves_candidate_order(self):
        state = ManifestState([entry("A", "1.0.0.1"), entry("B", "1.0.0.5"), entry("C", "1.0.0.1")])
        delta = compute_delta(
            state,
            [candidate("C", "1.0.0.2"), candidate("B", "1.0.0.2"), candidate("X", "1.0.0.2"), candidate("A", "1.0.0.2")],
        )
        assert [r.name for r in delta.applied] == ["C", "A"]
        assert [r.name for r in delta.skipped] == ["B"]
        assert [r.name for r in delta.newly_added] == ["X"]

    def test_reapplying_is_a_no_op(self):
        state = ManifestState([entry("A", "1.0.0.1")])
        compute_delta(state, [candidate("A", "1.0.0.2")])
        snapshot = state.versions()

        second = compute_delta(state, [candidate("A", "1.0.0.2")])

        assert second.applied == []
        assert state.versions() == snapshot

    def test_calls_compose(self):
        state = ManifestState([entry("A", "1.0.0.1")])
        compute_delta(state, [candidate("A", "1.0.0.3")])
        later = compute_delta(state, [candidate("A", "1.0.0.2")])
        assert later.applied == []
        assert state["A"].current_version == v("1.0.0.3")
