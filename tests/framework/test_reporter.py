"""Tests for OutcomeReporter rendering."""

import pytest

from toolset_insertion.core.errors import PartitionBuildFailure
from toolset_insertion.core.protocols import PullRequestRef
from toolset_insertion.domain.versioning import BuildIdentifier
from toolset_insertion.framework.notifications.reporter import FAILURE_BODY, OutcomeReporter
from toolset_insertion.orchestration.context import InsertionOutcome
from toolset_insertion.orchestration.states import InsertionStatus, PipelineState
from toolset_insertion.orchestration.testing import make_settings

SUBJECT_PREFIX = "Roslyn insertion from Roslyn-Signed/main/Release into main"


def _reporter(tmp_path, **overrides):
    return OutcomeReporter.from_settings(make_settings(tmp_path, **overrides))


def _outcome(status=InsertionStatus.SUCCEEDED, **kwargs):
    values = {
        "status": status,
        "final_state": PipelineState.PULL_REQUEST_CREATED,
        "build": BuildIdentifier.parse("3.9.0.21115"),
    }
    values.update(kwargs)
    return InsertionOutcome(**values)


class TestSubject:
    def test_subject_per_status(self, tmp_path):
        reporter = _reporter(tmp_path)
        assert reporter.subject(InsertionStatus.SUCCEEDED) == f"{SUBJECT_PREFIX} SUCCEEDED"
        assert reporter.subject(InsertionStatus.CANCELLED) == f"{SUBJECT_PREFIX} CANCELLED"
        assert reporter.subject(InsertionStatus.FAILED) == f"{SUBJECT_PREFIX} FAILED"

    def test_subject_uses_settings(self, tmp_path):
        reporter = _reporter(
            tmp_path,
            insertion_name="Compilers",
            build_queue_name="Q",
            source_branch_name="release/dev16.9",
            build_config="Debug",
            target_branch="rel/d16.9",
        )
        assert reporter.subject(InsertionStatus.FAILED) == (
            "Compilers insertion from Q/release/dev16.9/Debug into rel/d16.9 FAILED"
        )


class TestSuccessBody:
    def test_pull_request_link(self, tmp_path):
        pull_request = PullRequestRef(id=100, source_ref="refs/heads/x", url="https://git.example.test/pr/100")

        notification = _reporter(tmp_path).render(_outcome(pull_request=pull_request))

        assert notification.html is True
        assert notification.status == InsertionStatus.SUCCEEDED
        assert "Insertion Succeeded" in notification.body
        assert '<a href="https://git.example.test/pr/100">here</a>' in notification.body
        assert "\n" not in notification.body

    def test_no_pull_request(self, tmp_path):
        notification = _reporter(tmp_path).render(_outcome())
        assert "Insertion Succeeded" in notification.body
        assert "pull request" not in notification.body

    def test_new_packages_and_followup_files(self, tmp_path):
        reporter = _reporter(tmp_path, manual_followup_files=["eng/Versions.props", "src/AssemblyVersions.tt"])

        notification = reporter.render(_outcome(newly_inserted_packages=("New.Pkg.3.9.0.21115.nupkg",)))

        body = notification.body
        assert '<span style="color: red"> New package(s) inserted New.Pkg.3.9.0.21115.nupkg</span>' in body
        assert "Make sure the following files are updated appropriately:" in body
        assert "eng/Versions.props<br/>src/AssemblyVersions.tt" in body

    def test_followup_files_only_with_new_packages(self, tmp_path):
        reporter = _reporter(tmp_path, manual_followup_files=["eng/Versions.props"])
        assert "eng/Versions.props" not in reporter.render(_outcome()).body

    def test_warnings_escaped_in_orange(self, tmp_path):
        notification = _reporter(tmp_path).render(_outcome(warnings=("Component <X> not inserted",)))
        assert "NOTE there were unexpected warnings" in notification.body
        assert '<span style="color: OrangeRed">Component &lt;X&gt; not inserted</span>' in notification.body


class TestFailureBody:
    def test_failed(self, tmp_path):
        outcome = _outcome(
            InsertionStatus.FAILED,
            final_state=PipelineState.BUILD_RETENTION_APPLIED,
            error=PartitionBuildFailure("src/ide"),
        )

        notification = _reporter(tmp_path).render(outcome)

        assert notification.html is False
        assert notification.subject == f"{SUBJECT_PREFIX} FAILED"
        assert notification.body.startswith(FAILURE_BODY)
        assert "PartitionBuildFailure: Build of partition src/ide failed" in notification.body

    def test_cancelled_has_no_pull_request_content(self, tmp_path):
        pull_request = PullRequestRef(id=100, source_ref="refs/heads/x", url="https://git.example.test/pr/100")
        outcome = _outcome(InsertionStatus.CANCELLED, pull_request=pull_request)

        notification = _reporter(tmp_path).render(outcome)

        assert notification.body == FAILURE_BODY
        assert "git.example.test" not in notification.body


class TestAttachment:
    def test_attaches_existing_log(self, tmp_path):
        log_file = tmp_path / "rit.log"
        log_file.write_text("log")
        assert _reporter(tmp_path).render(_outcome()).attachment_path == log_file

    def test_no_attachment_without_log(self, tmp_path):
        assert _reporter(tmp_path).render(_outcome()).attachment_path is None


class TestNeverRaises:
    def test_malformed_outcome_degrades(self, tmp_path):
        outcome = _outcome(warnings=(None,), newly_inserted_packages=(42,))

        notification = _reporter(tmp_path).render(outcome)

        assert notification.subject == f"{SUBJECT_PREFIX} SUCCEEDED"
        assert notification.body == FAILURE_BODY
        assert notification.html is False

    def test_unknown_status_degrades_to_failed(self, tmp_path):
        outcome = _outcome(status="bogus")

        notification = _reporter(tmp_path).render(outcome)

        assert notification.status == InsertionStatus.FAILED
        assert notification.subject.endswith("FAILED")

    @pytest.mark.parametrize("outcome", [None, object()])
    def test_outcome_without_status_degrades_to_failed(self, tmp_path, outcome):
        notification = _reporter(tmp_path).render(outcome)

        assert notification.status == InsertionStatus.FAILED
        assert notification.subject == f"{SUBJECT_PREFIX} FAILED"
        assert notification.body == FAILURE_BODY

    def test_to_dict(self, tmp_path):
        data = _reporter(tmp_path).render(_outcome()).to_dict()
        assert data == {"subject": f"{SUBJECT_PREFIX} SUCCEEDED", "status": "SUCCEEDED", "html": True}

    def test_constructor_defaults(self):
        reporter = OutcomeReporter("Roslyn", "Q", "main", "Release", "main")
        assert reporter.log_file_path is None
        assert reporter.render(_outcome()).attachment_path is None
        assert reporter.manual_followup_files == ()
