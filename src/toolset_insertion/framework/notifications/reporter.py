"""Outcome Reporter — renders an insertion outcome into a notification.

Manifesto:
    The reporter is the last thing a run does, after the working tree has
been restored. It must not be the thing that breaks: ``render`` is pure,
reads only the ``InsertionOutcome``, and degrades to a minimal payload if
rendering fails for any reason.

ARCHITECTURE
────────────
::

    InsertionOutcome ──► OutcomeReporter.render() ──► Notification
                              │
                              ├── subject   "<name> insertion from <queue>/<branch>/<config>
                              │              into <target> <STATUS>"
                              ├── SUCCEEDED  HTML: green banner, PR link,
                              │              red new-package lines + follow-up files,
                              │              orange warnings
                              └── otherwise  plain text: "Review attached log for details"

    The log file is attached whenever it exists.

Tags:
    notifications, reporter, mail, html, outcome

Doc-Types:
    api-reference
"""

from __future__ import annotations

import html
from collections.abc import Sequence
from pathlib import Path

from toolset_insertion.core.logging import get_logger
from toolset_insertion.core.settings import InsertionSettings
from toolset_insertion.framework.notifications.protocol import Notification
from toolset_insertion.orchestration.context import InsertionOutcome
from toolset_insertion.orchestration.states import InsertionStatus

logger = get_logger(__name__)

_GREEN_SPAN = '<span style="color: green">'
_RED_SPAN = '<span style="color: red">'
_ORANGE_SPAN = '<span style="color: OrangeRed">'
_END_SPAN = "</span>"

FAILURE_BODY = "Review attached log for details"


class OutcomeReporter:
    """Renders ``InsertionOutcome`` values for one insertion configuration.

    Args:
        insertion_name: What is being inserted
        queue_name: Upstream build queue
        source_branch: Upstream branch
        build_config: Upstream build configuration
        target_branch: Downstream branch receiving the insertion
        log_file_path: Log file attached to every notification, if present
        manual_followup_files: Files to check by hand when new packages were inserted
    """

    def __init__(
        self,
        insertion_name: str,
        queue_name: str,
        source_branch: str,
        build_config: str,
        target_branch: str,
        *,
        log_file_path: Path | None = None,
        manual_followup_files: Sequence[str] = (),
    ):
        self.insertion_name = insertion_name
        self.queue_name = queue_name
        self.source_branch = source_branch
        self.build_config = build_config
        self.target_branch = target_branch
        self.log_file_path = log_file_path
        self.manual_followup_files = tuple(manual_followup_files)

    @classmethod
    def from_settings(cls, settings: InsertionSettings) -> OutcomeReporter:
        return cls(
            insertion_name=settings.insertion_name,
            queue_name=settings.build_queue_name,
            source_branch=settings.source_branch_name,
            build_config=settings.build_config,
            target_branch=settings.target_branch,
            log_file_path=settings.log_file_path,
            manual_followup_files=settings.manual_followup_files,
        )

    def subject(self, status: InsertionStatus) -> str:
        return (
            f"{self.insertion_name} insertion from "
            f"{self.queue_name}/{self.source_branch}/{self.build_config} "
            f"into {self.target_branch} {status.value}"
        )

    def render(self, outcome: InsertionOutcome) -> Notification:
        """Render ``outcome``. Never raises."""
        try:
            return self._render(outcome)
        except Exception as e:
            logger.error("notification_render_failed", error=str(e), exc_info=e)
            return self._minimal(outcome)

    # =========================================================================
    # Internals
    # =========================================================================

    def _render(self, outcome: InsertionOutcome) -> Notification:
        attachment = self._attachment()
        if outcome.status == InsertionStatus.SUCCEEDED:
            return Notification(
                subject=self.subject(outcome.status),
                body=self._success_body(outcome),
                status=outcome.status,
                html=True,
                attachment_path=attachment,
            )

        body = FAILURE_BODY
        if outcome.error is not None:
            body += f"\n\n{type(outcome.error).__name__}: {outcome.error}"
        return Notification(
            subject=self.subject(outcome.status),
            body=body,
            status=outcome.status,
            attachment_path=attachment,
        )

    def _success_body(self, outcome: InsertionOutcome) -> str:
        lines = ["", f"{_GREEN_SPAN} Insertion Succeeded {_END_SPAN}", ""]

        pull_request = outcome.pull_request
        if pull_request is not None:
            if pull_request.url:
                lines.append(f'Review pull request <a href="{html.escape(pull_request.url)}">here</a>')
            else:
                lines.append(f"Review pull request {pull_request.id}")
            lines.append("")

        if outcome.newly_inserted_packages:
            for file_name in outcome.newly_inserted_packages:
                lines.append(f"{_RED_SPAN} New package(s) inserted {html.escape(file_name)}{_END_SPAN}")
            if self.manual_followup_files:
                lines.append("Make sure the following files are updated appropriately:")
                lines.extend(html.escape(path) for path in self.manual_followup_files)

        if outcome.warnings:
            lines.append("NOTE there were unexpected warnings during this insertion:")
            for message in outcome.warnings:
                lines.append(f"{_ORANGE_SPAN}{html.escape(message)}{_END_SPAN}")

        return "<br/>".join(lines) + "<br/>"

    def _attachment(self) -> Path | None:
        if self.log_file_path is not None and self.log_file_path.is_file():
            return self.log_file_path
        return None

    def _minimal(self, outcome: InsertionOutcome) -> Notification:
        status = getattr(outcome, "status", None)
        if not isinstance(status, InsertionStatus):
            status = InsertionStatus.FAILED
        try:
            subject = self.subject(status)
        except Exception:
            subject = f"Insertion {status.value}"
        return Notification(subject=subject, body=FAILURE_BODY, status=status)


__all__ = ["OutcomeReporter", "FAILURE_BODY"]
