"""
Outcome notifications.

Renders the terminal ``InsertionOutcome`` of a run and delivers it.
"""

from toolset_insertion.framework.notifications.channels import SmtpMailTransport
from toolset_insertion.framework.notifications.protocol import Notification
from toolset_insertion.framework.notifications.reporter import FAILURE_BODY, OutcomeReporter

__all__ = [
    "Notification",
    "OutcomeReporter",
    "FAILURE_BODY",
    "SmtpMailTransport",
]
