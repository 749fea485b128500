"""
Notification data classes.

Defines the rendered notification handed to a ``MailTransport``. Rendering
lives in ``reporter.py``, delivery in ``channels/``.

Design Principles:
- Protocol over inheritance: transports satisfy ``core.protocols.MailTransport``
- Separation of concerns: protocol.py has data, channels/ has delivery
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from toolset_insertion.orchestration.states import InsertionStatus


@dataclass(frozen=True)
class Notification:
    """
    A rendered outcome notification.

    Attributes:
        subject: Mail subject line
        body: HTML body when ``html`` is set, plain text otherwise
        html: Whether ``body`` is HTML
        attachment_path: Log file to attach, if it exists
        status: Status the notification reports
    """

    subject: str
    body: str
    status: InsertionStatus
    html: bool = False
    attachment_path: Path | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result: dict[str, Any] = {
            "subject": self.subject,
            "status": self.status.value,
            "html": self.html,
        }
        if self.attachment_path is not None:
            result["attachment_path"] = str(self.attachment_path)
        return result


__all__ = ["Notification"]
