"""Email (SMTP) mail transport."""

from __future__ import annotations

from pathlib import Path

from toolset_insertion.core.errors import NotificationFailure
from toolset_insertion.core.logging import get_logger
from toolset_insertion.core.settings import InsertionSettings

logger = get_logger(__name__)


class SmtpMailTransport:
    """
    ``MailTransport`` over SMTP.

    Sends one message per call with an optional file attachment. Library
    and network errors surface as ``NotificationFailure``.
    """

    def __init__(
        self,
        smtp_host: str,
        from_address: str,
        recipients: list[str],
        *,
        smtp_port: int = 25,
        smtp_user: str | None = None,
        smtp_password: str | None = None,
        use_tls: bool = False,
        timeout: float = 30.0,
    ):
        self._smtp_host = smtp_host
        self._smtp_port = smtp_port
        self._smtp_user = smtp_user
        self._smtp_password = smtp_password
        self._from_address = from_address
        self._recipients = recipients
        self._use_tls = use_tls
        self._timeout = timeout

    @classmethod
    def from_settings(cls, settings: InsertionSettings) -> SmtpMailTransport:
        recipients = [r.strip() for r in settings.mail_recipient.split(",") if r.strip()]
        return cls(
            settings.email_server_name,
            settings.mail_sender,
            recipients,
            smtp_port=settings.smtp_port,
        )

    def _build_message(self, subject: str, body: str, attachment_path: Path | None, html: bool) -> str:
        """Build email message."""
        from email.mime.application import MIMEApplication
        from email.mime.multipart import MIMEMultipart
        from email.mime.text import MIMEText

        msg = MIMEMultipart("mixed")
        msg["Subject"] = subject
        msg["From"] = self._from_address
        msg["To"] = ", ".join(self._recipients)

        msg.attach(MIMEText(body, "html" if html else "plain", "utf-8"))

        if attachment_path is not None and attachment_path.is_file():
            part = MIMEApplication(attachment_path.read_bytes(), Name=attachment_path.name)
            part["Content-Disposition"] = f'attachment; filename="{attachment_path.name}"'
            msg.attach(part)

        return msg.as_string()

    def send(
        self,
        subject: str,
        body: str,
        attachment_path: Path | None = None,
        *,
        html: bool = False,
    ) -> None:
        """Send one message.

        Raises:
            NotificationFailure: The message could not be built or delivered.
        """
        import smtplib

        if not self._recipients:
            raise NotificationFailure("No mail recipients configured")

        try:
            message = self._build_message(subject, body, attachment_path, html)
            server = smtplib.SMTP(self._smtp_host, self._smtp_port, timeout=self._timeout)
            try:
                if self._use_tls:
                    server.starttls()
                if self._smtp_user and self._smtp_password:
                    server.login(self._smtp_user, self._smtp_password)
                server.sendmail(self._from_address, self._recipients, message)
            finally:
                server.quit()
        except smtplib.SMTPException as e:
            raise NotificationFailure(f"SMTP error sending {subject!r}: {e}", cause=e) from e
        except OSError as e:
            raise NotificationFailure(f"Cannot reach mail server {self._smtp_host}:{self._smtp_port}", cause=e) from e

        logger.info("mail_sent", subject=subject, recipients=len(self._recipients))


__all__ = ["SmtpMailTransport"]
