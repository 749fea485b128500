"""Mail transport implementations.

Manifesto:
    Each channel module implements a single delivery target and satisfies
    ``toolset_insertion.core.protocols.MailTransport``.

Tags:
    notifications, channels, delivery

Doc-Types:
    api-reference
"""

from toolset_insertion.framework.notifications.channels.email import SmtpMailTransport

__all__ = ["SmtpMailTransport"]
