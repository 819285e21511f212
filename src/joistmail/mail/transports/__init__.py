"""Transport implementations for mail delivery.

Available transports:
    - SMTPTransport: SMTP session per message (sync)
"""

from joistmail.mail.transports.smtp import (
    AuthMechanism,
    SecurityLevel,
    SMTPCredentials,
    SMTPSecurity,
    SMTPTransport,
)

__all__ = [
    "AuthMechanism",
    "SMTPCredentials",
    "SMTPSecurity",
    "SMTPTransport",
    "SecurityLevel",
]
