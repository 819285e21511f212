"""Build MIME messages and deliver them over SMTP.

Examples:
    >>> from joistmail.mail import MailBuilder
    >>> from joistmail.mail.transports import SMTPTransport
    >>> response = (
    ...     MailBuilder(transport=SMTPTransport("smtp.example.com"))
    ...     .from_("mailer@example.com")
    ...     .to("mike@example.com")
    ...     .subject("Weekly report")
    ...     .plain_body("Report attached.")
    ...     .html_body("<p>Report attached.</p>")
    ...     .attach("/tmp/report.csv")
    ...     .send()
    ... )  # doctest: +SKIP
"""

from joistmail.mail.assembler import MimeAssembler
from joistmail.mail.builder import MailBuilder, MessageDraft
from joistmail.mail.exceptions import (
    MailBodyRequiredError,
    MailBuilderError,
    MailConfigurationError,
    MailError,
    MailIOError,
    MailSendFailedError,
    MailTransportError,
)
from joistmail.mail.mime import MimePart, MultipartType
from joistmail.mail.models import Address, Envelope, HeaderField, RenderedMessage
from joistmail.mail.transport import MailTransport, SMTPResponse, deliver

__all__ = [
    "Address",
    "Envelope",
    "HeaderField",
    "MailBodyRequiredError",
    "MailBuilder",
    "MailBuilderError",
    "MailConfigurationError",
    "MailError",
    "MailIOError",
    "MailSendFailedError",
    "MailTransport",
    "MailTransportError",
    "MessageDraft",
    "MimeAssembler",
    "MimePart",
    "MultipartType",
    "RenderedMessage",
    "SMTPResponse",
    "deliver",
]
