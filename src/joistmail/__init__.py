"""joistmail: build MIME email messages and send them over SMTP.

Examples:
    >>> from joistmail import MailBuilder
    >>> message = MailBuilder().to("a@example.com").plain_body("hello").render()
    >>> message["MIME-Version"]
    '1.0'
"""

from joistmail.config import clear_config, get_config, load_config
from joistmail.exceptions import JoistmailError
from joistmail.logging import LogManager, init_logging
from joistmail.mail import (
    MailBodyRequiredError,
    MailBuilder,
    MailBuilderError,
    MailError,
    MailIOError,
    MailSendFailedError,
    MailTransportError,
    MimeAssembler,
    RenderedMessage,
)
from joistmail.meta import __version__

__all__ = [
    "JoistmailError",
    "LogManager",
    "MailBodyRequiredError",
    "MailBuilder",
    "MailBuilderError",
    "MailError",
    "MailIOError",
    "MailSendFailedError",
    "MailTransportError",
    "MimeAssembler",
    "RenderedMessage",
    "__version__",
    "clear_config",
    "get_config",
    "init_logging",
    "load_config",
]
