"""Transport contract and mapping of SMTP replies to outcomes.

A transport receives a :class:`~joistmail.mail.models.RenderedMessage` and
returns the server's final :class:`SMTPResponse`. Session failures are
raised as :class:`~joistmail.mail.exceptions.MailTransportError`; a
rejected message is a negative response, turned into
:class:`~joistmail.mail.exceptions.MailSendFailedError` by :func:`deliver`.
"""

from __future__ import annotations

import abc
import logging
from dataclasses import dataclass

from joistmail.logging import SUCCESS_LEVEL
from joistmail.mail.exceptions import MailSendFailedError
from joistmail.mail.models import CRLF, RenderedMessage

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SMTPResponse:
    """A server reply reduced to its status code and text lines.

    The three digits of the code are exposed as ``severity``, ``category``
    and ``detail`` (RFC 5321 section 4.2.1).

    Attributes:
        code: Three-digit reply code.
        message: Reply text, one entry per line.

    Examples:
        >>> reply = SMTPResponse.from_reply(550, b"Mailbox unavailable")
        >>> reply.is_positive()
        False
        >>> reply.describe()
        '5/5/0 Mailbox unavailable'
    """

    code: int
    message: tuple[str, ...] = ()

    @classmethod
    def from_reply(cls, code: int, text: bytes | str | None) -> SMTPResponse:
        """Build a response from the ``(code, text)`` pair returned by smtplib."""
        if text is None:
            return cls(code=code)
        if isinstance(text, bytes):
            text = text.decode("utf-8", errors="replace")
        return cls(code=code, message=tuple(text.splitlines()))

    @property
    def severity(self) -> int:
        """Return the first digit (2 completion, 3 intermediate, 4/5 failure)."""
        return self.code // 100

    @property
    def category(self) -> int:
        """Return the second digit (syntax, information, connection, mail system)."""
        return (self.code // 10) % 10

    @property
    def detail(self) -> int:
        """Return the third digit."""
        return self.code % 10

    def is_positive(self) -> bool:
        """Return True for 2xx and 3xx replies."""
        return self.severity in (2, 3)

    def describe(self) -> str:
        """Return ``"<severity>/<category>/<detail> <lines joined by CRLF>"``."""
        return f"{self.severity}/{self.category}/{self.detail} {CRLF.join(self.message)}"


class MailTransport(abc.ABC):
    """Abstract collaborator that delivers a rendered message."""

    @abc.abstractmethod
    def send(self, message: RenderedMessage) -> SMTPResponse:
        """Deliver ``message`` and return the final server reply.

        Raises:
            MailTransportError: If the session cannot be established.
        """


def deliver(message: RenderedMessage, transport: MailTransport) -> SMTPResponse:
    """Send ``message`` and raise if the server rejected it.

    Returns:
        The positive response.

    Raises:
        MailSendFailedError: If the response is negative.
        MailTransportError: Propagated from the transport.
    """
    response = transport.send(message)
    if not response.is_positive():
        detail = response.describe()
        log.warning("Message rejected: %s", detail)
        raise MailSendFailedError(detail, response=response)

    log.log(SUCCESS_LEVEL, "Message accepted (%d) for %d recipient(s)", response.code, len(message.envelope.recipients))
    return response


__all__ = ["MailTransport", "SMTPResponse", "deliver"]
