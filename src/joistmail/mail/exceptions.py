"""Exceptions raised while rendering or sending a message.

Exception hierarchy::

    JoistmailError
        MailError (base for all mail errors)
            MailIOError (attachment could not be read)
            MailBodyRequiredError (neither plain nor HTML body)
            MailBuilderError (malformed address or header, also ValueError)
            MailTransportError (SMTP session could not be established)
            MailSendFailedError (server rejected the message)
            MailConfigurationError (missing transport or bad settings)

Every error is fail-fast and not retried here. The message of each error
is its fixed ``description`` followed by the detail, if any.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from joistmail.exceptions import JoistmailError

if TYPE_CHECKING:
    from joistmail.mail.transport import SMTPResponse


class MailError(JoistmailError):
    """Base exception for all mail errors.

    Attributes:
        description: Short, fixed label of the error kind.
        detail: Diagnostic text, empty when the kind needs none.
    """

    description = "Mail Error"

    def __init__(self, detail: str = "") -> None:
        """Initialize MailError.

        Args:
            detail: Diagnostic text appended to the description.
        """
        self.detail = detail
        super().__init__(f"{self.description} {detail}" if detail else self.description)

    @property
    def cause(self) -> BaseException | None:
        """Return the chained exception, if any."""
        return self.__cause__


class MailIOError(MailError):
    """An attachment could not be read.

    The underlying :class:`OSError` is chained as ``__cause__``.

    Attributes:
        path: The attachment path that failed.
    """

    description = "I/O Error"

    def __init__(self, path: Path, reason: str) -> None:
        """Initialize MailIOError.

        Args:
            path: The attachment path that failed.
            reason: Text of the underlying error.
        """
        super().__init__(f"{path}: {reason}")
        self.path = path


class MailBodyRequiredError(MailError):
    """Rendering was requested with neither a plain nor an HTML body."""

    description = "Body Required"


class MailBuilderError(MailError, ValueError):
    """An address or header could not be formatted into the message."""

    description = "Email Builder Error"


class MailTransportError(MailError):
    """The SMTP session failed (connect, TLS, authentication or protocol)."""

    description = "Transport Error"


class MailSendFailedError(MailError):
    """The session worked but the server rejected the message.

    Attributes:
        detail: ``"<severity>/<category>/<detail> <message lines>"``.
        response: The negative response returned by the transport.
    """

    description = "Send Failed"

    def __init__(self, detail: str, response: SMTPResponse | None = None) -> None:
        """Initialize MailSendFailedError.

        Args:
            detail: Formatted status string.
            response: The negative response, when available.
        """
        super().__init__(detail)
        self.response = response


class MailConfigurationError(MailError):
    """The mail layer is missing a collaborator or has invalid settings."""

    description = "Configuration Error"


__all__ = [
    "MailBodyRequiredError",
    "MailBuilderError",
    "MailConfigurationError",
    "MailError",
    "MailIOError",
    "MailSendFailedError",
    "MailTransportError",
]
