"""Fluent builder accumulating the content of an outgoing message.

Nothing here performs I/O or validates input: addresses, headers and
attachment paths are only checked when the draft is rendered.

Each setting exists in two forms. ``add_*``/``set_*`` methods mutate the
draft and return ``None``; the short forms (``to``, ``subject``,
``attach``, ...) do the same and return the builder for chaining.

Examples:
    >>> message = (
    ...     MailBuilder()
    ...     .from_("mailer@example.com")
    ...     .to("mike@example.com")
    ...     .subject("Report")
    ...     .plain_body("See attached.")
    ...     .render()
    ... )
    >>> message.content_type
    'text/plain'
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from joistmail.mail.assembler import MimeAssembler
from joistmail.mail.exceptions import MailConfigurationError
from joistmail.mail.models import AddressLike, HeaderField
from joistmail.mail.transport import deliver

if TYPE_CHECKING:
    from os import PathLike

    from joistmail.mail.models import RenderedMessage
    from joistmail.mail.transport import MailTransport, SMTPResponse

log = logging.getLogger(__name__)


@dataclass
class MessageDraft:
    """Everything the caller configured, owned by the builder until rendered.

    Attributes:
        plain_body: Plain-text body.
        html_body: HTML body.
        attachments: File paths, in attachment order.
        headers: Extra headers, in insertion order, duplicates kept.
        to: ``To`` mailboxes.
        from_: ``From`` mailboxes.
        cc: ``Cc`` mailboxes.
        sender: ``Sender`` mailboxes (conventionally at most one).
        reply_to: ``Reply-To`` mailboxes.
        subject: ``Subject`` header value.
        date: ``Date`` header value; the render time when unset.
    """

    plain_body: str | None = None
    html_body: str | None = None
    attachments: list[Path] = field(default_factory=list)
    headers: list[HeaderField] = field(default_factory=list)
    to: list[AddressLike] = field(default_factory=list)
    from_: list[AddressLike] = field(default_factory=list)
    cc: list[AddressLike] = field(default_factory=list)
    sender: list[AddressLike] = field(default_factory=list)
    reply_to: list[AddressLike] = field(default_factory=list)
    subject: str | None = None
    date: datetime | None = None


class MailBuilder:
    """Configure a message, then render or send it.

    Args:
        transport: Transport used by :meth:`send`.
        assembler: Assembler used by :meth:`render`; defaults to a
            :class:`MimeAssembler` with the configured ``X-Mailer``, created
            on first render.
    """

    def __init__(
        self,
        *,
        transport: MailTransport | None = None,
        assembler: MimeAssembler | None = None,
    ) -> None:
        self._draft = MessageDraft()
        self._transport = transport
        self._assembler = assembler

    @property
    def draft(self) -> MessageDraft:
        """Return the draft being built."""
        return self._draft

    # Mutating API

    def add_to(self, address: AddressLike) -> None:
        """Append a ``To`` mailbox."""
        self._draft.to.append(address)

    def add_from(self, address: AddressLike) -> None:
        """Append a ``From`` mailbox."""
        self._draft.from_.append(address)

    def add_cc(self, address: AddressLike) -> None:
        """Append a ``Cc`` mailbox."""
        self._draft.cc.append(address)

    def add_sender(self, address: AddressLike) -> None:
        """Append a ``Sender`` mailbox."""
        self._draft.sender.append(address)

    def add_reply_to(self, address: AddressLike) -> None:
        """Append a ``Reply-To`` mailbox."""
        self._draft.reply_to.append(address)

    def add_header(self, name: str, value: str) -> None:
        """Append an arbitrary header. Reserved names are not checked."""
        self._draft.headers.append(HeaderField(name, value))

    def set_subject(self, subject: str) -> None:
        self._draft.subject = subject

    def set_date(self, date: datetime) -> None:
        self._draft.date = date

    def set_plain_body(self, body: str) -> None:
        self._draft.plain_body = body

    def set_html_body(self, body: str) -> None:
        self._draft.html_body = body

    def add_attachment(self, path: str | PathLike[str]) -> None:
        """Append an attachment path; the file is read at render time."""
        self._draft.attachments.append(Path(path))

    # Fluent API

    def to(self, address: AddressLike) -> MailBuilder:
        self.add_to(address)
        return self

    def from_(self, address: AddressLike) -> MailBuilder:
        self.add_from(address)
        return self

    def cc(self, address: AddressLike) -> MailBuilder:
        self.add_cc(address)
        return self

    def sender(self, address: AddressLike) -> MailBuilder:
        self.add_sender(address)
        return self

    def reply_to(self, address: AddressLike) -> MailBuilder:
        self.add_reply_to(address)
        return self

    def header(self, name: str, value: str) -> MailBuilder:
        self.add_header(name, value)
        return self

    def subject(self, subject: str) -> MailBuilder:
        self.set_subject(subject)
        return self

    def date(self, date: datetime) -> MailBuilder:
        self.set_date(date)
        return self

    def plain_body(self, body: str) -> MailBuilder:
        self.set_plain_body(body)
        return self

    def html_body(self, body: str) -> MailBuilder:
        self.set_html_body(body)
        return self

    def attach(self, *paths: str | PathLike[str]) -> MailBuilder:
        """Append one or more attachment paths."""
        for path in paths:
            self.add_attachment(path)
        return self

    def transport(self, transport: MailTransport) -> MailBuilder:
        """Set the transport used by :meth:`send`."""
        self._transport = transport
        return self

    # Output

    def render(self) -> RenderedMessage:
        """Render the draft into a new :class:`RenderedMessage`.

        Raises:
            MailBodyRequiredError: If neither body is set.
            MailIOError: If an attachment cannot be read.
            MailBuilderError: If an address or header is malformed.
        """
        if self._assembler is None:
            self._assembler = MimeAssembler.from_config()
        return self._assembler.render(self._draft)

    def send(self) -> SMTPResponse:
        """Render the draft and deliver it through the configured transport.

        Rendering happens before any connection, so a render failure never
        opens an SMTP session.

        Returns:
            The positive server response.

        Raises:
            MailConfigurationError: If no transport is configured.
            MailSendFailedError: If the server rejected the message.
            MailTransportError: If the SMTP session failed.
        """
        if self._transport is None:
            raise MailConfigurationError("No transport configured, pass transport= or call .transport()")

        message = self.render()
        log.debug("Sending message to %d recipient(s)", len(message.envelope.recipients))
        return deliver(message, self._transport)


__all__ = ["MailBuilder", "MessageDraft"]
