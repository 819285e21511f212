"""Turn a :class:`~joistmail.mail.builder.MessageDraft` into a rendered message.

The pipeline is linear and fail-fast:

1. build the HTML and plain leaves (``charset="ascii"``, ``7bit``)
2. combine them: both bodies give ``multipart/alternative`` with the HTML
   part first and the plain part last, one body is used as-is
3. read and base64-encode attachments, wrapping body and attachments in
   ``multipart/mixed`` when there is at least one
4. composites compute their boundary header as they are built
5. flatten the message headers and the top-level part's headers

Non-ASCII bodies are passed through untouched and still labelled
``charset="ascii"``; no quoted-printable or base64 body encoding is done.
"""

from __future__ import annotations

import logging
from datetime import datetime
from email.utils import format_datetime, make_msgid
from pathlib import Path
from typing import TYPE_CHECKING

from joistmail.logging import TRACE_LEVEL
from joistmail.mail.exceptions import MailBodyRequiredError, MailIOError
from joistmail.mail.mime import MimePart, MultipartType, encode_base64
from joistmail.mail.models import Address, AddressLike, Envelope, HeaderField, RenderedMessage
from joistmail.meta import __product__

if TYPE_CHECKING:
    from collections.abc import Sequence

    from joistmail.mail.builder import MessageDraft

log = logging.getLogger(__name__)

HTML_CONTENT_TYPE = 'text/html; charset="ascii"'
PLAIN_CONTENT_TYPE = 'text/plain; charset="ascii"'
ATTACHMENT_CONTENT_TYPE = "application/octet-stream"


def _text_part(content: str, content_type: str) -> MimePart:
    return MimePart.leaf(
        content,
        [("Content-Type", content_type), ("Content-Transfer-Encoding", "7bit")],
    )


def read_attachment(path: Path) -> bytes:
    """Read the whole file at ``path``.

    Raises:
        MailIOError: On any filesystem error, with the ``OSError`` chained.
    """
    try:
        return path.read_bytes()
    except OSError as exc:
        raise MailIOError(path, exc.strerror or str(exc)) from exc


def attachment_part(path: Path) -> MimePart:
    """Read ``path`` and wrap it as a base64 ``application/octet-stream`` leaf."""
    data = read_attachment(path)
    log.debug("Attaching %s (%d bytes)", path, len(data))
    return MimePart.leaf(
        encode_base64(data),
        [
            ("Content-Disposition", f'attachment; filename="{path.name}"'),
            ("Content-Type", ATTACHMENT_CONTENT_TYPE),
            ("Content-Transfer-Encoding", "base64"),
        ],
    )


class MimeAssembler:
    """Render drafts into :class:`RenderedMessage` instances.

    Args:
        x_mailer: Product name written into the ``X-Mailer`` header.

    Examples:
        >>> from joistmail.mail.builder import MailBuilder
        >>> builder = MailBuilder().to("a@example.com").plain_body("hello")
        >>> MimeAssembler().render(builder.draft).content_type
        'text/plain'
    """

    def __init__(self, x_mailer: str = __product__) -> None:
        self.x_mailer = x_mailer

    @classmethod
    def from_config(cls) -> MimeAssembler:
        """Create an assembler using ``mail.x_mailer`` from ``joistmail.conf.yml``."""
        from joistmail.config import get_config  # pylint: disable=import-outside-toplevel

        x_mailer = get_config().mail.x_mailer
        return cls(x_mailer=str(x_mailer) if x_mailer else __product__)

    def build_mime_tree(self, draft: MessageDraft) -> MimePart:
        """Return the top-level MIME part for ``draft``.

        Raises:
            MailBodyRequiredError: If the draft has no body.
            MailIOError: If an attachment cannot be read.
        """
        html = _text_part(draft.html_body, HTML_CONTENT_TYPE) if draft.html_body is not None else None
        plain = _text_part(draft.plain_body, PLAIN_CONTENT_TYPE) if draft.plain_body is not None else None

        if html is not None and plain is not None:
            body = MimePart.composite(MultipartType.ALTERNATIVE, [html, plain])
        elif html is not None:
            body = html
        elif plain is not None:
            body = plain
        else:
            raise MailBodyRequiredError()

        if not draft.attachments:
            return body

        children = [body]
        children.extend(attachment_part(Path(path)) for path in draft.attachments)
        return MimePart.composite(MultipartType.MIXED, children)

    def render(self, draft: MessageDraft) -> RenderedMessage:
        """Build the MIME tree and flatten it with the message headers.

        Raises:
            MailBodyRequiredError: If the draft has no body.
            MailIOError: If an attachment cannot be read.
            MailBuilderError: If an address or header is malformed.
        """
        # Addresses and headers are checked first so a bad address fails
        # before any attachment is read.
        addresses = {
            "To": _parse_addresses(draft.to),
            "From": _parse_addresses(draft.from_),
            "Cc": _parse_addresses(draft.cc),
            "Sender": _parse_addresses(draft.sender),
            "Reply-To": _parse_addresses(draft.reply_to),
        }
        for header in draft.headers:
            header.validate()
        if draft.subject is not None:
            HeaderField("Subject", draft.subject).validate()

        top = self.build_mime_tree(draft)

        headers = [
            HeaderField("X-Mailer", self.x_mailer),
            HeaderField("MIME-Version", "1.0"),
        ]
        headers.extend(draft.headers)
        if draft.subject is not None:
            headers.append(HeaderField("Subject", draft.subject))
        if draft.date is not None or not _has_header(draft.headers, "Date"):
            headers.append(HeaderField("Date", _format_date(draft.date)))
        if not _has_header(draft.headers, "Message-ID"):
            headers.append(HeaderField("Message-ID", make_msgid()))
        for name, mailboxes in addresses.items():
            if mailboxes:
                headers.append(HeaderField(name, ", ".join(mailbox.formatted() for mailbox in mailboxes)))
        headers.extend(top.headers)

        reverse_path = addresses["Sender"] or addresses["From"]
        envelope = Envelope(
            sender=reverse_path[0].address if reverse_path else None,
            recipients=tuple(mailbox.address for mailbox in (*addresses["To"], *addresses["Cc"])),
        )

        rendered = RenderedMessage(headers=tuple(headers), body=top.serialize_body(), envelope=envelope)
        log.debug(
            "Rendered %s message (%d header(s), %d attachment(s))",
            rendered.content_type,
            len(rendered.headers),
            len(draft.attachments),
        )
        if log.isEnabledFor(TRACE_LEVEL):
            for header in rendered.headers:
                log.log(TRACE_LEVEL, "[MIME] %s", header)
        return rendered


def _parse_addresses(values: Sequence[AddressLike]) -> list[Address]:
    return [Address.parse(value) for value in values]


def _has_header(headers: Sequence[HeaderField], name: str) -> bool:
    wanted = name.lower()
    return any(header.name.lower() == wanted for header in headers)


def _format_date(value: datetime | None) -> str:
    if value is None:
        value = datetime.now().astimezone()
    elif value.tzinfo is None:
        value = value.astimezone()
    return format_datetime(value)


__all__ = [
    "ATTACHMENT_CONTENT_TYPE",
    "HTML_CONTENT_TYPE",
    "PLAIN_CONTENT_TYPE",
    "MimeAssembler",
    "attachment_part",
    "read_attachment",
]
