"""Value types shared by the builder, the assembler and the transports.

- Address: a mailbox with an optional display name
- HeaderField: a header name/value pair, name case preserved
- Envelope: SMTP reverse-path and forward-paths of a message
- RenderedMessage: flattened headers + body, ready for a transport
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from email.utils import formataddr, getaddresses
from typing import Union

from joistmail.mail.exceptions import MailBuilderError

CRLF = "\r\n"

# RFC 5322 field names: printable US-ASCII except colon
_HEADER_NAME_PATTERN = re.compile(r"^[\x21-\x39\x3b-\x7e]+$")


@dataclass(frozen=True, slots=True)
class Address:
    """A mailbox reference.

    Attributes:
        address: The ``local@domain`` part.
        name: Optional display name.

    Examples:
        >>> Address.parse("Mike <mike@example.com>").formatted()
        'Mike <mike@example.com>'
        >>> Address.parse(("", "mike@example.com")).formatted()
        'mike@example.com'
    """

    address: str
    name: str = ""

    @classmethod
    def parse(cls, value: AddressLike) -> Address:
        """Build an :class:`Address` from a string, a tuple or an Address.

        Raises:
            MailBuilderError: If the value is not a single valid mailbox.
        """
        if isinstance(value, Address):
            candidate = value
        elif isinstance(value, tuple):
            if len(value) != 2:
                raise MailBuilderError(f"Address tuple must be (name, address), got {value!r}")
            candidate = cls(address=str(value[1]).strip(), name=str(value[0]).strip())
        elif isinstance(value, str):
            if any(ch in value for ch in "\r\n"):
                raise MailBuilderError(f"Address contains a line break: {value!r}")
            mailboxes = getaddresses([value])
            if len(mailboxes) != 1 or not mailboxes[0][1]:
                raise MailBuilderError(f"Expected a single mailbox, got {value!r}")
            name, addr = mailboxes[0]
            candidate = cls(address=addr, name=name)
        else:
            raise MailBuilderError(f"Unsupported address type: {type(value).__name__}")

        candidate.validate()
        return candidate

    def validate(self) -> None:
        """Check the mailbox syntax loosely: one ``@`` with both sides present.

        Raises:
            MailBuilderError: If the mailbox is malformed.
        """
        local, sep, domain = self.address.rpartition("@")
        if not sep or not local or not domain or "@" in domain:
            raise MailBuilderError(f"Invalid address: {self.address!r}")
        if any(ch.isspace() for ch in self.address) or any(ch in self.name for ch in "\r\n"):
            raise MailBuilderError(f"Invalid address: {self.address!r}")

    def formatted(self) -> str:
        """Return the RFC 5322 mailbox form, quoting the name when needed."""
        return formataddr((self.name, self.address)) if self.name else self.address

    def __str__(self) -> str:
        return self.formatted()


AddressLike = Union[str, tuple[str, str], Address]


@dataclass(frozen=True, slots=True)
class HeaderField:
    """A single header line.

    Examples:
        >>> str(HeaderField("X-Campaign", "welcome"))
        'X-Campaign: welcome'
    """

    name: str
    value: str

    def validate(self) -> None:
        """Reject names outside RFC 5322 field syntax and values with line breaks.

        Raises:
            MailBuilderError: If the name or the value cannot be emitted as-is.
        """
        if not _HEADER_NAME_PATTERN.match(self.name):
            raise MailBuilderError(f"Invalid header name: {self.name!r}")
        if "\r" in self.value or "\n" in self.value:
            raise MailBuilderError(f"Header {self.name!r} value contains a line break")

    def __str__(self) -> str:
        return f"{self.name}: {self.value}"


@dataclass(frozen=True, slots=True)
class Envelope:
    """SMTP envelope derived from the address headers.

    Attributes:
        sender: Reverse-path (first ``Sender``, else first ``From``).
        recipients: Forward-paths (``To`` then ``Cc``), in order.
    """

    sender: str | None
    recipients: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class RenderedMessage:
    """A message ready for a transport.

    Created once per render and never mutated. The body is the serialized
    top-level MIME part without its own headers, which appear in
    ``headers`` instead.

    Attributes:
        headers: Flattened header fields in emission order.
        body: Serialized body, CRLF line endings inside MIME structure.
        envelope: Addresses used for ``MAIL FROM`` and ``RCPT TO``.
    """

    headers: tuple[HeaderField, ...]
    body: str
    envelope: Envelope = field(default_factory=lambda: Envelope(sender=None))

    def get(self, name: str, default: str | None = None) -> str | None:
        """Return the first value of header ``name`` (case-insensitive)."""
        wanted = name.lower()
        for header in self.headers:
            if header.name.lower() == wanted:
                return header.value
        return default

    def get_all(self, name: str) -> list[str]:
        """Return every value of header ``name`` in emission order."""
        wanted = name.lower()
        return [header.value for header in self.headers if header.name.lower() == wanted]

    def __getitem__(self, name: str) -> str | None:
        return self.get(name)

    @property
    def content_type(self) -> str:
        """Return the bare media type of the top-level part, e.g. ``multipart/mixed``."""
        value = self.get("Content-Type", "text/plain") or "text/plain"
        return value.split(";", 1)[0].strip().lower()

    def header_block(self) -> str:
        """Return the header lines joined with CRLF, without trailing blank line."""
        return CRLF.join(str(header) for header in self.headers)

    def as_string(self) -> str:
        """Return the full RFC 5322 message: header block, blank line, body."""
        return f"{self.header_block()}{CRLF}{CRLF}{self.body}"

    def as_bytes(self) -> bytes:
        """Return :meth:`as_string` encoded for the wire."""
        return self.as_string().encode("utf-8")


__all__ = [
    "CRLF",
    "Address",
    "AddressLike",
    "Envelope",
    "HeaderField",
    "RenderedMessage",
]
