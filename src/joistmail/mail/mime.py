"""MIME tree used to lay out a message before it is flattened.

A :class:`MimePart` is either a leaf, holding already transfer-encoded
text and its content headers, or a composite holding a
:class:`MultipartType` and ordered children. Composites get their
``Content-Type`` (with a fresh boundary) computed when they are built, so a
tree assembled bottom-up is always consistent.

Serialization follows RFC 2046 section 5.1.1::

    preamble CRLF
    --boundary CRLF
    child-1 headers CRLF CRLF child-1 body CRLF
    --boundary CRLF
    ...
    --boundary-- CRLF
"""

from __future__ import annotations

import secrets
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from email import base64mime
from enum import Enum

from joistmail.mail.models import CRLF, HeaderField

PREAMBLE = "This is a multipart message in MIME format."

BASE64_LINE_LENGTH = 76

_BOUNDARY_PREFIX = "=_JoistPart_"


class MultipartType(str, Enum):
    """Subtype of a composite part.

    Attributes:
        ALTERNATIVE: Children are renderings of the same content, the last
            one being the most compatible fallback.
        MIXED: Children are independent items (body then attachments).
    """

    ALTERNATIVE = "alternative"
    MIXED = "mixed"


def encode_base64(data: bytes) -> str:
    """Encode bytes with the RFC 2045 section 6.8 base64 transfer encoding.

    Standard alphabet, ``=`` padding, CRLF after every 76 characters and no
    trailing line break.

    Examples:
        >>> encode_base64(b"ABC")
        'QUJD'
        >>> encode_base64(b"")
        ''
    """
    encoded = base64mime.body_encode(data, maxlinelen=BASE64_LINE_LENGTH, eol=CRLF)
    return encoded.removesuffix(CRLF)


def make_boundary(forbidden: str = "", taken: frozenset[str] | set[str] = frozenset()) -> str:
    """Return a random boundary absent from ``forbidden`` and not in ``taken``.

    Args:
        forbidden: Text the boundary must not occur in (the serialized
            children of the composite being built).
        taken: Boundaries already used elsewhere in the tree.
    """
    while True:
        token = f"{_BOUNDARY_PREFIX}{secrets.token_hex(12)}"
        if token not in forbidden and token not in taken:
            return token


@dataclass(eq=False)
class MimePart:
    """A node of the MIME tree.

    Build instances through :meth:`leaf` and :meth:`composite` rather than
    the constructor; the latter computes the boundary header.

    Attributes:
        headers: Content headers of the part, in emission order.
        content: Encoded content of a leaf, or the preamble of a composite.
        multipart: Subtype for composites, ``None`` for leaves.
        children: Ordered child parts (empty for leaves).
        boundary: Delimiter token of a composite, ``None`` for leaves.
    """

    headers: list[HeaderField] = field(default_factory=list)
    content: str = ""
    multipart: MultipartType | None = None
    children: list[MimePart] = field(default_factory=list)
    boundary: str | None = None

    @classmethod
    def leaf(cls, content: str, headers: Sequence[tuple[str, str]]) -> MimePart:
        """Create a leaf part from encoded content and ``(name, value)`` headers."""
        return cls(headers=[HeaderField(name, value) for name, value in headers], content=content)

    @classmethod
    def composite(
        cls,
        multipart: MultipartType,
        children: Sequence[MimePart],
        preamble: str = PREAMBLE,
    ) -> MimePart:
        """Create a composite part and compute its ``Content-Type`` header."""
        part = cls(content=preamble, multipart=multipart, children=list(children))
        part.update_headers()
        return part

    @property
    def is_composite(self) -> bool:
        """Return True for multipart nodes."""
        return self.multipart is not None

    def update_headers(self) -> None:
        """Pick a fresh boundary and (re)write ``Content-Type`` accordingly.

        The boundary is checked against every boundary already used below
        this part and against the serialized text of the children, so it can
        never appear inside a leaf.
        """
        if self.multipart is None:
            raise ValueError("Only composite parts carry a boundary")

        taken = {part.boundary for part in self.walk() if part.boundary and part is not self}
        children_text = "".join(child.serialize() for child in self.children)
        self.boundary = make_boundary(children_text, taken)

        value = f'multipart/{self.multipart.value}; boundary="{self.boundary}"'
        self.headers = [header for header in self.headers if header.name.lower() != "content-type"]
        self.headers.insert(0, HeaderField("Content-Type", value))

    def get_header(self, name: str) -> str | None:
        """Return the first value of header ``name`` (case-insensitive)."""
        wanted = name.lower()
        for header in self.headers:
            if header.name.lower() == wanted:
                return header.value
        return None

    def walk(self) -> Iterator[MimePart]:
        """Yield this part and every descendant, depth-first, in order."""
        yield self
        for child in self.children:
            yield from child.walk()

    def serialize_body(self) -> str:
        """Return the part's content without its own headers."""
        if not self.is_composite:
            return self.content

        delimiter = f"--{self.boundary}"
        chunks = [self.content, CRLF]
        for child in self.children:
            chunks.extend((delimiter, CRLF, child.serialize(), CRLF))
        chunks.extend((f"{delimiter}--", CRLF))
        return "".join(chunks)

    def serialize(self) -> str:
        """Return headers, blank line and body of this part."""
        head = CRLF.join(str(header) for header in self.headers)
        return f"{head}{CRLF}{CRLF}{self.serialize_body()}"


__all__ = [
    "BASE64_LINE_LENGTH",
    "PREAMBLE",
    "MimePart",
    "MultipartType",
    "encode_base64",
    "make_boundary",
]
