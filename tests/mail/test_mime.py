"""Tests for the MIME tree and transfer encoding helpers."""

from __future__ import annotations

import base64

import pytest

from joistmail.mail.mime import PREAMBLE, MimePart, MultipartType, encode_base64, make_boundary


def _leaf(text: str) -> MimePart:
    return MimePart.leaf(text, [("Content-Type", "text/plain"), ("Content-Transfer-Encoding", "7bit")])


@pytest.mark.parametrize(
    ("data", "expected"),
    [(b"", ""), (b"A", "QQ=="), (b"AB", "QUI="), (b"ABC", "QUJD")],
)
def test_encode_base64_padding(data: bytes, expected: str) -> None:
    """Standard alphabet with ``=`` padding."""
    assert encode_base64(data) == expected


def test_encode_base64_uses_standard_alphabet() -> None:
    """``+`` and ``/`` are used, not the URL-safe variants."""
    encoded = encode_base64(b"\xfb\xff\xbf")

    assert encoded == "+/+/"


def test_encode_base64_exact_line_multiple() -> None:
    """57 input bytes fill one 76-character line with no trailing CRLF."""
    encoded = encode_base64(b"x" * 114)

    assert encoded.split("\r\n") == [base64.b64encode(b"x" * 57).decode()] * 2
    assert not encoded.endswith("\r\n")


def test_encode_base64_wraps_partial_last_line() -> None:
    """Lines are CRLF-separated, 76 characters except the last one."""
    data = bytes(range(250)) * 2
    encoded = encode_base64(data)
    lines = encoded.split("\r\n")

    assert len(lines) == 9
    assert all(len(line) == 76 for line in lines[:-1])
    assert len(lines[-1]) == 60
    assert "\n" not in encoded.replace("\r\n", "")
    assert "".join(lines) == base64.b64encode(data).decode()


def test_make_boundary_avoids_taken_tokens(monkeypatch: pytest.MonkeyPatch) -> None:
    """Tokens listed as taken are skipped."""
    tokens = iter(["1" * 24, "2" * 24])
    monkeypatch.setattr("joistmail.mail.mime.secrets.token_hex", lambda _n: next(tokens))

    boundary = make_boundary(taken={"=_JoistPart_" + "1" * 24})

    assert boundary == "=_JoistPart_" + "2" * 24


def test_leaf_has_no_boundary() -> None:
    """Leaves carry content headers only."""
    part = _leaf("hello")

    assert part.boundary is None
    assert not part.is_composite
    assert part.serialize_body() == "hello"
    assert part.serialize() == "Content-Type: text/plain\r\nContent-Transfer-Encoding: 7bit\r\n\r\nhello"


def test_composite_header_reflects_subtype() -> None:
    """A composite's Content-Type names its subtype and boundary."""
    part = MimePart.composite(MultipartType.MIXED, [_leaf("a")])

    assert part.is_composite
    assert part.content == PREAMBLE
    assert part.headers[0].name == "Content-Type"
    assert part.get_header("content-type") == f'multipart/mixed; boundary="{part.boundary}"'


def test_update_headers_refreshes_boundary() -> None:
    """Recomputing headers replaces the Content-Type instead of adding one."""
    part = MimePart.composite(MultipartType.ALTERNATIVE, [_leaf("a"), _leaf("b")])
    first = part.boundary

    part.multipart = MultipartType.MIXED
    part.update_headers()

    assert part.boundary != first
    assert [h.name for h in part.headers] == ["Content-Type"]
    assert part.get_header("Content-Type").startswith("multipart/mixed;")


def test_update_headers_rejects_leaf() -> None:
    """Leaves have no boundary to compute."""
    with pytest.raises(ValueError, match="composite"):
        _leaf("a").update_headers()


def test_serialize_body_layout() -> None:
    """Preamble, delimiters and closing delimiter follow RFC 2046."""
    part = MimePart.composite(MultipartType.ALTERNATIVE, [_leaf("one"), _leaf("two")])
    delimiter = f"--{part.boundary}"
    leaf_head = "Content-Type: text/plain\r\nContent-Transfer-Encoding: 7bit\r\n\r\n"

    assert part.serialize_body() == (
        f"{PREAMBLE}\r\n"
        f"{delimiter}\r\n{leaf_head}one\r\n"
        f"{delimiter}\r\n{leaf_head}two\r\n"
        f"{delimiter}--\r\n"
    )


def test_walk_is_depth_first_in_order() -> None:
    """Walking yields parents before children, siblings in order."""
    html, plain, attachment = _leaf("h"), _leaf("p"), _leaf("a")
    alternative = MimePart.composite(MultipartType.ALTERNATIVE, [html, plain])
    mixed = MimePart.composite(MultipartType.MIXED, [alternative, attachment])

    assert list(mixed.walk()) == [mixed, alternative, html, plain, attachment]
    assert mixed.boundary != alternative.boundary
    assert alternative.boundary in mixed.serialize_body()
