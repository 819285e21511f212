"""Tests for the mail builder fluent API."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from joistmail.mail import (
    HeaderField,
    MailBuilder,
    MailBuilderError,
    MailConfigurationError,
    MailIOError,
    MailSendFailedError,
    MailTransportError,
    RenderedMessage,
    SMTPResponse,
)
from joistmail.mail.transport import MailTransport


class FakeTransport(MailTransport):
    """In-memory transport used for assertions in tests."""

    def __init__(self, response: SMTPResponse | None = None) -> None:
        self.sent: list[RenderedMessage] = []
        self.response = response or SMTPResponse(250, ("2.0.0 Ok: queued",))

    def send(self, message: RenderedMessage) -> SMTPResponse:
        """Store the message and return the canned response."""
        self.sent.append(message)
        return self.response


class ErrorTransport(MailTransport):
    """Transport double that raises ``MailTransportError`` on send."""

    def send(self, message: RenderedMessage) -> SMTPResponse:
        """Raise MailTransportError unconditionally."""
        raise MailTransportError("boom")


class TestMailBuilder:
    """Behavioural coverage for ``MailBuilder``."""

    def test_fluent_methods_return_builder(self, tmp_path: Path) -> None:
        """Every fluent call hands back the same builder."""
        builder = MailBuilder()
        when = datetime(2015, 6, 1, tzinfo=timezone.utc)

        chained = (
            builder.to("a@x.com")
            .from_("m@y.com")
            .cc("c@x.com")
            .sender("s@y.com")
            .reply_to("r@y.com")
            .header("X-Tag", "1")
            .subject("Hi")
            .date(when)
            .plain_body("p")
            .html_body("<p>h</p>")
            .attach(tmp_path / "f.txt")
        )

        assert chained is builder
        draft = builder.draft
        assert draft.to == ["a@x.com"]
        assert draft.from_ == ["m@y.com"]
        assert draft.cc == ["c@x.com"]
        assert draft.sender == ["s@y.com"]
        assert draft.reply_to == ["r@y.com"]
        assert draft.headers == [HeaderField("X-Tag", "1")]
        assert draft.subject == "Hi"
        assert draft.date == when
        assert draft.plain_body == "p"
        assert draft.html_body == "<p>h</p>"
        assert draft.attachments == [tmp_path / "f.txt"]

    def test_mutating_methods_return_none(self) -> None:
        """The add_/set_ forms only mutate the draft."""
        builder = MailBuilder()

        assert builder.add_to("a@x.com") is None
        assert builder.set_subject("Hi") is None
        assert builder.set_plain_body("p") is None
        assert builder.add_attachment("report.csv") is None
        assert builder.draft.attachments == [Path("report.csv")]

    def test_later_values_overwrite(self) -> None:
        """Single-valued fields keep the last value."""
        builder = MailBuilder()
        builder.set_subject("one")
        builder.set_subject("two")
        builder.set_plain_body("first")
        builder.set_plain_body("second")
        builder.set_html_body("<p>first</p>")
        builder.set_html_body("<p>second</p>")

        assert builder.draft.subject == "two"
        assert builder.draft.plain_body == "second"
        assert builder.draft.html_body == "<p>second</p>"

    def test_lists_keep_order_and_duplicates(self) -> None:
        """Address lists and headers are appended, never deduplicated."""
        builder = MailBuilder()
        for address in ("b@x.com", "a@x.com", "b@x.com"):
            builder.add_to(address)
        builder.add_sender("one@y.com")
        builder.add_sender("two@y.com")
        builder.add_header("Subject", "shadow")
        builder.add_header("Subject", "shadow")

        assert builder.draft.to == ["b@x.com", "a@x.com", "b@x.com"]
        assert builder.draft.sender == ["one@y.com", "two@y.com"]
        assert len(builder.draft.headers) == 2

    def test_no_validation_while_building(self, tmp_path: Path) -> None:
        """Bad input is accepted until render time."""
        builder = MailBuilder()
        builder.add_to("not an address")
        builder.add_header("Bad Name", "x\ny")
        builder.add_attachment(tmp_path / "missing.bin")

        assert len(builder.draft.to) == 1

    def test_attach_many(self, tmp_path: Path) -> None:
        """``attach`` accepts several paths at once."""
        builder = MailBuilder().attach(tmp_path / "a", str(tmp_path / "b"))

        assert builder.draft.attachments == [tmp_path / "a", tmp_path / "b"]

    def test_send_uses_transport_backend(self) -> None:
        """Use the configured transport when sending."""
        transport = FakeTransport()
        builder = MailBuilder(transport=transport)
        builder.from_("sender@example.com").to("user@example.com").plain_body("Body")

        response = builder.send()

        assert response.code == 250
        assert len(transport.sent) == 1
        assert transport.sent[0].envelope.recipients == ("user@example.com",)

    def test_transport_helper_attaches_backend(self) -> None:
        """The fluent ``transport()`` helper should override the backend."""
        transport = FakeTransport()
        builder = MailBuilder(transport=ErrorTransport())
        builder.transport(transport).from_("sender@example.com").to("user@example.com").plain_body("Body")

        builder.send()

        assert len(transport.sent) == 1

    def test_each_send_renders_a_new_message(self) -> None:
        """Rendered messages are not reused across sends."""
        transport = FakeTransport()
        builder = MailBuilder(transport=transport).from_("m@y.com").to("a@x.com").plain_body("Body")

        builder.send()
        builder.send()

        assert transport.sent[0] is not transport.sent[1]
        assert transport.sent[0]["Message-ID"] != transport.sent[1]["Message-ID"]

    def test_send_propagates_mail_transport_errors(self) -> None:
        """Existing ``MailTransportError`` exceptions should bubble up unchanged."""
        builder = MailBuilder(transport=ErrorTransport())
        builder.from_("sender@example.com").to("user@example.com").plain_body("Body")

        with pytest.raises(MailTransportError, match="boom"):
            builder.send()

    def test_send_without_transport_raises(self) -> None:
        """Send should fail when no transport is configured."""
        builder = MailBuilder()
        builder.from_("sender@example.com").to("user@example.com").plain_body("Body")

        with pytest.raises(MailConfigurationError):
            builder.send()

    def test_negative_response_raises_send_failed(self) -> None:
        """A rejected message becomes MailSendFailedError with the status string."""
        rejection = SMTPResponse(550, ("Mailbox unavailable", "Try later"))
        builder = MailBuilder(transport=FakeTransport(rejection))
        builder.from_("m@y.com").to("a@x.com").plain_body("Body")

        with pytest.raises(MailSendFailedError) as exc_info:
            builder.send()

        assert exc_info.value.detail == "5/5/0 Mailbox unavailable\r\nTry later"
        assert exc_info.value.response is rejection
        assert str(exc_info.value) == "Send Failed 5/5/0 Mailbox unavailable\r\nTry later"

    def test_io_error_prevents_any_session(self, tmp_path: Path) -> None:
        """A missing attachment aborts before the transport is used."""
        transport = FakeTransport()
        builder = MailBuilder(transport=transport)
        builder.from_("m@y.com").to("a@x.com").plain_body("Body").attach(tmp_path / "missing.txt")

        with pytest.raises(MailIOError):
            builder.send()

        assert transport.sent == []

    def test_default_assembler_reads_configured_x_mailer(self, tmp_path: Path) -> None:
        """Without an explicit assembler, ``mail.x_mailer`` from the config file is used."""
        (tmp_path / "joistmail.conf.yml").write_text("mail:\n  x_mailer: ReportMailer\n", encoding="utf-8")

        message = MailBuilder().to("a@x.com").plain_body("hi").render()

        assert message["X-Mailer"] == "ReportMailer"

    def test_comma_separated_recipients_are_rejected(self) -> None:
        """A string holding two mailboxes never silently loses one."""
        transport = FakeTransport()
        builder = MailBuilder(transport=transport).from_("m@y.com").to("a@x.com, b@x.com").plain_body("Body")

        with pytest.raises(MailBuilderError):
            builder.send()

        assert transport.sent == []
