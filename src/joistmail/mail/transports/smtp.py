"""SMTP transport built on :mod:`smtplib`.

One session per :meth:`SMTPTransport.send` call: connect, EHLO, optional
STARTTLS, optional AUTH with a fixed mechanism, then ``MAIL``/``RCPT``/
``DATA``. The session is closed when ``send`` returns.

Session problems (connection refused, TLS or authentication failure,
protocol errors) raise :class:`MailTransportError`. Replies rejecting the
message itself are returned as a negative :class:`SMTPResponse`.

When the logger is enabled for TRACE, the SMTP conversation printed by
``smtplib`` is captured and re-emitted as ``[SMTP] >>>`` / ``[SMTP] <<<``
records, together with TLS details and envelope addresses.

Examples:
    >>> transport = SMTPTransport(
    ...     "smtp.example.com",
    ...     hello_name="mailer.example.com",
    ...     credentials=SMTPCredentials("user", "secret"),
    ...     mechanism=AuthMechanism.LOGIN,
    ...     security=SMTPSecurity(level=SecurityLevel.OPPORTUNISTIC),
    ... )
    >>> transport.send(message)  # doctest: +SKIP
"""

from __future__ import annotations

import contextlib
import io
import logging
import re
import smtplib
import ssl
import sys
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from joistmail.logging import TRACE_LEVEL
from joistmail.mail.exceptions import MailBuilderError, MailConfigurationError, MailTransportError
from joistmail.mail.models import CRLF
from joistmail.mail.transport import MailTransport, SMTPResponse

if TYPE_CHECKING:
    from joistmail.mail.models import RenderedMessage

__all__ = [
    "AuthMechanism",
    "SMTPCredentials",
    "SMTPSecurity",
    "SMTPTransport",
    "SecurityLevel",
]

log = logging.getLogger(__name__)

_LINE_ENDINGS = re.compile(r"\r\n|\r|\n")


class SecurityLevel(str, Enum):
    """How the session is protected.

    Attributes:
        NONE: Plaintext, STARTTLS is never attempted.
        OPPORTUNISTIC: STARTTLS when the server offers it, plaintext otherwise.
        ALWAYS: STARTTLS is required, the session fails without it.
        SSL: Implicit TLS from the first byte (usually port 465).
    """

    NONE = "none"
    OPPORTUNISTIC = "opportunistic"
    ALWAYS = "always"
    SSL = "ssl"


class AuthMechanism(str, Enum):
    """SASL mechanism used for AUTH."""

    PLAIN = "PLAIN"
    LOGIN = "LOGIN"
    CRAM_MD5 = "CRAM-MD5"


_AUTH_METHODS = {
    AuthMechanism.PLAIN: "auth_plain",
    AuthMechanism.LOGIN: "auth_login",
    AuthMechanism.CRAM_MD5: "auth_cram_md5",
}


@dataclass(frozen=True, slots=True)
class SMTPCredentials:
    """Username and password for SMTP AUTH."""

    username: str
    password: str

    def __repr__(self) -> str:
        return f"SMTPCredentials(username={self.username!r}, password='***')"


@dataclass(frozen=True, slots=True)
class SMTPSecurity:
    """TLS settings of the session.

    Attributes:
        level: See :class:`SecurityLevel`.
        verify_certificates: Verify the server certificate and hostname.
    """

    level: SecurityLevel = SecurityLevel.OPPORTUNISTIC
    verify_certificates: bool = True

    def ssl_context(self) -> ssl.SSLContext:
        """Return the context used for STARTTLS or implicit TLS."""
        context = ssl.create_default_context()
        if not self.verify_certificates:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        return context


@contextlib.contextmanager
def _capture_smtp_debug() -> Iterator[io.StringIO]:
    """Redirect ``sys.stderr``, where smtplib prints its debug output."""
    buffer = io.StringIO()
    original = sys.stderr
    sys.stderr = buffer
    try:
        yield buffer
    finally:
        sys.stderr = original


def _log_smtp_debug_output(buffer: io.StringIO) -> None:
    """Re-emit captured smtplib debug lines as TRACE records."""
    if not log.isEnabledFor(TRACE_LEVEL):
        return
    for raw_line in buffer.getvalue().splitlines():
        line = raw_line.strip()
        if not line:
            continue
        if line.startswith("send:"):
            log.log(TRACE_LEVEL, "[SMTP] >>> %s", line[5:].strip())
        elif line.startswith("reply:"):
            log.log(TRACE_LEVEL, "[SMTP] <<< %s", line[6:].strip())
        else:
            log.log(TRACE_LEVEL, "[SMTP] %s", line)


def _common_name(entries: Any) -> str | None:
    """Return the commonName from a ``getpeercert()`` subject or issuer."""
    try:
        for rdn in entries:
            for key, value in rdn:
                if key == "commonName":
                    return str(value)
    except (TypeError, ValueError):
        return None
    return None


def _extract_ssl_info(sock: ssl.SSLSocket | None) -> dict[str, Any]:
    """Collect TLS version, cipher and peer certificate names from a socket.

    Missing or unreadable fields are left out; this never raises.
    """
    if sock is None:
        return {}

    info: dict[str, Any] = {}
    try:
        info["version"] = sock.version() or "unknown"
    except Exception:  # pylint: disable=broad-except
        info["version"] = "unknown"

    try:
        cipher = sock.cipher()
    except Exception:  # pylint: disable=broad-except
        cipher = None
    if cipher:
        info["cipher_name"], info["cipher_protocol"], info["cipher_bits"] = cipher

    try:
        cert = sock.getpeercert()
    except Exception:  # pylint: disable=broad-except
        cert = None
    if cert:
        peer_cn = _common_name(cert.get("subject", ()))
        if peer_cn:
            info["peer_cn"] = peer_cn
        issuer_cn = _common_name(cert.get("issuer", ()))
        if issuer_cn:
            info["issuer_cn"] = issuer_cn
        if "notBefore" in cert:
            info["valid_from"] = cert["notBefore"]
        if "notAfter" in cert:
            info["valid_until"] = cert["notAfter"]
    return info


def _log_tls(label: str, client: smtplib.SMTP) -> None:
    info = _extract_ssl_info(getattr(client, "sock", None))
    if not info:
        return
    log.log(
        TRACE_LEVEL,
        "[SMTP] %s: %s %s (peer=%s, issuer=%s)",
        label,
        info.get("version", "unknown"),
        info.get("cipher_name", "?"),
        info.get("peer_cn", "?"),
        info.get("issuer_cn", "?"),
    )


def _wire_payload(message: RenderedMessage) -> bytes:
    """Return the message with every line ending normalised to CRLF."""
    return _LINE_ENDINGS.sub(CRLF, message.as_string()).encode("utf-8")


def _reply(code: int, text: bytes | str | None) -> SMTPResponse:
    """Wrap a server reply, treating codes outside 100-599 as a broken session.

    smtplib reports ``-1`` when the connection drops or the reply line is
    unparsable; that is not an answer from the server.
    """
    if not 100 <= code <= 599:
        detail = text.decode("utf-8", errors="replace") if isinstance(text, bytes) else text or ""
        raise MailTransportError(f"Invalid SMTP reply code {code}" + (f": {detail}" if detail else ""))
    return SMTPResponse.from_reply(code, text)


class SMTPTransport(MailTransport):
    """Deliver rendered messages to an SMTP server.

    Args:
        host: Server hostname or address.
        port: Server port (587 submission, 465 implicit TLS, 25 relay).
        hello_name: Name announced in EHLO; defaults to the local FQDN.
        credentials: AUTH credentials; no AUTH when ``None``.
        mechanism: SASL mechanism used with ``credentials``.
        security: TLS settings, opportunistic STARTTLS by default.
        smtp_utf8: Request SMTPUTF8 when the server advertises it.
        timeout: Socket timeout in seconds.

    Raises:
        MailConfigurationError: If ``host`` is empty or ``timeout`` is not
            positive.
    """

    def __init__(
        self,
        host: str,
        port: int = 587,
        *,
        hello_name: str | None = None,
        credentials: SMTPCredentials | None = None,
        mechanism: AuthMechanism = AuthMechanism.PLAIN,
        security: SMTPSecurity | None = None,
        smtp_utf8: bool = True,
        timeout: float = 30.0,
    ) -> None:
        if not host:
            raise MailConfigurationError("SMTP host is required")
        if timeout <= 0:
            raise MailConfigurationError("Timeout must be greater than 0")

        self.host = host
        self.port = port
        self.hello_name = hello_name
        self.credentials = credentials
        self.mechanism = mechanism
        self.security = security or SMTPSecurity()
        self.smtp_utf8 = smtp_utf8
        self.timeout = timeout

    @classmethod
    def from_config(cls, config: Mapping[str, Any] | None = None) -> SMTPTransport:
        """Create a transport from the ``mail.smtp`` configuration section.

        Args:
            config: The ``mail.smtp`` mapping; read from ``joistmail.conf.yml``
                when omitted.

        Raises:
            MailConfigurationError: If a value is invalid.
        """
        if config is None:
            from joistmail.config import get_config  # pylint: disable=import-outside-toplevel

            config = get_config().mail.smtp

        try:
            mechanism = AuthMechanism(str(config.get("mechanism", "plain")).upper().replace("_", "-"))
        except ValueError:
            raise MailConfigurationError(f"Unknown SMTP auth mechanism: {config.get('mechanism')!r}") from None
        try:
            level = SecurityLevel(str(config.get("security", "opportunistic")).lower())
        except ValueError:
            raise MailConfigurationError(f"Unknown SMTP security level: {config.get('security')!r}") from None

        username = config.get("username")
        credentials = SMTPCredentials(str(username), str(config.get("password") or "")) if username else None

        try:
            port = int(config.get("port", 587))
            timeout = float(config.get("timeout", 30.0))
        except (TypeError, ValueError) as exc:
            raise MailConfigurationError(f"Invalid SMTP port or timeout: {exc}") from exc

        return cls(
            str(config.get("host") or ""),
            port,
            hello_name=config.get("hello_name") or None,
            credentials=credentials,
            mechanism=mechanism,
            security=SMTPSecurity(
                level=level,
                verify_certificates=bool(config.get("verify_certificates", True)),
            ),
            smtp_utf8=bool(config.get("smtp_utf8", True)),
            timeout=timeout,
        )

    def send(self, message: RenderedMessage) -> SMTPResponse:
        """Open a session, transmit ``message`` and return the final reply.

        Raises:
            MailBuilderError: If the message has no reverse-path or no
                recipient.
            MailTransportError: If the session fails.
        """
        envelope = message.envelope
        if envelope.sender is None:
            raise MailBuilderError("No From or Sender address to use as reverse-path")
        if not envelope.recipients:
            raise MailBuilderError("No To or Cc recipient")

        trace_enabled = log.isEnabledFor(TRACE_LEVEL)
        debug_buffer: io.StringIO | None = None
        try:
            with contextlib.ExitStack() as stack:
                if trace_enabled:
                    debug_buffer = stack.enter_context(_capture_smtp_debug())
                client = stack.enter_context(self._connect())
                if trace_enabled:
                    client.set_debuglevel(1)
                self._handshake(client)
                self._authenticate(client)
                return self._transmit(client, message)
        except smtplib.SMTPException as exc:
            raise MailTransportError(f"SMTP error with {self.host}:{self.port}: {exc}") from exc
        except OSError as exc:
            raise MailTransportError(f"Connection to {self.host}:{self.port} failed: {exc}") from exc
        finally:
            if debug_buffer is not None:
                _log_smtp_debug_output(debug_buffer)

    def _connect(self) -> smtplib.SMTP:
        kwargs: dict[str, Any] = {
            "host": self.host,
            "port": self.port,
            "local_hostname": self.hello_name,
            "timeout": self.timeout,
        }
        if self.security.level is SecurityLevel.SSL:
            log.log(TRACE_LEVEL, "[SMTP] Connecting to %s:%d (SSL)", self.host, self.port)
            client: smtplib.SMTP = smtplib.SMTP_SSL(context=self.security.ssl_context(), **kwargs)
            _log_tls("SSL", client)
            return client

        log.log(TRACE_LEVEL, "[SMTP] Connecting to %s:%d", self.host, self.port)
        return smtplib.SMTP(**kwargs)

    def _handshake(self, client: smtplib.SMTP) -> None:
        self._ehlo(client)
        level = self.security.level
        if level not in (SecurityLevel.OPPORTUNISTIC, SecurityLevel.ALWAYS):
            return

        if client.has_extn("STARTTLS"):
            log.log(TRACE_LEVEL, "[SMTP] Upgrading connection with STARTTLS")
            client.starttls(context=self.security.ssl_context())
            _log_tls("TLS", client)
            self._ehlo(client)
        elif level is SecurityLevel.ALWAYS:
            raise MailTransportError(f"{self.host} does not offer STARTTLS")
        else:
            log.debug("%s does not offer STARTTLS, continuing in plaintext", self.host)

    @staticmethod
    def _ehlo(client: smtplib.SMTP) -> None:
        code, text = client.ehlo()
        if not 200 <= code <= 299:
            raise MailTransportError(f"EHLO rejected: {_reply(code, text).describe()}")

    def _authenticate(self, client: smtplib.SMTP) -> None:
        if self.credentials is None:
            return
        if not client.has_extn("AUTH"):
            raise MailTransportError(f"{self.host} does not support authentication")

        log.log(TRACE_LEVEL, "[SMTP] Authenticating as: %s (%s)", self.credentials.username, self.mechanism.value)
        client.user = self.credentials.username
        client.password = self.credentials.password
        client.auth(self.mechanism.value, getattr(client, _AUTH_METHODS[self.mechanism]))
        log.log(TRACE_LEVEL, "[SMTP] Authentication successful")

    def _transmit(self, client: smtplib.SMTP, message: RenderedMessage) -> SMTPResponse:
        envelope = message.envelope
        options: list[str] = []
        if self.smtp_utf8 and client.has_extn("SMTPUTF8"):
            options.append("SMTPUTF8")
        else:
            # smtplib encodes commands as ASCII without SMTPUTF8
            non_ascii = [addr for addr in (envelope.sender or "", *envelope.recipients) if not addr.isascii()]
            if non_ascii:
                raise MailTransportError(
                    f"Non-ASCII address(es) {', '.join(non_ascii)} need SMTPUTF8, "
                    f"which is {'not offered by ' + self.host if self.smtp_utf8 else 'disabled'}"
                )

        log.log(TRACE_LEVEL, "[SMTP] MAIL FROM: <%s>", envelope.sender)
        code, text = client.mail(envelope.sender or "", options)
        if code != 250:
            client.rset()
            return _reply(code, text)

        for recipient in envelope.recipients:
            log.log(TRACE_LEVEL, "[SMTP] RCPT TO: <%s>", recipient)
            code, text = client.rcpt(recipient)
            if code not in (250, 251):
                client.rset()
                return _reply(code, text)

        try:
            code, text = client.data(_wire_payload(message))
        except smtplib.SMTPDataError as exc:
            return _reply(exc.smtp_code, exc.smtp_error)

        response = _reply(code, text)
        if response.is_positive():
            log.log(TRACE_LEVEL, "[SMTP] Message sent successfully (%d)", code)
        return response
