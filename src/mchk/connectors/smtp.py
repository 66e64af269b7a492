"""SMTP connector for submitting probe messages using smtplib."""

import logging
import re
import smtplib
from email.message import EmailMessage
from types import TracebackType

from mchk.connectors.config import SMTPConfig

logger = logging.getLogger(__name__)

_HEADER_INJECTION_RE = re.compile(r"[\r\n\0]")


def _validate_header_value(value: str) -> None:
    """Validate a string is safe from SMTP header injection.

    Raises:
        ValueError: If the value contains newline, carriage return, or null characters.
    """
    if _HEADER_INJECTION_RE.search(value):
        # Do not log the value, it may contain an injection payload
        logger.warning("Header injection attempt detected")
        raise ValueError("Value contains invalid characters (newline, carriage return, or null)")


class SMTPConnector:
    """Connector for submitting messages to a relay via smtplib."""

    def __init__(self, config: SMTPConfig, timeout: float | None = None) -> None:
        """Initialize SMTP connector.

        Args:
            config: SMTP server configuration.
            timeout: Socket timeout in seconds (None keeps the smtplib default).
        """
        self.config = config
        self._timeout = timeout
        self._connection: smtplib.SMTP | smtplib.SMTP_SSL | None = None

    def _open(self) -> smtplib.SMTP | smtplib.SMTP_SSL:
        kwargs = {"timeout": self._timeout} if self._timeout is not None else {}
        if self.config.ssl:
            return smtplib.SMTP_SSL(self.config.host, self.config.port, **kwargs)
        return smtplib.SMTP(self.config.host, self.config.port, **kwargs)

    def connect(self) -> None:
        """Connect, upgrade to TLS when offered, and authenticate."""
        logger.debug(
            "Connecting to SMTP server (host=%s, port=%s, ssl=%s)",
            self.config.host,
            self.config.port,
            self.config.ssl,
        )
        connection = self._open()
        try:
            connection.ehlo()
            if not self.config.ssl and connection.has_extn("starttls"):
                connection.starttls()
                connection.ehlo()
            connection.login(
                self.config.username,
                self.config.password.get_secret_value(),
            )
        except (smtplib.SMTPException, OSError):
            connection.close()
            raise
        self._connection = connection
        logger.info("SMTP connection established (host=%s)", self.config.host)

    def disconnect(self) -> None:
        """Close connection to SMTP server."""
        if self._connection:
            try:
                self._connection.quit()
            except (smtplib.SMTPException, OSError):
                logger.debug("SMTP quit failed (connection may already be closed)")
                self._connection.close()
            self._connection = None
            logger.info("SMTP connection closed")

    def __enter__(self) -> "SMTPConnector":
        """Enter context manager, connecting to the server."""
        self.connect()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit context manager, disconnecting from the server."""
        self.disconnect()

    def build_message(self, subject: str) -> EmailMessage:
        """Build the minimal probe message: From, Subject and To headers only.

        Raises:
            ValueError: If any header value contains injection characters.
        """
        _validate_header_value(self.config.sender)
        _validate_header_value(self.config.recipient)
        _validate_header_value(subject)

        msg = EmailMessage()
        msg["From"] = self.config.sender
        msg["Subject"] = subject
        msg["To"] = self.config.recipient
        return msg

    def send_probe(self, subject: str) -> None:
        """Submit one probe message carrying ``subject``.

        Raises:
            RuntimeError: If not connected to SMTP server.
            smtplib.SMTPException: If the relay rejects the message.
        """
        if not self._connection:
            raise RuntimeError("Not connected. Call connect() first.")

        msg = self.build_message(subject)
        self._connection.sendmail(self.config.sender, [self.config.recipient], msg.as_string())
        logger.info("Probe submitted (host=%s, recipient=%s)", self.config.host, self.config.recipient)
