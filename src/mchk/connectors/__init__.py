"""SMTP and IMAP transports."""

from mchk.connectors.config import IMAPConfig, SMTPConfig
from mchk.connectors.imap import IMAPConnector
from mchk.connectors.smtp import SMTPConnector

__all__ = ["IMAPConfig", "IMAPConnector", "SMTPConfig", "SMTPConnector"]
