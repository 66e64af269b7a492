"""Looks for a probe in the inbound mailbox and cleans it up."""

import imaplib
from collections.abc import Callable

import structlog
from imap_tools import ImapToolsError

from mchk.connectors.config import IMAPConfig
from mchk.connectors.imap import IMAPConnector
from mchk.defaults import DEFAULT_FOLDER
from mchk.exceptions import MailboxConnectionError, VerificationError
from mchk.models import ReceiveStatus, VerificationResult

logger = structlog.get_logger()

_IMAP_ERRORS = (ImapToolsError, imaplib.IMAP4.error, OSError)


def classify_matches(count: int) -> ReceiveStatus:
    """Zero matches is not found, one is found, more is ambiguous."""
    if count == 0:
        return ReceiveStatus.NOT_FOUND
    if count == 1:
        return ReceiveStatus.FOUND
    return ReceiveStatus.AMBIGUOUS


class DeliveryVerifier:
    """Searches a mailbox for a probe token.

    Each call opens its own session and always logs out before returning,
    whichever step failed.
    """

    def __init__(
        self,
        connector_factory: Callable[[IMAPConfig], IMAPConnector] = IMAPConnector,
        folder: str = DEFAULT_FOLDER,
    ) -> None:
        self._connector_factory = connector_factory
        self._folder = folder

    def verify(self, inbound: IMAPConfig, token: str, leave_message: bool = False) -> VerificationResult:
        """Search ``folder`` for a message whose Subject equals ``token``.

        A single match is deleted and expunged unless ``leave_message`` is set.
        Ambiguous matches are never deleted.

        Raises:
            MailboxConnectionError: If the session cannot be established.
            VerificationError: If select, search or cleanup fails.
        """
        log = logger.bind(host=inbound.host, port=inbound.port)
        connector = self._connector_factory(inbound)
        try:
            connector.connect()
        except _IMAP_ERRORS as e:
            log.debug("Mailbox connection failed", error=str(e))
            raise MailboxConnectionError(inbound.host, inbound.port, e) from e

        try:
            connector.select_folder(self._folder)
            uids = connector.search_subject(token)
            status = classify_matches(len(uids))
            deleted = False
            if status is ReceiveStatus.FOUND and not leave_message:
                connector.delete(uids)
                deleted = True
        except _IMAP_ERRORS as e:
            log.debug("Mailbox check failed", error=str(e))
            raise VerificationError(inbound.host, inbound.port, e) from e
        finally:
            connector.disconnect()

        log.debug("Mailbox checked", status=status.value, matches=len(uids), deleted=deleted)
        return VerificationResult(status=status, matches=len(uids), deleted=deleted)
