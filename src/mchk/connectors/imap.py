"""IMAP connector for locating probe messages using imap-tools."""

import logging
from types import TracebackType

from imap_tools import AND, H, MailBox, MailMessageFlags

from mchk.connectors.config import IMAPConfig
from mchk.defaults import DEFAULT_FOLDER

logger = logging.getLogger(__name__)


class IMAPConnector:
    """Connector for searching and cleaning a mailbox over IMAP with TLS."""

    def __init__(self, config: IMAPConfig) -> None:
        """Initialize IMAP connector.

        Args:
            config: IMAP server configuration.
        """
        self.config = config
        self._mailbox: MailBox | None = None

    def connect(self) -> None:
        """Open a TLS session and log in without selecting a folder."""
        logger.debug("Connecting to IMAP server (host=%s, port=%s)", self.config.host, self.config.port)
        mailbox = MailBox(self.config.host, self.config.port)
        try:
            mailbox.login(
                self.config.username,
                self.config.password.get_secret_value(),
                initial_folder=None,
            )
        except Exception:
            self._logout(mailbox)
            raise
        self._mailbox = mailbox

    def disconnect(self) -> None:
        """Log out; errors during logout are swallowed."""
        if self._mailbox:
            self._logout(self._mailbox)
            self._mailbox = None

    @staticmethod
    def _logout(mailbox: MailBox) -> None:
        try:
            mailbox.logout()
        except Exception:
            logger.debug("IMAP logout failed (connection may already be closed)")

    def __enter__(self) -> "IMAPConnector":
        """Context manager entry - connect to server."""
        self.connect()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Context manager exit - disconnect from server."""
        self.disconnect()

    def select_folder(self, folder: str = DEFAULT_FOLDER) -> None:
        """Select the folder subsequent searches run against."""
        if not self._mailbox:
            raise RuntimeError("Not connected. Call connect() first.")

        self._mailbox.folder.set(folder)

    def search_subject(self, subject: str) -> list[str]:
        """Return UIDs of messages whose Subject equals ``subject`` exactly.

        The server-side HEADER search is a substring match, so results are
        narrowed to exact matches on the decoded Subject.
        """
        if not self._mailbox:
            raise RuntimeError("Not connected. Call connect() first.")

        uids = []
        criteria = AND(header=H("Subject", subject))
        for msg in self._mailbox.fetch(criteria, headers_only=True, mark_seen=False):
            if not msg.uid:
                logger.warning("Skipping message with missing UID (subject=%r)", msg.subject)
                continue
            if msg.subject == subject:
                uids.append(msg.uid)

        logger.debug("Subject search finished (matches=%d)", len(uids))
        return uids

    def delete(self, uids: list[str]) -> None:
        """Flag messages as deleted and expunge them from the selected folder."""
        if not self._mailbox:
            raise RuntimeError("Not connected. Call connect() first.")

        self._mailbox.flag(uids, MailMessageFlags.DELETED, True)
        self._mailbox.expunge()
