"""Submits tagged probe messages to the outbound relay."""

import smtplib
from collections.abc import Callable

import structlog

from mchk.connectors.config import SMTPConfig
from mchk.connectors.smtp import SMTPConnector
from mchk.exceptions import SubmissionError

logger = structlog.get_logger()


class DeliverySubmitter:
    """Sends exactly one probe per call; never retries."""

    def __init__(
        self,
        connector_factory: Callable[[SMTPConfig], SMTPConnector] = SMTPConnector,
    ) -> None:
        self._connector_factory = connector_factory

    def submit(self, outbound: SMTPConfig, token: str) -> None:
        """Send a probe whose Subject is ``token``.

        Raises:
            SubmissionError: If connecting, authenticating or sending fails.
        """
        log = logger.bind(host=outbound.host, port=outbound.port)
        log.debug("Submitting probe", sender=outbound.sender, recipient=outbound.recipient)
        try:
            with self._connector_factory(outbound) as connector:
                connector.send_probe(token)
        except (smtplib.SMTPException, OSError, ValueError) as e:
            log.debug("Probe submission failed", error=str(e))
            raise SubmissionError(outbound.host, outbound.port, e) from e
        log.debug("Probe submitted")
