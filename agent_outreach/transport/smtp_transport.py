"""
SMTP transport: sends outreach messages through an authenticated SMTP
account (STARTTLS by default).
"""

from __future__ import annotations

import logging
import smtplib
import ssl
from email.utils import make_msgid
from typing import Optional

from agent_outreach.dispatch.config import SmtpConfig
from agent_outreach.dispatch.messages import OutboundMessage
from agent_outreach.errors import ConfigError, TransportError
from agent_outreach.transport.transport_base import SendReceipt

logger = logging.getLogger(__name__)


class SmtpTransport:
    """
    Deliver messages via SMTP.

    Usage:
        transport = SmtpTransport(settings.smtp)
        transport.verify()
        receipt = transport.send(message)

    Each ``send`` opens and closes its own connection.
    """

    def __init__(self, config: SmtpConfig) -> None:
        if not config.has_credentials():
            raise ConfigError(
                "SMTP credentials not configured. Set SMTP_USER and SMTP_PASS."
            )
        if not config.from_address:
            raise ConfigError("Sender address not configured. Set EMAIL_FROM.")
        self.config = config

    def _connect(self) -> smtplib.SMTP:
        server = smtplib.SMTP(self.config.host, self.config.port, timeout=self.config.timeout)
        try:
            if self.config.use_tls:
                context = ssl.create_default_context()
                server.ehlo()
                server.starttls(context=context)
                server.ehlo()
            server.login(self.config.username, self.config.password)
        except BaseException:
            server.close()
            raise
        return server

    def verify(self) -> None:
        """Connect and authenticate once.

        Raises:
            TransportError: If the server is unreachable or rejects the login.
        """
        try:
            server = self._connect()
            server.quit()
        except (smtplib.SMTPException, OSError) as e:
            raise TransportError(f"SMTP verification failed: {e}") from e
        logger.info("SMTP connection to %s:%d verified", self.config.host, self.config.port)

    def send(self, message: OutboundMessage) -> SendReceipt:
        mime = message.to_mime()
        message_id = make_msgid(domain=self._sender_domain())
        mime["Message-ID"] = message_id

        try:
            server = self._connect()
            try:
                refused = server.sendmail(
                    self.config.from_address,
                    [message.to],
                    mime.as_string(),
                )
            finally:
                try:
                    server.quit()
                except (smtplib.SMTPException, OSError):
                    server.close()
        except (smtplib.SMTPException, OSError) as e:
            raise TransportError(f"SMTP send to {message.to} failed: {e}") from e

        if refused:
            return SendReceipt(success=False, detail=f"Recipient refused: {refused}")
        return SendReceipt(success=True, message_id=message_id)

    def _sender_domain(self) -> Optional[str]:
        _, _, domain = self.config.from_address.partition("@")
        return domain or None
