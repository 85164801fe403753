"""Transport that records messages instead of sending them."""

from __future__ import annotations

import logging
import uuid

from agent_outreach.dispatch.messages import OutboundMessage
from agent_outreach.transport.transport_base import SendReceipt

logger = logging.getLogger(__name__)


class DryRunTransport:
    """Accept every message and keep it in ``sent`` for inspection."""

    def __init__(self) -> None:
        self.sent: list[OutboundMessage] = []

    def send(self, message: OutboundMessage) -> SendReceipt:
        self.sent.append(message)
        logger.info("[DRY RUN] would send '%s' to %s", message.subject, message.to)
        return SendReceipt(success=True, message_id=f"<dry-run-{uuid.uuid4().hex}@local>")
