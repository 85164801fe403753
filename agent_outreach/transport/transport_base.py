"""Transport capability: one delivery attempt for one message."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Protocol

if TYPE_CHECKING:
    from agent_outreach.dispatch.messages import OutboundMessage


@dataclass
class SendReceipt:
    """Result of a delivery attempt that did not raise."""

    success: bool
    message_id: Optional[str] = None
    detail: str = ""


class Transport(Protocol):
    """Performs exactly one delivery attempt per ``send`` call.

    Implementations raise ``TransportError`` for a failed attempt, or
    return a receipt with ``success=False``; the dispatch engine treats
    both as a retryable failure.
    """

    def send(self, message: OutboundMessage) -> SendReceipt:
        ...
