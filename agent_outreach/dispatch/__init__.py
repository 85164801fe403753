"""
Dispatch layer: campaign settings, the delivery ledger, message variants,
and the throttled, retrying dispatch engine.
"""

from agent_outreach.dispatch.config import (
    OutreachSettings,
    SmtpConfig,
    load_settings,
)
from agent_outreach.dispatch.engine import (
    BatchResult,
    DispatchEngine,
    RecipientOutcome,
)
from agent_outreach.dispatch.ledger import (
    DailyQuota,
    DeliveryLedger,
    DeliveryStatus,
    LedgerEntry,
)
from agent_outreach.dispatch.messages import MessageComposer, OutboundMessage

__all__ = [
    "BatchResult",
    "DailyQuota",
    "DeliveryLedger",
    "DeliveryStatus",
    "DispatchEngine",
    "LedgerEntry",
    "MessageComposer",
    "OutboundMessage",
    "OutreachSettings",
    "RecipientOutcome",
    "SmtpConfig",
    "load_settings",
]
