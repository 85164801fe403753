"""
Outbound transports.
"""

from agent_outreach.transport.dry_run import DryRunTransport
from agent_outreach.transport.smtp_transport import SmtpTransport
from agent_outreach.transport.transport_base import SendReceipt, Transport

__all__ = [
    "DryRunTransport",
    "SendReceipt",
    "SmtpTransport",
    "Transport",
]
