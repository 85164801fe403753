"""
Outreach message composition.

Messages come in a small fixed set of variants (one subject line each) so
consecutive recipients do not receive identical text. The body is a Jinja2
template personalised with the recipient's first name.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Optional, Sequence

from jinja2 import BaseLoader, Environment

from agent_outreach.store.records import CanonicalRecord

DEFAULT_SUBJECTS = [
    "Can I build you a custom AI tool?",
    "Free AI tool for your real estate business?",
    "Want a custom AI solution for your agency?",
    "AI automation for real estate agents",
    "Custom software for your real estate business?",
]

DEFAULT_BODY = """\
Hey {{ first_name }},

I run an agency where we build custom AI tools and software for real estate agents.

Give me your biggest problem and I'll build a solution for free.

If you like it, you pay. If you don't, send it back and we figure out how to make it better.

Want to try?

- {{ sender_name }}

---
Reply STOP to opt out
"""


def first_name(full_name: Optional[str]) -> str:
    """First whitespace-separated token of a name, or "there"."""
    if not full_name or not isinstance(full_name, str):
        return "there"
    parts = full_name.strip().split()
    return parts[0] if parts else "there"


@dataclass
class OutboundMessage:
    """A fully formed e-mail ready for a transport."""

    to: str
    subject: str
    body_text: str
    from_address: str = ""
    from_name: str = ""
    variant: int = 0
    headers: dict[str, str] = field(default_factory=dict)

    def to_mime(self) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["To"] = self.to
        msg["From"] = (
            formataddr((self.from_name, self.from_address))
            if self.from_name
            else self.from_address
        )
        msg["Subject"] = self.subject
        for key, val in self.headers.items():
            msg[key] = val
        msg.attach(MIMEText(self.body_text, "plain", "utf-8"))
        return msg


class MessageComposer:
    """
    Render outreach messages for canonical records.

    Usage:
        composer = MessageComposer(from_address="me@agency.com", from_name="Nadav")
        msg = composer.compose(record, variant=2)
    """

    DEFAULT_HEADERS = {
        "X-Priority": "3",
        "X-MSMail-Priority": "Normal",
        "Importance": "normal",
    }

    def __init__(
        self,
        from_address: str = "",
        from_name: str = "",
        subjects: Sequence[str] = DEFAULT_SUBJECTS,
        body_template: str = DEFAULT_BODY,
    ) -> None:
        if not subjects:
            raise ValueError("At least one subject variant is required")
        self.from_address = from_address
        self.from_name = from_name
        self.subjects = list(subjects)
        self._jinja_env = Environment(
            loader=BaseLoader(),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )
        self._body = self._jinja_env.from_string(body_template)

    @property
    def variant_count(self) -> int:
        return len(self.subjects)

    def subject(self, variant: int) -> str:
        return self.subjects[variant % self.variant_count]

    def compose(self, record: CanonicalRecord, variant: int = 0) -> OutboundMessage:
        index = variant % self.variant_count
        body = self._body.render(
            first_name=first_name(record.name),
            name=record.name,
            city=record.city,
            state=record.state,
            company=record.company,
            sender_name=self.from_name,
        )
        return OutboundMessage(
            to=record.identity,
            subject=self.subject(index),
            body_text=body,
            from_address=self.from_address,
            from_name=self.from_name,
            variant=index,
            headers=dict(self.DEFAULT_HEADERS),
        )
