"""
Tests for message composition and the dry-run transport.
"""

import pytest

from agent_outreach.dispatch.messages import DEFAULT_SUBJECTS, MessageComposer, first_name
from agent_outreach.store.records import CanonicalRecord
from agent_outreach.transport.dry_run import DryRunTransport
from agent_outreach.transport.smtp_transport import SmtpTransport
from agent_outreach.dispatch.config import SmtpConfig
from agent_outreach.errors import ConfigError


class TestFirstName:
    def test_first_token(self):
        assert first_name("Sarah Johnson") == "Sarah"
        assert first_name("  Mary   Ann Lee ") == "Mary"

    def test_fallback(self):
        assert first_name("") == "there"
        assert first_name(None) == "there"
        assert first_name("   ") == "there"


class TestMessageComposer:
    def setup_method(self):
        self.composer = MessageComposer(from_address="me@agency.com", from_name="Nadav")
        self.record = CanonicalRecord(identity="sarah@example.com", name="Sarah Johnson",
                                      city="Los Angeles", state="CA")

    def test_compose(self):
        msg = self.composer.compose(self.record, variant=0)
        assert msg.to == "sarah@example.com"
        assert msg.subject == DEFAULT_SUBJECTS[0]
        assert msg.body_text.startswith("Hey Sarah,")
        assert "- Nadav" in msg.body_text
        assert "Reply STOP to opt out" in msg.body_text

    def test_variant_wraps(self):
        assert self.composer.variant_count == 5
        msg = self.composer.compose(self.record, variant=6)
        assert msg.variant == 1
        assert msg.subject == DEFAULT_SUBJECTS[1]

    def test_custom_template(self):
        composer = MessageComposer(
            subjects=["Hello from {{ city }}"],
            body_template="Hi {{ first_name }} in {{ city }}, {{ state }}.",
        )
        msg = composer.compose(self.record)
        assert msg.body_text == "Hi Sarah in Los Angeles, CA."

    def test_requires_subjects(self):
        with pytest.raises(ValueError):
            MessageComposer(subjects=[])

    def test_to_mime(self):
        mime = self.composer.compose(self.record, variant=2).to_mime()
        assert mime["To"] == "sarah@example.com"
        assert mime["From"] == "Nadav <me@agency.com>"
        assert mime["Subject"] == DEFAULT_SUBJECTS[2]
        assert mime["X-Priority"] == "3"


class TestTransports:
    def test_dry_run_records_messages(self):
        transport = DryRunTransport()
        msg = MessageComposer().compose(CanonicalRecord(identity="a@example.com", name="A"))
        receipt = transport.send(msg)
        assert receipt.success
        assert receipt.message_id.startswith("<dry-run-")
        assert transport.sent == [msg]

    def test_smtp_requires_credentials(self):
        with pytest.raises(ConfigError, match="SMTP credentials"):
            SmtpTransport(SmtpConfig())

    def test_smtp_requires_sender(self):
        with pytest.raises(ConfigError, match="EMAIL_FROM"):
            SmtpTransport(SmtpConfig(username="user", password="pass"))
