"""
Tests for the command line interface.
"""

import json
import logging
import signal

import pytest
from click.testing import CliRunner

from agent_outreach.cli import _stop_on_signal, cli


class TestCli:
    def setup_method(self):
        self.runner = CliRunner()

    def teardown_method(self):
        root = logging.getLogger()
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()

    def _env(self, tmp_path, **extra):
        env = {
            "DATABASE_URL": f"sqlite:///{tmp_path / 'agents.db'}",
            "LEDGER_PATH": str(tmp_path / "logs" / "email_log.json"),
            "LOG_FILE": str(tmp_path / "logs" / "outreach.log"),
            "EMAIL_DELAY": "0",
            "EMAIL_BACKOFF_BASE": "0",
            "MAX_EMAILS_PER_DAY": "",
            "SMTP_USER": "",
            "SMTP_PASS": "",
            "EMAIL_FROM": "",
        }
        env.update(extra)
        return env

    def _invoke(self, tmp_path, args, **env):
        return self.runner.invoke(
            cli, ["--log-level", "ERROR", *args], env=self._env(tmp_path, **env)
        )

    def test_version(self):
        result = self.runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "agent-outreach" in result.output

    def test_collect(self, tmp_path):
        result = self._invoke(tmp_path, ["collect"])
        assert result.exit_code == 0, result.output
        assert "Canonical records: 8" in result.output
        assert "Agents in store: 8" in result.output

    def test_send_dry_run(self, tmp_path):
        self._invoke(tmp_path, ["collect"])
        result = self._invoke(tmp_path, ["send", "--dry-run", "--max", "3"])

        assert result.exit_code == 0, result.output
        assert "[DRY RUN]" in result.output
        assert "Sent:       3" in result.output
        assert "PARTIAL" in result.output

    def test_run_then_rerun(self, tmp_path):
        first = self._invoke(tmp_path, ["run", "--dry-run"])
        assert first.exit_code == 0, first.output
        assert "Sent:       8" in first.output

        second = self._invoke(tmp_path, ["run", "--dry-run"])
        assert second.exit_code == 0, second.output
        assert "Attempted:  0" in second.output
        assert "Skipped:    8" in second.output

    def test_daily_limit_from_environment(self, tmp_path):
        result = self._invoke(tmp_path, ["run", "--dry-run"], MAX_EMAILS_PER_DAY="2")
        assert "Sent:       2" in result.output
        assert "Pending:    6" in result.output

    def test_ledger_stats_json(self, tmp_path):
        self._invoke(tmp_path, ["run", "--dry-run"])
        result = self._invoke(tmp_path, ["ledger", "stats", "--json-output"])

        assert result.exit_code == 0, result.output
        stats = json.loads(result.stdout)
        assert stats["total_sent"] == 8
        assert stats["sent_today"] == 8
        assert stats["remaining_today"] == 42

    def test_ledger_clear_and_reset_day(self, tmp_path):
        self._invoke(tmp_path, ["run", "--dry-run"])

        result = self._invoke(tmp_path, ["ledger", "reset-day"])
        assert "Daily counter reset." in result.output

        result = self._invoke(tmp_path, ["ledger", "clear", "--yes"])
        assert result.exit_code == 0, result.output

        stats = json.loads(self._invoke(tmp_path, ["ledger", "stats", "--json-output"]).stdout)
        assert stats["total_sent"] == 0

    def test_corrupt_ledger_is_a_setup_failure(self, tmp_path):
        ledger_path = tmp_path / "logs" / "email_log.json"
        ledger_path.parent.mkdir(parents=True)
        ledger_path.write_text("{broken", encoding="utf-8")

        result = self._invoke(tmp_path, ["ledger", "stats"])
        assert result.exit_code == 1
        assert "Cannot load ledger" in result.output

    def test_records_commands(self, tmp_path):
        self._invoke(tmp_path, ["collect"])

        listed = self._invoke(tmp_path, ["records", "list", "--state", "TX"])
        assert "Stored agents (2):" in listed.output

        stats = self._invoke(tmp_path, ["records", "list", "--stats"])
        assert "with_emails" in stats.output

        out = tmp_path / "export.csv"
        exported = self._invoke(tmp_path, ["records", "export", str(out)])
        assert "Exported 8 agents" in exported.output
        assert out.exists()

        deduped = self._invoke(tmp_path, ["records", "dedupe"])
        assert "Removed 0 duplicates" in deduped.output

        cleared = self._invoke(tmp_path, ["records", "clear", "--yes"])
        assert "Deleted 8 agents." in cleared.output

    def test_send_without_credentials_fails(self, tmp_path):
        result = self._invoke(tmp_path, ["send"])
        assert result.exit_code == 1
        assert "SMTP credentials not configured" in result.output

    def test_test_email_rejects_bad_address(self, tmp_path):
        result = self._invoke(tmp_path, ["test-email", "not-an-email"])
        assert result.exit_code == 2
        assert "Invalid e-mail address" in result.output

    def test_missing_config_file(self, tmp_path):
        result = self.runner.invoke(
            cli, ["--config", str(tmp_path / "missing.json"), "collect"],
            env=self._env(tmp_path),
        )
        assert result.exit_code == 1
        assert "Settings file not found" in result.output


class _StopRecorder:
    def __init__(self):
        self.stops = 0

    def request_stop(self):
        self.stops += 1


class TestStopOnSignal:
    def test_signal_requests_stop(self):
        pipeline = _StopRecorder()
        with _stop_on_signal(pipeline):
            handler = signal.getsignal(signal.SIGTERM)
            handler(signal.SIGTERM, None)
        assert pipeline.stops == 1

    def test_previous_handlers_are_restored(self):
        before_int = signal.getsignal(signal.SIGINT)
        before_term = signal.getsignal(signal.SIGTERM)

        with _stop_on_signal(_StopRecorder()):
            assert signal.getsignal(signal.SIGINT) != before_int
            assert signal.getsignal(signal.SIGTERM) != before_term

        assert signal.getsignal(signal.SIGINT) == before_int
        assert signal.getsignal(signal.SIGTERM) == before_term

    def test_handlers_restored_when_body_raises(self):
        before_int = signal.getsignal(signal.SIGINT)

        with pytest.raises(RuntimeError):
            with _stop_on_signal(_StopRecorder()):
                raise RuntimeError("boom")

        assert signal.getsignal(signal.SIGINT) == before_int
