"""
Outreach configuration model.

Defines the SMTP account and the global campaign settings (daily quota,
throttle, retry policy, collector concurrency). Settings load from an
optional JSON file; environment variables override the file, and SMTP
credentials are only ever read from the environment.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

from agent_outreach.aggregation.validation import US_STATES
from agent_outreach.errors import ConfigError


@dataclass
class SmtpConfig:
    """SMTP account used to send outreach e-mail.

    Attributes:
        host: SMTP server host.
        port: SMTP server port.
        use_tls: Upgrade the connection with STARTTLS.
        username: Login user (loaded from SMTP_USER).
        password: Login password or app password (loaded from SMTP_PASS).
        from_address: Envelope and header sender address.
        from_name: Display name shown in the From header.
        timeout: Socket timeout in seconds.
    """

    host: str = "smtp.gmail.com"
    port: int = 587
    use_tls: bool = True
    username: str = ""
    password: str = ""
    from_address: str = ""
    from_name: str = "Nadav"
    timeout: float = 30.0

    def has_credentials(self) -> bool:
        return bool(self.username and self.password)


@dataclass
class OutreachSettings:
    """Global campaign settings.

    Attributes:
        max_per_day: Successful sends allowed per calendar day.
        per_message_delay_ms: Throttle between consecutive attempted sends.
        max_attempts: Delivery attempts per recipient before FAILED.
        backoff_base_ms: Retry backoff unit; attempt n waits n units.
        collector_concurrency_limit: Collectors allowed to run at once.
        max_records_per_source: Cap on records taken from one collector.
        collector_timeout: Network timeout for collectors, in seconds.
        allowed_regions: Region codes a record must belong to.
        ledger_path: Location of the delivery ledger snapshot.
        db_url: SQLAlchemy URL of the record store.
        sources: Collector definitions (see collectors.registry).
        smtp: Outbound SMTP account.
        log_level: Root log level name.
        log_file: Rotating log file path ("" disables file logging).
    """

    max_per_day: int = 50
    per_message_delay_ms: int = 10_000
    max_attempts: int = 3
    backoff_base_ms: int = 5_000
    collector_concurrency_limit: int = 2
    max_records_per_source: int = 100
    collector_timeout: float = 10.0
    allowed_regions: list[str] = field(default_factory=lambda: sorted(US_STATES))
    ledger_path: str = "logs/email_log.json"
    db_url: str = "sqlite:///agents.db"
    sources: list[dict[str, Any]] = field(default_factory=lambda: [{"type": "sample"}])
    smtp: SmtpConfig = field(default_factory=SmtpConfig)
    log_level: str = "INFO"
    log_file: str = "logs/outreach.log"

    @property
    def per_message_delay(self) -> float:
        """Throttle in seconds."""
        return self.per_message_delay_ms / 1000.0

    @property
    def backoff_base(self) -> float:
        """Backoff unit in seconds."""
        return self.backoff_base_ms / 1000.0

    def validate(self) -> None:
        """Raise ConfigError if any numeric setting is out of range."""
        if self.max_per_day < 0:
            raise ConfigError(f"max_per_day must be >= 0, got {self.max_per_day}")
        if self.max_attempts < 1:
            raise ConfigError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.per_message_delay_ms < 0:
            raise ConfigError("per_message_delay_ms must be >= 0")
        if self.backoff_base_ms < 0:
            raise ConfigError("backoff_base_ms must be >= 0")
        if self.collector_concurrency_limit < 1:
            raise ConfigError("collector_concurrency_limit must be >= 1")


# Environment variable -> (settings attribute, type)
_ENV_OVERRIDES: dict[str, tuple[str, type]] = {
    "MAX_EMAILS_PER_DAY": ("max_per_day", int),
    "EMAIL_DELAY": ("per_message_delay_ms", int),
    "EMAIL_RETRY_ATTEMPTS": ("max_attempts", int),
    "EMAIL_BACKOFF_BASE": ("backoff_base_ms", int),
    "COLLECTOR_CONCURRENCY": ("collector_concurrency_limit", int),
    "MAX_AGENTS_PER_SOURCE": ("max_records_per_source", int),
    "LEDGER_PATH": ("ledger_path", str),
    "DATABASE_URL": ("db_url", str),
    "LOG_LEVEL": ("log_level", str),
    "LOG_FILE": ("log_file", str),
}

_SMTP_ENV_OVERRIDES: dict[str, tuple[str, type]] = {
    "SMTP_HOST": ("host", str),
    "SMTP_PORT": ("port", int),
    "SMTP_USER": ("username", str),
    "SMTP_PASS": ("password", str),
    "EMAIL_FROM": ("from_address", str),
    "FROM_NAME": ("from_name", str),
}


def _coerce(name: str, raw: Any, kind: type) -> Any:
    try:
        return kind(raw)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid value for {name}: {raw!r}")


def load_settings(
    config_path: Optional[str | Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> OutreachSettings:
    """Load OutreachSettings from a JSON file and the environment.

    The JSON file is optional. Its keys match the OutreachSettings
    attribute names, with SMTP settings under an ``smtp`` object.
    Environment variables (MAX_EMAILS_PER_DAY, EMAIL_DELAY, SMTP_USER, ...)
    take precedence over the file.

    Args:
        config_path: Path to the settings JSON file, or None.
        environ: Environment mapping; defaults to os.environ.

    Returns:
        A validated OutreachSettings instance.

    Raises:
        FileNotFoundError: If config_path is given and does not exist.
        ConfigError: If a value is malformed or out of range.
    """
    env = os.environ if environ is None else environ
    raw: dict[str, Any] = {}

    if config_path is not None:
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Settings file not found: {path}")
        with open(path, "r", encoding="utf-8") as f:
            try:
                raw = json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigError(f"Settings file {path} is not valid JSON: {e}") from e

    # --- SMTP account ---
    smtp_raw = raw.get("smtp", {})
    smtp = SmtpConfig(
        host=smtp_raw.get("host", "smtp.gmail.com"),
        port=_coerce("smtp.port", smtp_raw.get("port", 587), int),
        use_tls=bool(smtp_raw.get("use_tls", True)),
        from_address=smtp_raw.get("from_address", ""),
        from_name=smtp_raw.get("from_name", "Nadav"),
        timeout=_coerce("smtp.timeout", smtp_raw.get("timeout", 30.0), float),
    )
    for var, (attr, kind) in _SMTP_ENV_OVERRIDES.items():
        if env.get(var):
            setattr(smtp, attr, _coerce(var, env[var], kind))

    # --- Campaign settings ---
    defaults = OutreachSettings()
    settings = OutreachSettings(
        max_per_day=_coerce("max_per_day", raw.get("max_per_day", defaults.max_per_day), int),
        per_message_delay_ms=_coerce(
            "per_message_delay_ms",
            raw.get("per_message_delay_ms", defaults.per_message_delay_ms),
            int,
        ),
        max_attempts=_coerce("max_attempts", raw.get("max_attempts", defaults.max_attempts), int),
        backoff_base_ms=_coerce(
            "backoff_base_ms", raw.get("backoff_base_ms", defaults.backoff_base_ms), int
        ),
        collector_concurrency_limit=_coerce(
            "collector_concurrency_limit",
            raw.get("collector_concurrency_limit", defaults.collector_concurrency_limit),
            int,
        ),
        max_records_per_source=_coerce(
            "max_records_per_source",
            raw.get("max_records_per_source", defaults.max_records_per_source),
            int,
        ),
        collector_timeout=_coerce(
            "collector_timeout", raw.get("collector_timeout", defaults.collector_timeout), float
        ),
        allowed_regions=list(raw.get("allowed_regions", defaults.allowed_regions)),
        ledger_path=raw.get("ledger_path", defaults.ledger_path),
        db_url=raw.get("db_url", defaults.db_url),
        sources=list(raw.get("sources", defaults.sources)),
        smtp=smtp,
        log_level=raw.get("log_level", defaults.log_level),
        log_file=raw.get("log_file", defaults.log_file),
    )
    for var, (attr, kind) in _ENV_OVERRIDES.items():
        if env.get(var):
            setattr(settings, attr, _coerce(var, env[var], kind))

    settings.validate()
    return settings
