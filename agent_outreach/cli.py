"""
CLI interface for the agent outreach system.

Commands:
    collect     Run every configured collector and store the new agents
    send        Dispatch outreach e-mail to stored agents
    run         Collect, then send
    test-email  Send a single message to check the SMTP setup
    ledger      Inspect or reset the delivery ledger
    records     List, dedupe, clear, or export stored agents
"""

from __future__ import annotations

import json
import signal
from contextlib import contextmanager
from typing import Iterator, Optional

import click

from agent_outreach import __version__
from agent_outreach.dispatch.config import OutreachSettings, load_settings
from agent_outreach.errors import ConfigError, PersistenceError, TransportError
from agent_outreach.logging_config import configure_logging


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------

@click.group()
@click.version_option(version=__version__, prog_name="agent-outreach")
@click.option("--config", "config_path", default=None, type=click.Path(dir_okay=False),
              help="Settings JSON file.")
@click.option("--log-level", default=None, help="Override the configured log level.")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str], log_level: Optional[str]) -> None:
    """Agent outreach: collect real-estate agents and send throttled e-mail."""
    ctx.ensure_object(dict)
    try:
        settings = load_settings(config_path)
    except (FileNotFoundError, ConfigError) as e:
        raise click.ClickException(str(e))
    if log_level:
        settings.log_level = log_level
    configure_logging(settings.log_level, settings.log_file or None)
    ctx.obj["settings"] = settings


# ---------------------------------------------------------------------------
# collect / send / run
# ---------------------------------------------------------------------------

@cli.command()
@click.pass_context
def collect(ctx: click.Context) -> None:
    """Run every configured collector and store the new agents."""
    from agent_outreach.transport.dry_run import DryRunTransport

    pipeline = _build_pipeline(ctx.obj["settings"], DryRunTransport())
    result = pipeline.collect()
    click.echo(result.summary())
    click.echo(f"Agents in store: {pipeline.store.count()}")


@cli.command()
@click.option("--max", "max_batch", type=click.IntRange(min=1), default=None,
              help="Maximum recipients to attempt in this batch.")
@click.option("--dry-run", is_flag=True, help="Compose messages without sending.")
@click.pass_context
def send(ctx: click.Context, max_batch: Optional[int], dry_run: bool) -> None:
    """Dispatch outreach e-mail to stored agents."""
    settings: OutreachSettings = ctx.obj["settings"]
    pipeline = _build_pipeline(settings, _build_transport(settings, dry_run))

    with _stop_on_signal(pipeline):
        result = pipeline.dispatch(max_batch=max_batch)

    click.echo(result.summary())
    _warn_persistence(pipeline.ledger)


@cli.command()
@click.option("--max", "max_batch", type=click.IntRange(min=1), default=None,
              help="Maximum recipients to attempt in this batch.")
@click.option("--dry-run", is_flag=True, help="Compose messages without sending.")
@click.pass_context
def run(ctx: click.Context, max_batch: Optional[int], dry_run: bool) -> None:
    """Collect agents, then dispatch to everyone not yet contacted."""
    settings: OutreachSettings = ctx.obj["settings"]
    pipeline = _build_pipeline(settings, _build_transport(settings, dry_run))

    with _stop_on_signal(pipeline):
        report = pipeline.run(max_batch=max_batch)

    click.echo(report.summary())
    _warn_persistence(pipeline.ledger)


# ---------------------------------------------------------------------------
# test-email
# ---------------------------------------------------------------------------

@cli.command(name="test-email")
@click.argument("address")
@click.option("--name", default="Test Agent", help="Recipient name used in the greeting.")
@click.option("--variant", type=int, default=0, help="Subject variant to use.")
@click.pass_context
def test_email(ctx: click.Context, address: str, name: str, variant: int) -> None:
    """Send a single message to ADDRESS without touching the ledger."""
    from agent_outreach.aggregation.validation import validate_identity
    from agent_outreach.dispatch.messages import MessageComposer
    from agent_outreach.errors import ValidationError
    from agent_outreach.store.records import CanonicalRecord

    settings: OutreachSettings = ctx.obj["settings"]
    try:
        identity = validate_identity(address)
    except ValidationError as e:
        raise click.BadParameter(str(e), param_hint="ADDRESS")

    transport = _build_transport(settings, dry_run=False)
    composer = MessageComposer(
        from_address=settings.smtp.from_address,
        from_name=settings.smtp.from_name,
    )
    message = composer.compose(CanonicalRecord(identity=identity, name=name), variant)

    try:
        receipt = transport.send(message)
    except TransportError as e:
        raise click.ClickException(str(e))
    if not receipt.success:
        raise click.ClickException(f"Test e-mail rejected: {receipt.detail}")

    click.echo(f"Test e-mail sent to {identity}")
    click.echo(f"  Subject:    {message.subject}")
    click.echo(f"  Message-ID: {receipt.message_id}")


# ---------------------------------------------------------------------------
# ledger
# ---------------------------------------------------------------------------

@cli.group()
def ledger() -> None:
    """Inspect or reset the delivery ledger."""


@ledger.command(name="stats")
@click.option("--json-output", is_flag=True, help="Output as JSON.")
@click.pass_context
def ledger_stats(ctx: click.Context, json_output: bool) -> None:
    """Show sent/failed totals and today's quota."""
    led = _open_ledger(ctx.obj["settings"])
    stats = led.stats()

    if json_output:
        click.echo(json.dumps(stats, indent=2))
        return

    click.echo("=== Delivery Ledger ===")
    click.echo(f"Sent today:      {stats['sent_today']}/{stats['daily_limit']}")
    click.echo(f"Remaining today: {stats['remaining_today']}")
    click.echo(f"Total sent:      {stats['total_sent']}")
    click.echo(f"Total failed:    {stats['total_failed']}")


@ledger.command(name="clear")
@click.confirmation_option(prompt="Forget every sent and failed recipient?")
@click.pass_context
def ledger_clear(ctx: click.Context) -> None:
    """Forget every recipient so the campaign can start over."""
    led = _open_ledger(ctx.obj["settings"])
    led.clear()
    _warn_persistence(led)
    click.echo("Ledger cleared.")


@ledger.command(name="reset-day")
@click.pass_context
def ledger_reset_day(ctx: click.Context) -> None:
    """Zero today's send counter."""
    led = _open_ledger(ctx.obj["settings"])
    led.reset_daily_counter()
    _warn_persistence(led)
    click.echo("Daily counter reset.")


# ---------------------------------------------------------------------------
# records
# ---------------------------------------------------------------------------

@cli.group()
def records() -> None:
    """List, dedupe, clear, or export stored agents."""


@records.command(name="list")
@click.option("--state", "-s", default=None, help="Filter by state code.")
@click.option("--source", default=None, help="Filter by collector name.")
@click.option("--limit", type=int, default=None, help="Maximum rows to show.")
@click.option("--stats", "show_stats", is_flag=True, help="Show store statistics instead.")
@click.pass_context
def records_list(
    ctx: click.Context,
    state: Optional[str],
    source: Optional[str],
    limit: Optional[int],
    show_stats: bool,
) -> None:
    """List stored agents."""
    from agent_outreach.store.records import RecordFilter

    store = _open_store(ctx.obj["settings"])

    if show_stats:
        for key, val in store.stats().items():
            click.echo(f"  {key:15s}: {val}")
        return

    rows = store.list(RecordFilter(state=state, source=source, limit=limit))
    if not rows:
        click.echo("No stored agents.")
        return

    click.echo(f"Stored agents ({len(rows)}):")
    for r in rows:
        location = ", ".join(p for p in (r.city, r.state) if p)
        click.echo(
            f"  #{r.id:<5d} | {r.name[:25]:25s} | {r.identity[:35]:35s} | {location}"
        )


@records.command(name="dedupe")
@click.pass_context
def records_dedupe(ctx: click.Context) -> None:
    """Keep one stored agent per e-mail address."""
    store = _open_store(ctx.obj["settings"])
    before = store.count()
    remaining = store.remove_duplicates()
    click.echo(f"Removed {before - len(remaining)} duplicates; {len(remaining)} agents remain.")


@records.command(name="clear")
@click.confirmation_option(prompt="Delete every stored agent?")
@click.pass_context
def records_clear(ctx: click.Context) -> None:
    """Delete every stored agent."""
    store = _open_store(ctx.obj["settings"])
    removed = store.clear()
    click.echo(f"Deleted {removed} agents.")


@records.command(name="export")
@click.argument("path", type=click.Path(dir_okay=False))
@click.pass_context
def records_export(ctx: click.Context, path: str) -> None:
    """Write stored agents to a CSV file at PATH."""
    store = _open_store(ctx.obj["settings"])
    written = store.export_csv(path)
    click.echo(f"Exported {written} agents to {path}")


# ---------------------------------------------------------------------------
# Utility
# ---------------------------------------------------------------------------

def _open_store(settings: OutreachSettings):
    from agent_outreach.store.records import RecordStore

    return RecordStore(settings.db_url)


def _open_ledger(settings: OutreachSettings):
    from agent_outreach.dispatch.ledger import DeliveryLedger

    led = DeliveryLedger(settings.ledger_path, max_per_day=settings.max_per_day)
    try:
        led.load()
    except PersistenceError as e:
        raise click.ClickException(str(e))
    return led


def _build_transport(settings: OutreachSettings, dry_run: bool):
    if dry_run:
        from agent_outreach.transport.dry_run import DryRunTransport

        click.echo("[DRY RUN] Messages will be composed but not sent.")
        return DryRunTransport()

    from agent_outreach.transport.smtp_transport import SmtpTransport

    try:
        transport = SmtpTransport(settings.smtp)
        transport.verify()
    except (ConfigError, TransportError) as e:
        raise click.ClickException(str(e))
    return transport


def _build_pipeline(settings: OutreachSettings, transport):
    from agent_outreach.pipeline import OutreachPipeline

    try:
        return OutreachPipeline.from_settings(settings, transport)
    except (ConfigError, PersistenceError) as e:
        raise click.ClickException(str(e))


@contextmanager
def _stop_on_signal(pipeline) -> Iterator[None]:
    """Turn SIGINT/SIGTERM into a graceful stop after the in-flight recipient."""

    def _handler(signum, frame) -> None:
        click.echo(f"\nReceived signal {signum}, finishing the current recipient...", err=True)
        pipeline.request_stop()

    previous = {}
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            previous[sig] = signal.signal(sig, _handler)
        except ValueError:
            # Not the main thread
            pass
    try:
        yield
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


def _warn_persistence(led) -> None:
    if led.last_persistence_error is not None:
        click.echo(
            f"Warning: ledger could not be saved ({led.last_persistence_error}). "
            "Progress from this run may be lost.",
            err=True,
        )


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
