"""
Command-line interface for endfield-codes.

Provides commands to run watch cycles, inspect tracked codes and
sources, and run the long-lived watch loop.

Usage:
    endfield-codes run       # Run one watch cycle
    endfield-codes list      # Show recently notified codes
    endfield-codes sources   # List built-in code sources
    endfield-codes status    # Show state file and lease holder
    endfield-codes watch     # Run the watch loop until interrupted
"""

import asyncio
import json
import signal

import click

from src.codes.config import CodeWatchConfig
from src.codes.registry import DEFAULT_LIST_LIMIT, CodeRegistry
from src.codes.schemas import CodeWatchRunReason
from src.codes.store import CodeStore
from src.config.settings import get_settings
from src.notifications.formatting import build_run_summary_embed, code_confidence, payload_to_text
from src.observability.logging import setup_logging
from src.observability.metrics import get_metrics


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """Endfield Codes - watch public sites for redemption codes."""
    if debug:
        import os
        os.environ["LOG_LEVEL"] = "DEBUG"
        get_settings.cache_clear()

    setup_logging()


@main.command()
@click.option(
    "--reason",
    type=click.Choice([r.value for r in CodeWatchRunReason]),
    default=CodeWatchRunReason.MANUAL.value,
    show_default=True,
    help="Why this cycle runs; manual runs never notify",
)
@click.option("--force", is_flag=True, help="Run even if CODE_WATCH_ENABLED is off")
@click.option("--json", "as_json", is_flag=True, help="Print the summary as JSON")
def run(reason: str, force: bool, as_json: bool) -> None:
    """Run one watch cycle and print its summary."""
    from src.services.code_watch import create_code_watch_service

    async def _run():
        config = CodeWatchConfig()
        if force:
            config = config.model_copy(update={"enabled": True})
        service = create_code_watch_service(config=config)
        return await service.run(CodeWatchRunReason(reason))

    summary = asyncio.run(_run())

    if as_json:
        click.echo(summary.model_dump_json(by_alias=True, indent=2))
        return

    click.echo(payload_to_text({"embeds": [build_run_summary_embed(summary)]}))
    if summary.new_codes:
        click.echo("\nNew codes:")
        for code in summary.new_codes:
            click.echo(f"  {code.code:<24} {code_confidence(code)}")


@main.command("list")
@click.option("--limit", default=DEFAULT_LIST_LIMIT, show_default=True, help="Max codes to show")
@click.option("--all", "include_all", is_flag=True, help="Include codes never notified")
@click.option("--source", "source_id", default=None, help="Only codes seen by this source id")
def list_codes(limit: int, include_all: bool, source_id: str | None) -> None:
    """Show the most recently seen codes."""
    settings = get_settings()
    registry = CodeRegistry(CodeStore(settings.data_path).load())
    codes = registry.list_latest(limit=limit, notified_only=not include_all, source_id=source_id)

    if not codes:
        if source_id:
            click.echo(f"No redeem codes have been tracked yet for {source_id}.")
        else:
            click.echo("No redeem codes have been tracked yet.")
        return

    click.echo(f"\nRedeem Codes ({len(codes)})")
    click.echo("=" * 60)
    for code in codes:
        seen = code.first_seen_at.strftime("%Y-%m-%d %H:%M UTC")
        click.echo(f"  {code.code:<24} {code_confidence(code):<28} seen {seen}")
    click.echo("\nRedeem in-game only.")


@main.command()
def sources() -> None:
    """List built-in code sources and which ones are enabled."""
    from src.ingestion.registry import ALL_CODE_SOURCES

    enabled = CodeWatchConfig().source_ids

    click.echo("\nCode Sources")
    click.echo("-" * 60)
    for source in ALL_CODE_SOURCES:
        marker = "*" if source.id in enabled else " "
        interval = source.min_interval_ms // 60_000
        click.echo(
            f" {marker} {source.id:<16} {source.tier.value:<10} "
            f"every {interval}m, {source.max_requests_per_hour}/h"
        )
        click.echo(f"     {source.url}")
    click.echo("-" * 60)
    click.echo("* enabled via CODE_WATCH_SOURCES")


@main.command()
def status() -> None:
    """Show state file location, known codes and the current lease."""
    settings = get_settings()
    store = CodeStore(settings.data_path)
    state = store.load()
    info = store.describe()
    info["known_codes"] = len(state.codes)
    info["notified_codes"] = sum(1 for code in state.codes.values() if code.is_notified)
    click.echo(json.dumps(info, indent=2))


@main.command()
@click.option("--metrics/--no-metrics", default=True, help="Enable metrics server")
def watch(metrics: bool) -> None:
    """Run the code watch loop until interrupted."""
    from src.services.code_watch import CodeWatchRunner, create_code_watch_service

    async def _run():
        config = CodeWatchConfig()
        service = create_code_watch_service(config=config)
        runner = CodeWatchRunner(
            service,
            interval_minutes=config.interval_minutes,
            startup_scan=config.startup_scan,
        )

        if metrics:
            get_metrics().start_server()

        # Handle shutdown signals
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, lambda: asyncio.create_task(runner.stop()))

        await runner.start()

    asyncio.run(_run())


if __name__ == "__main__":
    main()
