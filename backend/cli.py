"""
Proxy Monitor: terminal front-end for the proxy's request log.

Usage:
    python cli.py watch [--filter TEXT | --quick chat]   live, filtered feed
    python cli.py stats                                  current counters
    python cli.py record on|off|toggle                   flip request recording
    python cli.py clear [--yes]                          wipe the proxy's log history

The proxy engine API is taken from PROXY_API_URL (see config.py).
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from config import PROXY_API_URL
from models.request_log import FeedView, LogRecord, Stats
from monitor.confirm import auto_confirm, prompt_confirm
from monitor.errors import CommandError
from monitor.filters import QUICK_FILTERS, matches, quick_filter
from monitor.formatting import format_timestamp, token_usage
from monitor.ingestion import IngestionController
from proxy.client import ProxyClient


def _setup_logging(verbose: bool = False):
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="[%(name)s] %(message)s",
        handlers=[logging.StreamHandler()],
    )


# ── Rendering ─────────────────────────────────────────────────────────────────


def _status_text(record: LogRecord) -> str:
    style = "green" if record.is_success else "red"
    return f"[{style}]{record.status}[/{style}]"


def _usage_text(record: LogRecord) -> str:
    usage = token_usage(record)
    return f"{usage[0]}/{usage[1]}" if usage else "-"


def _stats_line(stats: Stats, recording: bool) -> str:
    state = "[red bold]● REC[/red bold]" if recording else "[dim]○ paused[/dim]"
    return (
        f"{state}  [blue]{stats.total} total[/blue]  "
        f"[green]{stats.success} ok[/green]  [red]{stats.error} err[/red]"
    )


def _render_view(console, view: FeedView) -> None:
    from rich.table import Table

    table = Table(title=f"Proxy requests ({len(view.records)}/{view.total_records})")
    table.add_column("Status", width=6, justify="center")
    table.add_column("Method", width=7)
    table.add_column("Model", width=22)
    table.add_column("URL")
    table.add_column("Tokens", justify="right", width=11)
    table.add_column("Duration", justify="right", width=9)
    table.add_column("Time", width=8)
    for record in view.records:
        table.add_row(*_row(record))
    console.print(table)
    console.print(_stats_line(view.stats, view.recording))


def _row(record: LogRecord) -> list[str]:
    return [
        _status_text(record),
        record.method,
        record.model or "-",
        record.url,
        _usage_text(record),
        f"{record.duration}ms",
        format_timestamp(record.timestamp),
    ]


def _resolve_query(args) -> str:
    if args.quick:
        return quick_filter(args.quick).query
    return args.filter or ""


# ── Subcommands ───────────────────────────────────────────────────────────────


async def _watch(args, console) -> int:
    query = _resolve_query(args)
    async with ProxyClient(args.url) as client:
        controller = IngestionController(client)

        def show(record: LogRecord, stats: Stats) -> None:
            if matches(record, query):
                console.print(
                    f"{_status_text(record)} {record.method:<6} {record.url}  "
                    f"[dim]{record.model or ''} {record.duration}ms {_usage_text(record)}[/dim]"
                )

        controller.add_listener(show)
        await controller.activate()
        _render_view(console, controller.view(query, limit=args.limit))
        console.print("[dim]Watching for new requests, Ctrl+C to stop.[/dim]")
        try:
            await asyncio.Event().wait()
        finally:
            controller.deactivate()
    return 0


async def _stats(args, console) -> int:
    async with ProxyClient(args.url) as client:
        controller = IngestionController(client)
        await controller.activate()
        controller.deactivate()
        view = controller.view()
    console.print(_stats_line(view.stats, view.recording))
    return 0


async def _record(args, console) -> int:
    async with ProxyClient(args.url) as client:
        controller = IngestionController(client)
        await controller.recording.initialize()
        try:
            if args.state == "on":
                state = await controller.recording.enable()
            elif args.state == "off":
                state = await controller.recording.disable()
            else:
                state = await controller.recording.toggle()
        except CommandError as e:
            console.print(f"[red]{e}[/red]")
            return 1
    console.print(f"Recording {state.value}")
    return 0


async def _clear(args, console) -> int:
    async with ProxyClient(args.url) as client:
        controller = IngestionController(client, confirm=auto_confirm if args.yes else prompt_confirm)
        try:
            cleared = await controller.clear_logs()
        except CommandError as e:
            console.print(f"[red]{e}[/red]")
            return 1
    console.print("Logs cleared." if cleared else "Nothing cleared.")
    return 0


COMMANDS = {
    "watch": _watch,
    "stats": _stats,
    "record": _record,
    "clear": _clear,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Proxy request monitor")
    parser.add_argument("--url", default=PROXY_API_URL, help="proxy engine API base URL")
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    watch = sub.add_parser("watch", help="show the live request feed")
    group = watch.add_mutually_exclusive_group()
    group.add_argument("--filter", default="", help="substring to match on url/method/model/status")
    group.add_argument("--quick", choices=[f.name for f in QUICK_FILTERS], help="quick filter preset")
    watch.add_argument("--limit", type=int, default=50, help="history rows to print")

    sub.add_parser("stats", help="print request counters")

    record = sub.add_parser("record", help="turn request recording on or off")
    record.add_argument("state", choices=["on", "off", "toggle"])

    clear = sub.add_parser("clear", help="clear the proxy's request history")
    clear.add_argument("--yes", action="store_true", help="skip the confirmation prompt")
    return parser


def main(argv=None) -> int:
    from rich.console import Console

    args = build_parser().parse_args(argv)
    _setup_logging(args.verbose)
    console = Console()
    try:
        return asyncio.run(COMMANDS[args.command](args, console))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main())
