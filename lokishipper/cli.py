#!/usr/bin/env python3
"""
lokishipper diagnostic CLI

Sends a probe batch to a Loki push endpoint and inspects the local
persistence cache.

Usage:
    lokishipper-check probe --endpoint http://loki:3100/loki/api/v1/push --app demo --environment dev
    lokishipper-check cache ~/.cache/lokishipper/loki_logs_cache.json

Endpoint, app, environment and credentials fall back to the LOKI_*
environment variables (a .env file is loaded if present).
"""

import argparse
import os
import sys
import time
from datetime import UTC, datetime
from pathlib import Path

import httpx
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .auth import AuthMethod, BasicAuth, BearerAuth, NoAuth
from .config import LokiConfig
from .errors import InvalidResponseError, LokiError
from .models import LogEntry, LogLevel
from .persistence import DEFAULT_FILENAME, FileLogPersistence, default_cache_dir
from .transport import LokiTransport, format_line

console = Console()


def build_probe_entries(count: int) -> list[LogEntry]:
    """One probe entry per level, repeated until ``count`` entries exist."""
    levels = list(LogLevel)
    return [
        LogEntry(
            level=levels[i % len(levels)],
            message="lokishipper probe",
            metadata={"probe": str(i + 1), "of": str(count)},
        )
        for i in range(count)
    ]


def run_probe(config: LokiConfig, count: int = 5, client: httpx.Client | None = None) -> dict:
    """
    Send one probe batch and report the outcome.

    Returns:
        Dict with status ("success" or "error"), entries, streams,
        elapsed_ms and, on failure, status_code and message.
    """
    if count < 1:
        raise ValueError("count must be >= 1")

    entries = build_probe_entries(count)
    transport = LokiTransport(config, client=client)
    result = {
        "status": "success",
        "entries": len(entries),
        "streams": len(transport.build_payload(entries).streams),
        "elapsed_ms": 0.0,
    }

    started = time.perf_counter()
    try:
        transport.send(entries)
    except InvalidResponseError as e:
        result.update(status="error", status_code=e.status_code, message=str(e))
    except LokiError as e:
        result.update(status="error", message=str(e))
    finally:
        result["elapsed_ms"] = (time.perf_counter() - started) * 1000
        transport.close()

    return result


def display_probe(config: LokiConfig, result: dict, out: Console | None = None):
    """Print a probe result."""
    out = out or console
    summary = (
        f"Endpoint: {escape(config.endpoint)}\n"
        f"Labels: app={escape(config.app)} environment={escape(config.environment)}\n"
        f"Compression: {'gzip' if config.compression_enabled else 'off'}\n"
        f"Entries: {result['entries']} in {result['streams']} streams\n"
        f"Elapsed: {result['elapsed_ms']:.0f}ms"
    )
    if result["status"] == "success":
        out.print(Panel(summary, title="[green]✓ Push accepted[/green]"))
    else:
        detail = f"{summary}\nError: {escape(result['message'])}"
        out.print(Panel(detail, title="[red]✗ Push failed[/red]"))


def display_cache(path: Path, out: Console | None = None) -> int:
    """Print the entries stored in a persistence file without clearing it."""
    out = out or console
    store = FileLogPersistence(path)
    try:
        entries = store.peek()
    except LokiError as e:
        out.print(f"[red]✗[/red] Could not read {escape(str(path))}: {escape(str(e))}")
        return 1

    if not entries:
        out.print(f"[yellow]No pending entries in {escape(str(path))}[/yellow]")
        return 0

    table = Table(title=f"Pending entries ({len(entries)})", show_header=True)
    table.add_column("Timestamp", style="cyan")
    table.add_column("Level", style="magenta")
    table.add_column("Line")

    for entry in entries:
        when = datetime.fromtimestamp(entry.timestamp / 1_000_000_000, tz=UTC)
        table.add_row(when.isoformat(), entry.level.value, escape(format_line(entry)))

    out.print(table)
    return 0


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1, got {value}")
    return number


def _auth_from_args(args: argparse.Namespace) -> AuthMethod:
    if args.username:
        return BasicAuth(args.username, args.password or "")
    if args.token:
        return BearerAuth(args.token)
    return NoAuth()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="lokishipper diagnostic tool")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    probe_parser = subparsers.add_parser("probe", help="Send a probe batch to Loki")
    probe_parser.add_argument("--endpoint", default=os.environ.get("LOKI_ENDPOINT"))
    probe_parser.add_argument("--app", default=os.environ.get("LOKI_APP", "lokishipper-check"))
    probe_parser.add_argument("--environment", default=os.environ.get("LOKI_ENVIRONMENT", "dev"))
    probe_parser.add_argument("--username", default=os.environ.get("LOKI_USERNAME"))
    probe_parser.add_argument("--password", default=os.environ.get("LOKI_PASSWORD"))
    probe_parser.add_argument("--token", default=os.environ.get("LOKI_TOKEN"))
    probe_parser.add_argument("--gzip", action="store_true", help="Compress the request body")
    probe_parser.add_argument(
        "--count", type=_positive_int, default=5, help="Number of probe entries (>= 1)"
    )

    cache_parser = subparsers.add_parser("cache", help="Show pending entries in a cache file")
    cache_parser.add_argument(
        "path", nargs="?", default=str(default_cache_dir() / DEFAULT_FILENAME)
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "cache":
        return display_cache(Path(args.path))

    if args.command == "probe":
        if not args.endpoint:
            console.print("[red]✗[/red] --endpoint or LOKI_ENDPOINT is required")
            return 2
        try:
            config = LokiConfig(
                endpoint=args.endpoint,
                app=args.app,
                environment=args.environment,
                authentication=_auth_from_args(args),
                compression_enabled=args.gzip,
            )
        except ValueError as e:
            console.print(f"[red]✗[/red] {escape(str(e))}")
            return 2
        result = run_probe(config, count=args.count)
        display_probe(config, result)
        return 0 if result["status"] == "success" else 1

    parser.print_help()
    return 2


if __name__ == "__main__":
    sys.exit(main())
