"""Console front end for buildwatch.

Renders the event stream of a build with Rich.

Usage::

    python -m buildwatch once path/to/project.clj
    python -m buildwatch auto path/to/project dev
    python -m buildwatch clean path/to/project
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from pathlib import Path
from typing import Optional

from rich.markup import escape
from rich.panel import Panel

from .config import Config
from .errors import BuildMonitorError
from .lifecycle import BuildMonitor
from .parser.events import (
    ErrorEvent,
    FinishedEvent,
    OutputEvent,
    SpawnFailedEvent,
    StartEvent,
    SuccessEvent,
    WarningEvent,
)
from .supervisor.channel import EventChannel
from .utils import (
    console,
    format_duration,
    print_error,
    print_summary_table,
    print_warning,
)


def render_event(event: OutputEvent) -> None:
    """Print a single event."""
    if isinstance(event, StartEvent):
        console.print(f"[cyan]Compiling[/cyan] {escape(event.target)} ...")
    elif isinstance(event, SuccessEvent):
        console.print(
            f"[bold green]Compiled[/bold green] in {format_duration(event.elapsed_seconds)}"
        )
    elif isinstance(event, WarningEvent):
        for message in event.messages:
            print_warning(f"warning: {message}")
    elif isinstance(event, ErrorEvent):
        console.print(
            Panel(escape(event.message or "Compilation failed"), title="Build Failed", border_style="red")
        )
    elif isinstance(event, SpawnFailedEvent):
        print_error(event.message)
    elif isinstance(event, FinishedEvent):
        console.print("[dim]Build process finished.[/dim]")


async def consume(channel: EventChannel) -> dict[str, int]:
    """Render every event of *channel*; return counts per event kind."""
    counts: dict[str, int] = {}
    async for event in channel:
        counts[event.kind] = counts.get(event.kind, 0) + 1
        render_event(event)
    return counts


async def _run(args: argparse.Namespace, config: Config) -> int:
    monitor = BuildMonitor(config)
    builds = list(args.builds)

    if args.command == "clean":
        ok = await monitor.clean(args.project, builds=builds)
        return 0 if ok else 1

    if args.command == "once":
        channel = await monitor.build_once(args.project, builds)
    else:
        channel = await monitor.start_auto(args.project, builds)
        _install_stop_handler(monitor, args.project)

    counts = await consume(channel)
    print_summary_table(
        {kind: str(count) for kind, count in sorted(counts.items())},
        title="Build events",
    )
    failed = counts.get("error", 0) + counts.get("spawn_failed", 0)
    if args.command == "once" and failed:
        return 1
    return 0


def _install_stop_handler(monitor: BuildMonitor, project: str) -> None:
    """Stop the watcher on Ctrl-C instead of tearing down the loop."""
    loop = asyncio.get_running_loop()

    def _stop() -> None:
        console.print("[yellow]Stopping auto build...[/yellow]")
        loop.create_task(monitor.stop_auto(project))

    try:
        loop.add_signal_handler(signal.SIGINT, _stop)
    except (NotImplementedError, RuntimeError):
        # Windows event loops have no signal handler support.
        pass


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="buildwatch",
        description="Run cljsbuild and report compiler events",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  python -m buildwatch once ~/code/app/project.clj\n"
            "  python -m buildwatch auto ~/code/app dev\n"
            "  python -m buildwatch clean ~/code/app\n"
        ),
    )
    parser.add_argument(
        "command",
        choices=("once", "auto", "clean"),
        help="Build mode",
    )
    parser.add_argument(
        "project",
        help="Project directory or path to its project.clj",
    )
    parser.add_argument(
        "builds",
        nargs="*",
        help="cljsbuild build ids (default: all builds)",
    )
    parser.add_argument(
        "--config", "-c",
        default=None,
        help="JSON configuration file (default: environment variables)",
    )
    return parser


def main(argv: Optional[list[str]] = None) -> None:
    """CLI entry point for ``python -m buildwatch``."""
    args = build_parser().parse_args(argv)

    if args.config:
        config_path = Path(args.config)
        if not config_path.exists():
            print_error(f"Error: config file not found: {config_path}")
            sys.exit(2)
        config = Config.load(config_path)
    else:
        config = Config.from_env()

    try:
        code = asyncio.run(_run(args, config))
    except BuildMonitorError as exc:
        print_error(f"Error: {exc}")
        sys.exit(2)
    sys.exit(code)


if __name__ == "__main__":
    main()
