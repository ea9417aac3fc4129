"""Shared utility functions for buildwatch.

Provides async command execution, duration formatting and Rich-based console
helpers.  Every public function is designed to be safe and side-effect-free
where possible, with clear error messages when something goes wrong.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.table import Table

console = Console()

# ---------------------------------------------------------------------------
# Async command execution
# ---------------------------------------------------------------------------


async def run_command(
    cmd: list[str],
    cwd: str | Path | None = None,
    timeout: float | None = None,
) -> tuple[int, str, str]:
    """Run a command to completion and capture its output.

    Args:
        cmd: Argument vector; the first item is the executable.
        cwd: Working directory for the child process.
        timeout: Maximum wall-clock seconds before the process is killed.
            ``None`` waits for as long as the process runs.

    Returns:
        A ``(returncode, stdout, stderr)`` tuple.

    Raises:
        OSError: If the process cannot be started (missing executable,
            permission denied, bad working directory).
    """
    process = await asyncio.create_subprocess_exec(
        *cmd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        cwd=str(cwd) if cwd else None,
    )

    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(
            process.communicate(), timeout=timeout
        )
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        return (-1, "", f"Command timed out after {timeout}s: {' '.join(cmd)}")

    stdout_str = (stdout_bytes or b"").decode("utf-8", errors="replace").strip()
    stderr_str = (stderr_bytes or b"").decode("utf-8", errors="replace").strip()
    return (process.returncode or 0, stdout_str, stderr_str)


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def format_duration(seconds: float) -> str:
    """Render seconds the way build times are shown: ``3.7s``, ``1m 5s``, ``1h 1m 1s``."""
    if seconds < 60:
        return f"{max(seconds, 0.0):.1f}s"
    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h {minutes}m {secs}s"
    return f"{minutes}m {secs}s"


# ---------------------------------------------------------------------------
# Rich output helpers
# ---------------------------------------------------------------------------


def print_summary_table(data: dict[str, str], title: str = "Summary") -> None:
    """Print a two-column key/value summary table."""
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Item", style="dim", no_wrap=True)
    table.add_column("Value")

    for key, value in data.items():
        table.add_row(key, str(value))

    console.print(table)


# Compiler text is full of square brackets (EDN maps, vectors), so messages
# are always escaped before Rich sees them.


def print_success(message: str) -> None:
    console.print(f"[bold green]{escape(message)}[/bold green]")


def print_error(message: str) -> None:
    console.print(f"[bold red]{escape(message)}[/bold red]")


def print_warning(message: str) -> None:
    console.print(f"[yellow]{escape(message)}[/yellow]")
