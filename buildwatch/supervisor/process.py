"""Build tool process supervision.

Spawns the cljsbuild command for a project, pumps its stdout and stderr
through a per-process :class:`ChunkDispatcher`, and publishes the resulting
events on an :class:`EventChannel`.  When the process has exited and its
output is drained, a single :class:`FinishedEvent` is published and the
channel is closed.

Exit codes are recorded but never interpreted: whether a build succeeded is
decided by the text the compiler printed.
"""

from __future__ import annotations

import asyncio
import codecs
import shlex
import subprocess
import time
from collections.abc import Callable, Sequence
from enum import Enum
from pathlib import Path
from typing import Optional

from rich.markup import escape

from ..config import Command, Config
from ..parser.dispatcher import STDERR, STDOUT, ChunkDispatcher
from ..parser.events import FinishedEvent, OutputEvent, SpawnFailedEvent
from ..utils import console
from .channel import EventChannel


class BuildMode(str, Enum):
    """How the build tool is run."""

    AUTO = "auto"
    ONCE = "once"
    CLEAN = "clean"


def build_argv(
    command: Command,
    extra: Sequence[str] = (),
    *,
    shell: bool = False,
) -> list[str]:
    """Turn a configured command into an argument vector.

    Strings are tokenized with :func:`shlex.split` so quoted arguments
    survive; lists are used as given.  With *shell* the command line is
    handed to ``cmd /c`` instead, which is how Windows finds ``lein.bat``.

    Raises:
        ValueError: If the command is empty.
    """
    if isinstance(command, str):
        args = shlex.split(command)
    else:
        args = list(command)
    if not args:
        raise ValueError("Empty build command")
    args.extend(extra)

    if shell:
        return ["cmd", "/c", subprocess.list2cmdline(args)]
    return args


class BuildProcess:
    """One execution of the build tool.

    Attributes:
        project_key: Key the process was started for.
        working_directory: Directory the tool runs in.
        mode: :class:`BuildMode` of this run.
        argv: Argument vector that was (or will be) executed.
        channel: Where events are published.
        dispatcher: Output parser owned by this process alone.
        returncode: OS exit status once the process has exited.
    """

    def __init__(
        self,
        project_key: str,
        working_directory: Path,
        mode: BuildMode,
        argv: list[str],
        *,
        config: Config | None = None,
        on_finished: Optional[Callable[["BuildProcess"], None]] = None,
    ) -> None:
        self.project_key = project_key
        self.working_directory = working_directory
        self.mode = mode
        self.argv = argv
        self.config = config or Config()
        self.channel = EventChannel()
        self.dispatcher = ChunkDispatcher()
        self.returncode: Optional[int] = None
        self.started_at: Optional[float] = None
        self.finished_at: Optional[float] = None

        self._on_finished = on_finished
        self._process: Optional[asyncio.subprocess.Process] = None
        self._task: Optional[asyncio.Task[None]] = None
        self._finished = asyncio.Event()
        self._finalized = False
        self._terminating = False

    # -- Properties ----------------------------------------------------------

    @property
    def id(self) -> Optional[int]:
        """OS process id, ``None`` if the process never started."""
        return self._process.pid if self._process is not None else None

    @property
    def running(self) -> bool:
        return self._process is not None and not self._finalized

    @property
    def finished(self) -> bool:
        return self._finalized

    @property
    def duration_seconds(self) -> float:
        if self.started_at is None:
            return 0.0
        end = self.finished_at if self.finished_at is not None else time.monotonic()
        return end - self.started_at

    # -- Lifecycle -----------------------------------------------------------

    async def start(self) -> EventChannel:
        """Spawn the process and start pumping its output.

        A process that cannot be spawned publishes :class:`SpawnFailedEvent`
        followed by :class:`FinishedEvent`; nothing is raised.
        """
        self.started_at = time.monotonic()
        try:
            self._process = await asyncio.create_subprocess_exec(
                *self.argv,
                cwd=str(self.working_directory),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            message = f"Could not start '{' '.join(self.argv)}': {exc}"
            console.print(f"[red]{escape(message)}[/red]")
            self._publish(SpawnFailedEvent(message=message))
            self._finalize()
            return self.channel

        console.print(
            f"[dim]Started {escape(' '.join(self.argv))} "
            f"(pid {self._process.pid}) in {escape(str(self.working_directory))}[/dim]"
        )
        self._task = asyncio.create_task(self._supervise())
        return self.channel

    async def wait(self) -> Optional[int]:
        """Wait until the channel is closed; return the exit status."""
        await self._finished.wait()
        if self._task is not None:
            await asyncio.shield(self._task)
        return self.returncode

    async def terminate(self, timeout: float | None = None) -> bool:
        """Ask the process to stop, killing it after *timeout* seconds.

        Returns ``False`` if there was nothing to stop.  The supervisor still
        publishes the closing :class:`FinishedEvent`.
        """
        if not self.running or self._process is None:
            return False
        grace = self.config.stop_timeout if timeout is None else timeout
        self._terminating = True

        try:
            self._process.terminate()
        except ProcessLookupError:
            pass

        try:
            await asyncio.wait_for(asyncio.shield(self._finished.wait()), timeout=grace)
        except asyncio.TimeoutError:
            console.print(
                f"[yellow]pid {self._process.pid} ignored terminate after {grace}s, killing[/yellow]"
            )
            try:
                self._process.kill()
            except ProcessLookupError:
                pass
            await self._finished.wait()
        return True

    # -- Internals -----------------------------------------------------------

    async def _supervise(self) -> None:
        assert self._process is not None
        process = self._process
        pumps = [
            asyncio.create_task(self._pump(process.stdout, STDOUT)),
            asyncio.create_task(self._pump(process.stderr, STDERR)),
        ]
        try:
            self.returncode = await process.wait()
            # Grandchildren may inherit the pipes and keep them open.
            _, pending = await asyncio.wait(pumps, timeout=self.config.stop_timeout)
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
        finally:
            if process.returncode is None:
                try:
                    process.kill()
                except ProcessLookupError:
                    pass
            for task in pumps:
                task.cancel()
            self._report_pump_failures(pumps)
            self._finalize()

        verb = "stopped" if self._terminating else "exited"
        console.print(
            f"[dim]{escape(' '.join(self.argv))} {verb} with code {self.returncode} "
            f"after {self.duration_seconds:.1f}s[/dim]"
        )

    async def _pump(self, reader: Optional[asyncio.StreamReader], stream: str) -> None:
        if reader is None:
            return
        decoder = codecs.getincrementaldecoder(self.config.encoding)(errors="replace")
        while True:
            data = await reader.read(self.config.read_chunk_size)
            if not data:
                tail = decoder.decode(b"", final=True)
                if tail:
                    self._publish_all(self.dispatcher.feed(tail, stream))
                self._publish_all(self.dispatcher.flush(stream))
                return
            text = decoder.decode(data)
            if text:
                self._publish_all(self.dispatcher.feed(text, stream))

    def _report_pump_failures(self, pumps: list[asyncio.Task[None]]) -> None:
        for task in pumps:
            if not task.done() or task.cancelled():
                continue
            exc = task.exception()
            if exc is not None:
                console.print(
                    f"[red]Output reader for pid {self.id} failed: {escape(repr(exc))}[/red]"
                )

    def _publish(self, event: OutputEvent) -> None:
        self.channel.put(event)

    def _publish_all(self, events: list[OutputEvent]) -> None:
        for event in events:
            self._publish(event)

    def _finalize(self) -> None:
        """Publish ``Finished`` and close the channel, exactly once."""
        if self._finalized:
            return
        self._finalized = True
        self.finished_at = time.monotonic()
        self._publish_all(self.dispatcher.flush())
        self._publish(FinishedEvent())
        self.channel.close()
        self._finished.set()
        if self._on_finished is not None:
            self._on_finished(self)
