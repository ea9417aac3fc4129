"""Lifecycle API used by front ends.

:class:`BuildMonitor` is the single entry point for starting and stopping
build processes.  Streaming calls (:meth:`BuildMonitor.start_auto`,
:meth:`BuildMonitor.build_once`) return an :class:`EventChannel` that the
caller reads until it closes; :meth:`BuildMonitor.clean` just reports
success or failure through callbacks.

Every process gets its own dispatcher, parser state and channel.  The
monitor only keeps a table of live processes so that watch mode can be
stopped by project key.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Sequence
from pathlib import Path
from typing import Any, Optional, Union

from rich.markup import escape

from .config import Config
from .errors import InvalidProjectError
from .supervisor.channel import EventChannel
from .supervisor.process import BuildMode, BuildProcess, build_argv
from .supervisor.registry import ProcessRegistry
from .utils import console, print_error, print_success, run_command

Callback = Callable[[], Union[None, Awaitable[None]]]


async def _invoke(callback: Optional[Callback]) -> None:
    if callback is None:
        return
    result = callback()
    if inspect.isawaitable(result):
        await result


class BuildMonitor:
    """Starts, tracks and stops cljsbuild processes.

    Args:
        config: Commands and process settings.  Defaults to ``Config()``.
    """

    def __init__(self, config: Config | None = None) -> None:
        self.config = config or Config()
        self.registry = ProcessRegistry()

    # -- Public API ----------------------------------------------------------

    async def start_auto(
        self, project_key: str | Path, builds: Sequence[str] = ()
    ) -> EventChannel:
        """Start ``cljsbuild auto`` for a project.

        The returned channel stays open for as long as the watcher runs:
        until :meth:`stop_auto` is called or the process dies on its own.

        Raises:
            ProcessAlreadyRunningError: If the project already has a live process.
            InvalidProjectError: If the project directory does not exist.
        """
        process = await self._spawn(project_key, BuildMode.AUTO, builds)
        return process.channel

    async def stop_auto(self, project_key: str | Path) -> bool:
        """Terminate the watch process of a project.

        The process' channel still receives its ``Finished`` event.  Returns
        ``False`` when the project has no live process.
        """
        key = self.key_for(project_key)
        process = self.registry.get(key)
        if process is None:
            return False
        console.print(f"[dim]Stopping build process for {escape(key)}[/dim]")
        return await process.terminate(self.config.stop_timeout)

    async def build_once(
        self, project_key: str | Path, builds: Sequence[str] = ()
    ) -> EventChannel:
        """Run a single ``cljsbuild once`` pass.

        The channel closes by itself once the compiler exits.

        Raises:
            ProcessAlreadyRunningError: If the project already has a live process.
            InvalidProjectError: If the project directory does not exist.
        """
        process = await self._spawn(project_key, BuildMode.ONCE, builds)
        return process.channel

    async def clean(
        self,
        cwd: str | Path,
        on_success: Optional[Callback] = None,
        on_error: Optional[Callback] = None,
        builds: Sequence[str] = (),
    ) -> bool:
        """Run ``cljsbuild clean`` to completion.

        Exactly one of the callbacks is invoked; callbacks may be plain
        functions or coroutine functions.  No events are produced and no
        message is extracted from a failure.  A clean that outlives
        ``config.clean_timeout`` is killed and counts as a failure.

        Returns:
            ``True`` if the clean command exited with status 0.
        """
        workdir = self.config.resolve_cwd(cwd)
        argv = build_argv(
            self.config.commands.clean, builds, shell=self.config.wrap_in_shell
        )
        try:
            returncode, _stdout, stderr = await run_command(
                argv, cwd=workdir, timeout=self.config.clean_timeout
            )
        except OSError as exc:
            print_error(f"Could not start clean for {workdir}: {exc}")
            returncode, stderr = -1, str(exc)

        if returncode == 0:
            print_success(f"Cleaned {workdir}")
            await _invoke(on_success)
            return True

        console.print(
            f"[red]Clean failed for {escape(str(workdir))} (rc={returncode})[/red]"
        )
        if stderr:
            console.print(f"  [dim]{escape(stderr.splitlines()[-1])}[/dim]")
        await _invoke(on_error)
        return False

    def running(self) -> list[str]:
        """Project keys that currently have a live process."""
        return self.registry.keys()

    def get_process(self, project_key: str | Path) -> Optional[BuildProcess]:
        return self.registry.get(self.key_for(project_key))

    async def stop_all(self) -> int:
        """Terminate every live process.  Returns how many were stopped."""
        stopped = 0
        for process in self.registry:
            if await process.terminate(self.config.stop_timeout):
                stopped += 1
        return stopped

    def key_for(self, project_key: str | Path) -> str:
        """Registry key: the resolved working directory of the project."""
        return str(self.config.resolve_cwd(project_key))

    # -- Internals -----------------------------------------------------------

    async def _spawn(
        self, project_key: str | Path, mode: BuildMode, builds: Sequence[str]
    ) -> BuildProcess:
        workdir = self.config.resolve_cwd(project_key)
        key = str(workdir)
        if not workdir.is_dir():
            raise InvalidProjectError(str(project_key), key)

        argv = build_argv(
            self.config.commands.for_mode(mode.value),
            builds,
            shell=self.config.wrap_in_shell,
        )
        process = BuildProcess(
            key,
            workdir,
            mode,
            argv,
            config=self.config,
            on_finished=self._on_finished,
        )
        self.registry.register(key, process)
        try:
            await process.start()
        except BaseException:
            self.registry.unregister(key, process)
            raise
        return process

    def _on_finished(self, process: BuildProcess) -> None:
        self.registry.unregister(process.project_key, process)

    async def __aenter__(self) -> "BuildMonitor":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop_all()
