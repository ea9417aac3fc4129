"""Table of live build processes, keyed by project.

Processes are registered when they are spawned and removed when they
finish, so a lookup only ever returns a process that can still be stopped.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterator, Optional

from ..errors import ProcessAlreadyRunningError

if TYPE_CHECKING:
    from .process import BuildProcess


class ProcessRegistry:
    """Maps project keys to their running :class:`BuildProcess`."""

    def __init__(self) -> None:
        self._processes: dict[str, BuildProcess] = {}

    def register(self, key: str, process: BuildProcess) -> None:
        """Add *process* under *key*.

        Raises:
            ProcessAlreadyRunningError: If *key* already has a process.
        """
        if key in self._processes:
            raise ProcessAlreadyRunningError(key)
        self._processes[key] = process

    def unregister(self, key: str, process: BuildProcess) -> bool:
        """Remove *process* if it is still the one registered under *key*."""
        if self._processes.get(key) is process:
            del self._processes[key]
            return True
        return False

    def get(self, key: str) -> Optional[BuildProcess]:
        return self._processes.get(key)

    def keys(self) -> list[str]:
        return list(self._processes)

    def __contains__(self, key: object) -> bool:
        return key in self._processes

    def __len__(self) -> int:
        return len(self._processes)

    def __iter__(self) -> Iterator[BuildProcess]:
        return iter(list(self._processes.values()))
