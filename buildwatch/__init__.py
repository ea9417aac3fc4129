"""buildwatch -- supervise cljsbuild and stream typed build events.

Typical use::

    monitor = BuildMonitor()
    channel = await monitor.build_once("~/code/my-app/project.clj")
    async for event in channel:
        print(event.kind)
"""

from .config import CommandConfig, Config
from .errors import BuildMonitorError, InvalidProjectError, ProcessAlreadyRunningError
from .lifecycle import BuildMonitor
from .parser import (
    ErrorEvent,
    FinishedEvent,
    OutputEvent,
    SpawnFailedEvent,
    StartEvent,
    SuccessEvent,
    WarningEvent,
)
from .supervisor import BuildMode, BuildProcess, EventChannel

__version__ = "0.1.0"

__all__ = [
    "BuildMonitor",
    "BuildMode",
    "BuildProcess",
    "EventChannel",
    "Config",
    "CommandConfig",
    "BuildMonitorError",
    "InvalidProjectError",
    "ProcessAlreadyRunningError",
    "OutputEvent",
    "StartEvent",
    "ErrorEvent",
    "SuccessEvent",
    "WarningEvent",
    "SpawnFailedEvent",
    "FinishedEvent",
]
