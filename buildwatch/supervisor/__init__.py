"""buildwatch -- Supervisor module.

Owns the build tool processes and the channels their events travel on.

Key classes:
    BuildProcess      - One spawned build tool run
    EventChannel      - Ordered, close-once event queue
    ProcessRegistry   - Live processes keyed by project
"""

from .channel import EventChannel
from .process import BuildMode, BuildProcess, build_argv
from .registry import ProcessRegistry

__all__ = [
    "BuildMode",
    "BuildProcess",
    "build_argv",
    "EventChannel",
    "ProcessRegistry",
]
