"""Exceptions raised by buildwatch.

Build failures are never raised; they travel through the event stream.
These exceptions cover misuse of the lifecycle API.
"""

from __future__ import annotations


class BuildMonitorError(Exception):
    """Base class for every buildwatch exception."""


class ProcessAlreadyRunningError(BuildMonitorError):
    """A project key already has a live build process."""

    def __init__(self, project_key: str) -> None:
        self.project_key = project_key
        super().__init__(f"A build process is already running for {project_key}")


class InvalidProjectError(BuildMonitorError):
    """The project key does not resolve to an existing directory."""

    def __init__(self, project_key: str, cwd: str) -> None:
        self.project_key = project_key
        self.cwd = cwd
        super().__init__(f"Project directory not found for {project_key}: {cwd}")
