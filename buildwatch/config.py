"""buildwatch configuration.

Centralised, typed configuration for the build supervisor. All settings use
Pydantic v2 models so they can be validated at construction time and serialised
to/from JSON or environment variables without boiler-plate.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import BaseModel, Field

Command = Union[str, list[str]]


class CommandConfig(BaseModel):
    """Build tool commands for each process mode.

    A command is either a string, tokenized with POSIX shell rules, or a
    ready-made argument list used verbatim.
    """

    auto: Command = Field(default="lein cljsbuild auto")
    once: Command = Field(default="lein cljsbuild once")
    clean: Command = Field(default="lein cljsbuild clean")

    def for_mode(self, mode: str) -> Command:
        """Return the command configured for *mode* (``auto``/``once``/``clean``)."""
        if mode not in ("auto", "once", "clean"):
            raise ValueError(f"Unknown build mode: {mode!r}")
        return getattr(self, mode)


class Config(BaseModel):
    """Global buildwatch configuration.

    Instances are typically created once by the CLI entry point or by the
    embedding application and handed to :class:`~buildwatch.lifecycle.BuildMonitor`.
    """

    commands: CommandConfig = Field(default_factory=CommandConfig)
    project_file: str = Field(default="project.clj", min_length=1)
    encoding: str = Field(default="utf-8")
    read_chunk_size: int = Field(default=4096, ge=1, description="Bytes per pipe read")
    stop_timeout: float = Field(
        default=5.0, gt=0, description="Seconds between terminate and kill when stopping"
    )
    clean_timeout: Optional[float] = Field(
        default=None,
        gt=0,
        description="Seconds before a clean run is killed; None waits indefinitely",
    )
    use_shell: Optional[bool] = Field(
        default=None,
        description="Wrap commands in the platform shell; None means Windows only",
    )

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def wrap_in_shell(self) -> bool:
        """Whether commands are run through ``cmd /c``."""
        if self.use_shell is None:
            return sys.platform.startswith("win")
        return self.use_shell

    def resolve_cwd(self, project_key: str | Path) -> Path:
        """Working directory for a project key.

        A key naming the project descriptor file (``project.clj``) resolves to
        its containing directory; anything else is taken as the directory.
        """
        path = Path(project_key).expanduser()
        if path.name == self.project_file:
            path = path.parent
        return path.resolve()

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path) -> Path:
        """Persist the configuration to a JSON file.

        Returns:
            The path where the file was written.
        """
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "Config":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "Config":
        """Build a ``Config`` from environment variables.

        Recognised variables (all optional):
            BUILDWATCH_AUTO_COMMAND, BUILDWATCH_ONCE_COMMAND,
            BUILDWATCH_CLEAN_COMMAND, BUILDWATCH_PROJECT_FILE,
            BUILDWATCH_ENCODING, BUILDWATCH_STOP_TIMEOUT,
            BUILDWATCH_CLEAN_TIMEOUT, BUILDWATCH_READ_CHUNK_SIZE.
        """
        command_kwargs: dict[str, Any] = {}
        for mode in ("auto", "once", "clean"):
            value = os.environ.get(f"BUILDWATCH_{mode.upper()}_COMMAND")
            if value:
                command_kwargs[mode] = value

        kwargs: dict[str, Any] = {"commands": CommandConfig(**command_kwargs)}
        if os.environ.get("BUILDWATCH_PROJECT_FILE"):
            kwargs["project_file"] = os.environ["BUILDWATCH_PROJECT_FILE"]
        if os.environ.get("BUILDWATCH_ENCODING"):
            kwargs["encoding"] = os.environ["BUILDWATCH_ENCODING"]
        if os.environ.get("BUILDWATCH_STOP_TIMEOUT"):
            kwargs["stop_timeout"] = float(os.environ["BUILDWATCH_STOP_TIMEOUT"])
        if os.environ.get("BUILDWATCH_CLEAN_TIMEOUT"):
            kwargs["clean_timeout"] = float(os.environ["BUILDWATCH_CLEAN_TIMEOUT"])
        if os.environ.get("BUILDWATCH_READ_CHUNK_SIZE"):
            kwargs["read_chunk_size"] = int(os.environ["BUILDWATCH_READ_CHUNK_SIZE"])

        return cls(**kwargs)

