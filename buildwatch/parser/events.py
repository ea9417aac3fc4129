"""Typed build lifecycle events.

Provides Pydantic v2 models for every event a supervised build process can
emit.  Events are immutable and carry a ``kind`` discriminator so that a
consumer can dispatch on it, or validate raw dictionaries back into the
right model through :data:`OutputEvent`.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    def as_tuple(self) -> tuple[Any, ...]:
        """Return the event as a ``(kind, payload...)`` tuple."""
        payload = self.model_dump(exclude={"kind"})
        return (self.kind, *payload.values())  # type: ignore[attr-defined]


# ---------------------------------------------------------------------------
# Event variants
# ---------------------------------------------------------------------------


class StartEvent(_Event):
    """Compilation started for a build target."""

    kind: Literal["start"] = "start"
    target: str = Field(..., description="Build target reported by the compiler")


class ErrorEvent(_Event):
    """A compile failure with the extracted, cleaned-up message."""

    kind: Literal["error"] = "error"
    message: str = Field(default="", description="Best-effort error message")


class SuccessEvent(_Event):
    """A target compiled successfully."""

    kind: Literal["success"] = "success"
    elapsed_seconds: float = Field(..., ge=0.0, description="Compile time reported by the tool")


class WarningEvent(_Event):
    """One or more warnings delivered together."""

    kind: Literal["warning"] = "warning"
    messages: list[str] = Field(default_factory=list)


class SpawnFailedEvent(_Event):
    """The build tool could not be started at all."""

    kind: Literal["spawn_failed"] = "spawn_failed"
    message: str = Field(default="")


class FinishedEvent(_Event):
    """Terminal event: the process output has closed.  Always last."""

    kind: Literal["finished"] = "finished"


OutputEvent = Annotated[
    Union[
        StartEvent,
        ErrorEvent,
        SuccessEvent,
        WarningEvent,
        SpawnFailedEvent,
        FinishedEvent,
    ],
    Field(discriminator="kind"),
]

_adapter: TypeAdapter[Any] = TypeAdapter(OutputEvent)


def parse_event(data: dict[str, Any]) -> OutputEvent:
    """Validate a raw ``{"kind": ..., ...}`` mapping into an event model."""
    return _adapter.validate_python(data)
