"""Chunk dispatcher: raw process output in, typed events out.

Reads from a pipe deliver text in arbitrary pieces that rarely line up
with line boundaries.  The dispatcher keeps one partial-line buffer per
output stream and only classifies complete lines.  Both streams share a
single :class:`ParserState` because the compiler writes status and error
lines to either of them.

Error blocks are the exception: once capture has started, text is added to
the error buffer as soon as it arrives, so an end marker glued to other
text still closes the block.  A block still open when output ends is
reported on :meth:`ChunkDispatcher.flush`.

Warning lines that arrive together are reported as one
:class:`WarningEvent`, along with any unrecognised lines that follow them
(locations, code excerpts).  The group is closed by the next recognised
line, or at the end of a chunk, unless that chunk stopped mid-line, in
which case the group stays open until the line is completed.
"""

from __future__ import annotations

from .accumulator import ErrorAccumulator, ParserState
from .classifier import (
    OutputType,
    classify_line,
    clean_warning_line,
    extract_elapsed_seconds,
    extract_target,
)
from .events import OutputEvent, StartEvent, SuccessEvent, WarningEvent

STDOUT = "stdout"
STDERR = "stderr"


class ChunkDispatcher:
    """Turns output chunks of one build process into events.

    One instance per process.  Not thread-safe; callers feed it from a
    single event loop.
    """

    def __init__(self, state: ParserState | None = None) -> None:
        self.state = state or ParserState()
        self.errors = ErrorAccumulator(self.state)
        self._partial: dict[str, str] = {}
        self._pending_warnings: list[str] = []

    # -- Public API ----------------------------------------------------------

    def feed(self, chunk: str, stream: str = STDOUT) -> list[OutputEvent]:
        """Process one chunk read from *stream* and return the new events."""
        text = self._partial.pop(stream, "") + chunk
        *complete, rest = text.split("\n")

        events: list[OutputEvent] = []
        for line in complete:
            events.extend(self._handle_line(line + "\n"))

        if rest:
            if self.errors.capturing or classify_line(rest.strip()) is OutputType.START_ERROR:
                events.extend(self._handle_line(rest))
            else:
                self._partial[stream] = rest

        if stream not in self._partial:
            events.extend(self._flush_warnings())
        return events

    def flush(self, stream: str | None = None) -> list[OutputEvent]:
        """Treat buffered partial lines as complete (end of output).

        Flushes only *stream* when given, every stream otherwise.  A full
        flush also closes an unfinished error block, so its text is still
        reported as an :class:`ErrorEvent`.
        """
        streams = [stream] if stream is not None else list(self._partial)
        events: list[OutputEvent] = []
        for name in streams:
            rest = self._partial.pop(name, "")
            if rest:
                events.extend(self._handle_line(rest))
        if stream is None and self.errors.capturing:
            events.append(self.errors.finish())
        if not self._partial:
            events.extend(self._flush_warnings())
        return events

    @property
    def has_partial_line(self) -> bool:
        return bool(self._partial)

    # -- Internals -----------------------------------------------------------

    def _handle_line(self, raw: str) -> list[OutputEvent]:
        line = raw.strip()
        kind = classify_line(line)
        capturing = self.errors.capturing

        if not line and not capturing:
            return []

        continues_warnings = not capturing and (
            kind is OutputType.WARNING
            or (kind is OutputType.NONE and bool(self._pending_warnings))
        )
        events: list[OutputEvent] = []
        if not continues_warnings:
            events.extend(self._flush_warnings())

        if kind is OutputType.START_ERROR:
            self.errors.start(raw)
            events.extend(self._finish_if_ended())
        elif kind is OutputType.END_ERROR:
            events.append(self.errors.finish(line))
        elif capturing:
            self.errors.append(raw)
            events.extend(self._finish_if_ended())
        elif kind is OutputType.START:
            target = extract_target(line)
            if target is not None:
                events.append(StartEvent(target=target))
        elif kind is OutputType.SUCCESS:
            elapsed = extract_elapsed_seconds(line)
            if elapsed is not None and elapsed >= 0:
                events.append(SuccessEvent(elapsed_seconds=elapsed))
        elif continues_warnings:
            self._pending_warnings.append(clean_warning_line(line))

        return events

    def _finish_if_ended(self) -> list[OutputEvent]:
        event = self.errors.finish_if_ended()
        return [event] if event is not None else []

    def _flush_warnings(self) -> list[OutputEvent]:
        if not self._pending_warnings:
            return []
        messages, self._pending_warnings = self._pending_warnings, []
        return [WarningEvent(messages=messages)]
