"""Multi-line error capture.

A failed compile is reported as a block of text that starts with a
``Compiling "<target>" failed.`` line, continues with an arbitrary number
of stack-trace lines, and ends with ``Subprocess failed``.  The block may
arrive spread over many reads, so the capture state lives in a small
mutable object owned by exactly one dispatcher.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .classifier import SUBPROCESS_FAILED_MARKER, extract_error_message
from .events import ErrorEvent


@dataclass
class ParserState:
    """Capture state for one build process.  Never shared."""

    inside_error_capture: bool = False
    error_buffer: str = ""

    def reset(self) -> None:
        self.inside_error_capture = False
        self.error_buffer = ""


class ErrorAccumulator:
    """Collects error text between the start and end markers."""

    def __init__(self, state: ParserState | None = None) -> None:
        self.state = state or ParserState()

    @property
    def capturing(self) -> bool:
        return self.state.inside_error_capture

    def start(self, text: str) -> None:
        """Enter capture mode; the buffer restarts at *text*."""
        self.state.inside_error_capture = True
        self.state.error_buffer = text

    def append(self, raw: str) -> None:
        """Append untrimmed text to the buffer (only while capturing)."""
        if self.state.inside_error_capture:
            self.state.error_buffer += raw

    def finish(self, end_line: str = "") -> ErrorEvent:
        """Leave capture mode and return the extracted error.

        An end marker seen outside of capture mode still reports a failure;
        the marker line itself becomes the message.
        """
        if self.state.inside_error_capture:
            message = extract_error_message(self.state.error_buffer)
        else:
            message = end_line.strip()
        self.state.reset()
        return ErrorEvent(message=message)

    def finish_if_ended(self) -> Optional[ErrorEvent]:
        """Finish the capture if the buffer already holds the end marker.

        Needed when the marker arrives glued to other text instead of on a
        line of its own.  Everything from the marker on is dropped.
        """
        if not self.state.inside_error_capture:
            return None
        at = self.state.error_buffer.find(SUBPROCESS_FAILED_MARKER)
        if at == -1:
            return None
        self.state.error_buffer = self.state.error_buffer[:at]
        return self.finish()
