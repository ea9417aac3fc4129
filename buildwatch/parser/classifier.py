"""Line classification for cljsbuild console output.

The compiler does not emit structured output, so every line is matched
against a handful of known markers.  Rules are checked in a fixed priority
order because the markers are not mutually exclusive: a failed compile
line contains ``Compiling`` just like a start line does.

Everything here is pure.  Value extraction helpers return ``None`` instead
of raising when a line does not have the expected shape.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Optional


class OutputType(str, Enum):
    """Kinds of compiler output lines we care about."""

    START_ERROR = "start-error"
    END_ERROR = "end-error"
    SUCCESS = "success"
    WARNING = "warning"
    START = "start"
    NONE = "none"


# ---------------------------------------------------------------------------
# Markers
# ---------------------------------------------------------------------------

COMPILING_MARKER = "Compiling "
FAILED_MARKER = "failed."
SUBPROCESS_FAILED_MARKER = "Subprocess failed"
SUCCESS_MARKER = "Successfully compiled"
SECONDS_MARKER = "seconds."
WARNING_PREFIX = "WARNING: "
ELLIPSIS_MARKER = "..."
STACK_TRACE_MARKER = " at clojure.core"

_TARGET_RE = re.compile(r'Compiling "([^"]*)"')
_ELAPSED_RE = re.compile(r" in (\S+) seconds")
_CAUSED_BY_RE = re.compile(r"^.*Caused by: [\w.$]+: ")
_ERROR_HEADER_RE = re.compile(r'^.*?Compiling ".*?".*?failed\.\s*')


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------


def is_start_error_line(line: str) -> bool:
    return COMPILING_MARKER in line and FAILED_MARKER in line


def is_end_error_line(line: str) -> bool:
    return SUBPROCESS_FAILED_MARKER in line


def is_success_line(line: str) -> bool:
    return SUCCESS_MARKER in line and line.endswith(SECONDS_MARKER)


def is_warning_line(line: str) -> bool:
    return line.startswith(WARNING_PREFIX)


def is_start_line(line: str) -> bool:
    """``Compiling "<target>" from ["src"]...`` or ``Compiling "<target>"...``."""
    return COMPILING_MARKER in line and line.endswith(ELLIPSIS_MARKER)


def classify_line(line: str) -> OutputType:
    """Return the :class:`OutputType` of a single trimmed line.

    The first matching rule wins.  Lines that match nothing are
    :attr:`OutputType.NONE`, which callers ignore.
    """
    if is_start_error_line(line):
        return OutputType.START_ERROR
    if is_end_error_line(line):
        return OutputType.END_ERROR
    if is_success_line(line):
        return OutputType.SUCCESS
    if is_warning_line(line):
        return OutputType.WARNING
    if is_start_line(line):
        return OutputType.START
    return OutputType.NONE


# ---------------------------------------------------------------------------
# Value extraction
# ---------------------------------------------------------------------------


def extract_target(line: str) -> Optional[str]:
    """Target name between ``Compiling "`` and the next quote."""
    match = _TARGET_RE.search(line)
    return match.group(1) if match else None


def extract_elapsed_seconds(line: str) -> Optional[float]:
    """Elapsed time from ``Successfully compiled "x" in 1.23 seconds.``.

    Uses the last `` in <N> seconds`` occurrence so that target names
    containing `` in `` do not confuse the parse.
    """
    matches = _ELAPSED_RE.findall(line)
    if not matches:
        return None
    try:
        return float(matches[-1])
    except ValueError:
        return None


def clean_warning_line(line: str) -> str:
    line = line.strip()
    if line.startswith(WARNING_PREFIX):
        line = line[len(WARNING_PREFIX):]
    return line.strip()


def extract_warning_messages(text: str) -> list[str]:
    """Split *text* into lines and clean the ``WARNING: `` prefix from each."""
    return [clean_warning_line(line) for line in text.splitlines() if line.strip()]


def extract_error_message(buffer: str) -> str:
    """Reduce a captured error block to a single readable message.

    Newlines become spaces and tabs are dropped.  Everything up to the
    last ``Caused by: <ExceptionClass>: `` marker is removed, or failing
    that the leading ``Compiling "<target>" failed.`` header.  The
    trailing stack trace, starting at `` at clojure.core``, is cut off.
    """
    message = buffer.replace("\n", " ").replace("\r", "").replace("\t", "")

    stripped = _CAUSED_BY_RE.sub("", message, count=1)
    if stripped == message:
        stripped = _ERROR_HEADER_RE.sub("", message, count=1)

    trace_at = stripped.find(STACK_TRACE_MARKER)
    if trace_at != -1:
        stripped = stripped[:trace_at]

    return stripped.strip()
