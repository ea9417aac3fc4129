"""buildwatch -- Parser module.

Turns raw cljsbuild console output into typed build events.

Key classes:
    ChunkDispatcher   - Per-process chunk -> event transform
    ErrorAccumulator  - Multi-line error block capture
    ParserState       - Capture state owned by one dispatcher
    OutputType        - Line classification tags
"""

from .accumulator import ErrorAccumulator, ParserState
from .classifier import (
    OutputType,
    classify_line,
    extract_elapsed_seconds,
    extract_error_message,
    extract_target,
    extract_warning_messages,
)
from .dispatcher import STDERR, STDOUT, ChunkDispatcher
from .events import (
    ErrorEvent,
    FinishedEvent,
    OutputEvent,
    SpawnFailedEvent,
    StartEvent,
    SuccessEvent,
    WarningEvent,
    parse_event,
)

__all__ = [
    # Classifier
    "OutputType",
    "classify_line",
    "extract_target",
    "extract_elapsed_seconds",
    "extract_error_message",
    "extract_warning_messages",
    # State
    "ParserState",
    "ErrorAccumulator",
    # Dispatcher
    "ChunkDispatcher",
    "STDOUT",
    "STDERR",
    # Events
    "OutputEvent",
    "StartEvent",
    "ErrorEvent",
    "SuccessEvent",
    "WarningEvent",
    "SpawnFailedEvent",
    "FinishedEvent",
    "parse_event",
]
