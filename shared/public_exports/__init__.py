"""
Read-only renderers for race data shown outside the runtime.

Nothing here writes to HTTP or mutates race state.
"""

from shared.public_exports.audit import (
    EMPTY_LOG_TEXT,
    describe_event,
    render_event,
    render_lines,
    render_log,
)

__all__ = [
    "EMPTY_LOG_TEXT",
    "describe_event",
    "render_event",
    "render_lines",
    "render_log",
]
