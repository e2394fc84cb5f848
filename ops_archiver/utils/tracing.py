"""Request/run trace ids, propagated to SQL as a W3C ``traceparent`` comment."""

import uuid
from contextvars import ContextVar

trace_id_var: ContextVar[str] = ContextVar("trace_id", default="")
span_id_var: ContextVar[str] = ContextVar("span_id", default="")


def _new_span_id() -> str:
    return uuid.uuid4().hex[:16]


def start_trace(trace_id: str | None = None) -> str:
    """Start a trace for one HTTP request or archival run."""
    trace = trace_id or uuid.uuid4().hex
    trace_id_var.set(trace)
    span_id_var.set(_new_span_id())
    return trace


def start_trace_from_traceparent(header: str | None) -> str:
    """Continue the caller's trace; falls back to a fresh one if malformed."""
    if header:
        parts = header.split("-")
        if len(parts) >= 3 and parts[1] and parts[2]:
            trace_id_var.set(parts[1])
            span_id_var.set(parts[2])
            return parts[1]
    return start_trace()


def get_traceparent() -> str:
    trace_id = trace_id_var.get("")
    span_id = span_id_var.get("")
    if trace_id and span_id:
        return f"00-{trace_id}-{span_id}-01"
    return ""
