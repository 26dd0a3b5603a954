"""Access to the current wide event from request-handling code."""

from __future__ import annotations

import contextvars
from contextlib import contextmanager
from typing import Any, Iterator, Mapping, Optional

from .event import Event

ENVIRON_KEY = "wideevent"

_current: contextvars.ContextVar[Optional[Event]] = contextvars.ContextVar(
    "wideevent_current", default=None
)


@contextmanager
def bind_event(event: Event) -> Iterator[Event]:
    """Make ``event`` the current event for the duration of the block."""
    token = _current.set(event)
    try:
        yield event
    finally:
        _current.reset(token)


def current_event() -> Optional[Event]:
    """The event bound in the current context, or None."""
    return _current.get()


def from_environ(environ: Mapping[str, Any]) -> Optional[Event]:
    """The event stored in a WSGI environ, falling back to the current context."""
    candidate = environ.get(ENVIRON_KEY)
    if isinstance(candidate, Event):
        return candidate
    return current_event()