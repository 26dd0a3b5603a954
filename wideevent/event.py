"""Wide events: one structured record accumulated over a unit of work."""

from __future__ import annotations

import threading
import time
from datetime import timedelta
from typing import Any, Callable, NamedTuple, Optional

from .nest import nest_fields

Emitter = Callable[["Event"], None]


class Field(NamedTuple):
    """A single key-value pair of a wide event."""

    key: str
    value: Any


class Event:
    """Accumulates fields throughout a unit of work and emits them once.

    Setters return the event itself so calls can be chained. All methods
    are safe to call from several threads.
    """

    def __init__(self, emitter: Optional[Emitter] = None) -> None:
        self._lock = threading.Lock()
        self._fields: list[Field] = []
        self._emitter = emitter
        self._start = time.monotonic()
        self._emitted = False

    def __repr__(self) -> str:
        return f"Event(fields={len(self._fields)}, emitted={self._emitted})"

    def emit(self) -> None:
        """Add the ``duration`` field and hand the event to the emitter.

        Only the first call has any effect.
        """
        with self._lock:
            if self._emitted:
                return
            self._emitted = True
            elapsed = timedelta(seconds=time.monotonic() - self._start)
            self._fields.append(Field("duration", elapsed))
        if self._emitter is not None:
            self._emitter(self)

    def set(self, key: str, value: Any) -> Event:
        """Add a field. Dots in the key produce nesting in structured output."""
        with self._lock:
            self._fields.append(Field(key, value))
        return self

    def err(self, key: str, error: Optional[BaseException]) -> Event:
        """Add the message of ``error``; does nothing when ``error`` is None."""
        if error is None:
            return self
        return self.set(key, str(error))

    def uuid(self, key: str, value: Any) -> Event:
        """Add the string form of ``value``, typically a UUID."""
        return self.set(key, str(value))

    def success(self) -> Event:
        """Mark the outcome as ``success``."""
        return self.set("outcome", "success")

    def failure(self, error: Optional[BaseException] = None) -> Event:
        """Mark the outcome as ``failure`` and record the error, if any."""
        self.set("outcome", "failure")
        if error is not None:
            self.set("error", str(error))
        return self

    def user_id(self, value: Any) -> Event:
        """Set ``user.id`` from the string form of ``value``."""
        return self.set("user.id", str(value))

    def user_name(self, name: str) -> Event:
        """Set ``user.name``."""
        return self.set("user.name", name)

    def user_role(self, role: str) -> Event:
        """Set ``user.role``."""
        return self.set("user.role", role)

    def has_error(self) -> bool:
        """True if the outcome is ``failure`` or the response status is >= 500."""
        with self._lock:
            for key, value in self._fields:
                if key == "outcome" and value == "failure":
                    return True
                if key == "response.status" and _is_int(value) and value >= 500:
                    return True
        return False

    def status_code(self) -> int:
        """The first integer ``response.status`` value, or 0 if there is none."""
        with self._lock:
            for key, value in self._fields:
                if key == "response.status" and _is_int(value):
                    return value
        return 0

    def fields(self) -> list[Field]:
        """A snapshot copy of all fields in insertion order."""
        with self._lock:
            return list(self._fields)

    def fields_map(self) -> dict[str, Any]:
        """All fields as a nested dict, expanding dotted keys."""
        return nest_fields(self.fields())


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def begin(emitter: Optional[Emitter], name: str) -> Event:
    """Start a standalone event, e.g. for a background task.

    The caller calls :meth:`Event.emit` when the work is done.
    """
    return Event(emitter).set("name", name)