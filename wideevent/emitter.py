"""Emitters that write finished wide events."""

from __future__ import annotations

import json
import sys
import threading
from datetime import datetime, timedelta
from typing import Any, Optional, TextIO

from .event import Emitter, Event
from .nest import nest_fields


def infer_level(event: Event) -> str:
    """The log level implied by the event: ``error``, ``warn`` or ``info``."""
    if event.has_error():
        return "error"
    code = event.status_code()
    if code >= 500:
        return "error"
    if code >= 400:
        return "warn"
    return "info"


def _format_rfc3339(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.astimezone()
    text = (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d}"
        f"T{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
    )
    fraction = f"{value.microsecond:06d}".rstrip("0")
    if fraction:
        text += "." + fraction
    offset = value.utcoffset() or timedelta(0)
    total = int(offset.total_seconds())
    if total == 0:
        return text + "Z"
    sign = "-" if total < 0 else "+"
    hours, minutes = divmod(abs(total) // 60, 60)
    return f"{text}{sign}{hours:02d}:{minutes:02d}"


def convert_value(value: Any) -> Any:
    """Make durations (as milliseconds) and datetimes (RFC 3339) JSON-friendly."""
    if isinstance(value, timedelta):
        return value.total_seconds() * 1000
    if isinstance(value, datetime):
        return _format_rfc3339(value)
    return value


class JSONEmitter:
    """Writes one JSON line per event to a text stream.

    With no stream, output goes to whatever ``sys.stdout`` is at write time.
    """

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self._stream = stream
        self._lock = threading.Lock()

    def __call__(self, event: Event) -> None:
        record = nest_fields(
            (field.key, convert_value(field.value)) for field in event.fields()
        )
        record["level"] = infer_level(event)
        record["message"] = "wide_event"
        line = json.dumps(
            record,
            ensure_ascii=False,
            sort_keys=True,
            separators=(",", ":"),
            default=str,
        )
        stream = self._stream if self._stream is not None else sys.stdout
        with self._lock:
            stream.write(line + "\n")


def json_stdout_emitter() -> JSONEmitter:
    """An emitter writing JSON lines to standard output."""
    return JSONEmitter()


def json_writer_emitter(stream: TextIO) -> JSONEmitter:
    """An emitter writing JSON lines to ``stream``."""
    return JSONEmitter(stream)


def multi_emitter(*emitters: Emitter) -> Emitter:
    """An emitter that passes every event to each of ``emitters`` in turn."""

    def emit(event: Event) -> None:
        for emitter in emitters:
            emitter(event)

    return emit