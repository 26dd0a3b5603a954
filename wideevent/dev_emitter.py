"""Human-readable, optionally coloured output of wide events for development."""

from __future__ import annotations

import sys
import threading
from datetime import datetime, timedelta
from typing import Any, Iterable, Mapping, NamedTuple, Optional, TextIO, Union

from .emitter import infer_level
from .event import Event, Field

_RESET = "\033[0m"
_BOLD = "\033[1m"
_DIM = "\033[2m"
_RED = "\033[31m"
_GREEN = "\033[32m"
_YELLOW = "\033[33m"
_CYAN = "\033[36m"

DEFAULT_DURATION_WARN = timedelta(milliseconds=500)
DEFAULT_DURATION_ERROR = timedelta(seconds=2)

_MAX_LINE_WIDTH = 90
_PREFIX_WIDTH = 10
_BODY_INDENT = 3  # "│  "

# Fields shown in the header or footer rather than in the grouped body.
_HEADER_FOOTER_KEYS = frozenset(
    {
        "request.method",
        "request.path",
        "response.status",
        "response.latency_ms",
        "name",
        "outcome",
        "error",
        "duration",
    }
)

_GROUP_PRIORITY = {"request": 0, "response": 1, "user": 2}

Categories = Union[
    Mapping[str, Union[str, Iterable[str]]],
    Iterable[tuple[str, Union[str, Iterable[str]]]],
]


class _Entry(NamedTuple):
    key: str
    value: Any


class _Summary(NamedTuple):
    method: str
    path: str
    name: str
    outcome: str
    error: str
    status: int
    latency_ms: float
    duration: Optional[timedelta]


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _summarize(fields: Iterable[Field]) -> _Summary:
    """Pick out the well-known fields; the last matching value wins."""
    text = {"request.method": "", "request.path": "", "name": "", "outcome": "", "error": ""}
    status = 0
    latency_ms = 0.0
    duration: Optional[timedelta] = None
    for key, value in fields:
        if key in text:
            text[key] = value if isinstance(value, str) else ""
        elif key == "response.status":
            status = value if _is_int(value) else 0
        elif key == "response.latency_ms":
            latency_ms = value if isinstance(value, float) else 0.0
        elif key == "duration" and isinstance(value, timedelta):
            duration = value
    return _Summary(
        method=text["request.method"],
        path=text["request.path"],
        name=text["name"],
        outcome=text["outcome"],
        error=text["error"],
        status=status,
        latency_ms=latency_ms,
        duration=duration,
    )


def _clock(moment: datetime) -> str:
    return moment.strftime("%H:%M:%S.") + f"{moment.microsecond // 1000:03d}"


def format_duration(duration: timedelta) -> str:
    """Format a duration as µs, ms or s depending on its size."""
    if duration < timedelta(milliseconds=1):
        micros = duration // timedelta(microseconds=1)
        return f"{micros}µs"
    if duration < timedelta(seconds=1):
        return f"{duration.total_seconds() * 1000:.1f}ms"
    return f"{duration.total_seconds():.2f}s"


def format_value(value: Any) -> str:
    """Render a field value for the dev output."""
    if isinstance(value, timedelta):
        return format_duration(value)
    if isinstance(value, datetime):
        return _clock(value)
    if isinstance(value, str):
        return value if value else '""'
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "<nil>"
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return str(value)


def _byte_len(text: str) -> int:
    return len(text.encode("utf-8"))


class _Canvas:
    """Accumulates output text, inserting ANSI codes only when colour is on."""

    def __init__(self, color: bool) -> None:
        self._color = color
        self._parts: list[str] = []

    def text(self, value: str) -> None:
        self._parts.append(value)

    def paint(self, code: str) -> None:
        if self._color:
            self._parts.append(code)

    def dim(self, value: str) -> None:
        self.paint(_DIM)
        self.text(value)
        self.paint(_RESET)

    def pair(self, key: str, value: str) -> None:
        self.dim(key + "=")
        self.text(value)

    def getvalue(self) -> str:
        return "".join(self._parts)


def _normalize_categories(categories: Optional[Categories]) -> tuple[tuple[str, tuple[str, ...]], ...]:
    if categories is None:
        return ()
    items = categories.items() if isinstance(categories, Mapping) else categories
    rules = []
    for name, prefixes in items:
        if isinstance(prefixes, str):
            prefixes = (prefixes,)
        rules.append((name, tuple(prefixes)))
    return tuple(rules)


class DevEmitter:
    """Writes wide events as colourised, tree-framed blocks of text.

    With no stream, output goes to whatever ``sys.stdout`` is at write time
    and colour defaults to whether standard output is a terminal.
    Categories map a name to path prefixes; events in muted categories
    produce no output.
    """

    def __init__(
        self,
        stream: Optional[TextIO] = None,
        *,
        color: Optional[bool] = None,
        categories: Optional[Categories] = None,
        mute_categories: Iterable[str] = (),
        duration_warn: Optional[timedelta] = None,
        duration_error: Optional[timedelta] = None,
    ) -> None:
        self._stream = stream
        if color is None:
            target = stream if stream is not None else sys.stdout
            isatty = getattr(target, "isatty", None)
            color = bool(isatty()) if callable(isatty) else False
        self.color = color
        self.categories = _normalize_categories(categories)
        self.mute_categories = frozenset(mute_categories)
        self.duration_warn = DEFAULT_DURATION_WARN if duration_warn is None else duration_warn
        self.duration_error = DEFAULT_DURATION_ERROR if duration_error is None else duration_error
        self._lock = threading.Lock()

    def __call__(self, event: Event) -> None:
        fields = event.fields()
        level = infer_level(event)
        summary = _summarize(fields)

        category = self.match_category(summary.path)
        if category is not None and category in self.mute_categories:
            return

        groups, ungrouped = self._group(fields)
        canvas = _Canvas(self.color)
        self._write_header(canvas, level, summary, category)

        if groups or ungrouped:
            canvas.dim("│")
            canvas.text("\n")
            for prefix, entries in groups:
                self._write_group(canvas, prefix, entries)
            if ungrouped:
                self._write_ungrouped(canvas, ungrouped)
            canvas.dim("│")
            canvas.text("\n")

        self._write_footer(canvas, summary)
        canvas.text("\n")

        stream = self._stream if self._stream is not None else sys.stdout
        with self._lock:
            stream.write(canvas.getvalue())

    def match_category(self, path: str) -> Optional[str]:
        """The name of the first category with a prefix of ``path``, or None."""
        for name, prefixes in self.categories:
            if any(path.startswith(prefix) for prefix in prefixes):
                return name
        return None

    @staticmethod
    def _group(fields: Iterable[Field]) -> tuple[list[tuple[str, list[_Entry]]], list[_Entry]]:
        grouped: dict[str, list[_Entry]] = {}
        ungrouped: list[_Entry] = []
        for key, value in fields:
            if key in _HEADER_FOOTER_KEYS:
                continue
            prefix, dot, suffix = key.partition(".")
            if not dot:
                ungrouped.append(_Entry(key, value))
                continue
            grouped.setdefault(prefix, []).append(_Entry(suffix, value))
        order = sorted(grouped, key=lambda prefix: _GROUP_PRIORITY.get(prefix, len(_GROUP_PRIORITY)))
        return [(prefix, grouped[prefix]) for prefix in order], ungrouped

    def _write_header(
        self, canvas: _Canvas, level: str, summary: _Summary, category: Optional[str]
    ) -> None:
        level_color = _level_color(level)
        canvas.paint(level_color + _BOLD)
        canvas.text("┌ ")
        canvas.paint(_RESET)
        canvas.dim(_clock(datetime.now()))
        canvas.text("  ")
        canvas.paint(level_color + _BOLD)

        if summary.method and summary.path:
            canvas.text(f"{summary.method} {summary.path}")
            canvas.paint(_RESET)
            if category is not None:
                canvas.text("  ")
                canvas.dim(f"[{category}]")
            if summary.status > 0:
                canvas.text("  ")
                canvas.paint(_status_color(summary.status) + _BOLD)
                canvas.text(str(summary.status))
                canvas.paint(_RESET)
            if summary.latency_ms > 0:
                canvas.text("  ")
                canvas.text(f"{summary.latency_ms:.1f}ms")
        else:
            canvas.text(summary.name or "wide_event")
            canvas.paint(_RESET)
        canvas.text("\n")

    def _write_group(self, canvas: _Canvas, prefix: str, entries: list[_Entry]) -> None:
        canvas.dim("│")
        canvas.text("  ")
        canvas.paint(_CYAN)
        canvas.text(prefix.ljust(_PREFIX_WIDTH))
        canvas.paint(_RESET)
        self._write_entries(canvas, entries)

    def _write_ungrouped(self, canvas: _Canvas, entries: list[_Entry]) -> None:
        canvas.dim("│")
        canvas.text(" " * (2 + _PREFIX_WIDTH))
        self._write_entries(canvas, entries)

    @staticmethod
    def _write_entries(canvas: _Canvas, entries: list[_Entry]) -> None:
        line_len = _BODY_INDENT + _PREFIX_WIDTH
        for index, (key, value) in enumerate(entries):
            rendered = format_value(value)
            plain_len = _byte_len(f"{key}={rendered}")
            if index > 0 and line_len + plain_len + 2 > _MAX_LINE_WIDTH:
                canvas.text("\n")
                canvas.dim("│")
                canvas.text(" " * (2 + _PREFIX_WIDTH))
                line_len = _BODY_INDENT + _PREFIX_WIDTH
            elif index > 0:
                canvas.text("  ")
                line_len += 2
            canvas.pair(key, rendered)
            line_len += plain_len
        canvas.text("\n")

    def _write_footer(self, canvas: _Canvas, summary: _Summary) -> None:
        canvas.dim("└ ")
        first = True
        if summary.outcome:
            canvas.dim("outcome=")
            canvas.paint(_outcome_color(summary.outcome))
            canvas.text(summary.outcome)
            canvas.paint(_RESET)
            first = False
        if summary.error:
            if not first:
                canvas.text("  ")
            canvas.dim("error=")
            canvas.paint(_RED)
            canvas.text(summary.error)
            canvas.paint(_RESET)
            first = False
        if summary.duration is not None:
            if not first:
                canvas.text("  ")
            canvas.dim("duration=")
            canvas.paint(self._duration_color(summary.duration))
            canvas.text(format_duration(summary.duration))
            canvas.paint(_RESET)
        canvas.paint(_RESET)
        canvas.text("\n")

    def _duration_color(self, duration: timedelta) -> str:
        if duration >= self.duration_error:
            return _RED
        if duration >= self.duration_warn:
            return _YELLOW
        return _GREEN


def _level_color(level: str) -> str:
    return {"error": _RED, "warn": _YELLOW}.get(level, _GREEN)


def _outcome_color(outcome: str) -> str:
    return {"success": _GREEN, "error": _RED}.get(outcome, "")


def _status_color(code: int) -> str:
    if code >= 500:
        return _RED
    if code >= 400:
        return _YELLOW
    return _GREEN


def dev_stdout_emitter(
    *,
    color: Optional[bool] = None,
    categories: Optional[Categories] = None,
    mute_categories: Iterable[str] = (),
    duration_warn: Optional[timedelta] = None,
    duration_error: Optional[timedelta] = None,
) -> DevEmitter:
    """A dev emitter for standard output; colour follows terminal detection by default."""
    return DevEmitter(
        None,
        color=color,
        categories=categories,
        mute_categories=mute_categories,
        duration_warn=duration_warn,
        duration_error=duration_error,
    )


def dev_writer_emitter(
    stream: TextIO,
    *,
    color: bool = False,
    categories: Optional[Categories] = None,
    mute_categories: Iterable[str] = (),
    duration_warn: Optional[timedelta] = None,
    duration_error: Optional[timedelta] = None,
) -> DevEmitter:
    """A dev emitter for ``stream``; colour is off unless requested."""
    return DevEmitter(
        stream,
        color=color,
        categories=categories,
        mute_categories=mute_categories,
        duration_warn=duration_warn,
        duration_error=duration_error,
    )