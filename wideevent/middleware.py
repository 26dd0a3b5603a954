"""WSGI middleware that records one wide event per request."""

from __future__ import annotations

import contextvars
import time
from datetime import datetime, timedelta
from typing import Any, Callable, Iterable, Iterator, MutableMapping, Optional

from .context import ENVIRON_KEY, bind_event
from .emitter import json_stdout_emitter
from .event import Emitter, Event
from .sampler import Sampler, always_sample

ERRORS_KEY = "wideevent.errors"

Environ = MutableMapping[str, Any]
Enricher = Callable[[Event, Environ], None]
StartResponse = Callable[..., Callable[[bytes], Any]]
WSGIApp = Callable[[Environ, StartResponse], Iterable[bytes]]


def record_error(environ: Environ, error: BaseException) -> None:
    """Attach an error to the current request; it is listed in the event."""
    environ.setdefault(ERRORS_KEY, []).append(error)


def _parse_status(status: str) -> int:
    try:
        return int(status.split(" ", 1)[0])
    except ValueError:
        return 0


def _content_length(environ: Environ) -> int:
    raw = environ.get("CONTENT_LENGTH")
    if raw is None or raw == "":
        return 0
    try:
        return int(raw)
    except ValueError:
        return -1


def _client_ip(environ: Environ) -> str:
    forwarded = environ.get("HTTP_X_FORWARDED_FOR", "")
    for candidate in forwarded.split(","):
        candidate = candidate.strip()
        if candidate:
            return candidate
    real_ip = environ.get("HTTP_X_REAL_IP", "").strip()
    if real_ip:
        return real_ip
    return environ.get("REMOTE_ADDR", "")


def _host(environ: Environ) -> str:
    host = environ.get("HTTP_HOST")
    if host:
        return host
    return environ.get("SERVER_NAME", "")


class _ResponseState:
    """Status and body size observed while the response is produced."""

    def __init__(self) -> None:
        self.status = 200
        self.size = -1

    def count(self, chunk: bytes) -> None:
        if self.size < 0:
            self.size = 0
        self.size += len(chunk)


class _TrackedBody:
    """Wraps a response iterable so the request finishes when it is closed.

    Every step of the wrapped application runs in a context where the
    request's event is the current one.
    """

    def __init__(
        self,
        result: Iterable[bytes],
        context: contextvars.Context,
        binding: Any,
        state: _ResponseState,
        finish: Callable[[], None],
    ) -> None:
        self._result = result
        self._context = context
        self._binding = binding
        self._state = state
        self._finish = finish
        self._closed = False
        self._iterator: Iterator[bytes] = context.run(iter, result)

    def __iter__(self) -> _TrackedBody:
        return self

    def __next__(self) -> bytes:
        chunk = self._context.run(next, self._iterator)
        self._state.count(chunk)
        return chunk

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            close = getattr(self._result, "close", None)
            if callable(close):
                self._context.run(close)
        finally:
            try:
                self._context.run(self._finish)
            finally:
                self._context.run(self._binding.__exit__, None, None, None)


class WideEventMiddleware:
    """Creates a wide event per request, enriches it with request and
    response metadata and emits it once the response is complete.

    The event is stored in the WSGI environ and bound as the current event
    while the application runs. Paths in ``skip_paths`` pass through
    untouched; the ``sampler`` decides whether a finished event is emitted.
    """

    def __init__(
        self,
        app: WSGIApp,
        *,
        emitter: Optional[Emitter] = None,
        sampler: Optional[Sampler] = None,
        pre_enricher: Optional[Enricher] = None,
        post_enricher: Optional[Enricher] = None,
        skip_paths: Iterable[str] = (),
    ) -> None:
        self.app = app
        self.emitter: Emitter = emitter if emitter is not None else json_stdout_emitter()
        self.sampler: Sampler = sampler if sampler is not None else always_sample()
        self.pre_enricher = pre_enricher
        self.post_enricher = post_enricher
        self.skip_paths = frozenset(skip_paths)

    def __call__(self, environ: Environ, start_response: StartResponse) -> Iterable[bytes]:
        path = environ.get("PATH_INFO", "")
        if path in self.skip_paths:
            return self.app(environ, start_response)

        started_at = datetime.now().astimezone()
        start = time.monotonic()
        event = Event(self.emitter)
        environ[ENVIRON_KEY] = event

        event.set("request.method", environ.get("REQUEST_METHOD", ""))
        event.set("request.path", path)
        event.set("request.query", environ.get("QUERY_STRING", ""))
        event.set("request.host", _host(environ))
        event.set("request.proto", environ.get("SERVER_PROTOCOL", ""))
        event.set("request.content_length", _content_length(environ))
        event.set("request.client_ip", _client_ip(environ))
        event.set("request.user_agent", environ.get("HTTP_USER_AGENT", ""))
        event.set("request.id", environ.get("HTTP_X_REQUEST_ID", ""))
        event.set("request.start_time", started_at)

        state = _ResponseState()

        def tracking_start_response(status: str, headers: Any, exc_info: Any = None) -> Callable[[bytes], Any]:
            state.status = _parse_status(status)
            if exc_info is None:
                write = start_response(status, headers)
            else:
                write = start_response(status, headers, exc_info)

            def tracked_write(data: bytes) -> Any:
                state.count(data)
                return write(data)

            return tracked_write

        context = contextvars.copy_context()
        binding = bind_event(event)
        context.run(binding.__enter__)
        try:
            if self.pre_enricher is not None:
                context.run(self.pre_enricher, event, environ)
            result = context.run(self.app, environ, tracking_start_response)
            return _TrackedBody(
                result,
                context,
                binding,
                state,
                lambda: self._finish(event, environ, state, start),
            )
        except BaseException:
            context.run(binding.__exit__, None, None, None)
            raise

    def _finish(self, event: Event, environ: Environ, state: _ResponseState, start: float) -> None:
        latency = timedelta(seconds=time.monotonic() - start)
        event.set("response.status", state.status)
        event.set("response.body_size", state.size)
        event.set("response.latency", latency)
        event.set("response.latency_ms", latency.total_seconds() * 1000)

        errors = environ.get(ERRORS_KEY, [])
        event.set("response.errors", len(errors))
        for index, error in enumerate(errors):
            event.set(f"response.error.{index}", str(error))

        if self.post_enricher is not None:
            self.post_enricher(event, environ)

        if self.sampler(event):
            event.emit()