# wideevent

Wide-event logging for Python services and jobs.

Instead of scattering many small log lines across a request, a *wide event*
collects every interesting fact about one unit of work (the request, the
user, the database calls, the outcome) and writes them out once, as a single
structured record, when the work is finished.

The package has no runtime dependencies.

## Standalone events

For background jobs and anything else that is not a web request, start an
event with `wideevent.event.begin`, add fields as you go, and call `emit`
when done:

```python
from wideevent.event import begin
from wideevent.emitter import json_stdout_emitter

event = begin(json_stdout_emitter(), "sync_users")
event.set("db.queries", 12).set("db.rows_affected", 48)
event.success()
event.emit()
```

`begin` records the event's `name`. `emit` adds a `duration` field (a
`timedelta` measured from when the event was created) and passes the event to
the emitter. Only the first call to `emit` has any effect. The emitter may be
`None`, in which case nothing is written.

Keys may contain dots. The JSON emitter turns them into nested objects, so the
event above is written as one line such as:

```json
{"db":{"queries":12,"rows_affected":48},"duration":3.1,"level":"info","message":"wide_event","name":"sync_users","outcome":"success"}
```

Methods of `Event` (setters return the event, so calls chain):

- `set(key, value)` – add any field.
- `err(key, error)` – record the message of an exception; `None` is ignored.
- `uuid(key, value)` – record the string form of an identifier.
- `success()` – set `outcome` to `success`.
- `failure(error=None)` – set `outcome` to `failure`, and `error` to the
  exception's message if one is given.
- `user_id(value)`, `user_name(name)`, `user_role(role)` – the `user.*` fields.
- `has_error()` – true when the outcome is `failure` or an integer
  `response.status` is 500 or more.
- `status_code()` – the first integer `response.status`, or 0.
- `fields()` – a snapshot list of `Field(key, value)` tuples in insertion
  order; `fields_map()` – the same, nested by dotted keys.

Adding and reading fields is thread-safe. `wideevent.nest.nest_fields` does
the dotted-key nesting on any iterable of `(key, value)` pairs; later values
overwrite earlier ones.

## Emitters

An emitter is any callable that receives a finished event.

### JSON (`wideevent.emitter`)

- `json_stdout_emitter()` / `json_writer_emitter(stream)` – return a
  `JSONEmitter` that writes one compact JSON line per event, with sorted keys
  and non-ASCII text left as is. `timedelta` values are written as
  milliseconds and `datetime` values as RFC 3339 text; other values JSON
  cannot represent are written as their string form.
- Every line carries `"message": "wide_event"` and a `level` from
  `infer_level(event)`: `error` for failures and 5xx statuses, `warn` for 4xx,
  otherwise `info`.
- `convert_value(value)` is the value conversion used for JSON.
- `multi_emitter(*emitters)` – pass every event to each emitter in turn.

### Development output (`wideevent.dev_emitter`)

`dev_stdout_emitter(...)` and `dev_writer_emitter(stream, ...)` return a
`DevEmitter` that writes a human-readable block per event:

- a header with the time, and either `METHOD PATH` with the category, status
  and `response.latency_ms`, or the event's name;
- the remaining fields grouped by the part of the key before the first dot,
  `request`, `response` and `user` first, wrapped at 90 columns;
- a footer with `outcome`, `error` and `duration`.

Keyword options:

- `color` – ANSI colour on or off. For stdout it defaults to whether stdout
  is a terminal; for other streams it is off.
- `categories` – a mapping (or pairs) of category name to one path prefix or
  several; a request whose path starts with a prefix is labelled with the
  first matching category. `DevEmitter.match_category(path)` does the lookup.
- `mute_categories` – category names whose events produce no output.
- `duration_warn` / `duration_error` – the thresholds (default 500 ms and 2 s)
  at which the footer's duration turns yellow and red.

`format_value(value)` and `format_duration(duration)` render values as the
block shows them (for example `500µs`, `150.0ms`, `2.50s`, `14:30:45.123`).

```python
import sys
from datetime import timedelta
from wideevent.dev_emitter import dev_writer_emitter
from wideevent.emitter import json_writer_emitter, multi_emitter

emitter = multi_emitter(
    json_writer_emitter(sys.stdout),
    dev_writer_emitter(
        sys.stderr,
        color=True,
        categories={"assets": ["/static", "/src/assets"]},
        mute_categories=["assets"],
        duration_warn=timedelta(milliseconds=200),
    ),
)
```

## Sampling (`wideevent.sampler`)

A sampler is a callable that takes a finished event and returns whether to
keep it:

- `always_sample()`, `never_sample()`
- `always_on_error()` – keep events for which `has_error()` is true
- `always_on_status(*codes)` – keep the given response statuses
- `rate(n)` – keep every n-th event; none when `n` is 0 or less
- `probability(p)` – keep each event with probability `p`
- `composite_sampler(*samplers)` – keep an event if any sampler keeps it

```python
from wideevent.sampler import always_on_error, composite_sampler, rate

sampler = composite_sampler(always_on_error(), rate(100))
```

## WSGI middleware (`wideevent.middleware`)

`WideEventMiddleware(app, *, emitter=None, sampler=None, pre_enricher=None,
post_enricher=None, skip_paths=())` wraps a WSGI application and creates one
event per request. The emitter defaults to JSON on stdout and the sampler to
`always_sample()`.

Before the application runs it records `request.method`, `path`, `query`,
`host`, `proto`, `content_length`, `client_ip` (from `X-Forwarded-For`,
`X-Real-IP` or the remote address), `user_agent`, `id` (the `X-Request-ID`
header) and `start_time`, then calls `pre_enricher(event, environ)`. When the
response body is closed it records `response.status`, `body_size`, `latency`
and `latency_ms`, the errors noted for the request, calls
`post_enricher(event, environ)`, and emits the event if the sampler keeps it.
Requests for paths in `skip_paths` pass through without an event.

Inside the application the request's event is available from the environ or
from the current context:

```python
from wideevent.context import current_event, from_environ
from wideevent.middleware import WideEventMiddleware, record_error


def app(environ, start_response):
    event = from_environ(environ)
    event.set("endpoint", "list_users").success()
    start_response("200 OK", [("Content-Type", "application/json")])
    return [b"[]"]


application = WideEventMiddleware(app, skip_paths=["/health"])
```

`record_error(environ, error)` notes an error against the request; the event
then holds the count under `response.errors` and each message under
`response.error.<n>`.

Outside the middleware, `bind_event(event)` from `wideevent.context` is a
context manager that makes an event the current one, so that code further
down can reach it with `current_event()`.

## Limits

The middleware is for WSGI applications only; there is no ASGI variant.
The package writes events to streams and does not ship them to any log
store or collector.