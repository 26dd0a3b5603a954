import io
import json
from datetime import datetime, timedelta, timezone

import pytest

from wideevent.emitter import (
    convert_value,
    infer_level,
    json_stdout_emitter,
    json_writer_emitter,
    multi_emitter,
)
from wideevent.event import begin


def _emit(build):
    buf = io.StringIO()
    evt = begin(json_writer_emitter(buf), build[0])
    for key, value in build[1:]:
        evt.set(key, value)
    evt.emit()
    return buf.getvalue()


def test_json_output_structure():
    buf = io.StringIO()
    evt = begin(json_writer_emitter(buf), "test_event")
    evt.set("endpoint", "get_users").success()
    evt.set("response.status", 200)
    evt.emit()

    result = json.loads(buf.getvalue())
    assert result["level"] == "info"
    assert result["message"] == "wide_event"
    assert result["name"] == "test_event"
    assert result["outcome"] == "success"
    assert result["endpoint"] == "get_users"
    assert result["response"] == {"status": 200}


def test_one_line_per_event():
    out = _emit(("line",))
    assert out.endswith("\n")
    assert out.count("\n") == 1


def test_json_nested_output():
    out = _emit(("nested", ("db.operation", "update"), ("db.entity", "user")))
    result = json.loads(out)
    assert result["db"] == {"operation": "update", "entity": "user"}


def test_json_deep_nesting():
    result = json.loads(_emit(("deep", ("a.b.c.d", "value"))))
    assert result["a"]["b"]["c"]["d"] == "value"


def test_level_inference_error():
    result = json.loads(_emit(("error", ("response.status", 500))))
    assert result["level"] == "error"


def test_level_inference_warn():
    result = json.loads(_emit(("warn", ("response.status", 404))))
    assert result["level"] == "warn"


def test_level_inference_failure():
    buf = io.StringIO()
    evt = begin(json_writer_emitter(buf), "failure")
    evt.failure()
    evt.emit()
    assert json.loads(buf.getvalue())["level"] == "error"


@pytest.mark.parametrize(
    ("status", "level"),
    [(None, "info"), (200, "info"), (399, "info"), (400, "warn"), (499, "warn"), (503, "error")],
)
def test_infer_level(status, level):
    evt = begin(None, "lvl")
    if status is not None:
        evt.set("response.status", status)
    assert infer_level(evt) == level


def test_duration_emitted_as_ms():
    result = json.loads(_emit(("dur_test", ("custom_dur", timedelta(milliseconds=150)))))
    assert isinstance(result["custom_dur"], float)
    assert result["custom_dur"] == pytest.approx(150.0)


def test_event_duration_present():
    result = json.loads(_emit(("dur",)))
    assert isinstance(result["duration"], float)
    assert result["duration"] >= 0


def test_time_emitted_as_rfc3339():
    ts = datetime(2026, 2, 20, 10, 30, 0, 123456, tzinfo=timezone.utc)
    result = json.loads(_emit(("time_test", ("ts", ts))))
    assert result["ts"] == "2026-02-20T10:30:00.123456Z"


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (datetime(2026, 2, 20, 10, 30, tzinfo=timezone.utc), "2026-02-20T10:30:00Z"),
        (
            datetime(2026, 2, 20, 10, 30, 0, 500000, tzinfo=timezone(timedelta(hours=2))),
            "2026-02-20T10:30:00.5+02:00",
        ),
        (
            datetime(2026, 2, 20, 10, 30, tzinfo=timezone(-timedelta(hours=5, minutes=30))),
            "2026-02-20T10:30:00-05:30",
        ),
        (timedelta(seconds=2), 2000.0),
        ("plain", "plain"),
        (7, 7),
    ],
)
def test_convert_value(value, expected):
    assert convert_value(value) == expected


def test_html_is_not_escaped():
    out = _emit(("html", ("body", "<a>&é")))
    assert "<a>&é" in out


def test_keys_are_sorted():
    out = _emit(("sorted", ("zeta", 1), ("alpha", 2)))
    assert out.index('"alpha"') < out.index('"zeta"')


def test_json_stdout_emitter(capsys):
    evt = begin(json_stdout_emitter(), "stdout_test")
    evt.emit()
    result = json.loads(capsys.readouterr().out)
    assert result["name"] == "stdout_test"


def test_multi_emitter_fans_out():
    first, second = [], []
    evt = begin(multi_emitter(first.append, second.append), "multi")
    evt.emit()
    assert first == [evt]
    assert second == [evt]