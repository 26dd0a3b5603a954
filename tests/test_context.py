from wideevent.context import ENVIRON_KEY, bind_event, current_event, from_environ
from wideevent.event import begin


def test_bind_and_current_round_trip():
    evt = begin(None, "roundtrip")
    with bind_event(evt) as bound:
        assert bound is evt
        assert current_event() is evt
    assert current_event() is None


def test_current_event_empty():
    assert current_event() is None


def test_nested_binding_restores_outer():
    outer = begin(None, "outer")
    inner = begin(None, "inner")
    with bind_event(outer):
        with bind_event(inner):
            assert current_event() is inner
        assert current_event() is outer


def test_from_environ_with_key():
    evt = begin(None, "environ_key")
    assert from_environ({ENVIRON_KEY: evt}) is evt


def test_from_environ_prefers_environ_over_context():
    stored = begin(None, "stored")
    bound = begin(None, "bound")
    with bind_event(bound):
        assert from_environ({ENVIRON_KEY: stored}) is stored


def test_from_environ_falls_back_to_context():
    evt = begin(None, "fallback")
    with bind_event(evt):
        assert from_environ({}) is evt


def test_from_environ_ignores_non_event_value():
    evt = begin(None, "fallback")
    with bind_event(evt):
        assert from_environ({ENVIRON_KEY: "not an event"}) is evt


def test_from_environ_none_when_empty():
    assert from_environ({"PATH_INFO": "/"}) is None