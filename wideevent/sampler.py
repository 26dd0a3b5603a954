"""Tail samplers that decide whether a finished event is emitted."""

from __future__ import annotations

import itertools
import random
import threading
from typing import Callable

from .event import Event

Sampler = Callable[[Event], bool]


def always_sample() -> Sampler:
    """A sampler that keeps every event."""
    return lambda _event: True


def never_sample() -> Sampler:
    """A sampler that drops every event."""
    return lambda _event: False


def always_on_error() -> Sampler:
    """A sampler that keeps events that carry an error."""
    return lambda event: event.has_error()


def always_on_status(*codes: int) -> Sampler:
    """A sampler that keeps events whose response status is one of ``codes``."""
    wanted = frozenset(codes)
    return lambda event: event.status_code() in wanted


def rate(n: int) -> Sampler:
    """A sampler that keeps every ``n``-th event; none when ``n`` <= 0."""
    if n <= 0:
        return never_sample()
    if n == 1:
        return always_sample()
    counter = itertools.count(1)
    lock = threading.Lock()

    def sample(_event: Event) -> bool:
        with lock:
            return next(counter) % n == 0

    return sample


def probability(p: float) -> Sampler:
    """A sampler that keeps each event with probability ``p``."""
    if p <= 0:
        return never_sample()
    if p >= 1:
        return always_sample()
    return lambda _event: random.random() < p


def composite_sampler(*samplers: Sampler) -> Sampler:
    """A sampler that keeps an event if any of ``samplers`` keeps it."""
    return lambda event: any(sampler(event) for sampler in samplers)