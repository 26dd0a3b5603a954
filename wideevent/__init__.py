"""Wide-event structured logging: events, JSON and dev emitters, samplers and WSGI middleware."""

__version__ = "0.1.0"