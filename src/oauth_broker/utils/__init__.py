"""Utility modules for the OAuth broker."""

from oauth_broker.utils.clock import Clock, now_ms

__all__ = [
    "Clock",
    "now_ms",
]
