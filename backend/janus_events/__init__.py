"""Janus event handler sink: normalizes webhook events into relational tables."""

__version__ = "1.0.0"
