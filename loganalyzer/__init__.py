"""Streaming analytics for nginx access logs."""

__version__ = "0.1.0"
