"""Compliance deadline escalation service."""

__version__ = "0.1.0"
