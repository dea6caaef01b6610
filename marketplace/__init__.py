"""Matching, offer negotiation and project lifecycle engine for a services marketplace."""

__version__ = "0.1.0"
