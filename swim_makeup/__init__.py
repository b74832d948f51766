"""Makeup lesson booking and waitlist service for a swimming school."""

__version__ = "1.0.0"
