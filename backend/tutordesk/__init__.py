"""Availability-aware scheduling core for the tutoring-center dashboard."""

__version__ = "0.1.0"
