"""Segment-aware daily itinerary planning for multi-city trips."""

__version__ = "1.0.0"
