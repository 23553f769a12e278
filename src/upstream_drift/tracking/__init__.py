"""Tracking table models and parser exports."""

from .models import TrackedEntry
from .table import TrackingTable, UnknownBranch

__all__ = [
    "TrackedEntry",
    "TrackingTable",
    "UnknownBranch",
]
