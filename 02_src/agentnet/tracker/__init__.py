"""Tracker module."""

from .tracker import ALL_EVENTS, ITracker, TraceHook, Tracker

__all__ = ["ALL_EVENTS", "ITracker", "TraceHook", "Tracker"]
