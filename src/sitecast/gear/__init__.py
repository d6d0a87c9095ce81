"""Capture Gear - tool implementations for page capture."""

from .capture import CaptureGear

__all__ = ["CaptureGear"]
