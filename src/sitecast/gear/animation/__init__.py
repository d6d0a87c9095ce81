"""Animated WebP assembly from screencast frames."""

from .assembler import AnimationAssembler, UniqueFrameRun, collapse_frames

__all__ = ["AnimationAssembler", "UniqueFrameRun", "collapse_frames"]
