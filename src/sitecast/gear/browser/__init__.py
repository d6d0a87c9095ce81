"""
Browser Module

Playwright rendering engine and the lifecycle that shares it across captures.
"""

from .lifecycle import BrowserLifecycle, EngineState
from .manager import EngineHandle, PlaywrightEngine, RenderingEngine

__all__ = [
    "BrowserLifecycle",
    "EngineState",
    "EngineHandle",
    "PlaywrightEngine",
    "RenderingEngine",
]
