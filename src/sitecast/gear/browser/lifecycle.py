"""
Browser Lifecycle

Owns the one shared rendering-engine handle for the whole process.

    ABSENT -> STARTING -> READY -> CLOSING -> ABSENT

The handle is created on first demand. Callers that arrive while a start is
in flight await the same pending start task instead of launching a second
browser. After shutdown() the manager stays ABSENT for good.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from enum import Enum
from typing import Any, AsyncIterator, Dict, Optional

from ...errors import EngineUnavailable, ShutdownFailure
from .manager import RenderingEngine

logger = logging.getLogger("sitecast.browser")


class EngineState(Enum):
    ABSENT = "absent"
    STARTING = "starting"
    READY = "ready"
    CLOSING = "closing"


class BrowserLifecycle:
    """Lazily started, shared, single-instance rendering engine."""

    def __init__(self, engine: RenderingEngine):
        self.engine = engine
        self.state = EngineState.ABSENT
        self.captures_served = 0
        self.active_captures = 0
        self.starts = 0
        self._handle: Optional[Any] = None
        self._start_task: Optional[asyncio.Task] = None
        self._ready_since: Optional[float] = None
        self._shutdown_requested = False

    @property
    def engine_held(self) -> bool:
        return self._handle is not None

    async def acquire(self) -> Any:
        """Return the running engine handle, starting it if needed."""
        if self._shutdown_requested:
            raise EngineUnavailable("Browser engine is shut down")

        if self.state is EngineState.READY:
            if self._is_alive(self._handle):
                return self._handle
            await self._discard_dead_handle()

        if self._start_task is None:
            self.state = EngineState.STARTING
            self._start_task = asyncio.ensure_future(self._start())

        # shield: one cancelled waiter must not abort the start the others share
        return await asyncio.shield(self._start_task)

    async def _start(self) -> Any:
        self.starts += 1
        logger.info("Starting browser engine...")
        try:
            handle = await self.engine.start()
        except EngineUnavailable:
            self.state = EngineState.ABSENT
            raise
        except Exception as e:
            self.state = EngineState.ABSENT
            raise EngineUnavailable(f"Browser failed to start: {e}") from e
        finally:
            self._start_task = None

        self._handle = handle
        self._ready_since = time.time()
        self.state = EngineState.READY
        logger.info("Browser engine ready")
        return handle

    def _is_alive(self, handle: Any) -> bool:
        is_alive = getattr(self.engine, "is_alive", None)
        return True if is_alive is None else bool(is_alive(handle))

    async def _discard_dead_handle(self) -> None:
        logger.warning("Browser engine disconnected, restarting on demand")
        handle, self._handle = self._handle, None
        self._ready_since = None
        self.state = EngineState.ABSENT
        try:
            await self.engine.stop(handle)
        except Exception as e:
            logger.debug(f"Ignoring error while stopping dead engine: {e}")

    @asynccontextmanager
    async def session(self) -> AsyncIterator[Any]:
        """Hold the shared handle for the duration of one capture."""
        handle = await self.acquire()
        self.active_captures += 1
        try:
            yield handle
        finally:
            self.active_captures -= 1
            self.captures_served += 1

    async def warm_up(self) -> bool:
        """Start the engine early if nothing else has. Never raises."""
        if self._shutdown_requested or self.state is not EngineState.ABSENT:
            logger.debug(f"Warm-up skipped (state={self.state.value})")
            return False
        try:
            await self.acquire()
        except EngineUnavailable as e:
            logger.warning(f"Browser warmup failed during startup: {e}")
            return False
        logger.debug("Browser warm-up complete")
        return True

    async def shutdown(self) -> None:
        """Close the engine exactly once and refuse further captures."""
        self._shutdown_requested = True

        if self._start_task is not None:
            try:
                await asyncio.shield(self._start_task)
            except EngineUnavailable:
                logger.debug("Pending engine start failed during shutdown")

        handle, self._handle = self._handle, None
        if handle is None:
            self.state = EngineState.ABSENT
            return

        self.state = EngineState.CLOSING
        logger.debug("Closing browser instance...")
        try:
            await self.engine.stop(handle)
        except Exception as e:
            raise ShutdownFailure(f"Browser did not close cleanly: {e}") from e
        finally:
            self._ready_since = None
            self.state = EngineState.ABSENT
        logger.info("Browser closed successfully")

    def stats(self) -> Dict[str, Any]:
        """Point-in-time snapshot. Never waits on the engine."""
        snapshot: Dict[str, Any] = {
            "state": self.state.value,
            "engine_held": self.engine_held,
            "captures_served": self.captures_served,
            "active_captures": self.active_captures,
            "starts": self.starts,
            "uptime_seconds": round(time.time() - self._ready_since, 1) if self._ready_since else 0.0,
        }
        if self._handle is not None:
            snapshot["engine"] = self.engine.stats(self._handle)
        return snapshot
