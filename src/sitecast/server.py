"""
Sitecast MCP Server

Fast web page capture for coding agents.
Exposes screenshot, screencast and console capture as MCP tools.

Tools:
- take_screenshot: Viewport or full page, auto-tiled into 1072x1072 chunks
- take_screencast: Timed frame series, inline or saved as PNG frames / animated WebP
- capture_console: Console output while a page loads and runs optional JS
"""

import asyncio
import logging
import signal
import sys
from typing import Any, Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Resource, Tool, ToolAnnotations

from .config import load_config
from .errors import SitecastError, ShutdownFailure
from .gear.animation.assembler import AnimationAssembler
from .gear.browser.lifecycle import BrowserLifecycle
from .gear.browser.manager import PlaywrightEngine
from .gear.capture import CaptureGear
from .gear.output.materializer import Content, OutputMaterializer

logger = logging.getLogger("sitecast")

SERVER_NAME = "sitecast"
SERVER_VERSION = "0.1.0"

WAIT_UNTIL_SCHEMA = {
    "type": "string",
    "description": "Wait until event: load, domcontentloaded, networkidle0, networkidle2",
    "enum": ["load", "domcontentloaded", "networkidle0", "networkidle2"],
    "default": "domcontentloaded",
}


def _annotations(title: str) -> ToolAnnotations:
    # Captures never modify anything, but every call sees fresh content.
    return ToolAnnotations(
        title=title,
        readOnlyHint=True,
        destructiveHint=False,
        idempotentHint=False,
        openWorldHint=True,
    )


TOOLS = [
    Tool(
        name="take_screenshot",
        description=(
            "Fast, efficient screenshot capture of web pages - optimized for CLI coding tools. "
            "Use this after performing updates to web pages to ensure your changes are displayed "
            "correctly. Automatically tiles full pages into 1072x1072 chunks for optimal processing."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "url": {"type": "string", "description": "HTTP/HTTPS URL to capture"},
                "width": {
                    "type": "number",
                    "description": "Viewport width in pixels (max 1072)",
                    "default": 1072,
                },
                "fullPage": {
                    "type": "boolean",
                    "description": "Capture full page screenshot with tiling. If false, only the viewport is captured.",
                    "default": True,
                },
                "waitUntil": WAIT_UNTIL_SCHEMA,
                "waitForMS": {"type": "number", "description": "Additional wait time in milliseconds"},
                "directory": {
                    "type": "string",
                    "description": "Save tiled screenshots to a local directory (returns file paths instead of base64)",
                },
            },
            "required": ["url"],
        },
        annotations=_annotations("Take Screenshot"),
    ),
    Tool(
        name="take_screencast",
        description=(
            "Capture a series of screenshots of a web page over time, producing a screencast. "
            "Uses adaptive frame rates: 100ms intervals for ≤5s, 200ms for 5-10s, 500ms for >10s. "
            "PNG format: individual frames. WebP format: animated WebP with 4-second pause at end for looping."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "url": {"type": "string", "description": "HTTP/HTTPS URL to capture"},
                "duration": {
                    "type": "number",
                    "description": "Total duration of screencast in seconds",
                    "default": 10,
                },
                "width": {"type": "number", "description": "Viewport width in pixels (max 1072)", "default": 1072},
                "height": {"type": "number", "description": "Viewport height in pixels (max 1072)", "default": 1072},
                "jsEvaluate": {
                    "oneOf": [
                        {
                            "type": "string",
                            "description": "Single JavaScript code to execute after the first screenshot",
                        },
                        {
                            "type": "array",
                            "items": {"type": "string"},
                            "description": "Array of JavaScript instructions - screenshot taken before each one",
                        },
                    ],
                    "description": (
                        "JavaScript code to execute. String: single instruction after first screenshot. "
                        "Array: takes screenshot before each instruction, then continues capturing until duration ends."
                    ),
                },
                "waitUntil": WAIT_UNTIL_SCHEMA,
                "directory": {
                    "type": "string",
                    "description": 'Save screencast to directory. Specify format with "format" parameter.',
                },
                "format": {
                    "type": "string",
                    "description": (
                        'Output format when using directory: "png" for individual PNG files, '
                        '"webp" for animated WebP (default)'
                    ),
                    "enum": ["png", "webp"],
                    "default": "webp",
                },
                "quality": {
                    "type": "string",
                    "description": 'WebP quality level (only applies when format is "webp"): low (50), medium (75), high (90)',
                    "enum": ["low", "medium", "high"],
                    "default": "medium",
                },
            },
            "required": ["url"],
        },
        annotations=_annotations("Take Screencast"),
    ),
    Tool(
        name="capture_console",
        description=(
            "Capture console output from a web page. Accepts a URL, optional JS command to run, "
            "and duration to wait (default 4 seconds). Returns all console messages during that time."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "url": {"type": "string", "description": "HTTP/HTTPS URL to capture console from"},
                "jsCommand": {"type": "string", "description": "Optional JavaScript command to execute on the page"},
                "duration": {
                    "type": "number",
                    "description": "Duration to capture console output in seconds",
                    "default": 4,
                },
                "waitUntil": WAIT_UNTIL_SCHEMA,
            },
            "required": ["url"],
        },
        annotations=_annotations("Capture Console Output"),
    ),
]


def create_server(gear: CaptureGear) -> Server:
    """Build the MCP server and route tool calls to the capture gear."""
    server = Server(SERVER_NAME, version=SERVER_VERSION)
    handlers = {
        "take_screenshot": gear.take_screenshot,
        "take_screencast": gear.take_screencast,
        "capture_console": gear.capture_console,
    }

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        """List available capture tools."""
        logger.debug(f"Returning tools: {[tool.name for tool in TOOLS]}")
        return TOOLS

    @server.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any]) -> list[Content]:
        """Handle tool calls. Failures propagate so the client sees isError."""
        logger.info(f"Received CallTool request: {name}")
        handler = handlers.get(name)
        if handler is None:
            logger.error(f"Unknown tool: {name}")
            raise ValueError(f"Unknown tool: {name}")
        try:
            return await handler(arguments or {})
        except SitecastError as e:
            logger.error(f"Tool {name} failed: {e}")
            raise
        except Exception:
            logger.exception(f"Tool {name} failed")
            raise

    @server.list_resources()
    async def list_resources() -> list[Resource]:
        return []

    @server.read_resource()
    async def read_resource(uri: Any) -> str:
        logger.debug(f"Received ReadResource request: {uri}")
        raise ValueError("No resources available")

    return server


class SitecastApp:
    """
    Composition root: one browser lifecycle, one capture gear, one MCP server.
    """

    def __init__(self, config: dict[str, Any] | None = None, engine: Any = None):
        self.config = config or {}
        self.lifecycle = BrowserLifecycle(engine or PlaywrightEngine(self.config))
        materializer = OutputMaterializer(AnimationAssembler(self.config))
        self.gear = CaptureGear(self.lifecycle, materializer)
        self.server = create_server(self.gear)
        self.heartbeat_seconds = self.config.get("server.heartbeat_seconds", 30.0)
        self.exit_code = 0
        self._main_task: Optional[asyncio.Task] = None
        self._serving = False
        self._shutdown_task: Optional[asyncio.Task] = None

    async def heartbeat(self) -> None:
        """Log liveness and browser stats until cancelled."""
        while True:
            await asyncio.sleep(self.heartbeat_seconds)
            logger.debug("Server heartbeat - still running...")
            logger.debug(f"Browser stats: {self.lifecycle.stats()}")

    def request_shutdown(self, reason: str, exit_code: int = 0) -> None:
        """Close the browser, then stop the server loop. Later requests are ignored."""
        if self._shutdown_task is not None:
            return
        logger.info(f"Received {reason}, shutting down gracefully...")
        self.exit_code = exit_code
        self._shutdown_task = asyncio.ensure_future(self._shutdown())

    async def _shutdown(self) -> None:
        try:
            await self.lifecycle.shutdown()
            logger.info("Shutdown complete")
        except ShutdownFailure as e:
            logger.error(f"Error during cleanup: {e}")
            self.exit_code = 1
        finally:
            if self._serving and self._main_task is not None:
                self._main_task.cancel()

    def _on_loop_error(self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
        logger.error(f"Unhandled error: {context.get('message')}", exc_info=context.get("exception"))
        self.request_shutdown("unhandled error", exit_code=1)

    def _install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_shutdown, sig.name)
            except NotImplementedError:
                logger.debug(f"Signal handler for {sig.name} unavailable on this platform")

    async def run(self) -> int:
        """Serve over stdio until the client disconnects or a signal arrives."""
        loop = asyncio.get_running_loop()
        self._main_task = asyncio.current_task()
        loop.set_exception_handler(self._on_loop_error)
        self._install_signal_handlers(loop)

        background: list[asyncio.Task] = []
        try:
            async with stdio_server() as (read_stream, write_stream):
                self._serving = True
                logger.info("MCP server connected and running successfully!")
                background.append(asyncio.create_task(self.lifecycle.warm_up()))
                background.append(asyncio.create_task(self.heartbeat()))
                logger.info("Ready to receive requests")
                await self.server.run(read_stream, write_stream, self.server.create_initialization_options())
        except asyncio.CancelledError:
            if self._shutdown_task is None:
                raise
        finally:
            self._serving = False
            for task in background:
                task.cancel()
            await asyncio.gather(*background, return_exceptions=True)

        if self._shutdown_task is None:
            self.request_shutdown("end of input")
        await self._shutdown_task
        return self.exit_code


def main() -> int:
    """Run the Sitecast MCP server."""
    if "-h" in sys.argv or "--help" in sys.argv:
        print(
            "Usage: sitecast\n\n"
            "Runs the Sitecast MCP server over stdio.\n\n"
            "Environment:\n"
            "  LOG_LEVEL                    DEBUG, INFO, WARNING, ERROR (default INFO)\n"
            "  SITECAST_HEADLESS            Run Chromium headless (default true)\n"
            "  SITECAST_NAV_TIMEOUT_MS      Navigation timeout (default 30000)\n"
            "  SITECAST_ENCODER_DIR         Directory holding img2webp-linux / img2webp-darwin\n"
            "  SITECAST_HEARTBEAT_SECONDS   Heartbeat log interval (default 30)"
        )
        return 0

    try:
        config = load_config()
    except SitecastError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1

    logging.basicConfig(
        level=config["log.level"],
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    logger.info("Starting Sitecast MCP Server...")
    app = SitecastApp(config)
    try:
        exit_code = asyncio.run(app.run())
    except Exception:
        logger.exception("Fatal server error")
        exit_code = 1
    logger.info(f"Process exiting with code: {exit_code}")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
