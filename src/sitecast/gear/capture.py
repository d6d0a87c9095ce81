"""
Capture Gear

Runs one MCP tool call end to end: parse the arguments, pick the capture
policy, borrow the shared browser, capture, then materialize the output.
"""

import logging
from typing import Any, Dict, List

from mcp.types import TextContent

from .blackbox.recorder import ConsoleCaptureResult
from .browser.lifecycle import BrowserLifecycle
from .output.materializer import Content, OutputMaterializer
from .policy import decide_screencast_interval
from .requests import parse_console_request, parse_screencast_request, parse_screenshot_request
from .visual.freezer import TiledScreenshot

logger = logging.getLogger("sitecast.capture")


def format_console_report(result: ConsoleCaptureResult) -> str:
    lines = "\n".join(message.format() for message in result.messages)
    command = (
        f"JS Command executed: {result.executed_command}"
        if result.executed_command
        else "No JS command executed"
    )
    return (
        f"✅ Console capture completed for {result.url}\n\n"
        f"Duration: {result.duration:g} seconds\n"
        f"Messages captured: {len(result.messages)}\n"
        f"{command}\n\n"
        f"Console Output:\n"
        f"{lines or '(No console messages captured)'}"
    )


class CaptureGear:
    """
    Screenshot, screencast and console capture on a shared browser.
    """

    def __init__(self, lifecycle: BrowserLifecycle, materializer: OutputMaterializer):
        self.lifecycle = lifecycle
        self.materializer = materializer

    async def take_screenshot(self, arguments: Dict[str, Any]) -> List[Content]:
        request = parse_screenshot_request(arguments)
        logger.info(f"Processing screenshot request for URL: {request.url}")
        logger.debug(
            f"Screenshot parameters: viewport={request.viewport}, full_page={request.full_page}, "
            f"wait_until={request.wait_until.value}, wait_for_ms={request.wait_for_ms}, "
            f"directory={request.directory}"
        )

        async with self.lifecycle.session() as handle:
            result = await self.lifecycle.engine.render_and_capture(handle, request)

        kind = "tiled" if isinstance(result, TiledScreenshot) else "single"
        logger.info(f"Screenshot captured successfully ({kind})")

        output = await self.materializer.materialize_screenshot(result, request)
        return output.content

    async def take_screencast(self, arguments: Dict[str, Any]) -> List[Content]:
        request = parse_screencast_request(arguments)
        interval = decide_screencast_interval(request.duration, request.persist_as_animation)
        logger.info(f"Processing screencast request for URL: {request.url}")
        logger.debug(
            f"Screencast parameters: duration={request.duration}, interval={interval}, "
            f"viewport={request.viewport}, js_evaluate={len(request.js_evaluate)} instruction(s), "
            f"directory={request.directory}, format={request.format.value}, "
            f"quality={request.quality.value}"
        )

        async with self.lifecycle.session() as handle:
            result = await self.lifecycle.engine.render_and_capture_series(handle, request, interval)

        logger.info(f"Screencast captured successfully: {len(result.frames)} frames")

        output = await self.materializer.materialize_screencast(result, request)
        return output.content

    async def capture_console(self, arguments: Dict[str, Any]) -> List[Content]:
        request = parse_console_request(arguments)
        logger.info(f"Processing console capture request for URL: {request.url}")

        async with self.lifecycle.session() as handle:
            result = await self.lifecycle.engine.observe_console(handle, request)

        logger.info(f"Console capture completed: {len(result.messages)} messages")
        return [TextContent(type="text", text=format_console_report(result))]
