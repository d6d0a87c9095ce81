"""
Output Materializer

Turns capture results into MCP content: base64 images returned inline, or
files written under the caller's directory with their paths reported back.
"""

import asyncio
import base64
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence, Union
from urllib.parse import urlparse

from mcp.types import ImageContent, TextContent

from ...errors import EncodingFailure
from ..animation.assembler import AnimationAssembler
from ..requests import CaptureRequest, ScreencastFormat, ScreencastRequest, ScreenshotRequest
from ..visual.freezer import ScreencastResult, Screenshot, SingleScreenshot, TiledScreenshot

logger = logging.getLogger("sitecast.output")

PNG_MIME = "image/png"
END_DELAY_MS = 4000

Content = Union[TextContent, ImageContent]


@dataclass
class MaterializedOutput:
    """MCP content blocks plus whatever was written to disk."""

    content: List[Content] = field(default_factory=list)
    paths: List[Path] = field(default_factory=list)
    fallback: bool = False


def capture_timestamp(moment: Optional[datetime] = None) -> str:
    """ISO-8601 UTC time with ':' and '.' replaced so it is filename-safe."""
    moment = moment or datetime.now(timezone.utc)
    iso = moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return re.sub(r"[:.]", "-", iso)


def generate_filename(
    url: str,
    timestamp: str,
    index: Optional[int] = None,
    prefix: str = "screenshot",
    extension: str = "png",
) -> str:
    """<prefix>_<host>_<timestamp>[_frame<index+1>].<extension>"""
    hostname = re.sub(r"[^a-z0-9]", "_", urlparse(url).hostname or "", flags=re.IGNORECASE)
    suffix = f"_frame{index + 1}" if index is not None else ""
    return f"{prefix}_{hostname}_{timestamp}{suffix}.{extension}"


def _image(data: bytes) -> ImageContent:
    return ImageContent(type="image", data=base64.b64encode(data).decode("ascii"), mimeType=PNG_MIME)


def _text(text: str, request: CaptureRequest) -> TextContent:
    if request.notes:
        text += "\n\n" + "\n".join(f"Note: {note}" for note in request.notes)
    return TextContent(type="text", text=text)


def _seconds(value: float) -> str:
    return f"{value:g}"


class OutputMaterializer:
    """Inline or on-disk delivery of screenshots and screencasts."""

    def __init__(self, assembler: AnimationAssembler):
        self.assembler = assembler

    async def materialize(
        self, result: Union[Screenshot, ScreencastResult], request: CaptureRequest
    ) -> MaterializedOutput:
        if isinstance(result, ScreencastResult):
            return await self.materialize_screencast(result, request)
        return await self.materialize_screenshot(result, request)

    async def _write(self, directory: Path, filename: str, data: bytes) -> Path:
        path = directory / filename
        await asyncio.to_thread(path.write_bytes, data)
        return path

    async def _ensure_directory(self, directory: Path) -> None:
        if not directory.exists():
            logger.debug(f"Creating directory {directory}")
            await asyncio.to_thread(directory.mkdir, parents=True, exist_ok=True)

    async def materialize_screenshot(
        self, result: Screenshot, request: ScreenshotRequest
    ) -> MaterializedOutput:
        if request.directory is None:
            return self._inline_screenshot(result, request)

        await self._ensure_directory(request.directory)
        timestamp = capture_timestamp()
        output = MaterializedOutput()

        if isinstance(result, TiledScreenshot):
            for i, tile in enumerate(result.tiles):
                filename = generate_filename(request.url, timestamp, i)
                output.paths.append(await self._write(request.directory, filename, tile.data))
            listing = "\n".join(str(p) for p in output.paths)
            text = (
                f"✅ Saved {len(result.tiles)} screenshot tiles to:\n{listing}\n\n"
                f"Page size: {result.full_width}x{result.full_height} pixels\n"
                f"Tile size: {result.tile_size}x{result.tile_size} pixels"
            )
        else:
            path = await self._write(request.directory, generate_filename(request.url, timestamp), result.data)
            output.paths.append(path)
            text = f"✅ Screenshot saved to: {path}\n\nDimensions: {result.width}x{result.height} pixels"

        logger.info(f"Saved {len(output.paths)} screenshot file(s) to {request.directory}")
        output.content.append(_text(text, request))
        return output

    def _inline_screenshot(self, result: Screenshot, request: ScreenshotRequest) -> MaterializedOutput:
        output = MaterializedOutput()
        if isinstance(result, TiledScreenshot):
            output.content.extend(_image(tile.data) for tile in result.tiles)
            text = (
                f"✅ Captured {len(result.tiles)} tiles ({result.tile_size}x{result.tile_size} each) "
                f"from page measuring {result.full_width}x{result.full_height} pixels"
            )
        else:
            output.content.append(_image(result.data))
            text = f"✅ Screenshot captured: {result.width}x{result.height} pixels"
        output.content.append(_text(text, request))
        return output

    async def materialize_screencast(
        self, result: ScreencastResult, request: ScreencastRequest
    ) -> MaterializedOutput:
        frames = [frame.data for frame in result.frames]
        summary = (
            f"Duration: {_seconds(result.duration)}s\n"
            f"Frames: {len(frames)}\n"
            f"Interval: {_seconds(result.interval)}s"
        )

        if request.directory is None:
            output = MaterializedOutput(content=[_image(data) for data in frames])
            output.content.append(
                _text(
                    f"✅ Captured {len(frames)} frames over {_seconds(result.duration)} seconds "
                    f"({_seconds(result.interval)}s interval)",
                    request,
                )
            )
            return output

        await self._ensure_directory(request.directory)
        timestamp = capture_timestamp()

        if request.format is ScreencastFormat.PNG:
            output = await self._write_frames(frames, request, timestamp)
            listing = "\n".join(str(p) for p in output.paths)
            output.content.append(_text(f"✅ Screencast saved as PNG frames:\n{listing}\n\n{summary}", request))
            return output

        try:
            webp = await self.assembler.assemble(
                frames,
                delay_ms=result.interval * 1000,
                end_delay_ms=END_DELAY_MS,
                quality=request.quality,
            )
        except EncodingFailure as e:
            logger.error(f"Failed to create WebP: {e}")
            output = await self._write_frames(frames, request, timestamp)
            output.fallback = True
            listing = "\n".join(str(p) for p in output.paths)
            output.content.append(
                _text(
                    f"⚠️  WebP creation failed, saved as PNG frames:\n{listing}\n\n{summary}\n"
                    f"Reason: {e}",
                    request,
                )
            )
            return output

        filename = generate_filename(request.url, timestamp, prefix="screencast", extension="webp")
        path = await self._write(request.directory, filename, webp)
        logger.info(f"Screencast saved as animated WebP: {path}")
        text = (
            f"✅ Screencast saved as animated WebP: {path}\n\n"
            f"Duration: {_seconds(result.duration)}s\n"
            f"Frames: {len(frames)}\n"
            f"Capture Interval: {_seconds(result.interval * 1000)}ms (4s pause at end)\n"
            f"Quality: {request.quality.value}\n"
            f"Method: img2webp (optimized with frame deduplication)"
        )
        return MaterializedOutput(content=[_text(text, request)], paths=[path])

    async def _write_frames(
        self, frames: Sequence[bytes], request: ScreencastRequest, timestamp: str
    ) -> MaterializedOutput:
        output = MaterializedOutput()
        for i, data in enumerate(frames):
            filename = generate_filename(request.url, timestamp, i, prefix="frame")
            output.paths.append(await self._write(request.directory, filename, data))
        logger.info(f"Saved {len(frames)} PNG frames to {request.directory}")
        return output
