"""
Shared fixtures: an in-memory rendering engine and a stand-in img2webp.
"""

import asyncio
import stat
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from sitecast.errors import EngineUnavailable
from sitecast.gear.animation.assembler import encoder_binary_name
from sitecast.gear.blackbox.recorder import ConsoleCaptureResult, LogEntry
from sitecast.gear.visual.freezer import Frame, ScreencastResult, SingleScreenshot

POSIX_ONLY = pytest.mark.skipif(
    not sys.platform.startswith(("linux", "darwin")), reason="img2webp stand-in is a shell script"
)


def make_frames(payloads: List[bytes]) -> tuple:
    return tuple(Frame(data=data, index=i, captured_at=1000.0 + i) for i, data in enumerate(payloads))


class FakeEngine:
    """RenderingEngine that returns canned results."""

    def __init__(
        self,
        start_delay: float = 0.0,
        fail_starts: int = 0,
        screenshot: Any = None,
        frames: Optional[List[bytes]] = None,
        messages: Optional[List[LogEntry]] = None,
        stop_error: Optional[Exception] = None,
    ):
        self.start_delay = start_delay
        self.fail_starts = fail_starts
        self.screenshot = screenshot or SingleScreenshot(data=b"single", width=1072, height=1072)
        self.frames = frames if frames is not None else [b"a", b"a", b"b"]
        self.messages = messages or []
        self.stop_error = stop_error
        self.start_calls = 0
        self.stop_calls = 0
        self.alive = True
        self.requests: List[Any] = []

    async def start(self) -> Dict[str, int]:
        self.start_calls += 1
        await asyncio.sleep(self.start_delay)
        if self.fail_starts:
            self.fail_starts -= 1
            raise EngineUnavailable("chromium missing")
        self.alive = True
        return {"id": self.start_calls}

    async def stop(self, handle: Any) -> None:
        self.stop_calls += 1
        if self.stop_error:
            raise self.stop_error

    def is_alive(self, handle: Any) -> bool:
        return self.alive

    async def render_and_capture(self, handle: Any, request: Any) -> Any:
        self.requests.append(request)
        return self.screenshot

    async def render_and_capture_series(self, handle: Any, request: Any, interval: float) -> ScreencastResult:
        self.requests.append((request, interval))
        return ScreencastResult(frames=make_frames(self.frames), duration=request.duration, interval=interval)

    async def observe_console(self, handle: Any, request: Any) -> ConsoleCaptureResult:
        self.requests.append(request)
        return ConsoleCaptureResult(
            url=request.url,
            duration=request.duration,
            messages=list(self.messages),
            executed_command=request.js_command,
        )

    def stats(self, handle: Any) -> Dict[str, Any]:
        return {"handle": handle["id"]}


@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine()


def _write_script(directory: Path, body: str) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    script = directory / encoder_binary_name()
    script.write_text("#!/bin/sh\n" + body)
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return script


@pytest.fixture
def fake_encoder(tmp_path: Path) -> Path:
    """Directory holding an img2webp that records its args and writes a tiny file."""
    bin_dir = tmp_path / "encoder"
    args_file = tmp_path / "encoder-args.txt"
    _write_script(
        bin_dir,
        f'echo "$@" > "{args_file}"\n'
        'out=""\n'
        'while [ $# -gt 0 ]; do\n'
        '  if [ "$1" = "-o" ]; then out="$2"; fi\n'
        "  shift\n"
        "done\n"
        "printf 'RIFFfakeWEBP' > \"$out\"\n",
    )
    return bin_dir


@pytest.fixture
def failing_encoder(tmp_path: Path) -> Path:
    bin_dir = tmp_path / "broken-encoder"
    _write_script(bin_dir, 'echo "bad frame data" >&2\nexit 3\n')
    return bin_dir
