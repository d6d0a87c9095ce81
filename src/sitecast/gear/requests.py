"""
Capture Requests

Immutable request objects built from raw MCP tool arguments. Parsing is the
only place where argument shapes are checked; everything downstream trusts
these dataclasses.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import urlparse

from ..errors import InvalidParameters

MAX_DIMENSION = 1072


class WaitUntil(Enum):
    """Page lifecycle event to wait for after navigation."""

    LOAD = "load"
    DOMCONTENTLOADED = "domcontentloaded"
    NETWORKIDLE0 = "networkidle0"
    NETWORKIDLE2 = "networkidle2"

    @property
    def playwright_state(self) -> str:
        # Playwright has a single "networkidle" (no connections for 500ms).
        # The busy variant tolerates open connections, so plain load is the
        # closest match.
        if self is WaitUntil.NETWORKIDLE0:
            return "networkidle"
        if self is WaitUntil.NETWORKIDLE2:
            return "load"
        return self.value


class ScreencastFormat(Enum):
    PNG = "png"
    WEBP = "webp"


class Quality(Enum):
    """WebP quality tier."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def level(self) -> int:
        return {"low": 50, "medium": 75, "high": 90}[self.value]


@dataclass(frozen=True)
class Viewport:
    width: int
    height: int


@dataclass(frozen=True)
class CaptureRequest:
    url: str
    viewport: Viewport
    wait_until: WaitUntil = WaitUntil.DOMCONTENTLOADED
    wait_for_ms: float | None = None
    directory: Path | None = None
    notes: tuple[str, ...] = field(default=(), compare=False)


@dataclass(frozen=True)
class ScreenshotRequest(CaptureRequest):
    full_page: bool = True


@dataclass(frozen=True)
class ScreencastRequest(CaptureRequest):
    duration: float = 10.0
    js_evaluate: tuple[str, ...] = ()
    format: ScreencastFormat = ScreencastFormat.WEBP
    quality: Quality = Quality.MEDIUM

    @property
    def persist_as_animation(self) -> bool:
        return self.directory is not None and self.format is ScreencastFormat.WEBP


@dataclass(frozen=True)
class ConsoleRequest:
    url: str
    js_command: str | None = None
    duration: float = 4.0
    wait_until: WaitUntil = WaitUntil.DOMCONTENTLOADED


def _require_url(arguments: Mapping[str, Any]) -> str:
    url = arguments.get("url")
    if not isinstance(url, str) or not url.strip():
        raise InvalidParameters("Missing required parameter: url")
    parsed = urlparse(url.strip())
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidParameters(f"Only HTTP/HTTPS URLs are supported, got {url!r}")
    return url.strip()


def _number(arguments: Mapping[str, Any], name: str, default: float | None) -> float | None:
    value = arguments.get(name)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidParameters(f"{name} must be a number, got {value!r}")
    if value <= 0:
        raise InvalidParameters(f"{name} must be positive, got {value!r}")
    return value


def _dimension(arguments: Mapping[str, Any], name: str, notes: list[str]) -> int:
    number = _number(arguments, name, MAX_DIMENSION)
    if number < 1:
        raise InvalidParameters(f"{name} must be at least 1 pixel, got {number!r}")
    value = int(number)
    if value > MAX_DIMENSION:
        notes.append(f"{name} {value} exceeds the {MAX_DIMENSION}px limit and was capped to {MAX_DIMENSION}")
        return MAX_DIMENSION
    return value


def _enum(enum_cls: type[Enum], arguments: Mapping[str, Any], name: str, default: Enum) -> Any:
    value = arguments.get(name)
    if value is None:
        return default
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise InvalidParameters(f"{name} must be one of: {allowed} (got {value!r})") from None


def _directory(arguments: Mapping[str, Any]) -> Path | None:
    value = arguments.get("directory")
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise InvalidParameters(f"directory must be a string path, got {value!r}")
    return Path(value).expanduser()


def parse_screenshot_request(arguments: Mapping[str, Any]) -> ScreenshotRequest:
    url = _require_url(arguments)
    notes: list[str] = []
    width = _dimension(arguments, "width", notes)
    full_page = arguments.get("fullPage", True)
    if not isinstance(full_page, bool):
        raise InvalidParameters(f"fullPage must be a boolean, got {full_page!r}")
    return ScreenshotRequest(
        url=url,
        viewport=Viewport(width=width, height=MAX_DIMENSION),
        wait_until=_enum(WaitUntil, arguments, "waitUntil", WaitUntil.DOMCONTENTLOADED),
        wait_for_ms=_number(arguments, "waitForMS", None),
        directory=_directory(arguments),
        notes=tuple(notes),
        full_page=full_page,
    )


def parse_screencast_request(arguments: Mapping[str, Any]) -> ScreencastRequest:
    url = _require_url(arguments)
    directory = _directory(arguments)
    if arguments.get("format") is not None and directory is None:
        raise InvalidParameters(
            'The "format" parameter can only be used when "directory" parameter is specified'
        )

    js_evaluate = arguments.get("jsEvaluate")
    if js_evaluate is None:
        instructions: tuple[str, ...] = ()
    elif isinstance(js_evaluate, str):
        instructions = (js_evaluate,)
    elif isinstance(js_evaluate, list) and all(isinstance(item, str) for item in js_evaluate):
        instructions = tuple(js_evaluate)
    else:
        raise InvalidParameters("jsEvaluate must be a string or an array of strings")

    notes: list[str] = []
    width = _dimension(arguments, "width", notes)
    height = _dimension(arguments, "height", notes)
    return ScreencastRequest(
        url=url,
        viewport=Viewport(width=width, height=height),
        wait_until=_enum(WaitUntil, arguments, "waitUntil", WaitUntil.DOMCONTENTLOADED),
        directory=directory,
        notes=tuple(notes),
        duration=_number(arguments, "duration", 10.0),
        js_evaluate=instructions,
        format=_enum(ScreencastFormat, arguments, "format", ScreencastFormat.WEBP),
        quality=_enum(Quality, arguments, "quality", Quality.MEDIUM),
    )


def parse_console_request(arguments: Mapping[str, Any]) -> ConsoleRequest:
    url = _require_url(arguments)
    js_command = arguments.get("jsCommand")
    if js_command is not None and not isinstance(js_command, str):
        raise InvalidParameters("jsCommand must be a string")
    return ConsoleRequest(
        url=url,
        js_command=js_command or None,
        duration=_number(arguments, "duration", 4.0),
        wait_until=_enum(WaitUntil, arguments, "waitUntil", WaitUntil.DOMCONTENTLOADED),
    )
