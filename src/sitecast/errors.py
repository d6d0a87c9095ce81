"""
Sitecast error taxonomy.

Every failure raised by the capture pipeline derives from SitecastError so the
server can log it once and hand the message back to the MCP client.
"""


class SitecastError(Exception):
    """Base class for capture pipeline failures."""


class InvalidParameters(SitecastError):
    """Malformed or contradictory request. Rejected before the browser is touched."""


class EngineUnavailable(SitecastError):
    """The browser could not be started. The next request will try again."""


class CaptureFailure(SitecastError):
    """Navigation, page script or screenshot error inside the browser."""

    def __init__(self, url: str, message: str):
        super().__init__(f"Capture failed for {url}: {message}")
        self.url = url


class EncodingFailure(SitecastError):
    """img2webp is missing, exited non-zero, or produced unreadable output."""

    def __init__(self, message: str, returncode: int | None = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class UnsupportedPlatform(EncodingFailure):
    """No encoder binary exists for the current operating system."""


class ShutdownFailure(SitecastError):
    """The browser did not close cleanly during process shutdown."""
