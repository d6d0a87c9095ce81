"""
Animation Assembler

Collapses runs of identical screencast frames and encodes the result as a
looping animated WebP with the img2webp command-line tool.

A page that sits still for three seconds at 100ms sampling yields thirty
identical PNGs; they become a single WebP frame shown for 3000ms.
"""

import asyncio
import hashlib
import logging
import sys
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ...config import DEFAULT_ENCODER_DIR
from ...errors import EncodingFailure, UnsupportedPlatform
from ..requests import Quality

logger = logging.getLogger("sitecast.animation")

ENCODER_BINARIES = {
    "darwin": "img2webp-darwin",
    "linux": "img2webp-linux",
}

# img2webp's slowest, smallest compression method
MAX_COMPRESSION_METHOD = 6
OUTPUT_NAME = "out.webp"


@dataclass
class UniqueFrameRun:
    """One distinct frame and how long it stays on screen."""

    data: bytes
    digest: str
    duration_ms: int


def collapse_frames(frames: Iterable[bytes], delay_ms: float) -> List[UniqueFrameRun]:
    """
    Merge consecutive byte-identical frames into runs.

    Each frame contributes ``delay_ms`` to the run it lands in, so a run's
    duration is the sum of the delays of the frames it replaced.
    """
    delay = int(round(delay_ms))
    runs: List[UniqueFrameRun] = []
    for data in frames:
        digest = hashlib.sha1(data).hexdigest()
        if runs and runs[-1].digest == digest:
            runs[-1].duration_ms += delay
        else:
            runs.append(UniqueFrameRun(data=data, digest=digest, duration_ms=delay))
    return runs


def encoder_binary_name(platform: Optional[str] = None) -> str:
    """img2webp binary name for an OS family (defaults to the running one)."""
    platform = platform or sys.platform
    for family, name in ENCODER_BINARIES.items():
        if platform.startswith(family):
            return name
    raise UnsupportedPlatform(f"No img2webp binary available for platform {platform!r}")


def build_encoder_args(runs: Sequence[UniqueFrameRun], quality: Quality) -> List[str]:
    """Command-line arguments for img2webp; frames are named f<i>.png."""
    args = [
        "-min_size",
        "-mixed",
        "-loop", "0",
        "-q", str(quality.level),
        "-m", str(MAX_COMPRESSION_METHOD),
    ]
    for i, run in enumerate(runs):
        args.extend(["-d", str(run.duration_ms), f"f{i}.png"])
    args.extend(["-o", OUTPUT_NAME])
    return args


class AnimationAssembler:
    """Frame deduplication plus img2webp encoding."""

    def __init__(self, config: Dict[str, Any] | None = None):
        self.config = config or {}
        self.bin_dir = Path(self.config.get("encoder.bin_dir", DEFAULT_ENCODER_DIR))

    def resolve_encoder(self) -> Path:
        """Locate the encoder for this OS; raises before any temp state exists."""
        return self.bin_dir / encoder_binary_name()

    async def assemble(
        self,
        frames: Sequence[bytes],
        delay_ms: float,
        end_delay_ms: Optional[float] = None,
        quality: Quality = Quality.MEDIUM,
    ) -> bytes:
        """
        Encode frames as one looping animated WebP.

        Args:
            frames: PNG buffers in capture order
            delay_ms: Display time contributed by each captured frame
            end_delay_ms: Replaces the final run's duration (pause before looping)
            quality: WebP quality tier

        Returns:
            Encoded WebP bytes

        Raises:
            UnsupportedPlatform: No encoder for this OS
            EncodingFailure: Encoder missing, failed, or wrote nothing usable
        """
        encoder = self.resolve_encoder()

        runs = collapse_frames(frames, delay_ms)
        if not runs:
            raise EncodingFailure("No frames to encode")
        if end_delay_ms:
            runs[-1].duration_ms = int(round(end_delay_ms))

        logger.debug(f"Collapsed {len(frames)} frames into {len(runs)} unique frames")

        with tempfile.TemporaryDirectory(prefix="webp-") as tmp:
            workdir = Path(tmp)
            await asyncio.gather(
                *(
                    asyncio.to_thread((workdir / f"f{i}.png").write_bytes, run.data)
                    for i, run in enumerate(runs)
                )
            )
            await self._run_encoder(encoder, build_encoder_args(runs, quality), workdir)

            try:
                result = await asyncio.to_thread((workdir / OUTPUT_NAME).read_bytes)
            except OSError as e:
                raise EncodingFailure(f"Could not read encoder output: {e}") from e

        if not result:
            raise EncodingFailure("Encoder produced an empty file")

        logger.info(f"Animated WebP created: {len(runs)} frames, {len(result)} bytes")
        return result

    async def _run_encoder(self, encoder: Path, args: List[str], workdir: Path) -> None:
        try:
            process = await asyncio.create_subprocess_exec(
                str(encoder),
                *args,
                cwd=str(workdir),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise EncodingFailure(f"Could not run {encoder}: {e}") from e

        _, stderr = await process.communicate()
        if process.returncode != 0:
            message = stderr.decode(errors="replace").strip()
            raise EncodingFailure(
                f"{encoder.name} exited with code {process.returncode}: {message}",
                returncode=process.returncode,
                stderr=message,
            )
