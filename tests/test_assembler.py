"""
Tests for frame deduplication and animated WebP assembly.
"""

import sys
import tempfile

import pytest

from sitecast.errors import EncodingFailure, UnsupportedPlatform
from sitecast.gear.animation.assembler import (
    AnimationAssembler,
    build_encoder_args,
    collapse_frames,
    encoder_binary_name,
)
from sitecast.gear.requests import Quality

from .conftest import POSIX_ONLY


def scenario_frames():
    """60 frames where frames 10-15 are byte-identical and all others unique."""
    return [b"static" if 10 <= i <= 15 else f"frame-{i}".encode() for i in range(60)]


class TestCollapseFrames:
    def test_consecutive_duplicates_merge(self):
        runs = collapse_frames([b"a", b"a", b"b", b"b", b"b", b"a"], 100)

        assert [run.data for run in runs] == [b"a", b"b", b"a"]
        assert [run.duration_ms for run in runs] == [200, 300, 100]

    def test_all_unique_keeps_every_frame(self):
        frames = [bytes([i]) for i in range(10)]
        runs = collapse_frames(frames, 500)
        assert len(runs) == len(frames)

    def test_no_adjacent_runs_share_digest(self):
        frames = [b"x", b"x", b"y", b"x", b"x", b"x", b"z", b"z"]
        runs = collapse_frames(frames, 100)

        assert len(runs) <= len(frames)
        assert all(a.digest != b.digest for a, b in zip(runs, runs[1:]))
        assert sum(run.duration_ms for run in runs) == 100 * len(frames)

    def test_scenario_sixty_frames(self):
        runs = collapse_frames(scenario_frames(), 200)

        assert len(runs) == 55
        assert runs[10].duration_ms == 1200

    def test_empty_input(self):
        assert collapse_frames([], 100) == []


class TestEncoderArgs:
    def test_argument_order(self):
        runs = collapse_frames([b"a", b"a", b"b"], 100)
        args = build_encoder_args(runs, Quality.HIGH)

        assert args == [
            "-min_size", "-mixed", "-loop", "0", "-q", "90", "-m", "6",
            "-d", "200", "f0.png",
            "-d", "100", "f1.png",
            "-o", "out.webp",
        ]

    def test_binary_name_by_platform(self):
        assert encoder_binary_name("linux") == "img2webp-linux"
        assert encoder_binary_name("darwin") == "img2webp-darwin"

    def test_unsupported_platform(self):
        with pytest.raises(UnsupportedPlatform):
            encoder_binary_name("win32")


@POSIX_ONLY
class TestAssemble:
    """Runs the real subprocess path against a shell-script img2webp."""

    @pytest.fixture(autouse=True)
    def private_tmp(self, tmp_path, monkeypatch):
        scratch = tmp_path / "scratch"
        scratch.mkdir()
        monkeypatch.setattr(tempfile, "tempdir", str(scratch))
        return scratch

    @pytest.mark.asyncio
    async def test_end_delay_overrides_last_run(self, fake_encoder, tmp_path, private_tmp):
        assembler = AnimationAssembler({"encoder.bin_dir": fake_encoder})
        frames = scenario_frames() + [b"tail", b"tail", b"tail"]

        result = await assembler.assemble(frames, delay_ms=200, end_delay_ms=4000, quality=Quality.MEDIUM)

        assert result == b"RIFFfakeWEBP"
        args = (tmp_path / "encoder-args.txt").read_text().split()
        assert args[:8] == ["-min_size", "-mixed", "-loop", "0", "-q", "75", "-m", "6"]
        assert args[-5:] == ["-d", "4000", "f55.png", "-o", "out.webp"]
        assert args.count("-d") == 56
        assert list(private_tmp.iterdir()) == []

    @pytest.mark.asyncio
    async def test_deterministic_output(self, fake_encoder, tmp_path):
        assembler = AnimationAssembler({"encoder.bin_dir": fake_encoder})

        await assembler.assemble(scenario_frames(), delay_ms=200, end_delay_ms=4000)
        first = (tmp_path / "encoder-args.txt").read_text()
        await assembler.assemble(scenario_frames(), delay_ms=200, end_delay_ms=4000)

        assert (tmp_path / "encoder-args.txt").read_text() == first

    @pytest.mark.asyncio
    async def test_encoder_failure_cleans_up(self, failing_encoder, private_tmp):
        assembler = AnimationAssembler({"encoder.bin_dir": failing_encoder})

        with pytest.raises(EncodingFailure) as excinfo:
            await assembler.assemble([b"a", b"b"], delay_ms=100, end_delay_ms=4000)

        assert excinfo.value.returncode == 3
        assert "bad frame data" in excinfo.value.stderr
        assert list(private_tmp.iterdir()) == []

    @pytest.mark.asyncio
    async def test_missing_encoder(self, tmp_path, private_tmp):
        assembler = AnimationAssembler({"encoder.bin_dir": tmp_path / "nowhere"})

        with pytest.raises(EncodingFailure):
            await assembler.assemble([b"a"], delay_ms=100)

        assert list(private_tmp.iterdir()) == []

    @pytest.mark.asyncio
    async def test_unsupported_platform_creates_no_temp_state(self, fake_encoder, private_tmp, monkeypatch):
        assembler = AnimationAssembler({"encoder.bin_dir": fake_encoder})

        with monkeypatch.context() as patch:
            patch.setattr(sys, "platform", "win32")
            with pytest.raises(UnsupportedPlatform):
                await assembler.assemble([b"a"], delay_ms=100)

        assert list(private_tmp.iterdir()) == []

    @pytest.mark.asyncio
    async def test_no_frames(self, fake_encoder):
        assembler = AnimationAssembler({"encoder.bin_dir": fake_encoder})
        with pytest.raises(EncodingFailure, match="No frames"):
            await assembler.assemble([], delay_ms=100)
