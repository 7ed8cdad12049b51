"""Tests for the FFmpeg encoder process handling.

A small shell script stands in for the ffmpeg binary; it receives the same
argument list, so the last argument is the output path.
"""

import os
import stat
import sys

import pytest

from app.core.errors import EncodeFailure, EncodeTimeoutError
from app.core.metrics import ENCODES_IN_PROGRESS
from app.modules.transcoding.ffmpeg import FFmpegEncoder
from app.modules.transcoding.models import QUALITY_PROFILES, Quality

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX shell")

COPY_TO_OUTPUT = """#!/bin/sh
for last; do :; done
cat > "$last"
"""

FAIL_WITH_DIAGNOSTICS = """#!/bin/sh
cat > /dev/null
echo "pipe:0: Invalid data found when processing input" >&2
echo "Conversion failed!" >&2
exit 1
"""

NO_OUTPUT = """#!/bin/sh
cat > /dev/null
exit 0
"""

HANG = """#!/bin/sh
exec sleep 30
"""


def make_fake_ffmpeg(tmp_path, body: str) -> str:
    path = tmp_path / "ffmpeg"
    path.write_text(body)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(path)


async def byte_chunks(*chunks: bytes):
    for chunk in chunks:
        yield chunk


@pytest.fixture
def out_dir(tmp_path):
    path = tmp_path / "out"
    path.mkdir()
    return path


@pytest.fixture
def profile():
    return QUALITY_PROFILES[Quality.MEDIUM]


class TestEncodeCommand:
    def test_command_reads_stdin_and_writes_fragmented_mp4(self, profile) -> None:
        encoder = FFmpegEncoder(ffmpeg_path="/usr/bin/ffmpeg")
        cmd = encoder.build_encode_command(profile, "/tmp/out.mp4", "matroska")

        assert cmd[0] == "/usr/bin/ffmpeg"
        assert cmd[-1] == "/tmp/out.mp4"
        assert cmd[cmd.index("-i") + 1] == "pipe:0"
        assert cmd[cmd.index("-i") - 1] == "matroska"
        assert cmd[cmd.index("-c:v") + 1] == "libx264"
        assert cmd[cmd.index("-c:a") + 1] == "aac"
        assert cmd[cmd.index("-s") + 1] == "1280x720"
        assert cmd[cmd.index("-b:v") + 1] == "1500k"
        assert cmd[cmd.index("-movflags") + 1] == "frag_keyframe+empty_moov"
        assert cmd[cmd.index("-analyzeduration") + 1] == "500M"
        assert cmd[cmd.index("-probesize") + 1] == "500M"
        assert cmd[-3:-1] == ["-f", "mp4"]

    def test_every_preset_builds_its_own_scale_and_bitrate(self) -> None:
        encoder = FFmpegEncoder()
        for quality, profile in QUALITY_PROFILES.items():
            cmd = encoder.build_encode_command(profile, "out.mp4")
            assert profile.resolution in cmd, quality
            assert profile.video_bitrate in cmd, quality


class TestEncodeProcess:
    @pytest.mark.asyncio
    async def test_success_returns_artifact_with_streamed_bytes(self, tmp_path, out_dir, profile) -> None:
        encoder = FFmpegEncoder(make_fake_ffmpeg(tmp_path, COPY_TO_OUTPUT), tmp_dir=str(out_dir))

        artifact = await encoder.encode(byte_chunks(b"abc", b"def", b"g" * 70000), profile)

        with artifact:
            with open(artifact.path, "rb") as f:
                assert f.read() == b"abcdef" + b"g" * 70000
            assert artifact.size == 70006
        assert os.listdir(out_dir) == []

    @pytest.mark.asyncio
    async def test_nonzero_exit_carries_stderr_tail(self, tmp_path, out_dir, profile) -> None:
        encoder = FFmpegEncoder(make_fake_ffmpeg(tmp_path, FAIL_WITH_DIAGNOSTICS), tmp_dir=str(out_dir))

        with pytest.raises(EncodeFailure) as exc_info:
            await encoder.encode(byte_chunks(b"not a video"), profile)

        assert "status 1" in exc_info.value.message
        assert "Invalid data found" in exc_info.value.diagnostics
        assert exc_info.value.diagnostics.endswith("Conversion failed!")
        assert os.listdir(out_dir) == []

    @pytest.mark.asyncio
    async def test_empty_output_is_a_failure(self, tmp_path, out_dir, profile) -> None:
        encoder = FFmpegEncoder(make_fake_ffmpeg(tmp_path, NO_OUTPUT), tmp_dir=str(out_dir))

        with pytest.raises(EncodeFailure, match="no output"):
            await encoder.encode(byte_chunks(b"data"), profile)
        assert os.listdir(out_dir) == []

    @pytest.mark.asyncio
    async def test_deadline_kills_the_process(self, tmp_path, out_dir, profile) -> None:
        encoder = FFmpegEncoder(
            make_fake_ffmpeg(tmp_path, HANG), timeout=0.5, tmp_dir=str(out_dir)
        )
        in_progress_before = ENCODES_IN_PROGRESS._value.get()

        with pytest.raises(EncodeTimeoutError):
            await encoder.encode(byte_chunks(b"data"), profile)

        assert os.listdir(out_dir) == []
        assert ENCODES_IN_PROGRESS._value.get() == in_progress_before

    @pytest.mark.asyncio
    async def test_timeout_is_an_encode_failure(self, tmp_path, out_dir, profile) -> None:
        encoder = FFmpegEncoder(
            make_fake_ffmpeg(tmp_path, HANG), timeout=0.2, tmp_dir=str(out_dir)
        )
        with pytest.raises(EncodeFailure):
            await encoder.encode(byte_chunks(b"data"), profile)

    @pytest.mark.asyncio
    async def test_failing_source_stream_is_an_encode_failure(self, tmp_path, out_dir, profile) -> None:
        encoder = FFmpegEncoder(make_fake_ffmpeg(tmp_path, COPY_TO_OUTPUT), tmp_dir=str(out_dir))

        async def broken_source():
            yield b"first chunk"
            raise ConnectionError("connection reset by peer")

        with pytest.raises(EncodeFailure, match="Source stream failed"):
            await encoder.encode(broken_source(), profile)
        assert os.listdir(out_dir) == []

    @pytest.mark.asyncio
    async def test_missing_binary(self, out_dir, profile) -> None:
        encoder = FFmpegEncoder("/nonexistent/ffmpeg", tmp_dir=str(out_dir))

        with pytest.raises(EncodeFailure, match="Could not start encoder"):
            await encoder.encode(byte_chunks(b"data"), profile)
        assert os.listdir(out_dir) == []
