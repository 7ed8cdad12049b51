"""FFmpeg encoder process management.

Source bytes are piped into FFmpeg's stdin as they arrive from blob storage,
so the source is never held in memory in full. The output goes to a local
temporary file that the caller owns once ``encode`` returns.
"""

import asyncio
import logging
import os
import re
import tempfile
from collections import deque
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from app.core.errors import EncodeFailure, EncodeTimeoutError
from app.core.metrics import ENCODES_IN_PROGRESS
from app.modules.transcoding.models import (
    ANALYZE_DURATION,
    AUDIO_CODEC,
    DEFAULT_INPUT_FORMAT,
    FRAGMENTED_MOVFLAGS,
    OUTPUT_FORMAT,
    PIXEL_FORMAT,
    PROBE_SIZE,
    VIDEO_CODEC,
    QualityProfile,
)

logger = logging.getLogger(__name__)

_LINE_SPLIT = re.compile(rb"[\r\n]")


@dataclass
class EncodedArtifact:
    """Locally held encoder output.

    Use as a context manager, or call ``release()``, to delete the file.
    """
    path: str
    size: int

    def release(self) -> None:
        _remove_quietly(self.path)

    def __enter__(self) -> "EncodedArtifact":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass


class FFmpegEncoder:
    """Runs one FFmpeg process per encode."""

    def __init__(
        self,
        ffmpeg_path: str = "ffmpeg",
        timeout: Optional[float] = None,
        tmp_dir: Optional[str] = None,
        diagnostics_lines: int = 50,
    ):
        """Initialize encoder.

        Args:
            ffmpeg_path: Path to ffmpeg binary
            timeout: Deadline for one encode in seconds, None for no deadline
            tmp_dir: Directory for output files (system default if None)
            diagnostics_lines: How many trailing stderr lines to keep
        """
        self.ffmpeg_path = ffmpeg_path
        self.timeout = timeout
        self.tmp_dir = tmp_dir
        self.diagnostics_lines = diagnostics_lines

    def build_encode_command(
        self,
        profile: QualityProfile,
        output_path: str,
        input_format: str = DEFAULT_INPUT_FORMAT,
    ) -> list[str]:
        """Build the FFmpeg command reading from stdin.

        Args:
            profile: Target quality profile
            output_path: Local output file
            input_format: Demuxer for the piped input

        Returns:
            FFmpeg command as list of arguments
        """
        return [
            self.ffmpeg_path,
            "-hide_banner",
            "-nostats",
            "-y",
            # Input settings
            "-analyzeduration", ANALYZE_DURATION,
            "-probesize", PROBE_SIZE,
            "-f", input_format,
            "-i", "pipe:0",
            # Video settings
            "-c:v", VIDEO_CODEC,
            "-s", profile.resolution,
            "-b:v", profile.video_bitrate,
            "-pix_fmt", PIXEL_FORMAT,
            # Audio settings
            "-c:a", AUDIO_CODEC,
            # Output format
            "-movflags", FRAGMENTED_MOVFLAGS,
            "-f", OUTPUT_FORMAT,
            output_path,
        ]

    async def encode(
        self,
        chunks: AsyncIterator[bytes],
        profile: QualityProfile,
        input_format: str = DEFAULT_INPUT_FORMAT,
    ) -> EncodedArtifact:
        """Encode a byte stream to a local fragmented MP4.

        Args:
            chunks: Source bytes, consumed once
            profile: Target quality profile
            input_format: Demuxer for the source

        Returns:
            EncodedArtifact owned by the caller

        Raises:
            EncodeTimeoutError: The deadline passed; the process was killed
            EncodeFailure: Non-zero exit, empty output or a failing input stream
        """
        fd, output_path = tempfile.mkstemp(
            prefix="transcode-", suffix=f".{OUTPUT_FORMAT}", dir=self.tmp_dir
        )
        os.close(fd)

        cmd = self.build_encode_command(profile, output_path, input_format)
        logger.debug("Spawning ffmpeg", extra={"command": " ".join(cmd)})

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            _remove_quietly(output_path)
            raise EncodeFailure(f"Could not start encoder: {e}") from e

        tail: deque[str] = deque(maxlen=self.diagnostics_lines)
        feed_task = asyncio.create_task(self._feed(process, chunks))
        stderr_task = asyncio.create_task(self._collect_stderr(process.stderr, tail))

        ENCODES_IN_PROGRESS.inc()
        try:
            try:
                await asyncio.wait_for(
                    asyncio.gather(feed_task, stderr_task, process.wait()),
                    timeout=self.timeout,
                )
            except asyncio.TimeoutError:
                await self._terminate(process, feed_task, stderr_task)
                raise EncodeTimeoutError(
                    f"Encoder exceeded the {self.timeout}s deadline",
                    diagnostics="\n".join(tail),
                ) from None
            except EncodeFailure as e:
                await self._terminate(process, feed_task, stderr_task)
                e.diagnostics = "\n".join(tail)
                raise

            if process.returncode != 0:
                raise EncodeFailure(
                    f"Encoder exited with status {process.returncode}",
                    diagnostics="\n".join(tail),
                )

            size = os.path.getsize(output_path)
            if size == 0:
                raise EncodeFailure(
                    "Encoder produced no output", diagnostics="\n".join(tail)
                )
        except BaseException:
            # Also reached on cancellation of the calling request
            await self._terminate(process, feed_task, stderr_task)
            _remove_quietly(output_path)
            raise
        finally:
            ENCODES_IN_PROGRESS.dec()

        logger.info(
            "Encode finished",
            extra={"quality": profile.quality.value, "output_size": size},
        )
        return EncodedArtifact(path=output_path, size=size)

    async def _feed(self, process: asyncio.subprocess.Process, chunks: AsyncIterator[bytes]) -> None:
        """Pipe source chunks into stdin, waiting for the pipe to drain."""
        stdin = process.stdin
        try:
            async for chunk in chunks:
                stdin.write(chunk)
                await stdin.drain()
        except (BrokenPipeError, ConnectionResetError):
            # FFmpeg stopped reading; its exit status reports why
            logger.debug("Encoder closed its input early")
        except Exception as e:
            raise EncodeFailure(f"Source stream failed: {e}") from e
        finally:
            if not stdin.is_closing():
                stdin.close()
        try:
            await stdin.wait_closed()
        except (BrokenPipeError, ConnectionResetError):
            pass

    async def _collect_stderr(self, stream: asyncio.StreamReader, tail: deque) -> None:
        """Drain stderr so FFmpeg never blocks on it, keeping the last lines."""
        pending = b""
        while True:
            chunk = await stream.read(4096)
            if not chunk:
                break
            pending += chunk
            *lines, pending = _LINE_SPLIT.split(pending)
            for line in lines:
                self._record_stderr_line(line, tail)
        if pending:
            self._record_stderr_line(pending, tail)

    def _record_stderr_line(self, raw: bytes, tail: deque) -> None:
        line = raw.decode("utf-8", errors="replace").strip()
        if line:
            tail.append(line)
            logger.debug("ffmpeg stderr", extra={"line": line})

    async def _terminate(self, process: asyncio.subprocess.Process, *tasks: asyncio.Task) -> None:
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await process.wait()
