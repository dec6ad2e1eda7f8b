import logging
import subprocess
import threading
from collections import deque
from enum import Enum
from pathlib import Path
from typing import Deque, List, Optional
from squeeze.config.models import EncoderConfig
from squeeze.infrastructure.ffprobe import FFprobeAdapter

# Keep only the tail of ffmpeg's output as failure diagnostics
DIAGNOSTIC_LINES = 200
TEMP_SUFFIX = ".temp"


class NamingMode(str, Enum):
    TEMP_FOR_IN_PLACE = "temp-for-in-place"
    SUFFIXED = "suffixed"


class EncodeOutcome(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


def output_path_for(source: Path, dest_dir: Path, mode: NamingMode, suffix: str = "") -> Path:
    """``<name>.temp`` for in-place commits, ``<stem><suffix>.mp4`` otherwise."""
    if mode == NamingMode.TEMP_FOR_IN_PLACE:
        return dest_dir / f"{source.name}{TEMP_SUFFIX}"
    return dest_dir / f"{source.stem}{suffix}.mp4"


class EncodeHandle:
    """A running ffmpeg process.

    ``poll()`` never blocks; ``cancel()`` may be called from any thread at any
    time, including after the process has finished.
    """

    def __init__(self, process: subprocess.Popen, source: Path, output_path: Path):
        self.process = process
        self.source = source
        self.output_path = output_path
        self.logger = logging.getLogger(__name__)
        self._lines: Deque[str] = deque(maxlen=DIAGNOSTIC_LINES)
        self._lock = threading.Lock()
        self._outcome: Optional[EncodeOutcome] = None
        self._cancelled = False
        self._reader = threading.Thread(target=self._read_output, daemon=True)
        self._reader.start()

    def _read_output(self):
        if not self.process.stdout:
            return
        try:
            for line in self.process.stdout:
                with self._lock:
                    self._lines.append(line.rstrip("\n"))
        except (OSError, ValueError):
            # Pipe closed underneath us after a kill
            pass

    def _remove_partial_output(self):
        try:
            if self.output_path.exists():
                self.output_path.unlink()
        except OSError as e:
            self.logger.warning(f"Failed to remove partial output {self.output_path}: {e}")

    def poll(self) -> Optional[EncodeOutcome]:
        """Outcome once the process has exited, None while it is still running."""
        with self._lock:
            if self._outcome is not None:
                return self._outcome
        returncode = self.process.poll()
        if returncode is None:
            return None
        self._reader.join(timeout=1.0)
        with self._lock:
            if self._outcome is not None:
                return self._outcome
            if self._cancelled:
                self._outcome = EncodeOutcome.CANCELLED
            elif returncode == 0:
                self._outcome = EncodeOutcome.SUCCESS
            else:
                self._outcome = EncodeOutcome.FAILED
                self._lines.append(f"ffmpeg exited with code {returncode}")
            outcome = self._outcome
        if outcome != EncodeOutcome.SUCCESS:
            self._remove_partial_output()
        return outcome

    def cancel(self) -> None:
        """Terminates the process; a no-op once it already produced an outcome."""
        with self._lock:
            if self._outcome is not None or self._cancelled:
                return
            if self.process.poll() is not None:
                # Already exited: poll() reports the real outcome
                return
            self._cancelled = True
        self.logger.info(f"FFMPEG_CANCEL: {self.source.name}")
        self.process.terminate()
        try:
            self.process.wait(timeout=3)
        except subprocess.TimeoutExpired:
            self.process.kill()
            self.process.wait()
        with self._lock:
            if self._outcome is None:
                self._outcome = EncodeOutcome.CANCELLED
        self._remove_partial_output()

    @property
    def diagnostics(self) -> str:
        with self._lock:
            return "\n".join(self._lines)


class FFmpegAdapter:
    """Starts one H.264/AAC re-encode per call and hands back its handle."""

    def __init__(self, config: EncoderConfig, ffprobe_adapter: Optional[FFprobeAdapter] = None):
        self.config = config
        self.ffprobe_adapter = ffprobe_adapter
        self.logger = logging.getLogger(__name__)

    def _build_command(self, source: Path, output_path: Path, mode: NamingMode,
                       crf: Optional[int] = None, fps: Optional[str] = None) -> List[str]:
        """Constructs the ffmpeg command line arguments."""
        config = self.config
        cmd = [
            "ffmpeg",
            "-hide_banner",
            "-nostdin",
            "-y",  # Outputs always restart from scratch
            "-i", str(source),
            "-c:v", config.video_codec,
            "-preset", config.preset,
            "-crf", str(config.crf if crf is None else crf),
        ]
        if fps:
            cmd.extend(["-r", fps])
        cmd.extend([
            "-pix_fmt", config.pix_fmt,
            "-c:a", config.audio_codec,
            "-b:a", config.audio_bitrate,
        ])
        if config.faststart:
            cmd.extend(["-movflags", "+faststart"])
        if mode == NamingMode.TEMP_FOR_IN_PLACE:
            # .temp extension does not tell ffmpeg the container
            cmd.extend(["-f", "mp4"])
        cmd.append(str(output_path))
        return cmd

    def encode(self, source: Path, dest_dir: Path, mode: NamingMode, suffix: str = "",
               crf: Optional[int] = None) -> EncodeHandle:
        """Launches the encode and returns immediately.

        Raises ``OSError`` when ffmpeg cannot be started at all.
        """
        output_path = output_path_for(source, dest_dir, mode, suffix)
        fps = None
        if self.config.probe_frame_rate and self.ffprobe_adapter is not None:
            fps = self.ffprobe_adapter.probe_frame_rate(source)

        cmd = self._build_command(source, output_path, mode, crf=crf, fps=fps)
        self.logger.info(f"FFMPEG_START: {source.name} -> {output_path.name}")
        self.logger.debug(f"FFMPEG_CMD: {' '.join(cmd)}")

        process = subprocess.Popen(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            universal_newlines=True,
            bufsize=1
        )
        return EncodeHandle(process, source, output_path)
