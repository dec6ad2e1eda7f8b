import json
import logging
import math
import subprocess
from pathlib import Path
from typing import Any, Dict, Optional

class FFprobeAdapter:
    """Wrapper around ffprobe to read the video stream's frame rate."""

    def __init__(self, default_fps: str = "30", timeout_s: float = 30.0):
        self.default_fps = default_fps
        self.timeout_s = timeout_s
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def _to_float(value: Any) -> float:
        try:
            return float(value)
        except (TypeError, ValueError):
            return 0.0

    @classmethod
    def parse_frame_rate(cls, value: Any) -> float:
        """Parses ``"30000/1001"`` or ``"25"`` style rates; 0.0 when unusable."""
        text = str(value or "").strip()
        if "/" in text:
            num_text, den_text = text.split("/", 1)
            den = cls._to_float(den_text)
            if den == 0:
                return 0.0
            fps = cls._to_float(num_text) / den
        else:
            fps = cls._to_float(text)
        if not math.isfinite(fps) or fps <= 0:
            return 0.0
        return fps

    def get_video_stream(self, file_path: Path) -> Optional[Dict[str, Any]]:
        """Executes ffprobe and returns the first video stream (or None)."""
        cmd = [
            "ffprobe",
            "-v", "quiet",
            "-print_format", "json",
            "-show_streams",
            str(file_path)
        ]

        result = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout_s)
        if result.returncode != 0:
            raise RuntimeError(f"ffprobe failed for {file_path}: {result.stderr}")

        data = json.loads(result.stdout or "{}")
        return next((s for s in data.get("streams", []) if s.get("codec_type") == "video"), None)

    def probe_frame_rate(self, file_path: Path) -> str:
        """Average frame rate formatted for ffmpeg ``-r`` (e.g. ``"29.970"``)."""
        try:
            stream = self.get_video_stream(file_path)
        except (OSError, RuntimeError, ValueError, subprocess.SubprocessError) as e:
            self.logger.warning(f"FFPROBE_FAILED: {file_path.name} - {e}; using {self.default_fps} fps")
            return self.default_fps

        if not stream:
            return self.default_fps
        fps = self.parse_frame_rate(stream.get("avg_frame_rate"))
        if fps <= 0:
            return self.default_fps
        return f"{fps:.3f}"
