from pathlib import Path
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator

VIDEO_EXTENSIONS = [".mp4", ".mov", ".mkv", ".avi", ".wmv", ".flv", ".m4v"]
DEFAULT_STATE_PATH = Path.home() / ".local" / "share" / "squeeze" / "jobs_state.json"

class GeneralConfig(BaseModel):
    state_path: Path = Field(default=DEFAULT_STATE_PATH)
    log_path: Optional[Path] = None
    debug: bool = False
    extensions: List[str] = Field(default_factory=lambda: list(VIDEO_EXTENSIONS))
    poll_interval_s: float = Field(default=0.25, gt=0, le=5.0)
    pause_poll_interval_s: float = Field(default=1.0, gt=0, le=10.0)
    cooldown_s: float = Field(default=300.0, ge=0)  # pause between files (thermal/IO)
    stop_timeout_s: float = Field(default=5.0, ge=0)
    cancel_on_pause: bool = True

    @field_validator("extensions")
    @classmethod
    def normalize_extensions(cls, v: List[str]) -> List[str]:
        normalized = []
        for ext in v:
            ext = ext.strip().lower()
            if not ext:
                continue
            normalized.append(ext if ext.startswith(".") else f".{ext}")
        if not normalized:
            raise ValueError("At least one video extension is required")
        return normalized

    @field_validator("state_path", "log_path")
    @classmethod
    def expand_user(cls, v: Optional[Path]) -> Optional[Path]:
        return v.expanduser() if v is not None else v

class EncoderConfig(BaseModel):
    """Fixed target for every re-encode (H.264 + AAC in a faststart MP4)."""
    video_codec: str = "libx264"
    preset: str = "medium"
    crf: int = Field(default=28, ge=0, le=51)
    pix_fmt: str = "yuv420p"
    audio_codec: str = "aac"
    audio_bitrate: str = "128k"
    faststart: bool = True
    probe_frame_rate: bool = True
    default_fps: str = "30"

class AppConfig(BaseModel):
    general: GeneralConfig = Field(default_factory=GeneralConfig)
    encoder: EncoderConfig = Field(default_factory=EncoderConfig)
