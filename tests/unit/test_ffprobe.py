import json
import subprocess
import pytest
from pathlib import Path
from unittest.mock import MagicMock, patch
from squeeze.infrastructure.ffprobe import FFprobeAdapter


def _completed(stdout="", returncode=0, stderr=""):
    result = MagicMock()
    result.stdout = stdout
    result.returncode = returncode
    result.stderr = stderr
    return result


@pytest.mark.parametrize("value, expected", [
    ("30000/1001", 29.97002997),
    ("25/1", 25.0),
    ("24", 24.0),
    ("0/0", 0.0),
    ("1/0", 0.0),
    ("abc", 0.0),
    ("-5", 0.0),
    (None, 0.0),
])
def test_parse_frame_rate(value, expected):
    assert FFprobeAdapter.parse_frame_rate(value) == pytest.approx(expected)


def test_probe_frame_rate_formats_average_rate():
    payload = {"streams": [
        {"codec_type": "audio"},
        {"codec_type": "video", "avg_frame_rate": "30000/1001"},
    ]}
    with patch("subprocess.run", return_value=_completed(json.dumps(payload))) as mock_run:
        fps = FFprobeAdapter().probe_frame_rate(Path("clip.mp4"))

    assert fps == "29.970"
    cmd = mock_run.call_args[0][0]
    assert cmd[0] == "ffprobe"
    assert "-show_streams" in cmd
    assert cmd[-1] == "clip.mp4"


def test_probe_frame_rate_falls_back_on_failure():
    adapter = FFprobeAdapter(default_fps="25")
    with patch("subprocess.run", return_value=_completed(returncode=1, stderr="Invalid data")):
        assert adapter.probe_frame_rate(Path("broken.mp4")) == "25"


def test_probe_frame_rate_falls_back_when_ffprobe_missing():
    with patch("subprocess.run", side_effect=FileNotFoundError("ffprobe")):
        assert FFprobeAdapter().probe_frame_rate(Path("clip.mp4")) == "30"


def test_probe_frame_rate_falls_back_on_timeout():
    with patch("subprocess.run", side_effect=subprocess.TimeoutExpired("ffprobe", 30)):
        assert FFprobeAdapter().probe_frame_rate(Path("clip.mp4")) == "30"


def test_probe_frame_rate_without_video_stream():
    payload = {"streams": [{"codec_type": "audio"}]}
    with patch("subprocess.run", return_value=_completed(json.dumps(payload))):
        assert FFprobeAdapter().probe_frame_rate(Path("audio.mp4")) == "30"


def test_probe_frame_rate_unusable_rate():
    payload = {"streams": [{"codec_type": "video", "avg_frame_rate": "0/0"}]}
    with patch("subprocess.run", return_value=_completed(json.dumps(payload))):
        assert FFprobeAdapter().probe_frame_rate(Path("clip.mp4")) == "30"


def test_probe_frame_rate_bad_json():
    with patch("subprocess.run", return_value=_completed("not json")):
        assert FFprobeAdapter().probe_frame_rate(Path("clip.mp4")) == "30"


def test_get_video_stream_raises_on_error():
    with patch("subprocess.run", return_value=_completed(returncode=1, stderr="boom")):
        with pytest.raises(RuntimeError, match="boom"):
            FFprobeAdapter().get_video_stream(Path("clip.mp4"))
