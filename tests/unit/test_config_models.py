import pytest
from pathlib import Path
from pydantic import ValidationError
from squeeze.config.models import (
    AppConfig,
    DEFAULT_STATE_PATH,
    EncoderConfig,
    GeneralConfig,
    VIDEO_EXTENSIONS,
)


def test_general_config_defaults():
    config = GeneralConfig()
    assert config.state_path == DEFAULT_STATE_PATH
    assert config.log_path is None
    assert config.extensions == VIDEO_EXTENSIONS
    assert config.poll_interval_s == 0.25
    assert config.pause_poll_interval_s == 1.0
    assert config.cooldown_s == 300
    assert config.stop_timeout_s == 5
    assert config.cancel_on_pause is True


def test_default_extensions_cover_all_containers():
    assert set(VIDEO_EXTENSIONS) == {".mp4", ".mov", ".mkv", ".avi", ".wmv", ".flv", ".m4v"}


def test_extensions_are_normalized():
    config = GeneralConfig(extensions=["MP4", " .Mov ", "mkv", ""])
    assert config.extensions == [".mp4", ".mov", ".mkv"]


def test_extensions_cannot_be_empty():
    with pytest.raises(ValidationError):
        GeneralConfig(extensions=[])
    with pytest.raises(ValidationError):
        GeneralConfig(extensions=["  "])


def test_paths_expand_user():
    config = GeneralConfig(state_path="~/squeeze/state.json", log_path="~/squeeze/run.log")
    assert config.state_path == Path.home() / "squeeze" / "state.json"
    assert config.log_path == Path.home() / "squeeze" / "run.log"


def test_cooldown_cannot_be_negative():
    with pytest.raises(ValidationError):
        GeneralConfig(cooldown_s=-1)


def test_poll_interval_must_be_positive():
    with pytest.raises(ValidationError):
        GeneralConfig(poll_interval_s=0)


def test_encoder_defaults():
    config = EncoderConfig()
    assert config.video_codec == "libx264"
    assert config.preset == "medium"
    assert config.crf == 28
    assert config.pix_fmt == "yuv420p"
    assert config.audio_codec == "aac"
    assert config.audio_bitrate == "128k"
    assert config.faststart is True
    assert config.default_fps == "30"


@pytest.mark.parametrize("crf", [-1, 52])
def test_encoder_crf_range(crf):
    with pytest.raises(ValidationError):
        EncoderConfig(crf=crf)


def test_app_config_nested_dicts():
    config = AppConfig(general={"cooldown_s": 0}, encoder={"crf": 20})
    assert config.general.cooldown_s == 0
    assert config.encoder.crf == 20
