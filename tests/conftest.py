import pytest
import yaml
from pathlib import Path
from squeeze.config.models import AppConfig
from squeeze.infrastructure.event_bus import EventBus
from squeeze.infrastructure.state_store import StateStore

# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def sample_config(tmp_path):
    """Returns an AppConfig with fast polling and no cooldown for testing."""
    return AppConfig(
        general={
            "state_path": str(tmp_path / "state" / "jobs_state.json"),
            "debug": False,
            "extensions": [".mp4", ".mov", ".mkv"],
            "poll_interval_s": 0.01,
            "pause_poll_interval_s": 0.01,
            "cooldown_s": 0,
            "stop_timeout_s": 5,
            "cancel_on_pause": True,
        },
        encoder={
            "crf": 28,
            "probe_frame_rate": False,
        },
    )

@pytest.fixture
def config_yaml_path(tmp_path):
    """Creates a temporary YAML config file."""
    conf_dir = tmp_path / "conf"
    conf_dir.mkdir()
    conf_file = conf_dir / "squeeze.yaml"

    content = {
        'general': {
            'state_path': str(tmp_path / "state" / "jobs_state.json"),
            'debug': True,
            'extensions': ['mp4', 'MOV'],
            'cooldown_s': 10,
            'cancel_on_pause': False,
        },
        'encoder': {
            'preset': 'slow',
            'crf': 23,
            'audio_bitrate': '96k',
        }
    }

    with open(conf_file, 'w') as f:
        yaml.dump(content, f)

    return conf_file

# ============================================================================
# EventBus / State Fixtures
# ============================================================================

@pytest.fixture
def event_bus():
    """Returns a fresh EventBus instance."""
    return EventBus()

@pytest.fixture
def state_store(tmp_path):
    """Returns a StateStore backed by a temporary JSON document."""
    return StateStore(tmp_path / "state" / "jobs_state.json")

# ============================================================================
# File System Fixtures
# ============================================================================

@pytest.fixture
def test_input_dir(tmp_path):
    """Creates a test input directory."""
    input_dir = tmp_path / "videos"
    input_dir.mkdir()
    return input_dir

@pytest.fixture
def dummy_video_files(test_input_dir):
    """Creates dummy video files of 100, 200 and 300 bytes plus a nested one."""
    files = []
    for i, size in enumerate((100, 200, 300)):
        f = test_input_dir / f"video{i}.mp4"
        f.write_bytes(b"v" * size)
        files.append(f)

    subdir = test_input_dir / "subdir"
    subdir.mkdir()
    f = subdir / "subvideo.mov"
    f.write_bytes(b"v" * 50)
    files.append(f)

    # Not a video: must never be indexed
    (test_input_dir / "notes.txt").write_text("hello")

    return files

# ============================================================================
# Marker registration
# ============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (integration tests with real files)"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
