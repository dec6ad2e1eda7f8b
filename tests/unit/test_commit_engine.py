import pytest
from pathlib import Path
from unittest.mock import MagicMock, patch
from squeeze.domain.models import FileState, FolderJob, Options
from squeeze.infrastructure.trash import TrashHelper
from squeeze.pipeline.commit import CommitEngine


@pytest.fixture
def source(tmp_path):
    path = tmp_path / "clip.mp4"
    path.write_bytes(b"s" * 1000)
    return path


@pytest.fixture
def job(tmp_path, source):
    return FolderJob(
        display_name=tmp_path.name,
        folder_path=str(tmp_path),
        file_index={str(source): FileState(original_bytes=1000)},
    )


def test_in_place_replaces_original(job, source):
    temp = source.with_name("clip.mp4.temp")
    temp.write_bytes(b"o" * 400)

    result = CommitEngine(TrashHelper()).commit(job, source, temp, Options())

    assert source.read_bytes() == b"o" * 400
    assert not temp.exists()
    assert job.file_index[str(source)] == FileState(original_bytes=1000, compressed=True)
    assert str(source) in job.compressed_paths
    assert result.output_path == source
    assert result.output_bytes == 400
    assert result.original_disposed is True
    assert result.size_guard_applied is False


def test_in_place_size_guard_keeps_original_bytes(job, source):
    temp = source.with_name("clip.mp4.temp")
    temp.write_bytes(b"o" * 2000)

    result = CommitEngine(TrashHelper()).commit(job, source, temp, Options())

    assert result.size_guard_applied is True
    assert source.read_bytes() == b"s" * 1000
    assert result.output_bytes == 1000
    assert job.processed_bytes == 1000


def test_in_place_missing_temp_keeps_original(job, source):
    temp = source.with_name("clip.mp4.temp")

    result = CommitEngine(TrashHelper()).commit(job, source, temp, Options())

    assert source.read_bytes() == b"s" * 1000
    assert result.output_path is None
    assert str(temp) in job.compressed_paths
    assert job.file_index[str(source)].compressed is True


def test_in_place_rename_failure_records_temp(job, source):
    temp = source.with_name("clip.mp4.temp")
    temp.write_bytes(b"o" * 400)

    with patch.object(Path, "replace", side_effect=OSError("cross-device")):
        result = CommitEngine(TrashHelper()).commit(job, source, temp, Options())

    assert temp.exists()
    assert result.output_path == temp
    assert str(temp) in job.compressed_paths
    assert job.file_index[str(source)].compressed is True


def test_in_place_trash_failure_still_replaces(job, source):
    trash = MagicMock()
    trash.trash.return_value = False
    temp = source.with_name("clip.mp4.temp")
    temp.write_bytes(b"o" * 300)

    result = CommitEngine(trash).commit(job, source, temp, Options())

    assert source.read_bytes() == b"o" * 300
    assert result.output_path == source
    trash.trash.assert_called_once_with(source)


def test_temp_equal_to_original_is_refused(job, source):
    result = CommitEngine(TrashHelper()).commit(job, source, source, Options())

    assert result.output_path is None
    assert source.exists()
    assert str(source) in job.compressed_paths


def test_suffix_mode_disposes_original(job, source):
    output = source.with_name("clip_small.mp4")
    output.write_bytes(b"o" * 300)

    result = CommitEngine(TrashHelper()).commit(job, source, output, Options(suffix="_small"))

    assert not source.exists()
    assert output.exists()
    assert str(output) in job.compressed_paths
    assert result.original_disposed is True
    assert result.output_bytes == 300


def test_suffix_mode_keep_original(job, source):
    output = source.with_name("clip_small.mp4")
    output.write_bytes(b"o" * 300)

    result = CommitEngine(TrashHelper()).commit(
        job, source, output, Options(suffix="_small", keep_original=True)
    )

    assert source.read_bytes() == b"s" * 1000
    assert output.read_bytes() == b"o" * 300
    assert result.original_disposed is False
    assert job.file_index[str(source)].compressed is True


def test_suffix_mode_size_guard(job, source):
    output = source.with_name("clip_small.mp4")
    output.write_bytes(b"o" * 5000)

    result = CommitEngine(TrashHelper()).commit(
        job, source, output, Options(suffix="_small", keep_original=True)
    )

    assert result.size_guard_applied is True
    assert output.read_bytes() == source.read_bytes()


def test_suffix_mode_missing_output_keeps_original(job, source):
    output = source.with_name("clip_small.mp4")
    trash = MagicMock()

    result = CommitEngine(trash).commit(job, source, output, Options(suffix="_small"))

    assert result.output_path is None
    assert source.exists()
    trash.trash.assert_not_called()
    assert str(output) not in job.compressed_paths


def test_original_size_is_re_measured(job, source):
    job.file_index[str(source)] = FileState(original_bytes=10)
    output = source.with_name("clip_small.mp4")
    output.write_bytes(b"o" * 100)

    result = CommitEngine(TrashHelper()).commit(
        job, source, output, Options(suffix="_small", keep_original=True)
    )

    assert result.original_bytes == 1000
    assert job.file_index[str(source)].original_bytes == 1000


def test_vanished_original_falls_back_to_recorded_size(job, source, tmp_path):
    job.file_index[str(source)] = FileState(original_bytes=777)
    source.unlink()
    output = tmp_path / "clip_small.mp4"
    output.write_bytes(b"o" * 100)

    result = CommitEngine(TrashHelper()).commit(
        job, source, output, Options(suffix="_small", keep_original=True)
    )

    assert result.original_bytes == 777
