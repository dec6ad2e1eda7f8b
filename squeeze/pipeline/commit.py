"""Commit protocols for a finished encode.

The engine runs only after the transcoder reported success. It updates the
job's index first (progress totals are derived from it), applies the size
guard, then either swaps the temp output over the original (in-place mode)
or keeps the suffixed sibling, and finally disposes of the original when the
options ask for it. The original is never removed before its replacement has
been seen on disk.
"""

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from squeeze.domain.models import FileState, FolderJob, Options
from squeeze.infrastructure.trash import TrashHelper


@dataclass
class CommitResult:
    original_bytes: int
    output_path: Optional[Path] = None
    output_bytes: Optional[int] = None
    size_guard_applied: bool = False
    original_disposed: bool = False


def _try_get_size(path: Path) -> Optional[int]:
    try:
        return path.stat().st_size
    except OSError:
        return None


class CommitEngine:
    def __init__(self, trash: TrashHelper):
        self.trash = trash
        self.logger = logging.getLogger(__name__)

    def commit(self, job: FolderJob, source: Path, output_path: Path, options: Options) -> CommitResult:
        key = str(source)

        # 1. Authoritative original size at this moment
        previous = job.file_index.get(key)
        original_size = _try_get_size(source)
        if original_size is None:
            original_size = previous.original_bytes if previous else 0
        job.file_index[key] = FileState(original_bytes=original_size, compressed=True)

        result = CommitResult(original_bytes=original_size)

        # 2. Never keep an output that grew
        result.size_guard_applied = self._ensure_output_not_bigger(source, output_path, original_size)

        # 3. Commit mode
        if options.in_place:
            result.output_path = self._commit_temp_over_original(job, output_path, source)
            result.original_disposed = result.output_path == source
        else:
            if output_path.exists():
                job.compressed_paths.add(str(output_path))
                result.output_path = output_path
            else:
                self.logger.error(f"COMMIT_MISSING_OUTPUT: {output_path}")

            # 4. Disposal (suffix mode only; in-place already replaced it)
            if result.output_path is not None and not options.keep_original:
                result.original_disposed = self.trash.trash(source)
                if not result.original_disposed:
                    self.logger.warning(f"COMMIT_KEEP: could not dispose of {source}")

        if result.output_path is not None:
            result.output_bytes = _try_get_size(result.output_path)
        return result

    def _ensure_output_not_bigger(self, source: Path, output_path: Path, original_size: int) -> bool:
        try:
            if not output_path.exists():
                self.logger.warning(f"Output file missing when comparing sizes: {output_path}")
                return False
            output_size = output_path.stat().st_size
            if output_size <= original_size:
                return False
            self.logger.info(
                f"SIZE_GUARD: {source.name} output={output_size} > original={original_size}, "
                f"replacing output with original bytes"
            )
            shutil.copyfile(source, output_path)
            return True
        except OSError as e:
            self.logger.error(f"Size compare/overwrite failed for {output_path}: {e}")
            return False

    def _commit_temp_over_original(self, job: FolderJob, temp_path: Path, original: Path) -> Optional[Path]:
        """Swaps the finished temp output onto the original's path.

        Returns the path now holding the encode, or None when there is none.
        """
        if temp_path == original:
            self.logger.error(f"COMMIT_ERROR: temp path equals original ({original})")
            job.compressed_paths.add(str(temp_path))
            return None

        if not temp_path.exists():
            # Original stays where it is: there is nothing to replace it with
            self.logger.error(f"COMMIT_MISSING_OUTPUT: temp file missing {temp_path}")
            job.compressed_paths.add(str(temp_path))
            return None

        if original.exists() and not self.trash.trash(original):
            self.logger.warning(f"COMMIT_TRASH_FAILED: {original}, replacing it in one rename")

        try:
            temp_path.replace(original)
        except OSError as e:
            self.logger.error(f"COMMIT_RENAME_FAILED: {temp_path} -> {original}: {e}")
            job.compressed_paths.add(str(temp_path))
            return temp_path

        job.compressed_paths.add(str(original))
        self.logger.info(f"COMMIT_IN_PLACE: replaced {original} with its re-encode")
        return original
