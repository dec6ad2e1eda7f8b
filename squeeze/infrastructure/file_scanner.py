import logging
import os
from pathlib import Path
from typing import AbstractSet, Dict, Iterable, Iterator, List, Mapping, Optional
from squeeze.config.models import VIDEO_EXTENSIONS
from squeeze.domain.models import FileState

# Directory names used by desktop trash cans, Windows and Android recycle areas
TRASH_DIR_NAMES = {"$recycle.bin", "recycler", ".recycle", ".recycled"}


def is_trash_path(path: Path) -> bool:
    for part in path.parts:
        lowered = part.lower()
        if lowered.startswith(".trash") or lowered in TRASH_DIR_NAMES:
            return True
    return False


class FileScanner:
    """Builds the per-job file index of source videos."""

    def __init__(self, extensions: Optional[Iterable[str]] = None):
        extensions = VIDEO_EXTENSIONS if extensions is None else extensions
        self.extensions = [(ext if ext.startswith(".") else f".{ext}").lower() for ext in extensions]
        self.logger = logging.getLogger(__name__)

    def is_video(self, path: Path) -> bool:
        return path.name.lower().endswith(tuple(self.extensions))

    def _walk(self, root_dir: Path, recursive: bool) -> Iterator[Path]:
        def _on_error(err: OSError):
            self.logger.debug(f"SCAN_SKIP: {err}")

        for root, dirs, files in os.walk(str(root_dir), onerror=_on_error, followlinks=False):
            root_path = Path(root)
            if not recursive:
                dirs[:] = []
            else:
                # Deterministic traversal; never descend into trash areas
                dirs[:] = sorted(d for d in dirs if not is_trash_path(Path(d)))
            for file_name in sorted(files):
                yield root_path / file_name

    def scan(
        self,
        root_dir: Path,
        existing_index: Optional[Mapping[str, FileState]] = None,
        existing_outputs: AbstractSet[str] = frozenset(),
        recursive: bool = True,
    ) -> Dict[str, FileState]:
        """Returns a brand-new index for ``root_dir``.

        Entries keep ``compressed=True`` only if the same path was already
        completed in ``existing_index``; files that disappeared since the last
        scan are simply not in the result. Unreadable entries are skipped.
        """
        existing_index = existing_index or {}
        new_index: Dict[str, FileState] = {}

        for file_path in self._walk(Path(root_dir), recursive):
            key = str(file_path)
            if is_trash_path(file_path) or key in existing_outputs:
                continue
            if not self.is_video(file_path):
                continue
            try:
                if not file_path.is_file():
                    continue
                size = file_path.stat().st_size
            except OSError:
                continue

            previous = existing_index.get(key)
            new_index[key] = FileState(
                original_bytes=size,
                compressed=bool(previous and previous.compressed),
                failed=bool(previous and previous.compressed and previous.failed),
            )

        return new_index

    def list_child_dirs(self, root_dir: Path) -> List[Path]:
        """Immediate sub-directories of ``root_dir`` (sorted, errors ignored)."""
        try:
            entries = sorted(Path(root_dir).iterdir())
        except OSError:
            return []
        children = []
        for entry in entries:
            try:
                if entry.is_dir() and not entry.is_symlink():
                    children.append(entry)
            except OSError:
                continue
        return children
