import logging
import os
from pathlib import Path
from typing import List
from squeeze.infrastructure.ffmpeg import TEMP_SUFFIX
from squeeze.infrastructure.file_scanner import is_trash_path

class HousekeepingService:
    """Cleans up after in-place encodes interrupted by a crash."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def recover_temp_outputs(self, directory: Path, recursive: bool = True) -> List[Path]:
        """Settles every ``<name>.temp`` left under ``directory``.

        A temp whose original is gone was fully encoded and the crash hit
        between disposing of the original and the rename: finish the rename
        and report the path as a produced output. Any other temp is a partial
        encode and is removed. Returns the recovered paths.
        """
        recovered: List[Path] = []
        for root, dirs, files in os.walk(directory):
            if not recursive:
                dirs[:] = []
            else:
                # Anything in a trash area was discarded on purpose
                dirs[:] = [d for d in dirs if not is_trash_path(Path(d))]
            for file in files:
                if not file.endswith(TEMP_SUFFIX):
                    continue
                temp_path = Path(root) / file
                original = temp_path.with_name(file[:-len(TEMP_SUFFIX)])
                try:
                    if original.exists():
                        temp_path.unlink()
                        self.logger.info(f"HOUSEKEEPING: removed stale {temp_path}")
                    else:
                        temp_path.replace(original)
                        recovered.append(original)
                        self.logger.info(f"HOUSEKEEPING: recovered {original} from {temp_path.name}")
                except OSError as e:
                    self.logger.warning(f"HOUSEKEEPING: could not settle {temp_path}: {e}")
        return recovered
