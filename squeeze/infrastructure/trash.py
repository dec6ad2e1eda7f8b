import logging
from pathlib import Path

class TrashHelper:
    """Disposes of originals. Best effort: permanent removal, never raises."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def trash(self, path: Path) -> bool:
        """Returns True if ``path`` no longer exists afterwards."""
        path = Path(path)
        try:
            if path.exists():
                path.unlink()
            return not path.exists()
        except OSError as e:
            self.logger.warning(f"TRASH_FAILED: {path} - {e}")
            return False
