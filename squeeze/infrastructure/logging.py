import logging
from pathlib import Path
from typing import Optional

def setup_logging(log_dir: Path, debug: bool = False, log_path: Optional[Path] = None) -> logging.Logger:
    """
    Routes every module logger of a run into one file.

    The file is ``squeeze.log`` beside the state document unless
    ``log_path`` names another one; parent directories are created.
    Any handlers installed earlier (a previous run in the same process,
    library defaults) are replaced.

    Args:
        log_dir: Directory that holds the log (usually the state file's directory)
        debug: Also record FFMPEG_CMD lines and other DEBUG detail
        log_path: Explicit log file, taking precedence over log_dir
    """
    log_dir.mkdir(parents=True, exist_ok=True)

    log_file = Path(log_path) if log_path else (log_dir / "squeeze.log")
    log_file.parent.mkdir(parents=True, exist_ok=True)

    level = logging.DEBUG if debug else logging.INFO

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[logging.FileHandler(log_file)],
        force=True  # Override any existing configuration
    )

    logger = logging.getLogger(__name__)
    logger.info(f"Logging initialized: {log_file} (debug={'ON' if debug else 'OFF'})")

    return logger
