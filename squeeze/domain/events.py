"""Domain events for the re-encoding run.

Events describe state changes of a run and flow through the EventBus, keeping
the orchestrator unaware of whoever is displaying progress. Control requests
coming from the keyboard travel the same way in the opposite direction.

See `infrastructure/event_bus.py` for the pub/sub mechanism.
"""

from typing import Optional
from pydantic import BaseModel


class Event(BaseModel):
    """Base class for all domain events."""

    pass


class RunStarted(Event):
    """Emitted once the worker thread has loaded the state document."""

    jobs_total: int


class FolderJobEvent(Event):
    """Base class for events about one folder job."""

    folder_path: str
    display_name: str


class FolderJobStarted(FolderJobEvent):
    """Emitted when a job is picked up, before scanning."""

    pass


class FolderSkipped(FolderJobEvent):
    """Emitted when a job is short-circuited (folder missing or read-only)."""

    reason: str


class FolderScanned(FolderJobEvent):
    """Emitted after the scanner rebuilt the job's index."""

    files_found: int
    files_pending: int
    total_bytes: int


class FolderJobCompleted(FolderJobEvent):
    """Emitted when no eligible file remains in the job."""

    processed_bytes: int
    total_bytes: int


class FileEvent(FolderJobEvent):
    """Base class for events about a single source file."""

    path: str


class FileStarted(FileEvent):
    """Emitted right before the encode for a file is launched."""

    pass


class FileCompleted(FileEvent):
    """Emitted after a successful encode has been committed."""

    original_bytes: int
    output_bytes: Optional[int] = None
    output_path: Optional[str] = None


class FileFailed(FileEvent):
    """Emitted when an encode failed and the file was poisoned."""

    error_message: str


class FileAborted(FileEvent):
    """Emitted when an in-flight encode was cancelled by pause or stop."""

    pass


class RunPaused(Event):
    pass


class RunResumed(Event):
    pass


class RunFinished(Event):
    """Emitted when the worker thread has fully unwound."""

    stopped: bool = False


class ActionMessage(Event):
    """Transient user-facing notice."""

    message: str


class PauseToggleRequested(Event):
    """Event emitted when the user toggles pause (Key 'P')."""

    pass


class StopRequested(Event):
    """Event emitted when the user requests a stop (Key 'S' or Ctrl+C)."""

    pass
