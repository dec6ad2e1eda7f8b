from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Set
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class JobStatus(str, Enum):
    NOT_STARTED = "NotStarted"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"


# Older state documents stored the status as an enum index
_LEGACY_STATUS = [JobStatus.NOT_STARTED, JobStatus.IN_PROGRESS, JobStatus.COMPLETED]


class PersistedModel(BaseModel):
    """Base for everything written to the state document (camelCase on disk)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class FileState(PersistedModel):
    original_bytes: int = Field(default=0, ge=0)
    compressed: bool = False
    failed: bool = False  # poisoned after an encode failure


def total_bytes(index: Dict[str, FileState]) -> int:
    return sum(state.original_bytes for state in index.values())


def processed_bytes(index: Dict[str, FileState]) -> int:
    return sum(state.original_bytes for state in index.values() if state.compressed)


class FolderJob(PersistedModel):
    display_name: str
    folder_path: str
    recursive: bool = False
    status: JobStatus = JobStatus.NOT_STARTED
    file_index: Dict[str, FileState] = Field(default_factory=dict)
    current_file_path: Optional[str] = None
    error_message: Optional[str] = None
    compressed_paths: Set[str] = Field(default_factory=set)

    @field_validator("status", mode="before")
    @classmethod
    def accept_legacy_status(cls, value):
        if isinstance(value, int) and 0 <= value < len(_LEGACY_STATUS):
            return _LEGACY_STATUS[value]
        return value

    @model_validator(mode="before")
    @classmethod
    def fold_completed_sizes(cls, data):
        """Turn a legacy ``completedSizes`` map into compressed index entries."""
        if not isinstance(data, dict):
            return data
        legacy = data.get("completedSizes")
        if legacy and not data.get("fileIndex") and not data.get("file_index"):
            data = dict(data)
            data["fileIndex"] = {
                path: {"originalBytes": max(0, int(size or 0)), "compressed": True}
                for path, size in legacy.items()
            }
        return data

    @property
    def total_bytes(self) -> int:
        return total_bytes(self.file_index)

    @property
    def processed_bytes(self) -> int:
        return processed_bytes(self.file_index)

    @property
    def completed_files(self) -> int:
        return sum(1 for state in self.file_index.values() if state.compressed)

    @property
    def progress_percent(self) -> float:
        if not self.file_index:
            return 0.0
        return min(100.0, self.completed_files / len(self.file_index) * 100.0)

    @property
    def root(self) -> Path:
        return Path(self.folder_path)

    def next_pending_path(self) -> Optional[str]:
        """First index entry (in index order) still waiting for an encode."""
        for path, state in self.file_index.items():
            if state.compressed or path in self.compressed_paths:
                continue
            return path
        return None


class Options(PersistedModel):
    suffix: str = ""
    keep_original: bool = False
    selected_folders: List[str] = Field(default_factory=list)

    @property
    def in_place(self) -> bool:
        return not self.suffix.strip()


class StateDocument(PersistedModel):
    jobs: Dict[str, FolderJob] = Field(default_factory=dict)
    options: Options = Field(default_factory=Options)
