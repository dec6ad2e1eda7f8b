import logging
from pathlib import Path
from typing import Iterable, List, Optional
from squeeze.domain.models import FolderJob, JobStatus, StateDocument
from squeeze.infrastructure.file_scanner import FileScanner

logger = logging.getLogger(__name__)

# Top-level folders never indexed in "all folders" mode
SKIPPED_CHILD_DIRS = {"Android"}


def leaf_name(folder_path: str) -> str:
    name = Path(folder_path).name
    return name or folder_path


def add_folder(document: StateDocument, folder: Path, recursive: bool = True) -> FolderJob:
    """Registers ``folder`` as a job (selected-folders mode)."""
    key = str(folder)
    job = FolderJob(display_name=leaf_name(key), folder_path=key, recursive=recursive)
    document.jobs[key] = job
    document.options.selected_folders = list(document.jobs.keys())
    return job


def add_folders(document: StateDocument, folders: Iterable[Path]) -> List[FolderJob]:
    return [add_folder(document, folder) for folder in folders]


def index_all_folders(
    document: StateDocument,
    root: Path,
    scanner: Optional[FileScanner] = None,
    root_display_name: Optional[str] = None,
) -> List[FolderJob]:
    """"All folders" mode: the root itself (files directly in it) plus one
    recursive job per visible top-level directory. Replaces existing jobs."""
    scanner = scanner or FileScanner()
    document.jobs.clear()

    root_key = str(root)
    document.jobs[root_key] = FolderJob(
        display_name=root_display_name or leaf_name(root_key),
        folder_path=root_key,
        recursive=False,
    )
    for child in scanner.list_child_dirs(root):
        name = child.name
        if not name or name.startswith(".") or name in SKIPPED_CHILD_DIRS:
            continue
        document.jobs[str(child)] = FolderJob(display_name=name, folder_path=str(child), recursive=True)

    document.options.selected_folders = list(document.jobs.keys())
    logger.info(f"ALL_FOLDERS: {root} -> {len(document.jobs)} jobs")
    return list(document.jobs.values())


def clear_jobs(document: StateDocument) -> None:
    document.jobs.clear()
    document.options.selected_folders = []


def reset_progress(document: StateDocument) -> None:
    """Puts every job back to NotStarted with an empty inventory."""
    for job in document.jobs.values():
        job.status = JobStatus.NOT_STARTED
        job.file_index = {}
        job.current_file_path = None
        job.error_message = None
        job.compressed_paths = set()


def compose_display_title(job: FolderJob) -> str:
    """Job name, plus the sub-folder of the current file when it is nested."""
    current = job.current_file_path
    if current is None:
        return job.display_name
    parent = Path(current).parent
    if parent == Path(job.folder_path):
        return job.display_name
    return f"{job.display_name} > {parent.name}"


def format_percent(done: int, total: int) -> str:
    if total <= 0:
        return "0%"
    pct = max(0.0, min(100.0, done / total * 100))
    return f"{pct:.1f}%"


def build_progress_text(job: FolderJob) -> str:
    done = job.completed_files
    total = len(job.file_index)
    return f"Completed: {done} / {total} ({format_percent(done, total)})"
