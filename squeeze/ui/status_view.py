from pathlib import Path
from rich.table import Table
from rich.text import Text
from squeeze.domain.models import JobStatus, StateDocument
from squeeze.pipeline.jobs import format_percent
from squeeze.ui.reporter import format_size

STATUS_STYLES = {
    JobStatus.NOT_STARTED: ("●", "red"),
    JobStatus.IN_PROGRESS: ("●", "green"),
    JobStatus.COMPLETED: ("●", "blue"),
}


def render_status(document: StateDocument, paused: bool = False) -> Table:
    """Builds the job table from a persisted snapshot."""
    options = document.options
    mode = "in place" if options.in_place else f"suffix {options.suffix.strip()!r}"
    keep = "keep originals" if options.keep_original else "dispose originals"
    table = Table(title=f"Squeeze jobs ({mode}, {keep})", expand=False)
    table.add_column("", width=1)
    table.add_column("Folder")
    table.add_column("Status")
    table.add_column("Files", justify="right")
    table.add_column("Bytes", justify="right")
    table.add_column("Progress", justify="right")
    table.add_column("Current / last error", overflow="fold")

    for job in document.jobs.values():
        icon, style = STATUS_STYLES[job.status]
        if job.status == JobStatus.IN_PROGRESS and paused:
            style = "yellow"
        detail = ""
        if job.current_file_path and job.status == JobStatus.IN_PROGRESS:
            detail = Path(job.current_file_path).name
        elif job.error_message:
            detail = job.error_message.strip().splitlines()[-1] if job.error_message.strip() else ""
        table.add_row(
            Text(icon, style=style),
            job.display_name,
            job.status.value,
            f"{job.completed_files}/{len(job.file_index)}",
            f"{format_size(job.processed_bytes)} / {format_size(job.total_bytes)}",
            format_percent(job.processed_bytes, job.total_bytes),
            detail,
        )
    return table
