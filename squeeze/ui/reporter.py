from pathlib import Path
from typing import Optional
from rich.console import Console
from rich.markup import escape
from squeeze.domain.events import (
    ActionMessage,
    FileAborted,
    FileCompleted,
    FileFailed,
    FileStarted,
    FolderJobCompleted,
    FolderJobStarted,
    FolderScanned,
    FolderSkipped,
    RunFinished,
    RunPaused,
    RunResumed,
    RunStarted,
)
from squeeze.infrastructure.event_bus import EventBus


def format_size(size: Optional[float]) -> str:
    if size is None:
        return "?"
    for unit in ["B", "KB", "MB", "GB"]:
        if size < 1024.0:
            return f"{size:.1f}{unit}"
        size /= 1024.0
    return f"{size:.1f}TB"


class ConsoleReporter:
    """Subscribes to EventBus and prints one line per run event."""

    def __init__(self, bus: EventBus, console: Optional[Console] = None):
        self.bus = bus
        self.console = console or Console()
        self.completed_count = 0
        self.failed_count = 0
        self.saved_bytes = 0
        self._setup_subscriptions()

    def _setup_subscriptions(self):
        self.bus.subscribe(RunStarted, self.on_run_started)
        self.bus.subscribe(FolderJobStarted, self.on_job_started)
        self.bus.subscribe(FolderSkipped, self.on_job_skipped)
        self.bus.subscribe(FolderScanned, self.on_job_scanned)
        self.bus.subscribe(FolderJobCompleted, self.on_job_completed)
        self.bus.subscribe(FileStarted, self.on_file_started)
        self.bus.subscribe(FileCompleted, self.on_file_completed)
        self.bus.subscribe(FileFailed, self.on_file_failed)
        self.bus.subscribe(FileAborted, self.on_file_aborted)
        self.bus.subscribe(RunPaused, self.on_paused)
        self.bus.subscribe(RunResumed, self.on_resumed)
        self.bus.subscribe(ActionMessage, self.on_action_message)
        self.bus.subscribe(RunFinished, self.on_run_finished)

    def on_run_started(self, event: RunStarted):
        self.console.print(f"[bold]Squeeze[/] started: {event.jobs_total} folder job(s)  [dim](P pause/resume, S stop)[/]")

    def on_job_started(self, event: FolderJobStarted):
        self.console.rule(escape(event.display_name))

    def on_job_skipped(self, event: FolderSkipped):
        self.console.print(f"[yellow]⚠ {escape(event.reason)}:[/] {escape(event.folder_path)}")

    def on_job_scanned(self, event: FolderScanned):
        self.console.print(
            f"  {event.files_found} video(s), {event.files_pending} to squeeze, "
            f"{format_size(event.total_bytes)} indexed"
        )

    def on_job_completed(self, event: FolderJobCompleted):
        self.console.print(
            f"[blue]■[/] {escape(event.display_name)} done "
            f"({format_size(event.processed_bytes)} / {format_size(event.total_bytes)})"
        )

    def on_file_started(self, event: FileStarted):
        self.console.print(f"  [green]▶[/] {escape(Path(event.path).name)}")

    def on_file_completed(self, event: FileCompleted):
        self.completed_count += 1
        if event.output_bytes is not None:
            self.saved_bytes += max(0, event.original_bytes - event.output_bytes)
        self.console.print(
            f"  [green]✓[/] {escape(Path(event.path).name)} "
            f"{format_size(event.original_bytes)} → {format_size(event.output_bytes)}"
        )

    def on_file_failed(self, event: FileFailed):
        self.failed_count += 1
        self.console.print(f"  [red]✗[/] {escape(Path(event.path).name)}: {escape(event.error_message)}")

    def on_file_aborted(self, event: FileAborted):
        self.console.print(f"  [yellow]↺[/] {escape(Path(event.path).name)} interrupted, will retry")

    def on_paused(self, event: RunPaused):
        self.console.print("[yellow]Paused[/] (press P to resume)")

    def on_resumed(self, event: RunResumed):
        self.console.print("[green]Resumed[/]")

    def on_action_message(self, event: ActionMessage):
        self.console.print(f"[dim]{escape(event.message)}[/]")

    def on_run_finished(self, event: RunFinished):
        status = "stopped" if event.stopped else "finished"
        self.console.print(
            f"[bold]Run {status}[/]: {self.completed_count} squeezed, {self.failed_count} failed, "
            f"{format_size(self.saved_bytes)} saved"
        )
