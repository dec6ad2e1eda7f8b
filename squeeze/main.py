import logging
from pathlib import Path
from typing import List, Optional

import typer
from pydantic import ValidationError
from rich.console import Console

from squeeze.config.loader import load_config
from squeeze.config.models import AppConfig
from squeeze.infrastructure.event_bus import EventBus
from squeeze.infrastructure.ffmpeg import FFmpegAdapter
from squeeze.infrastructure.ffprobe import FFprobeAdapter
from squeeze.infrastructure.file_scanner import FileScanner
from squeeze.infrastructure.housekeeping import HousekeepingService
from squeeze.infrastructure.logging import setup_logging
from squeeze.infrastructure.notifier import LoggingNotifier
from squeeze.infrastructure.state_store import StateStore
from squeeze.infrastructure.trash import TrashHelper
from squeeze.pipeline.commit import CommitEngine
from squeeze.pipeline.jobs import add_folders, clear_jobs, index_all_folders, reset_progress
from squeeze.pipeline.orchestrator import Orchestrator
from squeeze.ui.keyboard import KeyboardListener
from squeeze.ui.reporter import ConsoleReporter
from squeeze.ui.status_view import render_status

DEFAULT_CONFIG_PATH = Path("conf/squeeze.yaml")

app = typer.Typer(help="Squeeze - resumable in-place batch video re-encoding")

ConfigOption = typer.Option(None, "--config", "-c", help="Path to YAML config (default: conf/squeeze.yaml if present)")
StateOption = typer.Option(None, "--state", help="Path to the JSON state document (overrides config)")


def _load(config_path: Optional[Path], state_path: Optional[Path]) -> AppConfig:
    if config_path is None and DEFAULT_CONFIG_PATH.exists():
        config_path = DEFAULT_CONFIG_PATH
    try:
        config = load_config(config_path)
    except (FileNotFoundError, ValueError, ValidationError) as exc:
        typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    if state_path is not None:
        config.general.state_path = state_path.expanduser()
    return config


@app.command()
def add(
    folders: List[Path] = typer.Argument(
        ..., exists=True, file_okay=False, dir_okay=True, resolve_path=True,
        help="Folder(s) to squeeze recursively"
    ),
    config_path: Optional[Path] = ConfigOption,
    state_path: Optional[Path] = StateOption,
):
    """Register folders as jobs (selected-folders mode)."""
    config = _load(config_path, state_path)
    store = StateStore(config.general.state_path)
    document = store.load()
    for job in add_folders(document, folders):
        typer.echo(f"Added: {job.display_name} ({job.folder_path})")
    store.save(document)


@app.command(name="all")
def all_folders(
    root: Path = typer.Argument(
        ..., exists=True, file_okay=False, dir_okay=True, resolve_path=True,
        help="Storage root whose top-level folders become jobs"
    ),
    name: Optional[str] = typer.Option(None, "--name", help="Display name for the root job"),
    config_path: Optional[Path] = ConfigOption,
    state_path: Optional[Path] = StateOption,
):
    """Replace all jobs with the root plus each of its top-level folders."""
    config = _load(config_path, state_path)
    store = StateStore(config.general.state_path)
    document = store.load()
    scanner = FileScanner(config.general.extensions)
    jobs = index_all_folders(document, root, scanner=scanner, root_display_name=name)
    store.save(document)
    typer.echo(f"Indexed {len(jobs)} folder job(s) under {root}")


@app.command()
def clear(
    config_path: Optional[Path] = ConfigOption,
    state_path: Optional[Path] = StateOption,
):
    """Forget every job and selected folder."""
    config = _load(config_path, state_path)
    store = StateStore(config.general.state_path)
    document = store.load()
    clear_jobs(document)
    store.save(document)
    typer.echo("Cleared all jobs")


@app.command()
def options(
    suffix: Optional[str] = typer.Option(None, "--suffix", help="Output name suffix; empty string replaces originals in place"),
    keep_original: Optional[bool] = typer.Option(None, "--keep-original/--no-keep-original", help="Keep originals next to suffixed outputs"),
    config_path: Optional[Path] = ConfigOption,
    state_path: Optional[Path] = StateOption,
):
    """Show or change the global commit options."""
    config = _load(config_path, state_path)
    store = StateStore(config.general.state_path)
    current = store.load_options()
    new_suffix = current.suffix if suffix is None else suffix.strip()
    new_keep = current.keep_original if keep_original is None else keep_original

    if new_keep and not new_suffix:
        typer.secho(
            "Error: --keep-original needs a non-empty --suffix (in-place mode replaces originals).",
            fg=typer.colors.RED,
            err=True,
        )
        raise typer.Exit(code=1)

    if suffix is not None or keep_original is not None:
        current = store.save_options(suffix=new_suffix, keep_original=new_keep)
    mode = "in place" if current.in_place else f"suffix {current.suffix!r}"
    typer.echo(f"Mode: {mode} | Keep original: {current.keep_original}")


@app.command()
def status(
    config_path: Optional[Path] = ConfigOption,
    state_path: Optional[Path] = StateOption,
):
    """Print the persisted progress of every job."""
    config = _load(config_path, state_path)
    store = StateStore(config.general.state_path)
    document = store.load()
    console = Console()
    if not document.jobs:
        console.print("No folders selected. Use 'squeeze add' or 'squeeze all' first.")
        return
    console.print(render_status(document))


@app.command()
def run(
    config_path: Optional[Path] = ConfigOption,
    state_path: Optional[Path] = StateOption,
    fresh: bool = typer.Option(False, "--fresh", help="Reset all job progress before starting"),
    cooldown: Optional[float] = typer.Option(None, "--cooldown", help="Seconds to rest between files (overrides config)"),
    crf: Optional[int] = typer.Option(None, "--crf", help="Override x264 CRF (0-51)"),
    debug: bool = typer.Option(False, "--debug/--no-debug", help="Enable verbose debug logging"),
):
    """Encode every pending file of every job, resuming where the last run stopped."""
    config = _load(config_path, state_path)
    if cooldown is not None:
        if cooldown < 0:
            typer.secho("Error: --cooldown must be >= 0", fg=typer.colors.RED, err=True)
            raise typer.Exit(code=1)
        config.general.cooldown_s = cooldown
    if crf is not None:
        if not 0 <= crf <= 51:
            typer.secho("Error: --crf must be between 0 and 51", fg=typer.colors.RED, err=True)
            raise typer.Exit(code=1)
        config.encoder.crf = crf
    if debug:
        config.general.debug = True

    store = StateStore(config.general.state_path)
    logger = setup_logging(store.path.parent, debug=config.general.debug, log_path=config.general.log_path)
    logger.info(
        f"Config: state={store.path}, cooldown={config.general.cooldown_s}s, "
        f"codec={config.encoder.video_codec}, crf={config.encoder.crf}"
    )

    document = store.load()
    if not document.jobs:
        typer.secho(
            "Error: No folders selected. Use 'squeeze add' or 'squeeze all' first.",
            fg=typer.colors.RED,
            err=True,
        )
        raise typer.Exit(code=1)
    if fresh:
        reset_progress(document)
        store.save(document)
        logger.info("Progress reset (--fresh)")

    bus = EventBus()
    ConsoleReporter(bus, Console())

    scanner = FileScanner(config.general.extensions)
    ffprobe = FFprobeAdapter(default_fps=config.encoder.default_fps)
    ffmpeg = FFmpegAdapter(config.encoder, ffprobe_adapter=ffprobe)
    orchestrator = Orchestrator(
        config=config,
        store=store,
        file_scanner=scanner,
        transcoder=ffmpeg,
        commit_engine=CommitEngine(TrashHelper()),
        event_bus=bus,
        notifier=LoggingNotifier(),
        housekeeper=HousekeepingService(),
    )

    keyboard = KeyboardListener(bus)
    keyboard.start()
    try:
        orchestrator.start()
        while not orchestrator.wait(timeout=0.5):
            pass
    except KeyboardInterrupt:
        logging.getLogger(__name__).info("Ctrl+C - stopping run")
        orchestrator.stop_and_wait()
        typer.secho("\n✓ Stopped by user (Ctrl+C); progress is saved", fg=typer.colors.YELLOW)
        raise typer.Exit(code=130)
    finally:
        keyboard.stop()


if __name__ == "__main__":
    app()
