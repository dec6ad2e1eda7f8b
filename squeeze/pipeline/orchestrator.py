"""Job orchestrator: the single worker that drives a re-encoding run.

Walks the persisted folder jobs in order, rescans each into a fresh file
index, then encodes one file at a time through the transcoder, commits the
result and saves the state document after every change. Control requests
(pause, resume, stop) are flags guarded by one Condition; every suspension
point (encode polling, pause wait, cooldown) waits on it with a short
timeout, so a request is observed within one polling interval.

Key responsibilities:
- Skip completed jobs, short-circuit missing or read-only folders
- Settle leftovers of a crashed run before rescanning
- Poison files whose encode fails so the queue always advances
- Cancel the in-flight encode on stop (and on pause unless configured not to)
- Publish progress events and foreground notifications
"""

import logging
import threading
import time
from enum import Enum
from pathlib import Path
from typing import Optional
from squeeze.config.models import AppConfig
from squeeze.domain.events import (
    ActionMessage,
    Event,
    FileAborted,
    FileCompleted,
    FileFailed,
    FileStarted,
    FolderJobCompleted,
    FolderJobStarted,
    FolderScanned,
    FolderSkipped,
    PauseToggleRequested,
    RunFinished,
    RunPaused,
    RunResumed,
    RunStarted,
    StopRequested,
)
from squeeze.domain.models import FileState, FolderJob, JobStatus, Options, StateDocument
from squeeze.infrastructure.event_bus import EventBus
from squeeze.infrastructure.ffmpeg import EncodeHandle, EncodeOutcome, FFmpegAdapter, NamingMode, output_path_for
from squeeze.infrastructure.file_scanner import FileScanner
from squeeze.infrastructure.housekeeping import HousekeepingService
from squeeze.infrastructure.notifier import Notifier
from squeeze.infrastructure.state_store import StateStore
from squeeze.pipeline.commit import CommitEngine
from squeeze.pipeline.jobs import build_progress_text, compose_display_title


class RunState(str, Enum):
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    PAUSED = "PAUSED"
    STOPPING = "STOPPING"


def has_write_access(directory: Path) -> bool:
    """Probe-writes and deletes a throwaway file in ``directory``."""
    probe = directory / f".write_probe_{time.time_ns()}"
    try:
        probe.write_text("ok")
        probe.unlink()
        return True
    except OSError:
        return False


class Orchestrator:
    """Resumable re-encoding run over every persisted folder job.

    One instance is meant to live as long as the process; ``start()`` spawns
    the worker thread and returns, a second ``start()`` while a run is active
    does nothing.

    Args:
        config: AppConfig (polling intervals, cooldown, stop timeout).
        store: StateStore holding jobs and options; saved after each mutation.
        file_scanner: FileScanner used to rebuild each job's index.
        transcoder: FFmpegAdapter (or anything with the same ``encode``).
        commit_engine: CommitEngine applying the in-place / suffix protocols.
        event_bus: EventBus for progress events and control requests.
        notifier: Foreground notification collaborator (no-op by default).
        housekeeper: Settles crash leftovers before each scan.
    """

    def __init__(
        self,
        config: AppConfig,
        store: StateStore,
        file_scanner: FileScanner,
        transcoder: FFmpegAdapter,
        commit_engine: CommitEngine,
        event_bus: EventBus,
        notifier: Optional[Notifier] = None,
        housekeeper: Optional[HousekeepingService] = None,
    ):
        self.config = config
        self.store = store
        self.file_scanner = file_scanner
        self.transcoder = transcoder
        self.commit_engine = commit_engine
        self.event_bus = event_bus
        self.notifier = notifier or Notifier()
        self.housekeeper = housekeeper or HousekeepingService()
        self.logger = logging.getLogger(__name__)

        # Control state, guarded by _control
        self._control = threading.Condition()
        self._running = False
        self._paused = False
        self._stop_requested = False
        self._active_handle: Optional[EncodeHandle] = None
        self._thread: Optional[threading.Thread] = None
        self._finished = threading.Event()
        self._finished.set()

        # Owned by the worker thread while a run is active
        self._document: Optional[StateDocument] = None

        self._setup_subscriptions()

    def _setup_subscriptions(self):
        self.event_bus.subscribe(PauseToggleRequested, self._on_pause_toggle)
        self.event_bus.subscribe(StopRequested, self._on_stop_request)

    def _on_pause_toggle(self, event: PauseToggleRequested):
        if self.is_paused:
            self.resume()
        else:
            self.pause()

    def _on_stop_request(self, event: StopRequested):
        # Keyboard thread must not block: request only, do not wait
        self.stop_and_wait(timeout=0)

    # ---- Control surface ---------------------------------------------------

    @property
    def is_running(self) -> bool:
        """True while a run is active, paused or not."""
        with self._control:
            return self._running

    @property
    def is_paused(self) -> bool:
        with self._control:
            return self._paused

    @property
    def state(self) -> RunState:
        with self._control:
            if self._running:
                return RunState.PAUSED if self._paused else RunState.RUNNING
            if self._thread is not None and self._thread.is_alive():
                return RunState.STOPPING
            return RunState.IDLE

    def start(self) -> bool:
        """Starts the worker thread. Returns False if a run is already active."""
        with self._control:
            if self._running or (self._thread is not None and self._thread.is_alive()):
                self.logger.debug("START ignored: run already active")
                return False
            self._running = True
            self._paused = False
            self._stop_requested = False
            self._finished.clear()
            self._thread = threading.Thread(target=self._run, name="squeeze-worker", daemon=True)
            self._thread.start()
        return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Blocks until the current run has fully unwound."""
        return self._finished.wait(timeout)

    def pause(self) -> None:
        with self._control:
            if not self._running or self._paused:
                return
            self._paused = True
            self._control.notify_all()
        self.logger.info("PAUSE requested")
        self._notify(text=f"Paused • {time.strftime('%H:%M:%S')}")
        self._publish(RunPaused())

    def resume(self) -> None:
        with self._control:
            if not self._paused:
                return
            self._paused = False
            self._control.notify_all()
        self.logger.info("RESUME")
        self._notify(text="Resumed")
        self._publish(RunResumed())

    def stop_and_wait(self, timeout: Optional[float] = None) -> bool:
        """Requests a stop, cancels the in-flight encode and waits for the loop.

        Returns True if the worker unwound within ``timeout`` (default
        ``general.stop_timeout_s``). A timeout is harmless: the cancellation
        has already been issued and the loop exits on its next check.
        """
        if timeout is None:
            timeout = self.config.general.stop_timeout_s
        with self._control:
            self._running = False
            self._paused = False
            self._stop_requested = True
            handle = self._active_handle
            thread = self._thread
            self._control.notify_all()
        self.logger.info("STOP requested")

        if handle is not None:
            try:
                handle.cancel()
            except Exception as e:
                self.logger.warning(f"Cancelling in-flight encode failed: {e}")

        if thread is None or thread is threading.current_thread():
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def stop(self) -> bool:
        return self.stop_and_wait()

    def snapshot(self) -> StateDocument:
        """Read-only view for displays: the persisted document, never live jobs."""
        return self.store.load()

    # ---- Worker ------------------------------------------------------------

    def _run(self):
        self.logger.info("RUN_START")
        try:
            self._notify_start("Setting things up", "Preparing to squeeze…")
            document = self.store.load()
            self._document = document
            options = document.options
            self.logger.info(
                f"RUN_CONFIG: jobs={len(document.jobs)}, suffix={options.suffix!r}, "
                f"keep_original={options.keep_original}"
            )
            self._publish(RunStarted(jobs_total=len(document.jobs)))

            for job in list(document.jobs.values()):
                if not self.is_running:
                    break
                if job.status == JobStatus.COMPLETED:
                    continue
                try:
                    self._process_job(job, options)
                except Exception as e:
                    self.logger.exception(f"JOB_ERROR: {job.display_name}: {e}")
                    job.error_message = f"Exception: {e}"
                    self._save()
        except Exception as e:
            self.logger.exception(f"RUN_ERROR: {e}")
        finally:
            with self._control:
                stopped = self._stop_requested
                self._running = False
                self._paused = False
                self._active_handle = None
                self._control.notify_all()
            self._document = None
            self._notify_stop()
            self.logger.info(f"RUN_END: {'stopped' if stopped else 'done'}")
            self._publish(RunFinished(stopped=stopped))
            self._finished.set()

    def _process_job(self, job: FolderJob, options: Options):
        job.status = JobStatus.IN_PROGRESS
        self._save()
        self.logger.info(f"JOB_START: {job.display_name} ({job.folder_path})")
        self._publish(FolderJobStarted(folder_path=job.folder_path, display_name=job.display_name))
        self._notify_progress(job, options)

        folder = job.root
        reason = self._check_access(folder)
        if reason is not None:
            self.logger.warning(f"JOB_SKIP: {job.display_name} - {reason}")
            job.status = JobStatus.COMPLETED
            job.error_message = reason
            self._save()
            self._publish(FolderSkipped(folder_path=job.folder_path, display_name=job.display_name, reason=reason))
            self._publish(ActionMessage(message=f"{reason}: {job.display_name}"))
            return

        self._settle_leftovers(job, options)
        job.file_index = self.file_scanner.scan(
            folder, job.file_index, job.compressed_paths, recursive=job.recursive
        )
        self._save()
        pending = sum(
            1 for path, state in job.file_index.items()
            if not state.compressed and path not in job.compressed_paths
        )
        self.logger.info(
            f"SCAN_END: {job.display_name} files={len(job.file_index)} pending={pending} "
            f"total_bytes={job.total_bytes}"
        )
        self._publish(FolderScanned(
            folder_path=job.folder_path,
            display_name=job.display_name,
            files_found=len(job.file_index),
            files_pending=pending,
            total_bytes=job.total_bytes,
        ))
        self._notify_progress(job, options)

        while self.is_running:
            if self.is_paused:
                self._wait_while_paused()
                continue

            next_key = job.next_pending_path()
            if next_key is None:
                job.status = JobStatus.COMPLETED
                self._save()
                self.logger.info(f"JOB_END: {job.display_name} processed={job.processed_bytes}/{job.total_bytes}")
                self._publish(FolderJobCompleted(
                    folder_path=job.folder_path,
                    display_name=job.display_name,
                    processed_bytes=job.processed_bytes,
                    total_bytes=job.total_bytes,
                ))
                break

            source = Path(next_key)
            if not source.exists():
                self.logger.warning(f"FILE_VANISHED: {source}")
                del job.file_index[next_key]
                self._save()
                continue

            job.current_file_path = next_key
            self._save()
            self._notify_progress(job, options)

            try:
                committed = self._process_file(job, source, options)
            except Exception as e:
                self.logger.exception(f"FILE_ERROR: {source}: {e}")
                self._poison(job, next_key, f"Exception: {e}")
                committed = False

            if committed:
                self._cooldown(self.config.general.cooldown_s)

    def _check_access(self, folder: Path) -> Optional[str]:
        if not folder.is_dir():
            return "Folder missing"
        if not has_write_access(folder):
            return "No write access"
        return None

    def _settle_leftovers(self, job: FolderJob, options: Options):
        """Cleans what a crashed run may have left behind in this job."""
        for recovered in self.housekeeper.recover_temp_outputs(job.root, recursive=job.recursive):
            key = str(recovered)
            job.compressed_paths.add(key)
            state = job.file_index.get(key)
            if state is not None:
                job.file_index[key] = FileState(original_bytes=state.original_bytes, compressed=True)

        current = job.current_file_path
        if options.in_place or current is None:
            return
        state = job.file_index.get(current)
        if state is not None and state.compressed:
            return
        source = Path(current)
        partial = output_path_for(source, source.parent, NamingMode.SUFFIXED, options.suffix.strip())
        if partial != source and str(partial) not in job.compressed_paths and partial.exists():
            try:
                partial.unlink()
                self.logger.info(f"PARTIAL_REMOVED: {partial}")
            except OSError as e:
                self.logger.warning(f"Could not remove partial output {partial}: {e}")

    def _process_file(self, job: FolderJob, source: Path, options: Options) -> bool:
        """Encodes and commits one file. Returns True when a commit happened."""
        key = str(source)
        mode = NamingMode.TEMP_FOR_IN_PLACE if options.in_place else NamingMode.SUFFIXED
        start_time = time.monotonic()
        self.logger.info(f"FILE_START: {source} mode={mode.value}")
        self._publish(FileStarted(folder_path=job.folder_path, display_name=job.display_name, path=key))

        handle = self.transcoder.encode(source, source.parent, mode, suffix=options.suffix.strip())
        with self._control:
            self._active_handle = handle
        try:
            outcome = self._await_encode(handle)
        finally:
            with self._control:
                self._active_handle = None
        elapsed = time.monotonic() - start_time

        if outcome == EncodeOutcome.SUCCESS:
            result = self.commit_engine.commit(job, source, handle.output_path, options)
            self._save()
            self.logger.info(
                f"FILE_END: {source.name} status=completed original={result.original_bytes} "
                f"output={result.output_bytes} size_guard={result.size_guard_applied} elapsed={elapsed:.2f}s"
            )
            self._publish(FileCompleted(
                folder_path=job.folder_path,
                display_name=job.display_name,
                path=key,
                original_bytes=result.original_bytes,
                output_bytes=result.output_bytes,
                output_path=str(result.output_path) if result.output_path else None,
            ))
            self._notify_progress(job, options)
            return True

        if outcome == EncodeOutcome.FAILED:
            self.logger.info(f"FILE_END: {source.name} status=failed elapsed={elapsed:.2f}s")
            self._poison(job, key, handle.diagnostics or "Encode failed")
            return False

        # Cancelled by pause/stop: nothing committed, file stays eligible
        self.logger.info(f"FILE_END: {source.name} status=aborted elapsed={elapsed:.2f}s")
        self._publish(FileAborted(folder_path=job.folder_path, display_name=job.display_name, path=key))
        return False

    def _await_encode(self, handle: EncodeHandle) -> Optional[EncodeOutcome]:
        poll_interval = self.config.general.poll_interval_s
        while True:
            with self._control:
                interrupt = not self._running or (self._paused and self.config.general.cancel_on_pause)
            if interrupt:
                handle.cancel()
                return handle.poll()
            outcome = handle.poll()
            if outcome is not None:
                return outcome
            with self._control:
                self._control.wait(poll_interval)

    def _poison(self, job: FolderJob, key: str, message: str):
        """Marks a failing file as done so it never blocks the queue again."""
        previous = job.file_index.get(key)
        job.file_index[key] = FileState(
            original_bytes=previous.original_bytes if previous else 0,
            compressed=True,
            failed=True,
        )
        job.error_message = message
        self._save()
        self.logger.error(f"FILE_FAILED: {key}")
        self._publish(FileFailed(
            folder_path=job.folder_path,
            display_name=job.display_name,
            path=key,
            error_message=message.strip().splitlines()[-1] if message.strip() else message,
        ))

    def _wait_while_paused(self):
        with self._control:
            while self._paused and self._running:
                self._control.wait(self.config.general.pause_poll_interval_s)

    def _cooldown(self, seconds: float):
        """Best-effort pause between files; any pause or stop cuts it short."""
        if seconds <= 0:
            return
        deadline = time.monotonic() + seconds
        with self._control:
            while self._running and not self._paused:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return
                self._control.wait(min(remaining, self.config.general.pause_poll_interval_s))

    # ---- Side effects ------------------------------------------------------

    def _save(self):
        if self._document is not None:
            self.store.save_jobs(self._document.jobs)

    def _publish(self, event: Event):
        try:
            self.event_bus.publish(event)
        except Exception as e:
            self.logger.error(f"Event subscriber failed for {type(event).__name__}: {e}")

    def _notify_progress(self, job: FolderJob, options: Options):
        # File counts are meaningless while originals are kept beside outputs
        text = "" if options.keep_original else build_progress_text(job)
        self._notify(title=f"Squeezing {compose_display_title(job)}", text=text)

    def _notify_start(self, title: str, text: str):
        try:
            self.notifier.start(title, text)
        except Exception as e:
            self.logger.warning(f"Notifier start failed: {e}")

    def _notify(self, title: Optional[str] = None, text: Optional[str] = None):
        try:
            self.notifier.update(title=title, text=text)
        except Exception as e:
            self.logger.warning(f"Notifier update failed: {e}")

    def _notify_stop(self):
        try:
            self.notifier.stop()
        except Exception as e:
            self.logger.warning(f"Notifier stop failed: {e}")
