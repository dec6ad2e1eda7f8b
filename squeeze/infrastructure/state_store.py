import json
import logging
import os
import threading
from pathlib import Path
from typing import Dict, List, Optional
from pydantic import ValidationError
from squeeze.domain.models import FolderJob, Options, StateDocument

class StateStore:
    """JSON document holding every folder job and the global options.

    Each save rewrites the whole document through a sibling temp file and an
    atomic rename, so a crash leaves either the previous or the new document.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self.logger = logging.getLogger(__name__)
        self._lock = threading.RLock()

    def _ensure_file(self) -> None:
        if self.path.exists():
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._write(StateDocument())

    def _write(self, document: StateDocument) -> None:
        tmp_path = self.path.with_name(f"{self.path.name}.tmp")
        payload = document.model_dump(mode="json", by_alias=True)
        for job in payload.get("jobs", {}).values():
            job["compressedPaths"] = sorted(job.get("compressedPaths", []))
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=1)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, self.path)

    def load(self) -> StateDocument:
        """Reads the document; a missing file yields (and creates) an empty one."""
        with self._lock:
            self._ensure_file()
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    data = json.load(f)
            except json.JSONDecodeError as e:
                self.logger.error(f"STATE_CORRUPT: {self.path} ({e}); starting from an empty document")
                return StateDocument()
            if not isinstance(data, dict):
                self.logger.error(f"STATE_CORRUPT: {self.path} (top level is not an object)")
                return StateDocument()
            return self._parse(data)

    def _parse(self, data: dict) -> StateDocument:
        try:
            options = Options.model_validate(data.get("options") or {})
        except ValidationError as e:
            self.logger.warning(f"Invalid options in state document, using defaults: {e}")
            options = Options()

        jobs: Dict[str, FolderJob] = {}
        for key, raw in (data.get("jobs") or {}).items():
            if not isinstance(raw, dict):
                continue
            raw = dict(raw)
            raw.setdefault("folderPath", key)
            raw.setdefault("displayName", Path(key).name or key)
            try:
                jobs[key] = FolderJob.model_validate(raw)
            except ValidationError as e:
                self.logger.warning(f"Dropping unreadable job {key}: {e}")
        return StateDocument(jobs=jobs, options=options)

    def save(self, document: StateDocument) -> None:
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._write(document)

    def load_jobs(self) -> Dict[str, FolderJob]:
        return self.load().jobs

    def save_jobs(self, jobs: Dict[str, FolderJob]) -> None:
        """Replaces the jobs map, leaving options as currently stored."""
        with self._lock:
            document = self.load()
            document.jobs = jobs
            self._write(document)

    def load_options(self) -> Options:
        return self.load().options

    def save_options(
        self,
        suffix: Optional[str] = None,
        keep_original: Optional[bool] = None,
        selected_folders: Optional[List[str]] = None,
    ) -> Options:
        with self._lock:
            document = self.load()
            if suffix is not None:
                document.options.suffix = suffix
            if keep_original is not None:
                document.options.keep_original = keep_original
            if selected_folders is not None:
                document.options.selected_folders = list(selected_folders)
            self._write(document)
            return document.options
