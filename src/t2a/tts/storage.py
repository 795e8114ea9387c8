"""
Persisted audio store and background housekeeping.

AudioStore:
    Durable directory of finished audio, keyed by display filename
    (t2a_<index>.<ext>). Files are copied in, never moved, through a temp
    file and an atomic rename, and an existing name is never overwritten.

HousekeepingSweeper:
    Periodically deletes files older than max_age_seconds from the temp
    and saved directories. Idempotent, tolerant of files disappearing
    mid-sweep, and never propagates errors out of the loop.

Usage:
    store = AudioStore("./saved_audio")
    record = store.persist(Path("temp/ab12.mp3"), "t2a_7.mp3")
    record.url        # "/audio/t2a_7.mp3"
    store.resolve("t2a_7.mp3")

    sweeper = HousekeepingSweeper(["./temp", "./saved_audio"], max_age_seconds=3600)
    sweeper.sweep()
"""
from __future__ import annotations

import asyncio
import os
import shutil
import threading
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Union

from t2a.core.config import Defaults
from t2a.core.logging import get_logger, info, verbose, warn
from t2a.core.metrics import metrics
from t2a.services.errors import ArtifactNotFound, StorageError

_LOG = get_logger("t2a.storage")

PathLike = Union[str, Path]


def content_type_for(filename: str) -> str:
    """".wav" -> audio/wav, everything else audio/mpeg."""
    return "audio/wav" if filename.lower().endswith(".wav") else "audio/mpeg"


def is_safe_name(filename: str) -> bool:
    """A plain file name: no separators, no parent references, not hidden."""
    if not filename or filename in (".", ".."):
        return False
    if "/" in filename or "\\" in filename or "\x00" in filename:
        return False
    if ".." in filename or filename.startswith("."):
        return False
    return True


@dataclass(frozen=True)
class PersistedAudioRecord:
    """A file in the durable store."""
    filename: str
    path: Path
    url: str
    size: int
    content_type: str


class AudioStore:
    """
    Append-only durable audio directory.

    Args:
        saved_dir: Directory for persisted files. Created if absent.
    """

    def __init__(self, saved_dir: PathLike):
        self.saved_dir = Path(saved_dir)

    def _record(self, path: Path) -> PersistedAudioRecord:
        return PersistedAudioRecord(
            filename=path.name,
            path=path,
            url=f"/audio/{path.name}",
            size=path.stat().st_size,
            content_type=content_type_for(path.name),
        )

    def persist(self, source: PathLike, filename: str) -> PersistedAudioRecord:
        """
        Copy source into the store under filename.

        Raises:
            StorageError: Unsafe name, existing file with that name, or an
                I/O failure while copying.
        """
        if not is_safe_name(filename):
            raise StorageError(f"Invalid file name: {filename!r}")

        self.saved_dir.mkdir(parents=True, exist_ok=True)
        dst = self.saved_dir / filename
        if dst.exists():
            raise StorageError(
                f"File already exists: {filename}",
                details={"filename": filename},
            )

        tmp = self.saved_dir / f".{filename}.{uuid.uuid4().hex}.tmp"
        try:
            shutil.copyfile(source, tmp)
            if dst.exists():
                raise StorageError(f"File already exists: {filename}", details={"filename": filename})
            os.replace(tmp, dst)
        except OSError as e:
            raise StorageError(f"Could not store {filename}: {e}") from e
        finally:
            if tmp.exists():
                tmp.unlink()

        record = self._record(dst)
        info(_LOG, "audio_persisted", filename=filename, bytes=record.size)
        return record

    def resolve(self, filename: str) -> Path:
        """
        Path of a stored file.

        Raises:
            ArtifactNotFound: Unsafe name or no such file.
        """
        if not is_safe_name(filename):
            raise ArtifactNotFound(f"No stored file named {filename!r}")
        path = self.saved_dir / filename
        if not path.is_file():
            raise ArtifactNotFound(f"No stored file named {filename!r}")
        return path

    def count(self) -> int:
        if not self.saved_dir.exists():
            return 0
        return sum(1 for p in self.saved_dir.iterdir() if p.is_file() and not p.name.startswith("."))


class HousekeepingSweeper:
    """
    Deletes aged files from a set of directories.

    sweep() is synchronous; run_forever() is the asyncio task the
    application lifespan starts and cancels.
    """

    def __init__(
        self,
        directories: Iterable[PathLike],
        max_age_seconds: int = Defaults.HOUSEKEEPING_MAX_AGE_SECONDS,
        interval_seconds: int = Defaults.HOUSEKEEPING_INTERVAL_SECONDS,
    ):
        self._dirs: List[Path] = [Path(d) for d in directories]
        self._max_age = max_age_seconds
        self._interval = interval_seconds

        self._stats_lock = threading.Lock()
        self._runs = 0
        self._total_removed = 0
        self._total_bytes_freed = 0

    @property
    def interval_seconds(self) -> int:
        return self._interval

    def sweep(self, now: float | None = None) -> Dict[str, int]:
        """
        Delete files older than max_age_seconds.

        Returns:
            Dict with 'files_removed', 'bytes_freed' and 'errors'.
        """
        cutoff = (now if now is not None else time.time()) - self._max_age
        files_removed = 0
        bytes_freed = 0
        errors = 0

        for directory in self._dirs:
            if not directory.exists():
                continue
            removed_here = 0
            for path in directory.iterdir():
                try:
                    if not path.is_file():
                        continue
                    st = path.stat()
                    if st.st_mtime < cutoff:
                        path.unlink()
                        removed_here += 1
                        bytes_freed += st.st_size
                except FileNotFoundError:
                    continue
                except OSError as e:
                    errors += 1
                    verbose(_LOG, "sweep_file_error", file=path.name, error=str(e))
            metrics.record_housekeeping(directory.name, removed_here)
            files_removed += removed_here

        with self._stats_lock:
            self._runs += 1
            self._total_removed += files_removed
            self._total_bytes_freed += bytes_freed

        if files_removed > 0 or errors > 0:
            info(_LOG, "housekeeping_sweep", files_removed=files_removed, bytes_freed=bytes_freed, errors=errors)

        return {"files_removed": files_removed, "bytes_freed": bytes_freed, "errors": errors}

    async def run_forever(self) -> None:
        """Sweep every interval_seconds until cancelled."""
        info(_LOG, "housekeeping_started", interval=self._interval, max_age=self._max_age)
        while True:
            await asyncio.sleep(self._interval)
            try:
                await asyncio.to_thread(self.sweep)
            except Exception as e:
                warn(_LOG, "housekeeping_failed", error=str(e))

    def get_stats(self) -> Dict[str, int]:
        with self._stats_lock:
            return {
                "runs": self._runs,
                "total_files_removed": self._total_removed,
                "total_bytes_freed": self._total_bytes_freed,
            }

