"""
Temporary artifact tracking.

Every file the pipeline writes while servicing a request lives in the
temporary directory as <file_id>.<ext>, where file_id is a fresh random
uuid4 hex per request, so concurrent requests never share a path.

Ownership:
    async with manager.scope() as artifacts:
        mp3 = artifacts.allocate("mp3")
        ...                          # exception / early return: released
        artifacts.hand_off()         # the response now owns the files

After hand_off() the scope leaves the files alone and the response's
completion task calls release_after(artifacts, grace_seconds) once the
last body chunk has been sent.

The sequential index lives here too: a process-wide counter used for
display filenames (t2a_<index>.mp3). It is only ever incremented under
a lock and never rebuilt from directory listings.
"""
from __future__ import annotations

import asyncio
import threading
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, List, Union

from t2a.core.logging import debug, get_logger, verbose, warn
from t2a.core.metrics import metrics

_LOG = get_logger("t2a.artifacts")


class SequentialIndex:
    """
    Thread-safe monotonically increasing counter starting at 1.

    Example:
        >>> seq = SequentialIndex()
        >>> seq.next(), seq.next(), seq.current
        (1, 2, 2)
    """

    def __init__(self, start: int = 1):
        self._next = start
        self._lock = threading.Lock()

    def next(self) -> int:
        with self._lock:
            value = self._next
            self._next += 1
        metrics.set_sequence_index(value)
        return value

    @property
    def current(self) -> int:
        """Last issued value (start - 1 before the first call)."""
        with self._lock:
            return self._next - 1


class ArtifactSet:
    """Paths created for one request, in creation order."""

    def __init__(self, temp_dir: Path):
        self.temp_dir = temp_dir
        self.file_id = uuid.uuid4().hex
        self._paths: List[Path] = []
        self.handed_off = False
        self.released = False

    def allocate(self, ext: str) -> Path:
        """Register and return <temp_dir>/<file_id>.<ext>."""
        path = self.temp_dir / f"{self.file_id}.{ext.lstrip('.')}"
        if path not in self._paths:
            self._paths.append(path)
        return path

    @property
    def paths(self) -> List[Path]:
        return list(self._paths)

    def hand_off(self) -> None:
        """Transfer release responsibility to the response."""
        self.handed_off = True

    def __repr__(self) -> str:
        return f"ArtifactSet(file_id={self.file_id!r}, paths={len(self._paths)}, released={self.released})"


class ArtifactManager:
    """
    Creates and releases per-request ArtifactSets.

    Args:
        temp_dir: Directory for intermediate files. Created if absent.
    """

    def __init__(self, temp_dir: Union[str, Path]):
        self.temp_dir = Path(temp_dir)

    def open(self) -> ArtifactSet:
        self.temp_dir.mkdir(parents=True, exist_ok=True)
        return ArtifactSet(self.temp_dir)

    def release(self, artifacts: ArtifactSet) -> int:
        """
        Delete every tracked path that still exists.

        Missing files are skipped. Deletion errors are logged and
        swallowed so one stuck file never fails a request that has
        already been answered. A second call is a no-op.

        Returns:
            Number of files deleted.
        """
        if artifacts.released:
            return 0
        artifacts.released = True

        removed = 0
        for path in artifacts.paths:
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                continue
            except OSError as e:
                warn(_LOG, "artifact_release_failed", path=path.name, error=str(e))

        metrics.record_release(removed)
        verbose(_LOG, "artifacts_released", file_id=artifacts.file_id, removed=removed)
        return removed

    async def release_after(self, artifacts: ArtifactSet, grace_seconds: float = 0.0) -> int:
        """Wait grace_seconds, then release. Used as a response background task."""
        if grace_seconds > 0:
            await asyncio.sleep(grace_seconds)
        return await asyncio.to_thread(self.release, artifacts)

    @asynccontextmanager
    async def scope(self) -> AsyncIterator[ArtifactSet]:
        """
        Open an ArtifactSet and release it on exit unless handed off.

        Exit covers normal completion, early return and exceptions.
        """
        artifacts = self.open()
        debug(_LOG, "artifacts_opened", file_id=artifacts.file_id)
        try:
            yield artifacts
        finally:
            if not artifacts.handed_off:
                await asyncio.to_thread(self.release, artifacts)

    def count(self) -> int:
        """Number of files currently in the temporary directory."""
        if not self.temp_dir.exists():
            return 0
        return sum(1 for p in self.temp_dir.iterdir() if p.is_file())

    def purge(self) -> int:
        """Delete every file in the temporary directory (shutdown)."""
        if not self.temp_dir.exists():
            return 0
        removed = 0
        for p in self.temp_dir.iterdir():
            if not p.is_file():
                continue
            try:
                p.unlink()
                removed += 1
            except FileNotFoundError:
                continue
            except OSError as e:
                warn(_LOG, "purge_failed", path=p.name, error=str(e))
        return removed
