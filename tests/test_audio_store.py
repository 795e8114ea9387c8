"""
Tests for AudioStore (persisted audio) and HousekeepingSweeper.

Tests cover:
- persist() copies bytes and never overwrites
- Unsafe names rejected
- resolve()/get() lookup
- Sweeps removing only aged files, tolerant of missing directories
- run_forever() cancellation
"""
import asyncio
import os
import time

import pytest

from t2a.core.metrics import metrics
from t2a.services.errors import ArtifactNotFound, ErrorCode, StorageError
from t2a.tts.storage import AudioStore, HousekeepingSweeper, content_type_for, is_safe_name


@pytest.fixture
def source(tmp_path):
    p = tmp_path / "abc123.mp3"
    p.write_bytes(b"ID3" + b"\x00" * 100)
    return p


def _aged(path, seconds):
    t = time.time() - seconds
    os.utime(path, (t, t))


class TestNames:
    @pytest.mark.parametrize("name", ["t2a_1.mp3", "t2a_12.wav", "a.b.mp3"])
    def test_safe(self, name):
        assert is_safe_name(name)

    @pytest.mark.parametrize("name", ["", ".", "..", "../x.mp3", "a/b.mp3", "a\\b.mp3", ".hidden", "a..b", "x\x00.mp3"])
    def test_unsafe(self, name):
        assert not is_safe_name(name)

    def test_content_type(self):
        assert content_type_for("t2a_1.WAV") == "audio/wav"
        assert content_type_for("t2a_1.mp3") == "audio/mpeg"


class TestAudioStore:
    def test_persist_copies(self, tmp_path, source):
        store = AudioStore(tmp_path / "saved")
        record = store.persist(source, "t2a_1.mp3")
        assert record.filename == "t2a_1.mp3"
        assert record.url == "/audio/t2a_1.mp3"
        assert record.size == source.stat().st_size
        assert record.content_type == "audio/mpeg"
        assert record.path.read_bytes() == source.read_bytes()
        assert source.exists()
        assert store.count() == 1

    def test_no_overwrite(self, tmp_path, source):
        store = AudioStore(tmp_path / "saved")
        store.persist(source, "t2a_1.mp3")
        with pytest.raises(StorageError) as exc:
            store.persist(source, "t2a_1.mp3")
        assert exc.value.code == ErrorCode.STORAGE_ERROR

    def test_no_temp_file_left(self, tmp_path, source):
        store = AudioStore(tmp_path / "saved")
        store.persist(source, "t2a_2.mp3")
        assert [p.name for p in (tmp_path / "saved").iterdir()] == ["t2a_2.mp3"]

    def test_unsafe_name_rejected(self, tmp_path, source):
        with pytest.raises(StorageError):
            AudioStore(tmp_path / "saved").persist(source, "../escape.mp3")

    def test_missing_source(self, tmp_path):
        store = AudioStore(tmp_path / "saved")
        with pytest.raises(StorageError):
            store.persist(tmp_path / "nope.mp3", "t2a_3.mp3")
        assert store.count() == 0

    def test_resolve(self, tmp_path, source):
        store = AudioStore(tmp_path / "saved")
        store.persist(source, "t2a_4.mp3")
        assert store.resolve("t2a_4.mp3") == tmp_path / "saved" / "t2a_4.mp3"

    @pytest.mark.parametrize("name", ["t2a_404.mp3", "../saved/t2a_4.mp3", ".."])
    def test_resolve_missing(self, tmp_path, name):
        with pytest.raises(ArtifactNotFound) as exc:
            AudioStore(tmp_path / "saved").resolve(name)
        assert exc.value.status_code == 404


class TestHousekeepingSweeper:
    def test_sweep_removes_aged_only(self, tmp_path):
        temp, saved = tmp_path / "temp", tmp_path / "saved"
        temp.mkdir()
        saved.mkdir()
        old_tmp = temp / "old.mp3"
        old_saved = saved / "t2a_1.mp3"
        fresh = saved / "t2a_2.mp3"
        for p in (old_tmp, old_saved, fresh):
            p.write_bytes(b"x" * 10)
        _aged(old_tmp, 7200)
        _aged(old_saved, 7200)

        before = metrics.sample("t2a_housekeeping_removed_total", {"directory": "saved"})
        sweeper = HousekeepingSweeper([temp, saved], max_age_seconds=3600, interval_seconds=60)
        stats = sweeper.sweep()

        assert stats == {"files_removed": 2, "bytes_freed": 20, "errors": 0}
        assert not old_tmp.exists()
        assert not old_saved.exists()
        assert fresh.exists()
        assert metrics.sample("t2a_housekeeping_removed_total", {"directory": "saved"}) == before + 1

    def test_sweep_idempotent(self, tmp_path):
        p = tmp_path / "a.mp3"
        p.write_bytes(b"x")
        _aged(p, 100)
        sweeper = HousekeepingSweeper([tmp_path], max_age_seconds=10)
        assert sweeper.sweep()["files_removed"] == 1
        assert sweeper.sweep()["files_removed"] == 0
        assert sweeper.get_stats() == {"runs": 2, "total_files_removed": 1, "total_bytes_freed": 1}

    def test_explicit_now(self, tmp_path):
        p = tmp_path / "a.mp3"
        p.write_bytes(b"x")
        sweeper = HousekeepingSweeper([tmp_path], max_age_seconds=10)
        assert sweeper.sweep(now=time.time() + 60)["files_removed"] == 1

    def test_missing_directory(self, tmp_path):
        sweeper = HousekeepingSweeper([tmp_path / "absent"], max_age_seconds=10)
        assert sweeper.sweep() == {"files_removed": 0, "bytes_freed": 0, "errors": 0}

    def test_run_forever_sweeps_until_cancelled(self, tmp_path):
        p = tmp_path / "a.mp3"
        p.write_bytes(b"x")
        _aged(p, 100)
        sweeper = HousekeepingSweeper([tmp_path], max_age_seconds=10, interval_seconds=1)
        sweeper._interval = 0.05

        async def run():
            task = asyncio.create_task(sweeper.run_forever())
            await asyncio.sleep(0.3)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(run())
        assert not p.exists()
        assert sweeper.get_stats()["runs"] >= 1

    def test_run_forever_survives_sweep_errors(self, tmp_path, monkeypatch):
        sweeper = HousekeepingSweeper([tmp_path], max_age_seconds=10, interval_seconds=1)
        sweeper._interval = 0.02
        calls = []

        def broken_sweep(now=None):
            calls.append(1)
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(sweeper, "sweep", broken_sweep)

        async def run():
            task = asyncio.create_task(sweeper.run_forever())
            await asyncio.sleep(0.2)
            assert not task.done()
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(run())
        assert len(calls) >= 2
