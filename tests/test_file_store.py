"""
Upload Store Tests
"""
import asyncio
import contextlib
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from conftest import JPEG_BYTES
from order_relay.services.file_store import StoredImageExpired, StoredImageNotFound, UploadStore


class TestStore:
    """Storing and reading back uploads"""

    def test_creates_upload_dir(self, tmp_path):
        upload_dir = tmp_path / "nested" / "uploads"
        UploadStore(upload_dir, 60)
        assert upload_dir.is_dir()

    def test_read_back_is_byte_identical(self, store):
        stored = store.store(JPEG_BYTES, "slip.jpg")
        assert store.read(stored.filename) == JPEG_BYTES
        assert stored.filesystem_path.read_bytes() == JPEG_BYTES

    def test_generated_name_keeps_extension(self, store, clock):
        stored = store.store(b"data", "photos/Order.PNG")
        assert stored.original_extension == ".PNG"
        assert stored.filename == f"{stored.generated_id}.PNG"
        assert uuid.UUID(stored.generated_id).version == 4
        assert stored.created_at == clock()
        assert stored.filesystem_path.parent == store.upload_dir

    def test_missing_extension(self, store):
        stored = store.store(b"data", None)
        assert stored.original_extension == ""
        assert stored.filename == stored.generated_id

    def test_uploads_never_collide(self, store):
        first = store.store(b"one", "a.jpg")
        second = store.store(b"two", "a.jpg")
        assert first.filename != second.filename
        assert store.read(first.filename) == b"one"
        assert store.read(second.filename) == b"two"
        assert len(store) == 2

    def test_unknown_name_not_found(self, store):
        with pytest.raises(StoredImageNotFound):
            store.read("does-not-exist.jpg")

    @pytest.mark.parametrize("name", ["", "../secret.txt", "sub/dir.jpg"])
    def test_rejects_path_components(self, store, name):
        with pytest.raises(StoredImageNotFound):
            store.resolve(name)

    def test_file_removed_behind_store_is_not_found(self, store):
        stored = store.store(JPEG_BYTES, "slip.jpg")
        stored.filesystem_path.unlink()
        with pytest.raises(StoredImageNotFound) as excinfo:
            store.read(stored.filename)
        assert not isinstance(excinfo.value, StoredImageExpired)

    def test_owns_only_direct_children(self, store, tmp_path):
        stored = store.store(b"data", "a.jpg")
        assert store.owns(stored.filesystem_path) == stored.filename
        assert store.owns(tmp_path / "elsewhere.jpg") is None
        assert store.owns(store.upload_dir / "sub" / "a.jpg") is None


class TestExpiry:
    """Uploads disappear after the TTL"""

    def test_read_before_ttl(self, store, clock):
        stored = store.store(JPEG_BYTES, "slip.jpg")
        clock.advance(59)
        assert store.read(stored.filename) == JPEG_BYTES

    def test_read_after_ttl_is_expired_before_sweep(self, store, clock):
        stored = store.store(JPEG_BYTES, "slip.jpg")
        clock.advance(60)
        with pytest.raises(StoredImageExpired):
            store.read(stored.filename)
        assert stored.filesystem_path.exists()

    def test_sweep_deletes_expired_files(self, store, clock):
        old = store.store(b"old", "old.jpg")
        clock.advance(30)
        fresh = store.store(b"fresh", "fresh.jpg")
        clock.advance(31)

        removed = store.sweep()

        assert [item.filename for item in removed] == [old.filename]
        assert not old.filesystem_path.exists()
        assert fresh.filesystem_path.exists()
        with pytest.raises(StoredImageNotFound):
            store.read(old.filename)
        assert store.read(fresh.filename) == b"fresh"

    def test_sweep_tolerates_already_deleted_file(self, store, clock):
        stored = store.store(b"data", "a.jpg")
        stored.filesystem_path.unlink()
        clock.advance(61)
        assert store.sweep() == [stored]
        assert len(store) == 0

    def test_adopts_files_left_from_previous_run(self, tmp_path):
        upload_dir = tmp_path / "uploads"
        upload_dir.mkdir()
        leftover = upload_dir / "leftover.jpg"
        leftover.write_bytes(b"data")

        later = datetime.now(timezone.utc) + timedelta(seconds=120)
        store = UploadStore(upload_dir, 60, clock=lambda: later)

        assert len(store) == 1
        store.sweep()
        assert not leftover.exists()

    def test_background_sweeper_removes_expired(self, store, clock):
        stored = store.store(b"data", "a.jpg")
        clock.advance(61)

        async def scenario():
            task = asyncio.create_task(store.run_sweeper(0.01))
            for _ in range(200):
                await asyncio.sleep(0.01)
                if not stored.filesystem_path.exists():
                    break
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        asyncio.run(scenario())
        assert not stored.filesystem_path.exists()

    def test_background_sweeper_survives_failed_sweep(self, store, clock):
        stored = store.store(b"data", "a.jpg")
        clock.advance(61)
        real_sweep = store.sweep
        calls = []

        def flaky_sweep():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("disk hiccup")
            return real_sweep()

        store.sweep = flaky_sweep

        async def scenario():
            task = asyncio.create_task(store.run_sweeper(0.01))
            for _ in range(200):
                await asyncio.sleep(0.01)
                if not stored.filesystem_path.exists():
                    break
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        asyncio.run(scenario())
        assert len(calls) >= 2
        assert not stored.filesystem_path.exists()
