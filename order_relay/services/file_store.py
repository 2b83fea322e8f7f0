import asyncio
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable

from order_relay.logging_config import logger


class StoredImageNotFound(LookupError):
    def __init__(self, filename: str, reason: str = "unknown upload") -> None:
        super().__init__(f"{filename}: {reason}")
        self.filename = filename
        self.reason = reason


class StoredImageExpired(StoredImageNotFound):
    def __init__(self, filename: str) -> None:
        super().__init__(filename, reason="upload expired")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class StoredImage:
    generated_id: str
    original_extension: str
    filesystem_path: Path
    created_at: datetime

    @property
    def filename(self) -> str:
        return self.filesystem_path.name

    def expires_at(self, ttl_seconds: float) -> datetime:
        return self.created_at + timedelta(seconds=ttl_seconds)


class UploadStore:
    """
    Transient on-disk store for uploaded images.

    Every entry records its insertion time and is removed by `sweep()` once
    `ttl_seconds` have passed, whether or not it was ever read. Reads of an
    entry past its TTL fail with `StoredImageExpired` even before the sweeper
    has deleted the file.
    """

    def __init__(
        self,
        upload_dir: Path,
        ttl_seconds: float,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.upload_dir = Path(upload_dir)
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, StoredImage] = {}
        self._lock = threading.Lock()

        self.upload_dir.mkdir(parents=True, exist_ok=True)
        self._adopt_existing()

    def _adopt_existing(self) -> None:
        # Leftovers from a previous process get the same lifetime as new uploads.
        for path in self.upload_dir.iterdir():
            if not path.is_file():
                continue
            created_at = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
            self._entries[path.name] = StoredImage(
                generated_id=path.stem,
                original_extension=path.suffix,
                filesystem_path=path,
                created_at=created_at,
            )
        if self._entries:
            logger.info(
                "Upload store adopted existing files upload_dir=%s count=%s",
                self.upload_dir,
                len(self._entries),
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def store(self, file_bytes: bytes, original_name: str | None) -> StoredImage:
        generated_id = str(uuid.uuid4())
        extension = Path(original_name or "").suffix
        path = self.upload_dir / f"{generated_id}{extension}"
        path.write_bytes(file_bytes)

        stored = StoredImage(
            generated_id=generated_id,
            original_extension=extension,
            filesystem_path=path,
            created_at=self._clock(),
        )
        with self._lock:
            self._entries[stored.filename] = stored
        logger.info(
            "Upload stored file=%s bytes=%s expires_at=%s",
            path,
            len(file_bytes),
            stored.expires_at(self.ttl_seconds).isoformat(),
        )
        return stored

    def _is_expired(self, stored: StoredImage, now: datetime) -> bool:
        return now >= stored.expires_at(self.ttl_seconds)

    def resolve(self, filename: str) -> StoredImage:
        if not filename or Path(filename).name != filename:
            raise StoredImageNotFound(filename, reason="invalid filename")
        with self._lock:
            stored = self._entries.get(filename)
        if stored is None:
            raise StoredImageNotFound(filename)
        if self._is_expired(stored, self._clock()):
            raise StoredImageExpired(filename)
        return stored

    def read(self, filename: str) -> bytes:
        stored = self.resolve(filename)
        try:
            return stored.filesystem_path.read_bytes()
        except FileNotFoundError as exc:
            raise StoredImageNotFound(filename, reason="file removed from disk") from exc

    def owns(self, path: Path) -> str | None:
        """Return the stored filename when `path` points directly into the upload directory."""
        try:
            candidate = Path(path).resolve()
        except OSError:
            return None
        if candidate.parent != self.upload_dir.resolve():
            return None
        return candidate.name

    def sweep(self) -> list[StoredImage]:
        now = self._clock()
        with self._lock:
            expired = [stored for stored in self._entries.values() if self._is_expired(stored, now)]
            for stored in expired:
                del self._entries[stored.filename]

        for stored in expired:
            try:
                stored.filesystem_path.unlink()
            except FileNotFoundError:
                logger.warning("Expired upload already gone file=%s", stored.filesystem_path)
            except OSError:
                logger.exception("Error deleting expired upload file=%s", stored.filesystem_path)
            else:
                logger.info("Deleted expired upload file=%s", stored.filesystem_path)
        return expired

    async def run_sweeper(self, interval_seconds: float) -> None:
        logger.info(
            "Upload sweeper started upload_dir=%s ttl_seconds=%s interval_seconds=%s",
            self.upload_dir,
            self.ttl_seconds,
            interval_seconds,
        )
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                await asyncio.to_thread(self.sweep)
            except Exception:  # noqa: BLE001
                logger.exception("Upload sweep failed upload_dir=%s", self.upload_dir)
