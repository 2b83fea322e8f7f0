import base64
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

import requests

from order_relay.core.config import Settings
from order_relay.logging_config import logger
from order_relay.services.file_store import StoredImageNotFound, UploadStore

REMOTE_SCHEMES = {"http", "https"}
FETCH_CHUNK_BYTES = 64 * 1024


class ImageLoadError(RuntimeError):
    pass


@dataclass(frozen=True)
class LocalPath:
    path: Path


@dataclass(frozen=True)
class RemoteUrl:
    url: str


ImageReference = LocalPath | RemoteUrl


@dataclass(frozen=True)
class EncodedImage:
    data: str
    mime_type: str
    size: int

    @property
    def data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"


def parse_image_reference(raw: str) -> ImageReference:
    """Classify a caller-supplied reference once, without touching the filesystem."""
    value = raw.strip()
    parsed = urlparse(value)
    if parsed.scheme.lower() in REMOTE_SCHEMES and parsed.netloc:
        return RemoteUrl(url=value)
    return LocalPath(path=Path(value))


def detect_image_mime(content: bytes) -> str | None:
    if content.startswith(b"\xff\xd8\xff"):  # JPEG
        return "image/jpeg"
    if content.startswith(b"\x89PNG\r\n\x1a\n"):  # PNG
        return "image/png"
    if content.startswith((b"GIF87a", b"GIF89a")):
        return "image/gif"
    if len(content) >= 12 and content[:4] == b"RIFF" and content[8:12] == b"WEBP":
        return "image/webp"
    if len(content) >= 12 and content[4:8] == b"ftyp":  # HEIC/HEIF family
        brand = content[8:12]
        if brand in {b"heic", b"heix", b"hevc", b"hevx"}:
            return "image/heic"
        if brand in {b"mif1", b"msf1"}:
            return "image/heif"
    return None


def _read_local(path: Path, *, store: UploadStore, settings: Settings) -> bytes:
    stored_name = store.owns(path)
    if stored_name is not None:
        try:
            return store.read(stored_name)
        except StoredImageNotFound as exc:
            raise ImageLoadError(f"Upload not available: {exc}") from exc

    if settings.restrict_local_paths:
        raise ImageLoadError(f"Local path is outside the upload directory: {path}")
    try:
        return path.read_bytes()
    except OSError as exc:
        raise ImageLoadError(f"Could not read {path}: {exc}") from exc


def _fetch_remote(url: str, *, settings: Settings) -> tuple[bytes, str | None]:
    limit = settings.max_image_bytes
    try:
        with requests.get(url, stream=True, timeout=settings.fetch_timeout) as resp:
            resp.raise_for_status()
            chunks: list[bytes] = []
            received = 0
            for chunk in resp.iter_content(chunk_size=FETCH_CHUNK_BYTES):
                received += len(chunk)
                if limit and received > limit:
                    raise ImageLoadError(f"Remote image exceeds max size of {limit} bytes: {url}")
                chunks.append(chunk)
            content_type = resp.headers.get("Content-Type", "")
    except requests.RequestException as exc:
        raise ImageLoadError(f"Could not fetch {url}: {exc}") from exc

    mime = content_type.split(";", 1)[0].strip().lower()
    return b"".join(chunks), mime if mime.startswith("image/") else None


def load_image(reference: ImageReference, *, store: UploadStore, settings: Settings) -> EncodedImage:
    header_mime: str | None = None
    if isinstance(reference, RemoteUrl):
        content, header_mime = _fetch_remote(reference.url, settings=settings)
        source = reference.url
    else:
        content = _read_local(reference.path, store=store, settings=settings)
        source = str(reference.path)

    if not content:
        raise ImageLoadError(f"Image is empty: {source}")

    mime_type = None
    if settings.detect_image_type:
        mime_type = detect_image_mime(content)
    mime_type = mime_type or header_mime or settings.default_image_mime

    logger.info(
        "Image loaded source=%s kind=%s image_bytes=%s mime_type=%s",
        source,
        type(reference).__name__,
        len(content),
        mime_type,
    )
    return EncodedImage(
        data=base64.b64encode(content).decode("ascii"),
        mime_type=mime_type,
        size=len(content),
    )


def image_to_base64(raw_reference: str, *, store: UploadStore, settings: Settings) -> str:
    return load_image(parse_image_reference(raw_reference), store=store, settings=settings).data
