import mimetypes
import uuid
from time import perf_counter
from typing import Any

from fastapi import APIRouter, Depends, File, Header, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response

from order_relay.core.config import Settings
from order_relay.core.errors import ApiError
from order_relay.deps.components import get_extractor, get_settings, get_store
from order_relay.logging_config import logger
from order_relay.models.relay import ProcessImageRequest, UploadImageResponse
from order_relay.services.extraction_client import ExtractionClient, ExtractionError
from order_relay.services.file_store import StoredImageNotFound, UploadStore
from order_relay.services.image_loader import ImageLoadError, detect_image_mime
from order_relay.services.order_extractor import extract_order_from_reference
from order_relay.services.reply_parser import ReplyShapeError

router = APIRouter(tags=["images"])


@router.post("/upload_image", response_model=UploadImageResponse)
async def upload_image(
    image: UploadFile | None = File(default=None),
    store: UploadStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> UploadImageResponse:
    if image is None:
        logger.warning("Upload rejected: no image part in request.")
        raise ApiError(status.HTTP_400_BAD_REQUEST, "No image file uploaded")

    content = await image.read()
    if not content:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Image is empty")
    if settings.max_image_bytes and len(content) > settings.max_image_bytes:
        raise ApiError(
            status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            f"Image exceeds max size of {settings.max_image_bytes} bytes",
        )

    stored = await run_in_threadpool(store.store, content, image.filename)
    logger.info(
        "Upload accepted original_name=%s content_type=%s file_path=%s",
        image.filename,
        image.content_type,
        stored.filesystem_path,
    )
    return UploadImageResponse(file_path=str(stored.filesystem_path))


@router.get("/uploads/{filename}")
async def fetch_upload(filename: str, store: UploadStore = Depends(get_store)) -> Response:
    try:
        content = await run_in_threadpool(store.read, filename)
    except StoredImageNotFound as exc:
        logger.info("Upload fetch miss filename=%s reason=%s", filename, exc.reason)
        raise ApiError(status.HTTP_404_NOT_FOUND, "File not found") from exc

    media_type = detect_image_mime(content) or mimetypes.guess_type(filename)[0]
    return Response(content=content, media_type=media_type or "application/octet-stream")


@router.post("/process_image")
async def process_image(
    payload: ProcessImageRequest | None = None,
    x_request_id: str | None = Header(default=None),
    store: UploadStore = Depends(get_store),
    extractor: ExtractionClient = Depends(get_extractor),
    settings: Settings = Depends(get_settings),
) -> Any:
    image_url = (payload.image_url if payload else None) or ""
    if not image_url.strip():
        logger.warning("Process rejected: no image_url provided.")
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Image URL is required")

    started_at = perf_counter()
    request_id = x_request_id or str(uuid.uuid4())
    try:
        order = await run_in_threadpool(
            extract_order_from_reference,
            request_id=request_id,
            image_url=image_url,
            store=store,
            extractor=extractor,
            settings=settings,
        )
    except ImageLoadError as exc:
        logger.error("Process request_id=%s: failed to fetch or encode image: %s", request_id, exc)
        raise ApiError(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to fetch or encode the image"
        ) from exc
    except ReplyShapeError as exc:
        raise ApiError(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to extract JSON from response"
        ) from exc
    except ExtractionError as exc:
        raise ApiError(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Error processing image",
            details=str(exc) if settings.expose_error_details else None,
        ) from exc

    logger.info(
        "Process request finished request_id=%s total_ms=%s",
        request_id,
        round((perf_counter() - started_at) * 1000, 1),
    )
    return order
