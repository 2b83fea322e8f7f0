from time import perf_counter
from typing import Any

from order_relay.core.config import Settings
from order_relay.logging_config import logger
from order_relay.services.extraction_client import ExtractionClient
from order_relay.services.file_store import UploadStore
from order_relay.services.image_loader import load_image, parse_image_reference
from order_relay.services.reply_parser import ReplyShapeError, parse_reply


def extract_order_from_reference(
    *,
    request_id: str,
    image_url: str,
    store: UploadStore,
    extractor: ExtractionClient,
    settings: Settings,
) -> Any:
    """
    Load the referenced image, send it to the extraction service and parse the reply.

    Raises `ImageLoadError`, `ExtractionError` or `ReplyShapeError` depending on
    which stage failed; callers map each to its own error response.
    """
    started_at = perf_counter()
    reference = parse_image_reference(image_url)
    logger.info(
        "Order extraction start request_id=%s reference_kind=%s model=%s",
        request_id,
        type(reference).__name__,
        extractor.model,
    )

    image = load_image(reference, store=store, settings=settings)
    loaded_at = perf_counter()

    reply = extractor.extract(image)
    replied_at = perf_counter()

    try:
        order = parse_reply(reply)
    except ReplyShapeError:
        logger.warning(
            "Order extraction request_id=%s: no usable JSON block in reply reply_chars=%s",
            request_id,
            len(reply),
        )
        raise

    logger.info(
        "Order extraction done request_id=%s load_ms=%s extract_ms=%s total_ms=%s result_type=%s",
        request_id,
        round((loaded_at - started_at) * 1000, 1),
        round((replied_at - loaded_at) * 1000, 1),
        round((perf_counter() - started_at) * 1000, 1),
        type(order).__name__,
    )
    return order
