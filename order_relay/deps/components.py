from starlette.requests import Request

from order_relay.core.config import Settings
from order_relay.services.extraction_client import ExtractionClient
from order_relay.services.file_store import UploadStore


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> UploadStore:
    return request.app.state.store


def get_extractor(request: Request) -> ExtractionClient:
    return request.app.state.extractor
