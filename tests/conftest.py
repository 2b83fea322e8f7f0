"""
Test Configuration and Fixtures
"""
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
import requests
from fastapi.testclient import TestClient

from order_relay.core.config import Settings
from order_relay.main import create_app
from order_relay.services.extraction_client import ExtractionClient
from order_relay.services.file_store import UploadStore

# JPEG magic followed by filler, roughly 10KB
JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00" + bytes(range(256)) * 40
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64

ORDER_REPLY = 'Here is the order:\n```json\n{"orderId":"A1","total":9.99}\n```\nAnything else?'


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeCompletions:
    def __init__(self) -> None:
        self.reply: str | None = ORDER_REPLY
        self.error: Exception | None = None
        self.calls: list[dict] = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeOpenAI:
    """Stands in for `openai.OpenAI`, exposing only `chat.completions.create`."""

    def __init__(self) -> None:
        self.completions = FakeCompletions()
        self.chat = SimpleNamespace(completions=self.completions)


class FakeResponse:
    """Minimal streamed `requests` response."""

    def __init__(self, content: bytes, status_code: int = 200, content_type: str = "") -> None:
        self.content = content
        self.status_code = status_code
        self.headers = {"Content-Type": content_type} if content_type else {}

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        return None

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")

    def iter_content(self, chunk_size: int = 1):
        for start in range(0, len(self.content), chunk_size):
            yield self.content[start:start + chunk_size]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        upload_dir=tmp_path / "uploads",
        upload_ttl_seconds=60,
        openai_api_key="test-key",
        openai_model="gpt-4o",
    )


@pytest.fixture
def store(settings, clock):
    return UploadStore(settings.upload_dir, settings.upload_ttl_seconds, clock=clock)


@pytest.fixture
def fake_openai():
    return FakeOpenAI()


@pytest.fixture
def extractor(settings, fake_openai):
    return ExtractionClient(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        max_tokens=settings.openai_max_tokens,
        client=fake_openai,
    )


@pytest.fixture
def app(settings, store, extractor):
    return create_app(settings, store=store, extractor=extractor)


@pytest.fixture
def client(app):
    """Create test client"""
    return TestClient(app)


@pytest.fixture
def fake_requests_get(monkeypatch):
    """Patch `requests.get` in the image loader; tests set `.response` or `.error`."""
    state = SimpleNamespace(response=FakeResponse(JPEG_BYTES, content_type="image/jpeg"), error=None, calls=[])

    def fake_get(url, **kwargs):
        state.calls.append((url, kwargs))
        if state.error is not None:
            raise state.error
        return state.response

    monkeypatch.setattr("order_relay.services.image_loader.requests.get", fake_get)
    return state
