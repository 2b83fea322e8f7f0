import asyncio
import contextlib
from contextlib import asynccontextmanager
from time import perf_counter

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.requests import Request

from order_relay.core.config import Settings
from order_relay.core.errors import install_error_handlers
from order_relay.logging_config import logger
from order_relay.routes.health import router as health_router
from order_relay.routes.images import router as images_router
from order_relay.services.extraction_client import ExtractionClient
from order_relay.services.file_store import UploadStore


@asynccontextmanager
async def lifespan(app: FastAPI):  # type: ignore[no-untyped-def]
    settings: Settings = app.state.settings
    store: UploadStore = app.state.store
    sweeper = asyncio.create_task(store.run_sweeper(settings.sweep_interval_seconds))
    logger.info("%s %s ready on port %s", settings.api_name, settings.api_version, settings.port)
    try:
        yield
    finally:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper


def create_app(
    settings: Settings | None = None,
    *,
    store: UploadStore | None = None,
    extractor: ExtractionClient | None = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    app = FastAPI(
        title=settings.api_name,
        version=settings.api_version,
        description=(
            "Image relay for order slips: upload an image, then extract order fields "
            "as JSON through a vision model."
        ),
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store or UploadStore(settings.upload_dir, settings.upload_ttl_seconds)
    app.state.extractor = extractor or ExtractionClient.from_settings(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_allow_origins),
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):  # type: ignore[no-untyped-def]
        started_at = perf_counter()
        response = await call_next(request)
        logger.info(
            "%s %s status=%s duration_ms=%s",
            request.method,
            request.url.path,
            response.status_code,
            round((perf_counter() - started_at) * 1000, 1),
        )
        return response

    install_error_handlers(app)
    app.include_router(health_router)
    app.include_router(images_router)
    return app
