from fastapi import FastAPI, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.requests import Request

from order_relay.logging_config import logger

# Error message per route when the request itself cannot be parsed.
INVALID_INPUT_MESSAGES = {
    "/upload_image": "No image file uploaded",
    "/process_image": "Image URL is required",
}


class ApiError(Exception):
    def __init__(self, status_code: int, error: str, details: str | None = None) -> None:
        super().__init__(error)
        self.status_code = status_code
        self.error = error
        self.details = details

    def to_content(self) -> dict[str, str]:
        content = {"error": self.error}
        if self.details is not None:
            content["details"] = self.details
        return content


def _summarize_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()))
        parts.append(f"{location}: {error.get('msg', 'invalid')}")
    return "; ".join(parts)


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def api_error_handler(_: Request, exc: ApiError):  # type: ignore[no-untyped-def]
        return JSONResponse(status_code=exc.status_code, content=exc.to_content())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):  # type: ignore[no-untyped-def]
        details = _summarize_validation_errors(exc)
        logger.warning("Invalid request on %s %s: %s", request.method, request.url.path, details)
        error = ApiError(
            status.HTTP_400_BAD_REQUEST,
            INVALID_INPUT_MESSAGES.get(request.url.path, "Invalid request"),
            details=details if request.app.state.settings.expose_error_details else None,
        )
        return JSONResponse(status_code=error.status_code, content=error.to_content())

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):  # type: ignore[no-untyped-def]
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "details": "Unexpected server error.",
                "type": exc.__class__.__name__,
            },
        )
