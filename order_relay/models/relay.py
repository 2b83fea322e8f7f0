from pydantic import BaseModel, Field


class UploadImageResponse(BaseModel):
    file_path: str = Field(..., description="Path to pass back as `image_url` to /process_image.")


class ProcessImageRequest(BaseModel):
    image_url: str | None = Field(
        default=None,
        description="Path returned by /upload_image or an http(s) URL of the image.",
    )


class ErrorResponse(BaseModel):
    error: str
    details: str | None = None


class HealthResponse(BaseModel):
    status: str = Field(default="OK")
    timestamp: str
    service: str
    version: str
