import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name, "").strip()
    return value or default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean flag, got {raw!r}")


def _env_list(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    api_name: str = "Order Relay"
    api_version: str = "1.0.0"
    host: str = "0.0.0.0"
    port: int = 3002

    openai_api_key: str = ""
    # Older deployments pinned "gpt-4-vision-preview"; override via OPENAI_MODEL.
    openai_model: str = "gpt-4o"
    openai_max_tokens: int = 500

    upload_dir: Path = Path("uploads")
    upload_ttl_seconds: float = 60.0
    sweep_interval_seconds: float = 1.0
    max_image_bytes: int = 10 * 1024 * 1024
    image_fetch_timeout_seconds: float = 30.0

    default_image_mime: str = "image/jpeg"
    detect_image_type: bool = True
    restrict_local_paths: bool = True

    cors_allow_origins: tuple[str, ...] = field(default=("*",))
    expose_error_details: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment (and a `.env` file, if present)."""
        load_dotenv()
        return cls(
            api_name=_env_str("API_NAME", cls.api_name),
            api_version=_env_str("API_VERSION", cls.api_version),
            host=_env_str("HOST", cls.host),
            port=_env_int("PORT", cls.port),
            openai_api_key=os.getenv("OPENAI_API_KEY", "").strip(),
            openai_model=_env_str("OPENAI_MODEL", cls.openai_model),
            openai_max_tokens=_env_int("OPENAI_MAX_TOKENS", cls.openai_max_tokens),
            upload_dir=Path(_env_str("UPLOAD_DIR", str(cls.upload_dir))),
            upload_ttl_seconds=_env_float("UPLOAD_TTL_SECONDS", cls.upload_ttl_seconds),
            sweep_interval_seconds=_env_float(
                "UPLOAD_SWEEP_INTERVAL_SECONDS", cls.sweep_interval_seconds
            ),
            max_image_bytes=_env_int("API_MAX_IMAGE_BYTES", cls.max_image_bytes),
            image_fetch_timeout_seconds=_env_float(
                "IMAGE_FETCH_TIMEOUT_SECONDS", cls.image_fetch_timeout_seconds
            ),
            default_image_mime=_env_str("DEFAULT_IMAGE_MIME", cls.default_image_mime),
            detect_image_type=_env_bool("DETECT_IMAGE_TYPE", cls.detect_image_type),
            restrict_local_paths=_env_bool("RESTRICT_LOCAL_PATHS", cls.restrict_local_paths),
            cors_allow_origins=_env_list("CORS_ALLOW_ORIGINS", ("*",)),
            expose_error_details=_env_bool("EXPOSE_ERROR_DETAILS", cls.expose_error_details),
        )

    @property
    def fetch_timeout(self) -> float | None:
        return self.image_fetch_timeout_seconds or None
