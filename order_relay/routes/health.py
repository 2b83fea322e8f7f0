from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from order_relay.core.config import Settings
from order_relay.deps.components import get_settings
from order_relay.models.relay import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
def health(settings: Settings = Depends(get_settings)) -> HealthResponse:
    return HealthResponse(
        status="OK",
        timestamp=datetime.now(timezone.utc).isoformat(),
        service=settings.api_name,
        version=settings.api_version,
    )
