"""Health check endpoint."""
from fastapi import APIRouter, Depends

from webftp.api.dependencies import get_health_service
from webftp.schemas import HealthResponse
from webftp.services.health_service import HealthService

router = APIRouter()


@router.get("/health", response_model=HealthResponse, summary="Health probe")
async def health_check(
    health_service: HealthService = Depends(get_health_service),
) -> dict:
    return await health_service.check()
