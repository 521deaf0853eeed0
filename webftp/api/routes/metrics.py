"""Metrics endpoint for operational visibility."""
from fastapi import APIRouter, Depends

from webftp.api.dependencies import UserContext, require_user
from webftp.core.metrics import metrics

router = APIRouter()


@router.get("/metrics", summary="Return aggregated API and FTP metrics")
async def read_metrics(user: UserContext = Depends(require_user)) -> dict:
    return {
        "metrics": metrics.snapshot(),
        "active_sessions": len(user.registry.session_store),
    }
