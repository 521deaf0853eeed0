"""Root API router that aggregates all endpoint modules."""
from fastapi import APIRouter

from webftp.api.routes import auth, files, health, metrics

api_router = APIRouter(prefix="/api")
api_router.include_router(auth.router)
api_router.include_router(files.router)
api_router.include_router(health.router, tags=["health"])
api_router.include_router(metrics.router, tags=["metrics"])
