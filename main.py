"""CLI entry-point for running the FastAPI application."""
from __future__ import annotations

import uvicorn

from webftp.core.config import get_config


def main() -> None:
    """Run the ASGI application using uvicorn."""
    settings = get_config().app_settings
    uvicorn.run(
        "webftp.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        timeout_graceful_shutdown=2,
        reload=False,
        access_log=False,
    )


if __name__ == "__main__":
    main()
