"""Service registry that wires all application services together."""
import asyncio
import logging
from typing import Optional

from webftp.core.config import AppConfig
from webftp.core.csrf import CsrfTokenManager
from webftp.core.logging import FtpOperationLogger
from webftp.core.request_context import request_context
from webftp.core.security import LoginRateLimiter
from webftp.core.session_store import SessionCredentialStore
from webftp.core.tasks import cancel_task, monitor_task
from webftp.services.file_manager_service import FileManagerService
from webftp.services.health_service import HealthService

logger = logging.getLogger(__name__)

SESSION_SWEEP_INTERVAL = 60


class ServiceRegistry:
    """Container object for dependency injection."""

    def __init__(self, config: AppConfig) -> None:
        self.config = config
        self.operation_logger = FtpOperationLogger(config.logging)
        self.rate_limiter = LoginRateLimiter(config.security.rate_limit)
        self.csrf = CsrfTokenManager(config.security.csrf)
        self.session_store = SessionCredentialStore(lifetime=config.app_settings.session_lifetime)
        self.file_manager = FileManagerService(
            config.ftp,
            config.editor,
            self.operation_logger,
            max_paths_length=config.security.max_paths_length,
        )
        self.health = HealthService(config, self.session_store)
        self._sweeper: Optional[asyncio.Task] = None

    async def startup(self) -> None:
        with request_context("bg:registry"):
            server = self.config.ftp.server
            logger.info(
                "WebFTP ready for %s:%s (tls=%s, passive=%s)",
                server.host,
                server.port,
                server.use_ssl,
                server.passive_mode,
            )
            self._sweeper = monitor_task(
                asyncio.create_task(self._sweep_sessions(), name="session-sweeper"),
                name="session-sweeper",
                logger=logger,
            )

    async def shutdown(self) -> None:
        with request_context("bg:registry"):
            await cancel_task(self._sweeper)
            self._sweeper = None
            active = len(self.session_store)
            self.session_store.clear()
            logger.info("Dropped %s active session(s) on shutdown", active)

    async def _sweep_sessions(self) -> None:
        """Drop idle sessions so their credentials do not linger in memory."""
        while True:
            await asyncio.sleep(SESSION_SWEEP_INTERVAL)
            with request_context("bg:sessions"):
                removed = self.session_store.purge_expired()
                if removed:
                    logger.info("Purged %s idle session(s)", removed)
