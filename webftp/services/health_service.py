"""Health check service."""
import asyncio
import contextlib
import logging
from datetime import datetime, timezone

from webftp.core.config import AppConfig
from webftp.core.server_info import describe_server
from webftp.core.session_store import SessionCredentialStore

logger = logging.getLogger(__name__)

PROBE_TIMEOUT = 3.0


class HealthService:
    """Encapsulates health probe logic for the API layer.

    The probe only opens a TCP connection to the FTP control port; it never
    logs in, so it needs no credentials.
    """

    def __init__(self, config: AppConfig, session_store: SessionCredentialStore) -> None:
        self._config = config
        self._session_store = session_store

    async def ftp_reachable(self) -> bool:
        server = self._config.ftp.server
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(server.host, server.port),
                timeout=PROBE_TIMEOUT,
            )
        except (OSError, asyncio.TimeoutError) as exc:
            logger.debug("FTP server %s:%s unreachable: %s", server.host, server.port, exc)
            return False
        writer.close()
        with contextlib.suppress(OSError):
            await writer.wait_closed()
        return True

    async def check(self) -> dict:
        server = self._config.ftp.server
        reachable = await self.ftp_reachable()
        return {
            "status": "healthy" if reachable else "degraded",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "active_sessions": len(self._session_store),
            "ftp_server": {
                "host": server.host,
                "port": server.port,
                "use_ssl": server.use_ssl,
                "reachable": reachable,
            },
            "server_info": describe_server(),
        }
