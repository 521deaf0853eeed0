"""Schemas for the health probe."""
from typing import Literal

from pydantic import BaseModel


class ServerInfo(BaseModel):
    """Metadata about the WebFTP process."""

    start_time: str
    server_time: str
    uptime: str
    uptime_seconds: float


class FtpServerStatus(BaseModel):
    host: str
    port: int
    use_ssl: bool
    reachable: bool


class HealthResponse(BaseModel):
    status: Literal["healthy", "degraded"]
    timestamp: str
    active_sessions: int
    ftp_server: FtpServerStatus
    server_info: ServerInfo
