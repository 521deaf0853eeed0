"""Pydantic schemas exposed by the application API."""
from .auth import AuthStatusResponse, CsrfTokenResponse, LoginResponse
from .files import (
    DeleteItemResult,
    DeleteResponse,
    DirectoryEntryModel,
    FolderContentsResponse,
    FolderTreeResponse,
    OperationResponse,
)
from .health import FtpServerStatus, HealthResponse, ServerInfo

__all__ = [
    "AuthStatusResponse",
    "CsrfTokenResponse",
    "LoginResponse",
    "DeleteItemResult",
    "DeleteResponse",
    "DirectoryEntryModel",
    "FolderContentsResponse",
    "FolderTreeResponse",
    "OperationResponse",
    "FtpServerStatus",
    "HealthResponse",
    "ServerInfo",
]
