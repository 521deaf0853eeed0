"""Schemas for session login, logout and CSRF endpoints."""
from typing import Optional

from pydantic import BaseModel

from webftp.schemas.files import OperationResponse


class LoginResponse(OperationResponse):
    username: Optional[str] = None
    csrf_token: Optional[str] = None


class CsrfTokenResponse(BaseModel):
    success: bool = True
    csrf_token: str
    header_name: str
    field_name: str


class AuthStatusResponse(BaseModel):
    authenticated: bool
    username: Optional[str] = None
    host: Optional[str] = None
    port: Optional[int] = None
