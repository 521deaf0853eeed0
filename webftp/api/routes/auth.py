"""Session login, logout and CSRF token routes."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Form, Request

from webftp.api.dependencies import (
    get_client_ip,
    get_service_registry,
    require_csrf,
)
from webftp.core.exceptions import BadGatewayError, BadRequestError, TooManyRequestsError, UnauthorizedError
from webftp.schemas import AuthStatusResponse, CsrfTokenResponse, LoginResponse, OperationResponse
from webftp.services.ftp_connection import MSG_AUTH_FAILED
from webftp.services.registry import ServiceRegistry

router = APIRouter(prefix="/auth", tags=["auth"])

MSG_CREDENTIALS_REQUIRED = "Username and password are required"
MSG_LOGGED_OUT = "You have been logged out successfully."


@router.get("/csrf-token", response_model=CsrfTokenResponse)
async def csrf_token(
    request: Request,
    registry: ServiceRegistry = Depends(get_service_registry),
) -> dict:
    """Token bound to the caller's session; needed before the first login post."""
    csrf = registry.csrf
    return {
        "success": True,
        "csrf_token": csrf.get_token(request.session),
        "header_name": csrf.header_name,
        "field_name": csrf.field_name,
    }


@router.post("/login", response_model=LoginResponse, response_model_exclude_none=True)
async def login(
    request: Request,
    username: str = Form(""),
    password: str = Form(""),
    registry: ServiceRegistry = Depends(get_service_registry),
    _: None = Depends(require_csrf),
) -> dict:
    client_ip = get_client_ip(request)
    limiter = registry.rate_limiter
    status = limiter.check(client_ip)
    if not status.allowed:
        minutes = status.minutes_until_reset(limiter.now())
        registry.operation_logger.security("login_throttled", {"ip": client_ip})
        raise TooManyRequestsError(
            f"Too many failed attempts. Please try again in {minutes} minute(s).",
            extra={"retry_after_minutes": minutes},
        )

    username = username.strip()
    if not username or not password:
        limiter.record_failure(client_ip)
        raise BadRequestError(MSG_CREDENTIALS_REQUIRED)

    file_manager = registry.file_manager
    credentials = file_manager.server_credentials(username, password)
    result = await file_manager.verify_credentials(credentials)
    if not result.success:
        limiter.record_failure(client_ip)
        registry.operation_logger.auth(username, "login", False, client_ip)
        if result.message == MSG_AUTH_FAILED:
            raise UnauthorizedError(result.message)
        raise BadGatewayError(result.message)

    limiter.reset(client_ip)
    # a fresh session id and token after login
    registry.session_store.logout(request.session)
    request.session.clear()
    registry.session_store.login(request.session, credentials)
    token = registry.csrf.generate(request.session)
    registry.operation_logger.auth(username, "login", True, client_ip)
    return {
        "success": True,
        "message": result.message,
        "username": username,
        "csrf_token": token,
    }


@router.post("/logout", response_model=OperationResponse)
async def logout(
    request: Request,
    registry: ServiceRegistry = Depends(get_service_registry),
    _: None = Depends(require_csrf),
) -> dict:
    credentials = registry.session_store.logout(request.session)
    if credentials is not None:
        registry.operation_logger.auth(credentials.username, "logout", True, get_client_ip(request))
    request.session.clear()
    return {"success": True, "message": MSG_LOGGED_OUT}


@router.get("/status", response_model=AuthStatusResponse, response_model_exclude_none=True)
async def auth_status(
    request: Request,
    registry: ServiceRegistry = Depends(get_service_registry),
) -> dict:
    credentials = registry.session_store.get(request.session)
    if credentials is None:
        return {"authenticated": False}
    return {
        "authenticated": True,
        "username": credentials.username,
        "host": credentials.host,
        "port": credentials.port,
    }
