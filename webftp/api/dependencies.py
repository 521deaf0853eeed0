"""FastAPI dependency providers."""
from dataclasses import dataclass
import ipaddress

from fastapi import Depends, Request

from webftp.core.exceptions import ForbiddenError, UnauthorizedError
from webftp.services.file_manager_service import FileManagerService
from webftp.services.health_service import HealthService
from webftp.services.registry import ServiceRegistry
from webftp.services.utils.types import Credentials


@dataclass(slots=True)
class UserContext:
    """Authenticated UI session resolved for a request."""

    registry: ServiceRegistry
    credentials: Credentials
    client_ip: str

    @property
    def username(self) -> str:
        return self.credentials.username


def get_service_registry(request: Request) -> ServiceRegistry:
    """Return the service registry stored on the FastAPI application state."""

    registry = request.app.state.services
    if not isinstance(registry, ServiceRegistry):
        raise RuntimeError("Service registry not initialised")
    return registry


def get_client_ip(request: Request) -> str:
    """Peer address, or the forwarded client when the peer is a trusted proxy."""

    peer = request.client.host if request.client else "unknown"
    trusted = getattr(request.app.state, "trusted_proxies", ())
    if peer not in trusted:
        return peer
    forwarded = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
    try:
        return str(ipaddress.ip_address(forwarded))
    except ValueError:
        return peer


def get_file_manager(registry: ServiceRegistry = Depends(get_service_registry)) -> FileManagerService:
    return registry.file_manager


def get_health_service(registry: ServiceRegistry = Depends(get_service_registry)) -> HealthService:
    return registry.health


def require_user(
    request: Request,
    registry: ServiceRegistry = Depends(get_service_registry),
) -> UserContext:
    credentials = registry.session_store.get(request.session)
    if credentials is None:
        raise UnauthorizedError("Not authenticated")
    return UserContext(
        registry=registry,
        credentials=credentials,
        client_ip=get_client_ip(request),
    )


async def require_csrf(
    request: Request,
    registry: ServiceRegistry = Depends(get_service_registry),
) -> None:
    """Accept the token from the header or, for form posts, the form field."""

    csrf = registry.csrf
    if not csrf.enabled:
        return
    token = request.headers.get(csrf.header_name)
    if not token:
        content_type = request.headers.get("content-type", "")
        if content_type.startswith(("application/x-www-form-urlencoded", "multipart/form-data")):
            form = await request.form()
            value = form.get(csrf.field_name)
            token = value if isinstance(value, str) else None
    if not csrf.validate(request.session, token):
        registry.operation_logger.security(
            "csrf_rejected",
            {"path": request.url.path, "ip": get_client_ip(request)},
        )
        raise ForbiddenError("Invalid security token")
