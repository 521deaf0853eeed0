"""Request context helpers for logging."""
from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)
_client_ip: ContextVar[str | None] = ContextVar("client_ip", default=None)


def set_request_id(request_id: str) -> None:
    _request_id.set(request_id)


def get_request_id() -> str | None:
    return _request_id.get()


def set_client_ip(client_ip: str | None) -> None:
    _client_ip.set(client_ip)


def get_client_ip() -> str | None:
    return _client_ip.get()


def clear_request_id() -> None:
    _request_id.set(None)
    _client_ip.set(None)


@contextmanager
def request_context(request_id: str, client_ip: str | None = None) -> Iterator[None]:
    id_token = _request_id.set(request_id)
    ip_token = _client_ip.set(client_ip)
    try:
        yield
    finally:
        _client_ip.reset(ip_token)
        _request_id.reset(id_token)
