"""Pytest configuration and shared fixtures for WebFTP tests."""

from typing import Generator
from unittest.mock import MagicMock

import pytest

from webftp.core.config import AppConfig, CsrfConfig, FtpConfig, FtpServerConfig, RateLimitConfig
from webftp.core.logging import FtpOperationLogger
from webftp.services.utils.types import Credentials

from tests.integration.mock_ftp_server import MockFTPServer

# Test constants
TEST_FTP_HOST = "127.0.0.1"
TEST_FTP_PORT = 2121
TEST_FTP_USER = "testuser"
TEST_FTP_PASS = "testpass"
TEST_SESSION_SECRET = "test-session-secret"


class FakeClock:
    """Manually advanced replacement for ``time.time``."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def credentials() -> Credentials:
    """Credentials for a server that is never contacted."""
    return Credentials(
        host=TEST_FTP_HOST,
        port=TEST_FTP_PORT,
        username=TEST_FTP_USER,
        password=TEST_FTP_PASS,
    )


@pytest.fixture
def operation_logger() -> FtpOperationLogger:
    return FtpOperationLogger()


@pytest.fixture
def mock_operation_logger() -> MagicMock:
    return MagicMock(spec=FtpOperationLogger)


@pytest.fixture
def ftp_server() -> Generator[MockFTPServer, None, None]:
    """Provide a running mock FTP server on a free port."""
    server = MockFTPServer()
    server.start()
    yield server
    server.stop()


@pytest.fixture
def server_credentials(ftp_server: MockFTPServer) -> Credentials:
    return Credentials(
        host=ftp_server.host,
        port=ftp_server.port,
        username=ftp_server.username,
        password=ftp_server.password,
    )


def build_app_config(
    ftp_host: str = TEST_FTP_HOST,
    ftp_port: int = TEST_FTP_PORT,
    *,
    max_attempts: int = 5,
    csrf_enabled: bool = True,
    trusted_proxies: tuple[str, ...] = (),
) -> AppConfig:
    config = AppConfig(
        ftp=FtpConfig(
            server=FtpServerConfig(host=ftp_host, port=ftp_port),
            timeout=5,
            operation_timeout=10,
        ),
    )
    config.app_settings.session_secret = TEST_SESSION_SECRET
    config.security.rate_limit = RateLimitConfig(max_attempts=max_attempts, lockout_duration=900)
    config.security.csrf = CsrfConfig(enabled=csrf_enabled)
    config.security.trusted_proxies = list(trusted_proxies)
    return config


@pytest.fixture
def app_config() -> AppConfig:
    return build_app_config()
