"""Unit tests for FtpConnectionGateway.

Tests connection lifecycle, state transitions, and error handling.
"""

import ftplib
import socket
from unittest.mock import MagicMock, patch

import pytest

from webftp.core.config import FtpConfig, FtpServerConfig
from webftp.services.ftp_connection import (
    MSG_AUTH_FAILED,
    MSG_CONNECT_FAILED,
    MSG_CONNECTED,
    MSG_CONNECTION_ERROR,
    MSG_INVALID_HOST,
    MSG_INVALID_PORT,
    MSG_MISSING_CREDENTIALS,
    ConnectionState,
    FtpConnectionGateway,
)

FACTORY = "webftp.services.ftp_connection.create_ftp_client"


@pytest.fixture
def gateway(mock_operation_logger):
    return FtpConnectionGateway(
        connect_timeout=5,
        operation_timeout=60,
        operation_logger=mock_operation_logger,
    )


@pytest.fixture
def client():
    return MagicMock(spec=ftplib.FTP_TLS)


class TestConnectValidation:
    """Input is validated before any socket is opened."""

    @pytest.mark.parametrize("host", ["", "bad host", "-x"])
    def test_invalid_host(self, gateway, host):
        with patch(FACTORY) as factory:
            result = gateway.connect(host, 21, "u", "p")

        assert result.success is False
        assert result.message == MSG_INVALID_HOST
        factory.assert_not_called()
        assert gateway.state is ConnectionState.DISCONNECTED

    @pytest.mark.parametrize("port", [0, 70000, "ftp"])
    def test_invalid_port(self, gateway, port):
        with patch(FACTORY) as factory:
            result = gateway.connect("ftp.example.com", port, "u", "p")

        assert result.message == MSG_INVALID_PORT
        factory.assert_not_called()

    @pytest.mark.parametrize("username, password", [("", "p"), ("u", "")])
    def test_missing_credentials(self, gateway, username, password):
        with patch(FACTORY) as factory:
            result = gateway.connect("ftp.example.com", 21, username, password)

        assert result.message == MSG_MISSING_CREDENTIALS
        factory.assert_not_called()


class TestConnect:
    """Tests for the connect and login phases."""

    def test_plain_connect(self, gateway, client):
        with patch(FACTORY, return_value=client) as factory:
            result = gateway.connect(" ftp.example.com ", "21", "user", "pass", passive_mode=False)

        assert result.success is True
        assert result.message == MSG_CONNECTED
        factory.assert_called_once_with(use_tls=False, tls_mode="explicit", verify_certificate=False, timeout=5)
        client.connect.assert_called_once_with("ftp.example.com", 21, timeout=5)
        client.login.assert_called_once_with("user", "pass")
        client.auth.assert_not_called()
        client.prot_p.assert_not_called()
        client.set_pasv.assert_called_once_with(False)
        client.sock.settimeout.assert_called_once_with(60)
        assert client.timeout == 60
        assert gateway.state is ConnectionState.AUTHENTICATED
        assert gateway.is_connected() is True

    def test_explicit_tls_upgrades_before_login(self, gateway, client):
        with patch(FACTORY, return_value=client):
            result = gateway.connect("ftp.example.com", 21, "user", "pass", use_tls=True)

        assert result.success is True
        call_names = [name for name, _, _ in client.mock_calls if name in {"connect", "auth", "login", "prot_p"}]
        assert call_names == ["connect", "auth", "login", "prot_p"]

    def test_implicit_tls_skips_auth(self, client, mock_operation_logger):
        gateway = FtpConnectionGateway(tls_mode="implicit", operation_logger=mock_operation_logger)
        with patch(FACTORY, return_value=client):
            result = gateway.connect("ftp.example.com", 990, "user", "pass", use_tls=True)

        assert result.success is True
        client.auth.assert_not_called()
        client.prot_p.assert_called_once()

    def test_connection_refused(self, gateway, client):
        client.connect.side_effect = ConnectionRefusedError("refused")
        with patch(FACTORY, return_value=client):
            result = gateway.connect("ftp.example.com", 21, "user", "pass")

        assert result.success is False
        assert result.message == MSG_CONNECT_FAILED
        client.close.assert_called_once()
        client.login.assert_not_called()
        assert gateway.state is ConnectionState.DISCONNECTED

    def test_connect_timeout(self, gateway, client):
        client.connect.side_effect = socket.timeout("timed out")
        with patch(FACTORY, return_value=client):
            result = gateway.connect("ftp.example.com", 21, "user", "pass")

        assert result.message == MSG_CONNECT_FAILED

    def test_tls_handshake_failure_is_connect_failure(self, gateway, client):
        client.auth.side_effect = ftplib.error_perm("534 TLS not available")
        with patch(FACTORY, return_value=client):
            result = gateway.connect("ftp.example.com", 21, "user", "pass", use_tls=True)

        assert result.message == MSG_CONNECT_FAILED

    def test_bad_password(self, gateway, client, mock_operation_logger):
        client.login.side_effect = ftplib.error_perm("530 Login incorrect.")
        with patch(FACTORY, return_value=client):
            result = gateway.connect("ftp.example.com", 21, "user", "wrong")

        assert result.success is False
        assert result.message == MSG_AUTH_FAILED
        client.close.assert_called_once()
        assert gateway.is_connected() is False
        operation, _, success = mock_operation_logger.ftp.call_args[0]
        assert operation == "login"
        assert success is False

    def test_unexpected_error(self, gateway, client):
        client.set_pasv.side_effect = RuntimeError("boom")
        with patch(FACTORY, return_value=client):
            result = gateway.connect("ftp.example.com", 21, "user", "pass")

        assert result.message == MSG_CONNECTION_ERROR
        assert gateway.state is ConnectionState.DISCONNECTED
        client.close.assert_called_once()

    def test_reconnect_closes_previous_session(self, gateway):
        first, second = MagicMock(spec=ftplib.FTP), MagicMock(spec=ftplib.FTP)
        with patch(FACTORY, side_effect=[first, second]):
            gateway.connect("ftp.example.com", 21, "user", "pass")
            gateway.connect("ftp.example.com", 21, "user", "pass")

        first.quit.assert_called_once()
        assert gateway._handle() is second

    def test_from_config(self, client):
        config = FtpConfig(
            server=FtpServerConfig(host="ftp.example.com", port=990, use_ssl=True, tls_mode="implicit"),
            timeout=7,
            operation_timeout=70,
        )
        gateway = FtpConnectionGateway.from_config(config)
        with patch(FACTORY, return_value=client) as factory:
            gateway.connect("ftp.example.com", 990, "user", "pass", use_tls=True)

        factory.assert_called_once_with(use_tls=True, tls_mode="implicit", verify_certificate=False, timeout=7)
        client.sock.settimeout.assert_called_once_with(70)


class TestDisconnect:
    """Tests for disconnect."""

    def _connected(self, gateway, client):
        with patch(FACTORY, return_value=client):
            assert gateway.connect("ftp.example.com", 21, "user", "pass").success

    def test_disconnect_sends_quit(self, gateway, client):
        self._connected(gateway, client)
        gateway.disconnect()

        client.quit.assert_called_once()
        assert gateway.state is ConnectionState.DISCONNECTED
        assert gateway._handle() is None

    def test_disconnect_is_idempotent(self, gateway, client):
        self._connected(gateway, client)
        gateway.disconnect()
        gateway.disconnect()

        client.quit.assert_called_once()

    def test_disconnect_without_connect(self, gateway):
        gateway.disconnect()
        assert gateway.state is ConnectionState.DISCONNECTED

    def test_quit_failure_closes_socket(self, gateway, client):
        self._connected(gateway, client)
        client.quit.side_effect = EOFError()
        gateway.disconnect()

        client.close.assert_called_once()
        assert gateway.is_connected() is False

    def test_context_manager_disconnects(self, gateway, client):
        self._connected(gateway, client)
        with gateway:
            pass
        client.quit.assert_called_once()
