"""
Connection lifecycle for a single authenticated FTP/FTPS session.

States move DISCONNECTED -> CONNECTING -> AUTHENTICATED -> DISCONNECTED.
There is no retry: a failed connect leaves the gateway disconnected with a
result describing which phase failed.
"""

import contextlib
import enum
import ftplib
import logging
from typing import Optional

from webftp.core.config import FtpConfig
from webftp.core.logging import FtpOperationLogger
from webftp.core.security import validate_host, validate_port
from webftp.services.utils.ftp_client import TLS_EXPLICIT, TLS_IMPLICIT, create_ftp_client
from webftp.services.utils.types import Credentials, OperationResult

logger = logging.getLogger(__name__)

MSG_INVALID_HOST = "Invalid or blocked FTP host"
MSG_INVALID_PORT = "Invalid port number"
MSG_MISSING_CREDENTIALS = "Username and password are required"
MSG_CONNECT_FAILED = "Failed to connect to FTP server"
MSG_AUTH_FAILED = "Authentication failed - invalid username or password"
MSG_CONNECTED = "Connected successfully"
MSG_CONNECTION_ERROR = "Connection error occurred"


class ConnectionState(str, enum.Enum):
	DISCONNECTED = "disconnected"
	CONNECTING = "connecting"
	AUTHENTICATED = "authenticated"


class FtpConnectionGateway:
	def __init__(
		self,
		*,
		connect_timeout: float = 30,
		operation_timeout: float = 120,
		tls_mode: str = TLS_EXPLICIT,
		verify_certificate: bool = False,
		operation_logger: Optional[FtpOperationLogger] = None,
	):
		self._connect_timeout = connect_timeout
		self._operation_timeout = operation_timeout
		self._tls_mode = tls_mode
		self._verify_certificate = verify_certificate
		self._log = operation_logger or FtpOperationLogger()
		self._client: Optional[ftplib.FTP] = None
		self._state = ConnectionState.DISCONNECTED

	@classmethod
	def from_config(
		cls,
		config: FtpConfig,
		operation_logger: Optional[FtpOperationLogger] = None,
	) -> "FtpConnectionGateway":
		return cls(
			connect_timeout=config.timeout,
			operation_timeout=config.operation_timeout,
			tls_mode=config.server.tls_mode,
			verify_certificate=config.server.verify_certificate,
			operation_logger=operation_logger,
		)

	@property
	def state(self) -> ConnectionState:
		return self._state

	@property
	def operation_logger(self) -> FtpOperationLogger:
		return self._log

	# -------------------------
	# lifecycle
	# -------------------------
	def connect(
		self,
		host: str,
		port: int,
		username: str,
		password: str,
		use_tls: bool = False,
		passive_mode: bool = True,
	) -> OperationResult:
		details = {"host": host, "port": port, "user": username, "tls": use_tls}

		if not validate_host(host):
			self._log.ftp("connect", {**details, "reason": "invalid host"}, False)
			return OperationResult.fail(MSG_INVALID_HOST)
		if not validate_port(port):
			self._log.ftp("connect", {**details, "reason": "invalid port"}, False)
			return OperationResult.fail(MSG_INVALID_PORT)
		if not username or not password:
			self._log.ftp("connect", {**details, "reason": "missing credentials"}, False)
			return OperationResult.fail(MSG_MISSING_CREDENTIALS)

		if self._client is not None:
			self.disconnect()

		host = host.strip()
		port = int(port)
		self._state = ConnectionState.CONNECTING
		client: Optional[ftplib.FTP] = None
		try:
			client = create_ftp_client(
				use_tls=use_tls,
				tls_mode=self._tls_mode,
				verify_certificate=self._verify_certificate,
				timeout=self._connect_timeout,
			)
			try:
				client.connect(host, port, timeout=self._connect_timeout)
				if use_tls and self._tls_mode != TLS_IMPLICIT:
					client.auth()
			except ftplib.all_errors as exc:
				self._abort(client)
				self._log.ftp("connect", {**details, "reason": str(exc)}, False)
				return OperationResult.fail(MSG_CONNECT_FAILED)

			try:
				client.login(username, password)
			except ftplib.Error as exc:
				self._abort(client)
				self._log.ftp("login", {**details, "reason": str(exc)}, False)
				return OperationResult.fail(MSG_AUTH_FAILED)

			if use_tls:
				client.prot_p()
			client.set_pasv(passive_mode)
			if client.sock is not None:
				client.sock.settimeout(self._operation_timeout)
			client.timeout = self._operation_timeout
		except Exception as exc:
			if client is not None:
				self._abort(client)
			self._state = ConnectionState.DISCONNECTED
			self._log.error("FTP connect to %s:%s raised unexpectedly: %s", host, port, exc, exc_info=True)
			return OperationResult.fail(MSG_CONNECTION_ERROR)

		self._client = client
		self._state = ConnectionState.AUTHENTICATED
		self._log.ftp("connect", details, True)
		return OperationResult.ok(MSG_CONNECTED)

	def connect_with(self, credentials: Credentials) -> OperationResult:
		return self.connect(
			credentials.host,
			credentials.port,
			credentials.username,
			credentials.password,
			use_tls=credentials.use_tls,
			passive_mode=credentials.passive_mode,
		)

	def disconnect(self) -> None:
		"""Close the session. Safe to call in any state, any number of times."""
		client = self._client
		self._client = None
		self._state = ConnectionState.DISCONNECTED
		if client is None:
			return
		try:
			client.quit()
		except ftplib.all_errors as exc:
			logger.debug("QUIT failed, closing socket: %s", exc)
			with contextlib.suppress(Exception):
				client.close()
		self._log.ftp("disconnect", None, True)

	def is_connected(self) -> bool:
		return self._client is not None and self._state is ConnectionState.AUTHENTICATED

	def _handle(self) -> Optional[ftplib.FTP]:
		"""Raw ftplib client, reserved for FtpOperationsGateway."""
		if not self.is_connected():
			return None
		return self._client

	def _abort(self, client: ftplib.FTP) -> None:
		self._state = ConnectionState.DISCONNECTED
		with contextlib.suppress(Exception):
			client.close()

	def __enter__(self) -> "FtpConnectionGateway":
		return self

	def __exit__(self, exc_type, exc_val, exc_tb) -> None:
		self.disconnect()

	def __del__(self):
		with contextlib.suppress(Exception):
			self.disconnect()
