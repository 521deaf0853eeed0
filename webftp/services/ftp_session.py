"""Scoped acquisition of one FTP connection per logical operation."""

import logging
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, TypeVar, Union

from webftp.core.config import FtpConfig
from webftp.core.logging import FtpOperationLogger
from webftp.services.ftp_connection import FtpConnectionGateway
from webftp.services.ftp_operations import FtpOperationsGateway
from webftp.services.utils.types import Credentials, OperationResult

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FtpSessionError(Exception):
	"""Raised by ftp_session when the connection cannot be established."""

	def __init__(self, result: OperationResult):
		super().__init__(result.message)
		self.result = result


@contextmanager
def ftp_session(
	credentials: Credentials,
	config: Optional[FtpConfig] = None,
	operation_logger: Optional[FtpOperationLogger] = None,
) -> Iterator[FtpOperationsGateway]:
	"""
	Connect, yield an operations gateway, and always disconnect on exit.

	Raises FtpSessionError carrying the connect result when connecting fails.
	"""
	connection = FtpConnectionGateway.from_config(config or FtpConfig(), operation_logger)
	result = connection.connect_with(credentials)
	if not result.success:
		raise FtpSessionError(result)
	try:
		yield FtpOperationsGateway(connection, operation_logger)
	finally:
		connection.disconnect()


def run_with_connection(
	credentials: Credentials,
	callback: Callable[[FtpOperationsGateway], T],
	config: Optional[FtpConfig] = None,
	operation_logger: Optional[FtpOperationLogger] = None,
) -> Union[T, OperationResult]:
	"""
	Run ``callback`` against a fresh connection.

	A failed connect returns the connect result and the callback never runs.
	Exceptions from the callback propagate after the connection is closed.
	"""
	try:
		with ftp_session(credentials, config, operation_logger) as operations:
			return callback(operations)
	except FtpSessionError as exc:
		logger.debug("Skipping operation, connect failed: %s", exc.result.message)
		return exc.result
