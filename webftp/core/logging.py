"""Logging utilities for the WebFTP application."""
import logging
import sys

from webftp.core.config import AppConfig, LoggingConfig
from webftp.core.request_context import get_client_ip, get_request_id

APP_LOGGER_NAME = "webftp"


def configure_logging(
    config: AppConfig, *,
    logger_name: str = APP_LOGGER_NAME,
) -> logging.Logger:
    """Configure the root logger and return the application logger.

    Args:
        config: Application configuration containing log-level information.
        logger_name: Name of the logger to retrieve.

    Returns:
        Configured logger instance.
    """

    log_level = getattr(logging, config.log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format=(
            "%(asctime)s - %(name)s - %(levelname)s - "
            "[%(filename)s:%(lineno)d] - request_id=%(request_id)s - %(message)s"
        ),
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )

    old_factory = logging.getLogRecordFactory()

    def record_factory(*args, **kwargs) -> logging.LogRecord:
        record = old_factory(*args, **kwargs)
        record.request_id = get_request_id() or "system"
        return record

    # basicConfig is a no-op on repeated calls, the factory must not stack either
    if not getattr(old_factory, "_webftp_factory", False):
        record_factory._webftp_factory = True  # type: ignore[attr-defined]
        logging.setLogRecordFactory(record_factory)

    logger = logging.getLogger(logger_name)
    logger.setLevel(log_level)

    #logging.getLogger("webftp.services.listing_parser").setLevel(logging.DEBUG)

    logger.debug("Logging configured with level %s", logging.getLevelName(log_level))
    return logger


class FtpOperationLogger:
    """Structured log sink for FTP operations and authentication attempts.

    Built from the ``logging`` section of the configuration and handed to the
    gateways, so nothing in the FTP layer reaches for a global logger object.
    """

    def __init__(
        self,
        config: LoggingConfig | None = None,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config or LoggingConfig()
        self._logger = logger or logging.getLogger(f"{APP_LOGGER_NAME}.ftp")

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def ftp(self, operation: str, details: dict | None = None, success: bool = True) -> None:
        if not self._config.log_ftp_operations:
            return
        status = "SUCCESS" if success else "FAILED"
        level = logging.INFO if success else logging.ERROR
        self._logger.log(level, "FTP %s %s %s", operation, status, self._format_details(details))

    def auth(self, username: str, action: str, success: bool, client_ip: str | None = None) -> None:
        if not self._config.log_auth_attempts:
            return
        ip = client_ip or get_client_ip() or "unknown"
        status = "SUCCESS" if success else "FAILED"
        level = logging.INFO if success else logging.WARNING
        self._logger.log(
            level,
            "Auth %s for user '%s' from IP %s: %s",
            action,
            username,
            ip,
            status,
        )

    def security(self, event: str, details: dict | None = None) -> None:
        self._logger.warning("Security %s %s", event, self._format_details(details))

    def debug(self, message: str, *args) -> None:
        self._logger.debug(message, *args)

    def warning(self, message: str, *args) -> None:
        self._logger.warning(message, *args)

    def error(self, message: str, *args, exc_info=None) -> None:
        self._logger.error(message, *args, exc_info=exc_info)

    @staticmethod
    def _format_details(details: dict | None) -> str:
        if not details:
            return ""
        return " ".join(f"{key}={value!r}" for key, value in details.items())
