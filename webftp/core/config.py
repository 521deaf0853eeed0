"""Application configuration management."""
import json
import os
import secrets
import tempfile
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_FTP_PORT = 21
DEFAULT_CONNECT_TIMEOUT = 30
DEFAULT_OPERATION_TIMEOUT = 120

DEFAULT_SECURITY_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
    "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
}

DEFAULT_EDITABLE_EXTENSIONS = [
    "php", "phtml", "js", "mjs", "cjs", "jsx", "ts", "tsx",
    "py", "pyi", "java", "c", "cpp", "h", "hpp", "go", "rs", "rb", "pl", "lua", "sh", "bash",
    "html", "htm", "xhtml", "css", "scss", "sass", "less", "vue", "svelte",
    "twig", "jinja", "jinja2", "ejs", "hbs", "mustache",
    "json", "xml", "yaml", "yml", "toml", "ini", "conf", "config", "env", "properties", "htaccess",
    "md", "markdown", "rst", "sql", "txt", "log", "csv", "tsv",
    "gitignore", "dockerignore", "editorconfig", "lock",
]

DEFAULT_PREVIEW_EXTENSIONS = ["png", "jpg", "jpeg", "gif", "svg", "webp", "bmp", "ico"]


class FtpServerConfig(BaseModel):
    """The single FTP server users authenticate against."""

    host: str = Field("127.0.0.1", description="FTP server hostname or IP address")
    port: int = Field(DEFAULT_FTP_PORT, description="FTP control port (21 for FTP, 990 for implicit FTPS)")
    use_ssl: bool = Field(False, description="Protect the control and data channels with TLS")
    tls_mode: Literal["explicit", "implicit"] = Field(
        "explicit",
        description="AUTH TLS upgrade (explicit) or TLS from the first byte (implicit)",
    )
    verify_certificate: bool = Field(False, description="Verify the server TLS certificate")
    passive_mode: bool = Field(True, description="Use passive data connections")


class FtpConfig(BaseModel):
    """FTP connection settings."""

    server: FtpServerConfig = Field(default_factory=FtpServerConfig)
    timeout: int = Field(DEFAULT_CONNECT_TIMEOUT, ge=1, description="Connect timeout in seconds")
    operation_timeout: int = Field(
        DEFAULT_OPERATION_TIMEOUT,
        ge=1,
        description="Timeout for commands and transfers once authenticated",
    )


class RateLimitConfig(BaseModel):
    enabled: bool = Field(True, description="Throttle repeated failed logins")
    max_attempts: int = Field(5, ge=1, description="Failed attempts before lockout")
    lockout_duration: int = Field(900, ge=1, description="Lockout length in seconds")


class CsrfConfig(BaseModel):
    enabled: bool = Field(True, description="Require a CSRF token on mutating requests")
    token_name: str = Field("_csrf_token", description="Form field carrying the token")
    header_name: str = Field("X-CSRF-Token", description="Header carrying the token")
    token_length: int = Field(32, ge=16, description="Token entropy in bytes")
    token_lifetime: int = Field(3600, ge=60, description="Token lifetime in seconds")


class SecurityConfig(BaseModel):
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    csrf: CsrfConfig = Field(default_factory=CsrfConfig)
    headers: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_SECURITY_HEADERS))
    max_paths_length: int = Field(10000, description="Maximum size of a JSON encoded batch of paths")
    trusted_proxies: list[str] = Field(
        default_factory=list,
        description="Peers allowed to report the client address in X-Forwarded-For",
    )


class LoggingConfig(BaseModel):
    log_ftp_operations: bool = Field(True, description="Log every FTP operation outcome")
    log_auth_attempts: bool = Field(True, description="Log login and logout attempts")


class EditorConfig(BaseModel):
    max_file_size: int = Field(5 * 1024 * 1024, description="Largest file the editor may open or save")
    editable_extensions: list[str] = Field(default_factory=lambda: list(DEFAULT_EDITABLE_EXTENSIONS))
    preview_extensions: list[str] = Field(default_factory=lambda: list(DEFAULT_PREVIEW_EXTENSIONS))


class AppSettings(BaseModel):
    """Application-level configuration model."""
    model_config = {"extra": "ignore"}

    host: str = Field("0.0.0.0", description="Application bind address")
    port: int = Field(5000, description="Application bind port")
    log_level: str = Field("INFO", description="Root logging level")
    session_secret: Optional[str] = Field(
        default=None,
        description="Secret used to sign UI sessions",
    )
    session_lifetime: int = Field(3600, ge=60, description="Idle session lifetime in seconds")
    session_https_only: bool = Field(False, description="Only send the session cookie over HTTPS")


class AppConfig(BaseModel):
    """Root configuration file structure."""

    app_settings: AppSettings = Field(default_factory=AppSettings)
    ftp: FtpConfig = Field(default_factory=FtpConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    editor: EditorConfig = Field(default_factory=EditorConfig)

    @property
    def log_level(self) -> str:
        return self.app_settings.log_level


class EnvironmentOverrides(BaseSettings):
    """Deployment overrides read from ``WEBFTP_*`` environment variables."""

    model_config = SettingsConfigDict(env_prefix="WEBFTP_", extra="ignore")

    config: Optional[Path] = Field(default=None, description="Path to app.json")
    host: Optional[str] = Field(default=None, description="Application bind address")
    port: Optional[int] = Field(default=None, description="Application bind port")
    log_level: Optional[str] = Field(default=None, description="Root logging level")
    ftp_host: Optional[str] = Field(default=None, description="FTP server hostname")
    ftp_port: Optional[int] = Field(default=None, description="FTP server port")

    def apply(self, config: AppConfig) -> AppConfig:
        if self.host:
            config.app_settings.host = self.host
        if self.port:
            config.app_settings.port = self.port
        if self.log_level:
            config.app_settings.log_level = self.log_level
        if self.ftp_host:
            config.ftp.server.host = self.ftp_host
        if self.ftp_port:
            config.ftp.server.port = self.ftp_port
        return config


def _get_config_file_path(overrides: EnvironmentOverrides | None = None) -> Path:
    """Get the absolute path to app.json configuration file."""
    overrides = overrides or EnvironmentOverrides()
    if overrides.config:
        return overrides.config
    project_root = Path(__file__).parent.parent.parent
    return project_root / "app.json"


def _persist_config(config: AppConfig, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            delete=False,
            dir=path.parent,
            suffix=".tmp",
        ) as tmp_file:
            json.dump(config.model_dump(mode="json"), tmp_file, indent=2, ensure_ascii=False)
            tmp_name = Path(tmp_file.name)
        os.replace(tmp_name, path)
    except Exception as exc:  # noqa: BLE001
        raise RuntimeError(f"Failed to persist configuration to {path}: {exc}") from exc


def load_config(path: Path | None = None) -> AppConfig:
    """Load app.json, creating it with defaults and a fresh session secret when needed."""

    overrides = EnvironmentOverrides()
    config_path = path or _get_config_file_path(overrides)
    if not config_path.exists():
        config = AppConfig()
        config.app_settings.session_secret = secrets.token_urlsafe(32)
        _persist_config(config, config_path)
        return overrides.apply(config)

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            config_data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {config_path}: {e}")

    config = AppConfig(**config_data)
    if not config.app_settings.session_secret:
        config.app_settings.session_secret = secrets.token_urlsafe(32)
        _persist_config(config, config_path)
    # overrides are never written back to app.json
    return overrides.apply(config)


@lru_cache(maxsize=None)
def get_config() -> AppConfig:
    """Return the cached application configuration (blocking, use at startup)."""

    return load_config()
