"""Input validation and login throttling."""
from __future__ import annotations

import logging
import math
import re
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from webftp.core.config import RateLimitConfig

logger = logging.getLogger(__name__)

_SAFE_PATH_RE = re.compile(r"[a-zA-Z0-9/_.\- ]+")
_HOST_RE = re.compile(r"[a-zA-Z0-9]([a-zA-Z0-9._-]*[a-zA-Z0-9])?")
_MULTI_SLASH_RE = re.compile(r"/+")


class PathSanitizer:
    """Syntactic validation of remote paths before they reach the FTP server.

    Nothing is resolved against a filesystem: the rules only look at the
    characters of the path. Any ``..`` sequence is refused, including inside
    names like ``a..b``.
    """

    @staticmethod
    def sanitize(raw_path: str | None) -> Optional[str]:
        if raw_path is None:
            return None
        path = raw_path.replace("\0", "")
        path = path.replace("\\", "/")
        path = _MULTI_SLASH_RE.sub("/", path)
        if ".." in path:
            return None
        if not _SAFE_PATH_RE.fullmatch(path):
            return None
        return path

    @classmethod
    def sanitize_name(cls, name: str | None) -> Optional[str]:
        """Validate a single path component used for create and rename."""

        if name is None:
            return None
        clean = name.strip()
        if not clean or clean in {".", ".."} or "/" in clean or "\\" in clean:
            return None
        return cls.sanitize(clean)


def validate_host(host: str | None) -> bool:
    if host is None:
        return False
    host = host.strip()
    if not host:
        return False
    return _HOST_RE.fullmatch(host) is not None


def validate_port(port) -> bool:
    if isinstance(port, bool):
        return False
    if isinstance(port, str):
        if not port.strip().isdigit():
            return False
        port = int(port)
    if not isinstance(port, int):
        return False
    return 1 <= port <= 65535


@dataclass(frozen=True)
class RateLimitStatus:
    allowed: bool
    remaining: int
    reset_time: float

    def minutes_until_reset(self, now: float) -> int:
        return max(1, math.ceil((self.reset_time - now) / 60))


@dataclass
class _AttemptWindow:
    attempts: int = 0
    locked_until: float = 0.0


class LoginRateLimiter:
    """Counts failed logins per identifier (client IP) and locks out offenders."""

    def __init__(
        self,
        config: RateLimitConfig | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config or RateLimitConfig()
        self._clock = clock
        self._windows: dict[str, _AttemptWindow] = {}
        self._lock = threading.Lock()

    def now(self) -> float:
        return self._clock()

    def check(self, identifier: str) -> RateLimitStatus:
        if not self._config.enabled:
            return RateLimitStatus(allowed=True, remaining=999, reset_time=0)
        now = self._clock()
        with self._lock:
            window = self._windows.get(identifier)
            if window is None:
                return RateLimitStatus(True, self._config.max_attempts, 0)
            if window.locked_until > now:
                return RateLimitStatus(False, 0, window.locked_until)
            if window.locked_until:
                # lockout expired, start over
                del self._windows[identifier]
                return RateLimitStatus(True, self._config.max_attempts, 0)
            return RateLimitStatus(
                allowed=window.attempts < self._config.max_attempts,
                remaining=max(0, self._config.max_attempts - window.attempts),
                reset_time=window.locked_until,
            )

    def record_failure(self, identifier: str) -> None:
        if not self._config.enabled:
            return
        now = self._clock()
        with self._lock:
            window = self._windows.setdefault(identifier, _AttemptWindow())
            if window.locked_until and window.locked_until <= now:
                window.attempts = 0
                window.locked_until = 0.0
            window.attempts += 1
            if window.attempts >= self._config.max_attempts:
                window.locked_until = now + self._config.lockout_duration
                logger.warning(
                    "Login lockout for %s after %s failed attempts",
                    identifier,
                    window.attempts,
                )

    def reset(self, identifier: str) -> None:
        with self._lock:
            self._windows.pop(identifier, None)
