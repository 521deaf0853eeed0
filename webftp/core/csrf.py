"""CSRF token issuing and verification backed by the signed UI session."""
from __future__ import annotations

import hmac
import secrets
import time
from typing import Callable, MutableMapping, Optional

from webftp.core.config import CsrfConfig

SESSION_TOKEN_KEY = "csrf_token"
SESSION_ISSUED_KEY = "csrf_issued_at"


class CsrfTokenManager:
    """Issue one token per UI session and validate it on mutating requests.

    The token stays valid for ``token_lifetime`` seconds and is rotated
    on the next ``get_token`` call after it expires.
    """

    def __init__(
        self,
        config: CsrfConfig | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config or CsrfConfig()
        self._clock = clock

    @property
    def enabled(self) -> bool:
        return self._config.enabled

    @property
    def header_name(self) -> str:
        return self._config.header_name

    @property
    def field_name(self) -> str:
        return self._config.token_name

    def generate(self, session: MutableMapping) -> str:
        token = secrets.token_hex(self._config.token_length)
        session[SESSION_TOKEN_KEY] = token
        session[SESSION_ISSUED_KEY] = self._clock()
        return token

    def get_token(self, session: MutableMapping) -> str:
        token = session.get(SESSION_TOKEN_KEY)
        if not token or self._expired(session):
            return self.generate(session)
        return token

    def validate(self, session: MutableMapping, token: Optional[str]) -> bool:
        if not self._config.enabled:
            return True
        if not token:
            return False
        expected = session.get(SESSION_TOKEN_KEY)
        if not expected:
            return False
        if self._expired(session):
            self.clear(session)
            return False
        return hmac.compare_digest(str(expected), str(token))

    def clear(self, session: MutableMapping) -> None:
        session.pop(SESSION_TOKEN_KEY, None)
        session.pop(SESSION_ISSUED_KEY, None)

    def _expired(self, session: MutableMapping) -> bool:
        issued_at = session.get(SESSION_ISSUED_KEY)
        if issued_at is None:
            return True
        return self._clock() - float(issued_at) > self._config.token_lifetime
