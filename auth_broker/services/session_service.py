"""Short-lived sessions correlating an outbound authorization with its callback."""

import logging
import secrets
from datetime import datetime, timedelta
from typing import Callable
from urllib.parse import urlsplit

from auth_broker.services.clock import utcnow
from auth_broker.services.stores import SessionData, SessionStore
from auth_broker.services.telemetry import Telemetry

logger = logging.getLogger(__name__)

SESSION_TTL = timedelta(hours=1)


class InvalidCallbackURL(ValueError):
    pass


class StateMismatchError(Exception):
    """The state echoed by the identity provider differs from the stored one."""


def is_url(s: str) -> bool:
    """True for absolute http(s) URLs with a non-empty host."""
    try:
        parts = urlsplit(s)
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.hostname)


def generate_state() -> str:
    return secrets.token_hex(16)


def generate_session_id() -> str:
    return secrets.token_hex(32)


class SessionManager:
    def __init__(
        self,
        store: SessionStore,
        telemetry: Telemetry,
        ttl: timedelta = SESSION_TTL,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._telemetry = telemetry
        self._ttl = ttl
        self._clock = clock

    async def create(
        self,
        callback_state: str,
        callback_url: str,
        client_id: str | None = None,
    ) -> tuple[str, str]:
        """Persist a new session and return ``(session_id, state)``."""
        if not is_url(callback_url):
            raise InvalidCallbackURL(callback_url)

        state = generate_state()
        session_id = generate_session_id()
        data = SessionData(
            state=state,
            callback_state=callback_state,
            callback_url=callback_url,
            client_id=client_id,
        )
        now = self._clock()
        await self._telemetry.with_latency(
            "save_session",
            lambda: self._store.save(session_id, data, now),
        )
        return session_id, state

    async def consume(self, session_id: str, expected_state: str) -> SessionData | None:
        """Take the session out of the store; it can never be read twice.

        Returns ``None`` when the session is missing or older than the TTL.
        Raises ``StateMismatchError`` when the state does not match, after the
        session has already been removed.
        """
        created_after = self._clock() - self._ttl
        session = await self._telemetry.with_latency(
            "get_session",
            lambda: self._store.pop(session_id, created_after),
        )
        if session is None:
            return None
        if session.state != expected_state:
            logger.warning("Session state mismatch (client_id=%s)", session.client_id)
            raise StateMismatchError()
        return session
