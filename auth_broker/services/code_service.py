"""One-time exchange codes bridging the browser redirect and the token endpoint."""

import secrets
from datetime import datetime, timedelta
from typing import Callable

from auth_broker.services.clock import utcnow
from auth_broker.services.stores import CodeStore
from auth_broker.services.telemetry import Telemetry

CODE_TTL = timedelta(hours=1)


def generate_code() -> str:
    return secrets.token_urlsafe(32)


class ExchangeCodeService:
    def __init__(
        self,
        store: CodeStore,
        telemetry: Telemetry,
        ttl: timedelta = CODE_TTL,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._telemetry = telemetry
        self._ttl = ttl
        self._clock = clock

    async def create_code(self, client_id: str, email: str) -> str:
        code = generate_code()
        now = self._clock()
        await self._telemetry.with_latency(
            "insert_oauth2_code",
            lambda: self._store.insert(code, client_id, email, now),
        )
        return code

    async def redeem_code(self, client_id: str, code: str) -> str | None:
        """Return the email behind ``code`` and consume it; ``None`` if not redeemable."""
        created_after = self._clock() - self._ttl
        return await self._telemetry.with_latency(
            "get_oauth2_email_from_code",
            lambda: self._store.pop(code, client_id, created_after),
        )
