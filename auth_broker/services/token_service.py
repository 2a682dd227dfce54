"""Bearer token issuance, validation and revocation.

Tokens look like ``deploys-api.<base64url(32 random bytes)>``. Only the
SHA-256 hash (base64url, unpadded) of that string is persisted; the hash
is the primary key in every token store, so its encoding must not change.

While tokens migrate between databases there can be two token stores.
``TokenStoreSet`` holds the policy for which failures matter:

* issue: the required store must accept the row; the best-effort store is
  written too, and its failure is logged. With a single store, that store
  is required.
* validate: the required store answers; on a miss the best-effort store is
  consulted, since tokens issued before the migration only live there.
* revoke: the row is deleted from every store, and any failure is fatal,
  otherwise a revoked token could stay valid through the other store.
"""

import asyncio
import base64
import hashlib
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from auth_broker.metrics import best_effort_store_failures_total, token_validations_total
from auth_broker.services.clock import utcnow
from auth_broker.services.google_oauth import GoogleOAuthClient
from auth_broker.services.stores import StoreError, TokenRecord, TokenStore
from auth_broker.services.telemetry import Telemetry

logger = logging.getLogger(__name__)

TOKEN_PREFIX = "deploys-api."
GOOGLE_ACCESS_TOKEN_PREFIX = "ya29."
GOOGLE_CLIENT_ID = "google"
TOKEN_TTL = timedelta(days=7)


def _raw_urlsafe_b64(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def generate_token() -> str:
    return TOKEN_PREFIX + _raw_urlsafe_b64(secrets.token_bytes(32))


def hash_token(token: str) -> str:
    return _raw_urlsafe_b64(hashlib.sha256(token.encode("utf-8")).digest())


# --- Token parsing ---


@dataclass(frozen=True)
class OpaqueToken:
    token_hash: str


@dataclass(frozen=True)
class GoogleAccessToken:
    value: str


@dataclass(frozen=True)
class MalformedToken:
    pass


ParsedToken = OpaqueToken | GoogleAccessToken | MalformedToken


def parse_token(token: str) -> ParsedToken:
    if token.startswith(TOKEN_PREFIX) and len(token) > len(TOKEN_PREFIX):
        return OpaqueToken(token_hash=hash_token(token))
    if token.startswith(GOOGLE_ACCESS_TOKEN_PREFIX) and len(token) > len(GOOGLE_ACCESS_TOKEN_PREFIX):
        return GoogleAccessToken(value=token)
    return MalformedToken()


@dataclass(frozen=True)
class TokenInfo:
    email: str
    client_id: str | None = None


# --- Store policy ---


class TokenStoreSet:
    def __init__(self, required: TokenStore, best_effort: TokenStore | None = None) -> None:
        self.required = required
        self.best_effort = best_effort

    @property
    def stores(self) -> list[TokenStore]:
        if self.best_effort is None:
            return [self.required]
        return [self.required, self.best_effort]

    async def insert(self, record: TokenRecord, telemetry: Telemetry) -> None:
        results = await asyncio.gather(
            *(
                telemetry.with_latency(f"insert_token.{store.name}", lambda s=store: s.insert(record))
                for store in self.stores
            ),
            return_exceptions=True,
        )
        required_result = results[0]
        if self.best_effort is not None and isinstance(results[1], BaseException):
            self._best_effort_failed("insert", results[1])
        if isinstance(required_result, BaseException):
            raise required_result

    async def find(self, token_hash: str, now: datetime, telemetry: Telemetry) -> TokenRecord | None:
        required = self.required
        record = await telemetry.with_latency(
            f"validate_token.{required.name}",
            lambda: required.find(token_hash, now),
        )
        if record is not None or self.best_effort is None:
            return record

        best_effort = self.best_effort
        try:
            return await telemetry.with_latency(
                f"validate_token.{best_effort.name}",
                lambda: best_effort.find(token_hash, now),
            )
        except StoreError as e:
            self._best_effort_failed("find", e)
            return None

    async def delete(self, token_hash: str, telemetry: Telemetry) -> None:
        results = await asyncio.gather(
            *(
                telemetry.with_latency(f"delete_token.{store.name}", lambda s=store: s.delete(token_hash))
                for store in self.stores
            ),
            return_exceptions=True,
        )
        failures = [r for r in results if isinstance(r, BaseException)]
        for failure in failures:
            logger.error("Token delete failed: %s", failure)
        if failures:
            raise failures[0]

    def _best_effort_failed(self, operation: str, error: BaseException) -> None:
        name = self.best_effort.name if self.best_effort is not None else "unknown"
        best_effort_store_failures_total.labels(store=name, operation=operation).inc()
        logger.warning("Best-effort token store %s failed during %s: %s", name, operation, error)


class TokenService:
    def __init__(
        self,
        stores: TokenStoreSet,
        google: GoogleOAuthClient,
        telemetry: Telemetry,
        ttl: timedelta = TOKEN_TTL,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._stores = stores
        self._google = google
        self._telemetry = telemetry
        self._ttl = ttl
        self._clock = clock

    async def issue(self, email: str, client_id: str | None) -> str:
        """Persist a new token and return its plaintext. Not retried: a retry could double-issue."""
        token = generate_token()
        record = TokenRecord(
            token_hash=hash_token(token),
            email=email,
            client_id=client_id,
            expires_at=self._clock() + self._ttl,
        )
        await self._stores.insert(record, self._telemetry)
        return token

    async def validate(self, token: str) -> TokenInfo | None:
        parsed = parse_token(token)

        if isinstance(parsed, OpaqueToken):
            record = await self._stores.find(parsed.token_hash, self._clock(), self._telemetry)
            token_validations_total.labels(kind="broker", result="ok" if record else "invalid").inc()
            if record is None:
                return None
            return TokenInfo(email=record.email, client_id=record.client_id)

        if isinstance(parsed, GoogleAccessToken):
            email = await self._telemetry.with_latency(
                "validate_token.google",
                lambda: self._google.lookup_access_token(parsed.value),
            )
            token_validations_total.labels(kind="google", result="ok" if email else "invalid").inc()
            if email is None:
                return None
            return TokenInfo(email=email, client_id=GOOGLE_CLIENT_ID)

        token_validations_total.labels(kind="malformed", result="invalid").inc()
        return None

    async def revoke(self, token: str) -> None:
        await self._stores.delete(hash_token(token), self._telemetry)
