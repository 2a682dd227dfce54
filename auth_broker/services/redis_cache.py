"""Redis-backed read-through cache entries for OAuth2 client lookups."""

import json
from dataclasses import asdict

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from auth_broker.services.stores import ClientCache, OAuth2Client, StoreError

_KEY_PREFIX = "auth-broker|oauth2_client|"


class RedisClientCache(ClientCache):
    """Clients are cached as JSON; a cached ``null`` records a miss."""

    def __init__(self, redis: aioredis.Redis, key_prefix: str = _KEY_PREFIX) -> None:
        self._redis = redis
        self._prefix = key_prefix

    def _key(self, client_id: str) -> str:
        return f"{self._prefix}{client_id}"

    async def get(self, client_id: str) -> tuple[bool, OAuth2Client | None]:
        try:
            raw = await self._redis.get(self._key(client_id))
        except RedisError as e:
            raise StoreError(self.name, "get") from e
        if raw is None:
            return False, None
        data = json.loads(raw)
        if data is None:
            return True, None
        return True, OAuth2Client(**data)

    async def set(self, client_id: str, client: OAuth2Client | None, ttl_seconds: int) -> None:
        payload = json.dumps(asdict(client) if client is not None else None)
        try:
            await self._redis.set(self._key(client_id), payload, ex=ttl_seconds)
        except RedisError as e:
            raise StoreError(self.name, "set") from e
