"""OAuth2 client lookup through a read-through cache, and redirect URI matching."""

import logging
import re
from functools import lru_cache
from typing import Any, Callable

from auth_broker.services.stores import ClientCache, ClientStore, OAuth2Client
from auth_broker.services.telemetry import Telemetry

logger = logging.getLogger(__name__)

FOUND_TTL_SECONDS = 3600
NOT_FOUND_TTL_SECONDS = 30

# Schedules a coroutine function to run after the response is sent,
# e.g. ``BackgroundTasks.add_task``.
Defer = Callable[..., Any]


@lru_cache(maxsize=256)
def compile_redirect_pattern(pattern: str) -> re.Pattern[str]:
    """Literal characters match exactly, ``*`` matches any substring."""
    return re.compile(".*".join(re.escape(part) for part in pattern.split("*")))


def redirect_uri_allowed(pattern: str, uri: str) -> bool:
    return compile_redirect_pattern(pattern).fullmatch(uri) is not None


class ClientRegistry:
    def __init__(
        self,
        store: ClientStore,
        cache: ClientCache,
        telemetry: Telemetry,
        defer: Defer,
        found_ttl: int = FOUND_TTL_SECONDS,
        not_found_ttl: int = NOT_FOUND_TTL_SECONDS,
    ) -> None:
        self._store = store
        self._cache = cache
        self._telemetry = telemetry
        self._defer = defer
        self._found_ttl = found_ttl
        self._not_found_ttl = not_found_ttl

    async def lookup(self, client_id: str) -> OAuth2Client | None:
        """Return the registered client or ``None``.

        The cache write after a miss is handed to ``defer`` so the caller
        never waits on it.
        """
        try:
            hit, client = await self._telemetry.with_latency(
                "get_oauth2_client.cache",
                lambda: self._cache.get(client_id),
            )
        except Exception as e:
            logger.warning("Client cache read failed, falling back to store: %s", e)
            hit, client = False, None
        if hit:
            return client

        client = await self._telemetry.with_latency(
            "get_oauth2_client.store",
            lambda: self._store.get(client_id),
        )
        ttl = self._found_ttl if client is not None else self._not_found_ttl
        self._defer(self._populate, client_id, client, ttl)
        return client

    async def _populate(self, client_id: str, client: OAuth2Client | None, ttl: int) -> None:
        try:
            await self._cache.set(client_id, client, ttl)
        except Exception as e:
            logger.warning("Client cache write failed for %s: %s", client_id, e)
