"""Process-wide handles to every backend the broker depends on.

Built once in the application lifespan (and once per cleanup run) and
handed to components explicitly. Tests build one from in-memory fakes.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable

import httpx
import redis.asyncio as aioredis
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from auth_broker.config import Settings
from auth_broker.models.token import LegacyToken, UserToken
from auth_broker.services.clock import utcnow
from auth_broker.services.google_oauth import GoogleOAuthClient
from auth_broker.services.redis_cache import RedisClientCache
from auth_broker.services.sql_stores import (
    SqlAccountStore,
    SqlClientStore,
    SqlCodeStore,
    SqlSessionStore,
    SqlTokenStore,
)
from auth_broker.services.stores import AccountStore, ClientCache, ClientStore, CodeStore, SessionStore
from auth_broker.services.token_service import TokenStoreSet

logger = logging.getLogger(__name__)


@dataclass
class Platform:
    sessions: SessionStore
    clients: ClientStore
    client_cache: ClientCache
    codes: CodeStore
    tokens: TokenStoreSet
    accounts: AccountStore
    google: GoogleOAuthClient
    clock: Callable[[], datetime] = utcnow
    closers: list[Callable[[], Awaitable[Any]]] = field(default_factory=list)
    # Readiness probes by backend name, used by /health/ready
    probes: dict[str, Callable[[], Awaitable[Any]]] = field(default_factory=dict)

    async def aclose(self) -> None:
        for close in reversed(self.closers):
            try:
                await close()
            except Exception as e:
                logger.warning("Error while closing platform resource: %s", e)


def _create_engine(url: str, settings: Settings) -> AsyncEngine:
    return create_async_engine(
        url,
        echo=settings.debug,
        pool_size=20,
        max_overflow=10,
        pool_pre_ping=True,
        pool_timeout=settings.database_timeout_seconds,
        connect_args={
            "timeout": settings.database_timeout_seconds,
            "command_timeout": settings.database_timeout_seconds,
        },
    )


def build_token_stores(
    settings: Settings,
    main_factory: async_sessionmaker,
    token_factory: async_sessionmaker | None,
) -> TokenStoreSet:
    legacy = SqlTokenStore(main_factory, LegacyToken, name="legacy_tokens")
    if token_factory is None:
        # Legacy table is the only store, so its failures fail the request
        return TokenStoreSet(required=legacy)
    primary = SqlTokenStore(token_factory, UserToken, name="user_tokens")
    if not settings.legacy_token_store_enabled:
        return TokenStoreSet(required=primary)
    return TokenStoreSet(required=primary, best_effort=legacy)


def build_platform(settings: Settings) -> Platform:
    main_engine = _create_engine(settings.database_url, settings)
    main_factory = async_sessionmaker(main_engine, expire_on_commit=False)
    closers: list[Callable[[], Awaitable[Any]]] = [main_engine.dispose]

    token_factory = None
    if settings.has_primary_token_store:
        token_engine = _create_engine(settings.token_database_url, settings)
        token_factory = async_sessionmaker(token_engine, expire_on_commit=False)
        closers.append(token_engine.dispose)

    redis = aioredis.from_url(settings.redis_url, decode_responses=True)
    closers.append(redis.aclose)

    http = httpx.AsyncClient(timeout=settings.google_http_timeout_seconds)
    closers.append(http.aclose)

    return Platform(
        sessions=SqlSessionStore(main_factory),
        clients=SqlClientStore(main_factory),
        client_cache=RedisClientCache(redis),
        codes=SqlCodeStore(main_factory),
        tokens=build_token_stores(settings, main_factory, token_factory),
        accounts=SqlAccountStore(main_factory),
        google=GoogleOAuthClient(
            http,
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret.get_secret_value(),
            redirect_uri=settings.callback_url,
        ),
        closers=closers,
        probes={"database": lambda: _ping_database(main_factory), "redis": redis.ping},
    )


async def _ping_database(factory: async_sessionmaker) -> None:
    async with factory() as session:
        await session.execute(text("SELECT 1"))
