"""SQLAlchemy (asyncio) implementations of the broker stores."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from auth_broker.models.account import Account
from auth_broker.models.oauth2_client import RegisteredClient
from auth_broker.models.oauth2_code import ExchangeCode
from auth_broker.models.session import AuthSession
from auth_broker.models.token import LegacyToken, UserToken
from auth_broker.services.stores import (
    AccountStore,
    ClientStore,
    CodeStore,
    OAuth2Client,
    SessionData,
    SessionStore,
    StoreError,
    TokenRecord,
    TokenStore,
)

logger = logging.getLogger(__name__)


class _SqlStore:
    name = "sql"

    def __init__(self, session_factory: async_sessionmaker) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[AsyncSession]:
        """Open a session, commit on success, and wrap driver errors in StoreError."""
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error("Store %s failed during %s: %s", self.name, operation, e)
                raise StoreError(self.name, operation) from e
            except OSError as e:
                # asyncpg surfaces connection failures as OSError subclasses
                logger.error("Store %s unreachable during %s: %s", self.name, operation, e)
                raise StoreError(self.name, operation) from e


class SqlSessionStore(_SqlStore, SessionStore):
    name = "sessions"

    async def save(self, session_id: str, data: SessionData, created_at: datetime) -> None:
        async with self._session("save_session") as db:
            db.add(
                AuthSession(
                    id=session_id,
                    client_id=data.client_id,
                    state=data.state,
                    callback_state=data.callback_state,
                    callback_url=data.callback_url,
                    created_at=created_at,
                )
            )

    async def pop(self, session_id: str, created_after: datetime) -> SessionData | None:
        async with self._session("get_session") as db:
            result = await db.execute(
                delete(AuthSession)
                .where(AuthSession.id == session_id, AuthSession.created_at > created_after)
                .returning(
                    AuthSession.client_id,
                    AuthSession.state,
                    AuthSession.callback_state,
                    AuthSession.callback_url,
                )
            )
            row = result.one_or_none()
        if row is None:
            return None
        return SessionData(
            client_id=row.client_id,
            state=row.state,
            callback_state=row.callback_state,
            callback_url=row.callback_url,
        )

    async def delete_created_before(self, cutoff: datetime) -> int:
        async with self._session("cleanup_sessions") as db:
            result = await db.execute(delete(AuthSession).where(AuthSession.created_at < cutoff))
        return result.rowcount


class SqlClientStore(_SqlStore, ClientStore):
    name = "oauth2_clients"

    async def get(self, client_id: str) -> OAuth2Client | None:
        async with self._session("get_oauth2_client") as db:
            result = await db.execute(select(RegisteredClient).where(RegisteredClient.id == client_id))
            row = result.scalar_one_or_none()
        if row is None:
            return None
        return OAuth2Client(id=row.id, secret=row.secret, redirect_uri=row.redirect_uri)


class SqlCodeStore(_SqlStore, CodeStore):
    name = "oauth2_codes"

    async def insert(self, code: str, client_id: str, email: str, created_at: datetime) -> None:
        async with self._session("insert_oauth2_code") as db:
            db.add(ExchangeCode(id=code, client_id=client_id, email=email, created_at=created_at))

    async def pop(self, code: str, client_id: str, created_after: datetime) -> str | None:
        async with self._session("get_oauth2_email_from_code") as db:
            result = await db.execute(
                delete(ExchangeCode)
                .where(
                    ExchangeCode.id == code,
                    ExchangeCode.client_id == client_id,
                    ExchangeCode.created_at > created_after,
                )
                .returning(ExchangeCode.email)
            )
            return result.scalar_one_or_none()

    async def delete_created_before(self, cutoff: datetime) -> int:
        async with self._session("cleanup_oauth2_codes") as db:
            result = await db.execute(delete(ExchangeCode).where(ExchangeCode.created_at < cutoff))
        return result.rowcount


class SqlTokenStore(_SqlStore, TokenStore):
    """Token table access, parameterised by model so it serves both tables."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        model: type[UserToken] | type[LegacyToken],
        name: str,
    ) -> None:
        super().__init__(session_factory)
        self._model = model
        self.name = name

    async def insert(self, record: TokenRecord) -> None:
        async with self._session("insert_token") as db:
            db.add(
                self._model(
                    token_hash=record.token_hash,
                    email=record.email,
                    client_id=record.client_id,
                    expires_at=record.expires_at,
                )
            )

    async def find(self, token_hash: str, now: datetime) -> TokenRecord | None:
        model = self._model
        async with self._session("get_token") as db:
            result = await db.execute(
                select(model).where(model.token_hash == token_hash, model.expires_at > now)
            )
            row = result.scalar_one_or_none()
        if row is None:
            return None
        return TokenRecord(
            token_hash=row.token_hash,
            email=row.email,
            client_id=row.client_id,
            expires_at=row.expires_at,
        )

    async def delete(self, token_hash: str) -> None:
        model = self._model
        async with self._session("delete_token") as db:
            await db.execute(delete(model).where(model.token_hash == token_hash))

    async def delete_expired(self, now: datetime) -> int:
        model = self._model
        async with self._session("cleanup_tokens") as db:
            result = await db.execute(delete(model).where(model.expires_at <= now))
        return result.rowcount


class SqlAccountStore(_SqlStore, AccountStore):
    name = "accounts"

    async def is_active(self, email: str) -> bool:
        async with self._session("get_account") as db:
            result = await db.execute(select(Account.is_active).where(Account.email == email))
            active = result.scalar_one_or_none()
        return active is None or active
