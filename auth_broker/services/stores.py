"""Storage interfaces and the records that flow through them.

Every backend the broker talks to sits behind one of these abstract
classes so request handlers can be exercised against in-memory fakes.
Implementations raise ``StoreError`` for backend failures and nothing
else; "not found" is always a return value, never an exception.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime


class StoreError(Exception):
    """A backing store failed. ``store`` names which one, for operators."""

    def __init__(self, store: str, operation: str) -> None:
        super().__init__(f"{store}: {operation} failed")
        self.store = store
        self.operation = operation


@dataclass(frozen=True)
class SessionData:
    state: str
    callback_state: str
    callback_url: str
    client_id: str | None = None


@dataclass(frozen=True)
class OAuth2Client:
    id: str
    secret: str
    redirect_uri: str


@dataclass(frozen=True)
class TokenRecord:
    token_hash: str
    email: str
    client_id: str | None
    expires_at: datetime


class SessionStore(ABC):
    name = "sessions"

    @abstractmethod
    async def save(self, session_id: str, data: SessionData, created_at: datetime) -> None: ...

    @abstractmethod
    async def pop(self, session_id: str, created_after: datetime) -> SessionData | None:
        """Delete and return the session if it was created after the cut-off."""

    @abstractmethod
    async def delete_created_before(self, cutoff: datetime) -> int: ...


class ClientStore(ABC):
    name = "oauth2_clients"

    @abstractmethod
    async def get(self, client_id: str) -> OAuth2Client | None: ...


class ClientCache(ABC):
    name = "client_cache"

    @abstractmethod
    async def get(self, client_id: str) -> tuple[bool, OAuth2Client | None]:
        """Return ``(hit, client)``. A hit with ``None`` is a cached not-found."""

    @abstractmethod
    async def set(self, client_id: str, client: OAuth2Client | None, ttl_seconds: int) -> None: ...


class CodeStore(ABC):
    name = "oauth2_codes"

    @abstractmethod
    async def insert(self, code: str, client_id: str, email: str, created_at: datetime) -> None: ...

    @abstractmethod
    async def pop(self, code: str, client_id: str, created_after: datetime) -> str | None:
        """Delete the code and return its email, or ``None``."""

    @abstractmethod
    async def delete_created_before(self, cutoff: datetime) -> int: ...


class TokenStore(ABC):
    name = "tokens"

    @abstractmethod
    async def insert(self, record: TokenRecord) -> None: ...

    @abstractmethod
    async def find(self, token_hash: str, now: datetime) -> TokenRecord | None:
        """Return the record if it exists and ``expires_at > now``."""

    @abstractmethod
    async def delete(self, token_hash: str) -> None:
        """Delete the row; a missing row is not an error."""

    @abstractmethod
    async def delete_expired(self, now: datetime) -> int: ...


class AccountStore(ABC):
    name = "accounts"

    @abstractmethod
    async def is_active(self, email: str) -> bool: ...
