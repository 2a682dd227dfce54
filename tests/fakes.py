"""In-memory store fakes and a stub for Google's OAuth2 endpoints."""

from datetime import datetime, timedelta, timezone

import httpx

from auth_broker.services.stores import (
    AccountStore,
    ClientCache,
    ClientStore,
    CodeStore,
    OAuth2Client,
    SessionData,
    SessionStore,
    StoreError,
    TokenRecord,
    TokenStore,
)


class FakeClock:
    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeSessionStore(SessionStore):
    def __init__(self) -> None:
        self.rows: dict[str, tuple[SessionData, datetime]] = {}

    async def save(self, session_id, data, created_at):
        self.rows[session_id] = (data, created_at)

    async def pop(self, session_id, created_after):
        row = self.rows.get(session_id)
        if row is None or row[1] <= created_after:
            return None
        del self.rows[session_id]
        return row[0]

    async def delete_created_before(self, cutoff):
        expired = [k for k, (_, created) in self.rows.items() if created < cutoff]
        for k in expired:
            del self.rows[k]
        return len(expired)


class FakeClientStore(ClientStore):
    def __init__(self, clients: list[OAuth2Client] | None = None) -> None:
        self.clients = {c.id: c for c in clients or []}
        self.calls = 0

    async def get(self, client_id):
        self.calls += 1
        return self.clients.get(client_id)


class FakeClientCache(ClientCache):
    def __init__(self) -> None:
        self.entries: dict[str, tuple[OAuth2Client | None, int]] = {}
        self.fail_reads = False

    async def get(self, client_id):
        if self.fail_reads:
            raise StoreError(self.name, "get")
        if client_id not in self.entries:
            return False, None
        return True, self.entries[client_id][0]

    async def set(self, client_id, client, ttl_seconds):
        self.entries[client_id] = (client, ttl_seconds)


class FakeCodeStore(CodeStore):
    def __init__(self) -> None:
        self.rows: dict[tuple[str, str], tuple[str, datetime]] = {}

    async def insert(self, code, client_id, email, created_at):
        self.rows[(code, client_id)] = (email, created_at)

    async def pop(self, code, client_id, created_after):
        row = self.rows.get((code, client_id))
        if row is None or row[1] <= created_after:
            return None
        del self.rows[(code, client_id)]
        return row[0]

    async def delete_created_before(self, cutoff):
        expired = [k for k, (_, created) in self.rows.items() if created < cutoff]
        for k in expired:
            del self.rows[k]
        return len(expired)


class FakeTokenStore(TokenStore):
    def __init__(self, name: str = "tokens") -> None:
        self.name = name
        self.rows: dict[str, TokenRecord] = {}
        self.fail_writes = False
        self.fail_deletes = False
        self.fail_reads = False

    async def insert(self, record):
        if self.fail_writes:
            raise StoreError(self.name, "insert_token")
        self.rows[record.token_hash] = record

    async def find(self, token_hash, now):
        if self.fail_reads:
            raise StoreError(self.name, "get_token")
        record = self.rows.get(token_hash)
        if record is None or record.expires_at <= now:
            return None
        return record

    async def delete(self, token_hash):
        if self.fail_deletes:
            raise StoreError(self.name, "delete_token")
        self.rows.pop(token_hash, None)

    async def delete_expired(self, now):
        expired = [k for k, r in self.rows.items() if r.expires_at <= now]
        for k in expired:
            del self.rows[k]
        return len(expired)


class FakeAccountStore(AccountStore):
    def __init__(self, inactive: set[str] | None = None) -> None:
        self.inactive = inactive or set()

    async def is_active(self, email):
        return email not in self.inactive


def make_id_token(claims: dict) -> str:
    from jose import jwt

    return jwt.encode(claims, "google-signing-key", algorithm="HS256")


class GoogleStub:
    """Answers Google's token and tokeninfo endpoints via httpx.MockTransport."""

    def __init__(self) -> None:
        self.email = "user@example.com"
        self.token_status = 200
        self.token_body: dict | None = None
        self.access_tokens: dict[str, str] = {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/token":
            body = self.token_body
            if body is None:
                body = {"id_token": make_id_token({"email": self.email}), "access_token": "ya29.x"}
            return httpx.Response(self.token_status, json=body)
        if request.url.path == "/tokeninfo":
            email = self.access_tokens.get(request.url.params.get("access_token", ""))
            if email is None:
                return httpx.Response(400, json={"error_description": "Invalid Value"})
            return httpx.Response(200, json={"email": email, "expires_in": "3599"})
        return httpx.Response(404)


