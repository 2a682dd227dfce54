"""Unit tests for token generation, hashing, parsing and the store policy."""

import base64
import hashlib
from datetime import timedelta

import pytest

from auth_broker.services.stores import StoreError
from auth_broker.services.token_service import (
    GOOGLE_CLIENT_ID,
    TOKEN_PREFIX,
    GoogleAccessToken,
    MalformedToken,
    OpaqueToken,
    TokenService,
    TokenStoreSet,
    generate_token,
    hash_token,
    parse_token,
)
from tests.fakes import FakeTokenStore


@pytest.fixture
def primary():
    return FakeTokenStore("user_tokens")


@pytest.fixture
def legacy():
    return FakeTokenStore("legacy_tokens")


@pytest.fixture
def service(primary, legacy, google_client, telemetry, clock):
    return TokenService(
        TokenStoreSet(required=primary, best_effort=legacy),
        google_client,
        telemetry,
        clock=clock,
    )


class TestGenerateAndHash:
    def test_token_format(self):
        token = generate_token()
        assert token.startswith(TOKEN_PREFIX)
        payload = token[len(TOKEN_PREFIX):]
        assert "=" not in payload
        assert len(base64.urlsafe_b64decode(payload + "=")) == 32

    def test_tokens_are_unique(self):
        assert len({generate_token() for _ in range(50)}) == 50

    def test_hash_is_unpadded_urlsafe_sha256(self):
        token = "deploys-api.abc"
        digest = hashlib.sha256(token.encode()).digest()
        expected = base64.b64encode(digest).decode().rstrip("=").replace("+", "-").replace("/", "_")

        assert hash_token(token) == expected
        assert len(hash_token(token)) == 43

    def test_hash_known_vector(self):
        # sha256("") = e3b0c442...b855
        assert hash_token("") == "47DEQpj8HBSa-_TImW-5JCeuQeRkm5NMpJWZG3hSuFU"


class TestParseToken:
    def test_broker_token(self):
        token = generate_token()
        assert parse_token(token) == OpaqueToken(token_hash=hash_token(token))

    def test_google_access_token(self):
        assert parse_token("ya29.a0Af") == GoogleAccessToken(value="ya29.a0Af")

    @pytest.mark.parametrize("token", ["", "deploys-api.", "ya29.", "Bearer x", "eyJhbGciOi.x.y"])
    def test_anything_else_is_malformed(self, token):
        assert parse_token(token) == MalformedToken()


class TestIssueAndValidate:
    @pytest.mark.asyncio
    async def test_issue_then_validate(self, service, primary, legacy, clock):
        token = await service.issue("a@b.com", "c1")

        info = await service.validate(token)
        assert info.email == "a@b.com"
        assert info.client_id == "c1"

        record = primary.rows[hash_token(token)]
        assert record.expires_at == clock.now + timedelta(days=7)
        assert hash_token(token) in legacy.rows

    @pytest.mark.asyncio
    async def test_plaintext_is_never_stored(self, service, primary):
        token = await service.issue("a@b.com", "c1")
        assert token not in primary.rows
        assert all(r.token_hash != token for r in primary.rows.values())

    @pytest.mark.asyncio
    async def test_any_single_character_mutation_is_invalid(self, service):
        token = await service.issue("a@b.com", "c1")
        payload_start = len(TOKEN_PREFIX)
        for i in range(payload_start, len(token)):
            replacement = "A" if token[i] != "A" else "B"
            mutated = token[:i] + replacement + token[i + 1:]
            assert await service.validate(mutated) is None

    @pytest.mark.asyncio
    async def test_expired_token_is_invalid(self, service, clock):
        token = await service.issue("a@b.com", "c1")
        clock.advance(days=7)

        assert await service.validate(token) is None

    @pytest.mark.asyncio
    async def test_legacy_only_token_still_validates(self, service, legacy, primary, clock):
        token = await service.issue("a@b.com", "c1")
        del primary.rows[hash_token(token)]

        info = await service.validate(token)
        assert info.email == "a@b.com"

    @pytest.mark.asyncio
    async def test_legacy_read_failure_is_a_miss(self, service, legacy):
        legacy.fail_reads = True
        assert await service.validate(generate_token()) is None

    @pytest.mark.asyncio
    async def test_primary_read_failure_is_raised(self, service, primary):
        primary.fail_reads = True
        with pytest.raises(StoreError):
            await service.validate(generate_token())

    @pytest.mark.asyncio
    async def test_malformed_token_touches_nothing(self, service, primary, google_stub):
        primary.fail_reads = True

        assert await service.validate("not-a-token") is None
        assert google_stub.requests == []

    @pytest.mark.asyncio
    async def test_google_access_token(self, service, google_stub):
        google_stub.access_tokens["ya29.good"] = "g@example.com"

        info = await service.validate("ya29.good")
        assert info.email == "g@example.com"
        assert info.client_id == GOOGLE_CLIENT_ID

        assert await service.validate("ya29.bad") is None


class TestDualWritePolicy:
    @pytest.mark.asyncio
    async def test_best_effort_failure_does_not_fail_issue(self, service, primary, legacy):
        legacy.fail_writes = True

        token = await service.issue("a@b.com", "c1")
        assert hash_token(token) in primary.rows

    @pytest.mark.asyncio
    async def test_required_failure_fails_issue(self, service, primary):
        primary.fail_writes = True

        with pytest.raises(StoreError) as exc_info:
            await service.issue("a@b.com", "c1")
        assert exc_info.value.store == "user_tokens"

    @pytest.mark.asyncio
    async def test_sole_legacy_store_failure_is_fatal(self, legacy, google_client, telemetry, clock):
        service = TokenService(TokenStoreSet(required=legacy), google_client, telemetry, clock=clock)
        legacy.fail_writes = True

        with pytest.raises(StoreError) as exc_info:
            await service.issue("a@b.com", "c1")
        assert exc_info.value.store == "legacy_tokens"


class TestRevoke:
    @pytest.mark.asyncio
    async def test_revoke_then_validate_fails(self, service, primary, legacy):
        token = await service.issue("a@b.com", "c1")

        await service.revoke(token)

        assert await service.validate(token) is None
        assert primary.rows == {}
        assert legacy.rows == {}

    @pytest.mark.asyncio
    async def test_revoke_unknown_token_is_ok(self, service):
        await service.revoke(generate_token())

    @pytest.mark.asyncio
    async def test_delete_failure_in_any_store_is_raised(self, service, primary, legacy):
        token = await service.issue("a@b.com", "c1")
        legacy.fail_deletes = True

        with pytest.raises(StoreError) as exc_info:
            await service.revoke(token)
        assert exc_info.value.store == "legacy_tokens"
        # The other store was still cleaned
        assert primary.rows == {}
