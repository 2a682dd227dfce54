"""Unit tests for one-time exchange codes."""

import pytest

from auth_broker.services.code_service import ExchangeCodeService
from tests.fakes import FakeCodeStore


@pytest.fixture
def store():
    return FakeCodeStore()


@pytest.fixture
def service(store, telemetry, clock):
    return ExchangeCodeService(store, telemetry, clock=clock)


class TestExchangeCodes:
    @pytest.mark.asyncio
    async def test_redeem_returns_email(self, service):
        code = await service.create_code("c1", "a@b.com")
        assert await service.redeem_code("c1", code) == "a@b.com"

    @pytest.mark.asyncio
    async def test_second_redeem_fails(self, service):
        code = await service.create_code("c1", "a@b.com")
        await service.redeem_code("c1", code)

        assert await service.redeem_code("c1", code) is None

    @pytest.mark.asyncio
    async def test_other_client_cannot_redeem(self, service):
        code = await service.create_code("c1", "a@b.com")

        assert await service.redeem_code("c2", code) is None
        # Still redeemable by its owner
        assert await service.redeem_code("c1", code) == "a@b.com"

    @pytest.mark.asyncio
    async def test_expired_code_fails(self, service, clock):
        code = await service.create_code("c1", "a@b.com")
        clock.advance(hours=1)

        assert await service.redeem_code("c1", code) is None

    @pytest.mark.asyncio
    async def test_codes_are_urlsafe_and_unique(self, service):
        codes = {await service.create_code("c1", "a@b.com") for _ in range(20)}
        assert len(codes) == 20
        assert all("=" not in c and "+" not in c and "/" not in c for c in codes)
