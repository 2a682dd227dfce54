"""Celery task sweeping expired sessions, exchange codes and tokens."""

import asyncio
import logging
from datetime import timedelta
from typing import Awaitable, Callable

from celery import shared_task

from auth_broker.config import Settings, get_settings
from auth_broker.metrics import cleanup_deleted_total
from auth_broker.platform import Platform, build_platform
from auth_broker.services.stores import StoreError
from auth_broker.services.telemetry import Telemetry

logger = logging.getLogger(__name__)


async def _sweep(
    counts: dict[str, int],
    record: str,
    telemetry: Telemetry,
    fn: Callable[[], Awaitable[int]],
) -> None:
    try:
        deleted = await telemetry.with_latency(f"cleanup.{record}", fn)
    except StoreError as e:
        logger.error("Cleanup of %s failed: %s", record, e)
        return
    counts[record] = deleted
    cleanup_deleted_total.labels(record=record).inc(deleted)


async def run_cleanup(platform: Platform, settings: Settings) -> dict[str, int]:
    """Delete rows older than their TTL. Each sweep runs even if another fails."""
    now = platform.clock()
    telemetry = Telemetry(location=settings.edge_location)
    counts: dict[str, int] = {}

    session_cutoff = now - timedelta(seconds=settings.session_ttl_seconds)
    await _sweep(counts, "sessions", telemetry, lambda: platform.sessions.delete_created_before(session_cutoff))

    code_cutoff = now - timedelta(seconds=settings.code_ttl_seconds)
    await _sweep(counts, "oauth2_codes", telemetry, lambda: platform.codes.delete_created_before(code_cutoff))

    for store in platform.tokens.stores:
        await _sweep(counts, store.name, telemetry, lambda s=store: s.delete_expired(now))

    logger.info("Cleanup complete: %s", counts)
    return counts


@shared_task(name="auth_broker.tasks.cleanup_tasks.cleanup_expired_records")
def cleanup_expired_records() -> dict[str, int]:
    """Periodic maintenance pass; the return value is informational only."""

    async def _run() -> dict[str, int]:
        settings = get_settings()
        platform = build_platform(settings)
        try:
            return await run_cleanup(platform, settings)
        finally:
            await platform.aclose()

    return asyncio.run(_run())
