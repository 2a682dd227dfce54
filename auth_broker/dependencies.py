"""FastAPI dependency injection."""

from datetime import timedelta

from fastapi import BackgroundTasks, Depends, Request

from auth_broker.config import Settings, get_settings
from auth_broker.platform import Platform
from auth_broker.services.client_registry import ClientRegistry
from auth_broker.services.code_service import ExchangeCodeService
from auth_broker.services.session_service import SessionManager
from auth_broker.services.telemetry import Telemetry
from auth_broker.services.token_service import TokenService


def get_platform(request: Request) -> Platform:
    """The platform built in the application lifespan."""
    return request.app.state.platform


def get_telemetry(request: Request, settings: Settings = Depends(get_settings)) -> Telemetry:
    return Telemetry(
        location=settings.edge_location,
        country=request.headers.get(settings.country_header, ""),
    )


def get_session_manager(
    platform: Platform = Depends(get_platform),
    telemetry: Telemetry = Depends(get_telemetry),
    settings: Settings = Depends(get_settings),
) -> SessionManager:
    return SessionManager(
        platform.sessions,
        telemetry,
        ttl=timedelta(seconds=settings.session_ttl_seconds),
        clock=platform.clock,
    )


def get_client_registry(
    background_tasks: BackgroundTasks,
    platform: Platform = Depends(get_platform),
    telemetry: Telemetry = Depends(get_telemetry),
    settings: Settings = Depends(get_settings),
) -> ClientRegistry:
    # Cache writes run after the response has been sent
    return ClientRegistry(
        platform.clients,
        platform.client_cache,
        telemetry,
        defer=background_tasks.add_task,
        found_ttl=settings.client_cache_ttl_seconds,
        not_found_ttl=settings.client_negative_cache_ttl_seconds,
    )


def get_code_service(
    platform: Platform = Depends(get_platform),
    telemetry: Telemetry = Depends(get_telemetry),
    settings: Settings = Depends(get_settings),
) -> ExchangeCodeService:
    return ExchangeCodeService(
        platform.codes,
        telemetry,
        ttl=timedelta(seconds=settings.code_ttl_seconds),
        clock=platform.clock,
    )


def get_token_service(
    platform: Platform = Depends(get_platform),
    telemetry: Telemetry = Depends(get_telemetry),
    settings: Settings = Depends(get_settings),
) -> TokenService:
    return TokenService(
        platform.tokens,
        platform.google,
        telemetry,
        ttl=timedelta(days=settings.token_ttl_days),
        clock=platform.clock,
    )
