"""Broker routes: authorize redirect, Google callback, token, revoke, info."""

import logging
import re
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse, Response
from pydantic import ValidationError

from auth_broker.config import Settings, get_settings
from auth_broker.dependencies import (
    get_client_registry,
    get_code_service,
    get_platform,
    get_session_manager,
    get_token_service,
)
from auth_broker.metrics import tokens_issued_total
from auth_broker.platform import Platform
from auth_broker.schemas.auth import APIError, APIResult, RevokeRequest, TokenInfoResult, TokenResponse
from auth_broker.services.client_registry import ClientRegistry, redirect_uri_allowed
from auth_broker.services.code_service import ExchangeCodeService
from auth_broker.services.google_oauth import GoogleAuthError
from auth_broker.services.session_service import InvalidCallbackURL, SessionManager, StateMismatchError, is_url
from auth_broker.services.stores import StoreError
from auth_broker.services.token_service import TokenService

logger = logging.getLogger(__name__)
router = APIRouter(tags=["oauth"])

SESSION_COOKIE = "s"
_BEARER_PATTERN = re.compile(r"^bearer (.+)$", re.IGNORECASE)


def _bad_request(message: str) -> PlainTextResponse:
    return PlainTextResponse(message, status_code=400)


def _fail_redirect(settings: Settings) -> RedirectResponse:
    """Generic failure: never tell the browser which check failed."""
    return RedirectResponse(settings.landing_url, status_code=302)


def _api_ok(result=None) -> JSONResponse:
    return JSONResponse(APIResult(ok=True, result=result if result is not None else {}).to_content())


def _api_error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        APIResult(ok=False, error=APIError(message=message)).to_content(),
        status_code=status_code,
    )


def _with_query(url: str, **params: str) -> str:
    """Set ``params`` on ``url``, replacing those keys and keeping every other pair."""
    parts = urlsplit(url)
    pairs = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k not in params]
    pairs.extend(params.items())
    return urlunsplit(parts._replace(query=urlencode(pairs)))


def extract_bearer_token(authorization: str) -> str:
    match = _BEARER_PATTERN.match(authorization.strip())
    if not match:
        return ""
    return match.group(1).strip()


@router.get("/")
async def authorize(
    request: Request,
    sessions: SessionManager = Depends(get_session_manager),
    registry: ClientRegistry = Depends(get_client_registry),
    platform: Platform = Depends(get_platform),
):
    """Start a login: remember where to return, then send the user to Google."""
    params = request.query_params
    client_id = params.get("client_id", "")

    callback_state = params.get("state", "")
    if not callback_state:
        return _bad_request("Missing state parameter")

    if client_id:
        callback_url = params.get("redirect_uri", "")
        if not callback_url:
            return _bad_request("Missing redirect_uri parameter")
        if not is_url(callback_url):
            return _bad_request("Invalid redirect_uri parameter")
        client = await registry.lookup(client_id)
        if client is None:
            return _bad_request("Invalid client_id parameter")
        if not redirect_uri_allowed(client.redirect_uri, callback_url):
            return _bad_request("Invalid redirect_uri parameter")
    else:
        callback_url = params.get("callback", "")
        if not callback_url:
            return _bad_request("Missing callback parameter")

    try:
        session_id, state = await sessions.create(callback_state, callback_url, client_id or None)
    except InvalidCallbackURL:
        return _bad_request("Invalid callback parameter")

    response = RedirectResponse(platform.google.authorization_url(state), status_code=302)
    response.set_cookie(
        SESSION_COOKIE,
        session_id,
        path="/",
        httponly=True,
        secure=True,
        samesite="lax",
    )
    return response


@router.get("/callback")
async def callback(
    request: Request,
    sessions: SessionManager = Depends(get_session_manager),
    codes: ExchangeCodeService = Depends(get_code_service),
    tokens: TokenService = Depends(get_token_service),
    platform: Platform = Depends(get_platform),
    settings: Settings = Depends(get_settings),
):
    """Google redirects back here; hand the caller a code or a bearer token."""
    state = request.query_params.get("state", "")
    if not state:
        return _bad_request("Missing state parameter")
    code = request.query_params.get("code", "")
    if not code:
        return _bad_request("Missing code parameter")
    session_id = request.cookies.get(SESSION_COOKIE, "")
    if not session_id:
        return _bad_request("Missing session")

    try:
        session = await sessions.consume(session_id, state)
    except StateMismatchError:
        return _bad_request("Mismatch state")
    if session is None:
        return _fail_redirect(settings)

    try:
        email = await platform.google.exchange_code(code)
    except GoogleAuthError as e:
        logger.warning("Callback failed at token exchange: %s", e)
        return _fail_redirect(settings)

    if session.client_id:
        return_code = await codes.create_code(session.client_id, email)
    else:
        if not await platform.accounts.is_active(email):
            return _fail_redirect(settings)
        return_code = await tokens.issue(email, None)
        tokens_issued_total.labels(flow="callback").inc()

    target = _with_query(session.callback_url, state=session.callback_state, code=return_code)
    return RedirectResponse(target, status_code=302)


@router.post("/token", response_model=TokenResponse)
async def token(
    client_id: str = Form(""),
    client_secret: str = Form(""),
    code: str = Form(""),
    registry: ClientRegistry = Depends(get_client_registry),
    codes: ExchangeCodeService = Depends(get_code_service),
    tokens: TokenService = Depends(get_token_service),
    platform: Platform = Depends(get_platform),
):
    """Redeem an exchange code for a long-lived bearer token."""
    if not client_id:
        return _bad_request("Missing client_id parameter")
    if not client_secret:
        return _bad_request("Missing client_secret parameter")
    if not code:
        return _bad_request("Missing code parameter")

    client = await registry.lookup(client_id)
    if client is None:
        return _bad_request("Invalid client_id parameter")
    # Plain equality; see DESIGN.md (flagged for security review)
    if client.secret != client_secret:
        return _bad_request("Invalid client_secret parameter")

    email = await codes.redeem_code(client_id, code)
    if email is None:
        return _bad_request("Invalid code parameter")

    if not await platform.accounts.is_active(email):
        return PlainTextResponse("Account disabled", status_code=403)

    refresh_token = await tokens.issue(email, client_id)
    tokens_issued_total.labels(flow="token").inc()
    return TokenResponse(refresh_token=refresh_token)


@router.get("/revoke")
async def revoke(
    request: Request,
    tokens: TokenService = Depends(get_token_service),
    settings: Settings = Depends(get_settings),
):
    """Delete a token from every store, then send the browser on."""
    token_value = request.query_params.get("token", "")
    target = request.query_params.get("callback", "") or settings.landing_url

    if token_value:
        await tokens.revoke(token_value)
    return RedirectResponse(target, status_code=302)


@router.post("/revoke")
async def revoke_api(request: Request, tokens: TokenService = Depends(get_token_service)):
    try:
        body = RevokeRequest.model_validate_json(await request.body())
    except ValidationError:
        return _api_error(400, "invalid request body")

    if body.token:
        try:
            await tokens.revoke(body.token)
        except StoreError as e:
            logger.error("Revoke failed in store %s", e.store)
            return _api_error(500, "internal server error")
    return _api_ok()


@router.get("/info")
async def info(request: Request, tokens: TokenService = Depends(get_token_service)) -> Response:
    """Resolve a bearer token (broker-issued or Google access token) to its email."""
    token_value = extract_bearer_token(request.headers.get("authorization", ""))
    if not token_value:
        return _api_error(401, "auth: unauthorized")

    try:
        result = await tokens.validate(token_value)
    except StoreError as e:
        logger.error("Token validation failed in store %s", e.store)
        return _api_error(500, "internal server error")
    if result is None:
        return _api_error(401, "auth: unauthorized")
    return _api_ok(TokenInfoResult(email=result.email, client_id=result.client_id))
