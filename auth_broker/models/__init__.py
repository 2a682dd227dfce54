"""Broker database models."""

from auth_broker.models.account import Account
from auth_broker.models.oauth2_client import RegisteredClient
from auth_broker.models.oauth2_code import ExchangeCode
from auth_broker.models.session import AuthSession
from auth_broker.models.token import LegacyToken, UserToken

__all__ = [
    "Account",
    "AuthSession",
    "ExchangeCode",
    "LegacyToken",
    "RegisteredClient",
    "UserToken",
]
