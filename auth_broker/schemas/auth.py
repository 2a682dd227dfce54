"""Token endpoint and JSON API response schemas."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TokenResponse(BaseModel):
    refresh_token: str
    token_type: str = "Bearer"


class RevokeRequest(BaseModel):
    token: str = ""


class TokenInfoResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str
    client_id: str | None = Field(default=None, serialization_alias="clientId")


class APIError(BaseModel):
    message: str


class APIResult(BaseModel):
    ok: bool
    result: Any = None
    error: APIError | None = None

    def to_content(self) -> dict[str, Any]:
        content = self.model_dump(by_alias=True, exclude_none=True)
        if isinstance(self.result, BaseModel):
            content["result"] = self.result.model_dump(by_alias=True, exclude_none=True)
        return content
