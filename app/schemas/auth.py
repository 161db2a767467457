from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class LoginRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
    email: str = Field(min_length=3, max_length=320)
    password: str = Field(min_length=1, max_length=255)
    redirected_from: str | None = Field(default=None, max_length=2048)


class LoginResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
    redirect_to: str


class LoginHint(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
    message: str = "Sign in required"
    login_url: str = "/auth/login"
    redirected_from: str | None = None


class LogoutResponse(BaseModel):
    signed_out: bool = Field(default=True, serialization_alias="signedOut")
