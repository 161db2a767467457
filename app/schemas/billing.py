from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CheckoutSessionRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
    # Optional here so a missing value is reported as 400 by the route.
    price_id: str | None = Field(default=None, max_length=255)
    quantity: int = Field(default=1, ge=1)


class CheckoutSessionResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
    session_id: str


class PortalLinkResponse(BaseModel):
    url: str

