from pydantic import BaseModel


class CheckoutResponse(BaseModel):
    url: str
    session_id: str


class PortalResponse(BaseModel):
    url: str


class StripeWebhookResponse(BaseModel):
    received: bool
