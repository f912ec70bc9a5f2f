from pydantic import BaseModel, EmailStr, Field
from typing import Optional


class CheckoutRequest(BaseModel):
    # the paying user is always the authenticated caller, never a field of this body
    amount: float = Field(gt=0, allow_inf_nan=False)
    plan_id: str = Field(min_length=1)
    interval: str = Field(min_length=1)
    email: Optional[EmailStr] = None


class CheckoutSessionData(BaseModel):
    link: str
    tx_ref: str


class CheckoutSessionResponse(BaseModel):
    status: str = "success"
    data: CheckoutSessionData
