from pydantic import BaseModel, Field
from typing import Optional


class ConnectedAccountRequest(BaseModel):
    provider: str = Field(min_length=1)
    access_token: str = Field(min_length=1)
    refresh_token: Optional[str] = None
    expires_in: int = Field(gt=0)  # seconds


class ConnectedAccountResponse(BaseModel):
    success: bool = True
