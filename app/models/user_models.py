from pydantic import BaseModel
from typing import Optional


class AuthenticatedUser(BaseModel):
    """Caller identity resolved from a Supabase JWT"""

    id: str
    email: Optional[str] = None
    access_token: str

    @property
    def normalized_email(self) -> str:
        return (self.email or "").strip().lower()
