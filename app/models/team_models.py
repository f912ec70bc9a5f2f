from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional


class TeamInviteRequest(BaseModel):
    email: EmailStr
    team_id: str = Field(min_length=1)
    role: str = "manager"
    is_admin_toggle: bool = False

    @field_validator("role", mode="before")
    @classmethod
    def default_blank_role(cls, value):
        if value is None or not str(value).strip():
            return "manager"
        return str(value).strip()


class TeamInviteResponse(BaseModel):
    success: bool = True
    message: str
    token: str


class AcceptInviteRequest(BaseModel):
    token: str = Field(min_length=1)
    action: str = "accept"

    @field_validator("token", mode="before")
    @classmethod
    def strip_token(cls, value):
        return str(value or "").strip()

    @field_validator("action", mode="before")
    @classmethod
    def normalize_action(cls, value):
        return str(value or "accept").strip().lower()


class PrepareInviteResponse(BaseModel):
    success: bool = True
    email: str
    team_id: str
    role: str


class AcceptInviteResponse(BaseModel):
    success: bool = True
    team_id: str
    role: str


class TeamInvite(BaseModel):
    """Row of team_invites, as read with the admin client"""

    id: str
    token: str
    team_id: str
    email: str
    role: str
    status: str
    invited_by: Optional[str] = None

    @field_validator("id", "team_id", "invited_by", mode="before")
    @classmethod
    def ids_as_text(cls, value):
        return str(value) if value is not None else None

    @property
    def normalized_email(self) -> str:
        return self.email.strip().lower()
