from fastapi import APIRouter, Depends
from supabase import AsyncClient
from typing import Optional, Union
from app.configs.app_settings import Settings, get_settings
from app.models.team_models import (
    AcceptInviteRequest,
    AcceptInviteResponse,
    PrepareInviteResponse,
    TeamInviteRequest,
    TeamInviteResponse,
)
from app.models.user_models import AuthenticatedUser
from app.services.team_invite_services import TeamInviteService
from app.utils.supabase_client_handlers import get_supabase_admin_client, get_supabase_caller_client_factory
from app.utils.user_auth import get_current_user, get_optional_authorization

team_router = APIRouter(prefix="/team", tags=["Team"])


async def get_team_invite_service(
    settings: Settings = Depends(get_settings),
    supabase_client: AsyncClient = Depends(get_supabase_admin_client),
    caller_client_factory=Depends(get_supabase_caller_client_factory),
) -> TeamInviteService:
    """Dependency to get TeamInviteService instance"""
    return TeamInviteService(settings, supabase_client, caller_client_factory)


#########################################################################################################################


@team_router.post("/invite", response_model=TeamInviteResponse)
async def send_team_invite(
    request: TeamInviteRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    team_invite_service: TeamInviteService = Depends(get_team_invite_service),
):
    """Invite someone to a team the caller manages"""
    return await team_invite_service.send_invite(user, request)


# ---------------------------------------------------------------------------------------------------------------------


@team_router.post("/accept-invite", response_model=Union[PrepareInviteResponse, AcceptInviteResponse])
async def accept_team_invite(
    request: AcceptInviteRequest,
    authorization: Optional[str] = Depends(get_optional_authorization),
    team_invite_service: TeamInviteService = Depends(get_team_invite_service),
):
    """Preview ("prepare") or accept a team invite; accepting requires the invitee's own session"""
    return await team_invite_service.accept_invite(request, authorization)
