from datetime import datetime, timezone
from typing import Optional
from urllib.parse import quote
from supabase import AsyncClient, AuthError, PostgrestAPIError
from app.configs.app_settings import Settings
from app.custom_error import ConflictError, DatabaseError, ForbiddenError, ServerError, ValidationError
from app.models.team_models import (
    AcceptInviteRequest,
    AcceptInviteResponse,
    PrepareInviteResponse,
    TeamInvite,
    TeamInviteRequest,
    TeamInviteResponse,
)
from app.models.user_models import AuthenticatedUser
from app.utils.error_classifier import is_already_invited_or_exists, is_already_member, is_already_owner
from app.utils.user_auth import resolve_user
import logging

logger = logging.getLogger(__name__)


def build_redirect_to(app_base_url: str, invite_token: str) -> str:
    """auth callback -> set password -> join team, each hop url-encoded into the previous one's "next" parameter"""
    final_destination = f"/join-team?token={invite_token}"
    set_password_path = f"/set-password?next={quote(final_destination, safe='')}"
    return f"{app_base_url}/auth/callback?next={quote(set_password_path, safe='')}"


class TeamInviteService:
    def __init__(self, settings: Settings, supabase_admin_client: AsyncClient, caller_client_factory):
        self.settings = settings
        self.supabase_client = supabase_admin_client
        self.caller_client_factory = caller_client_factory

    # ######################################################################################################################
    # Helper methods:
    # ######################################################################################################################

    async def _create_invite_row(self, user: AuthenticatedUser, request: TeamInviteRequest) -> str:
        """Run send_team_invite as the caller, so row level security decides whether they may invite to this team"""
        caller_client = await self.caller_client_factory(user.access_token)

        try:
            result = await caller_client.rpc(
                "send_team_invite",
                {
                    "invite_email": request.email,
                    "invite_team_id": request.team_id,
                    "invite_role": request.role,
                    "invite_is_admin_toggle": request.is_admin_toggle,
                },
            ).execute()
        except PostgrestAPIError as e:
            if is_already_member(e):
                raise ConflictError("User is already a team member")
            logger.warning(f"send_team_invite failed for team {request.team_id}: {e.message}")
            raise ValidationError(e.message or "Database invite failed")

        data = result.data
        if isinstance(data, list):
            data = data[0] if data else None
        token = data.get("token") if isinstance(data, dict) else None

        if not token:
            raise ServerError("RPC did not return invite token")
        return token

    # ---------------------------------------------------------------------------------------------------------------------

    async def _get_pending_invite(self, token: str) -> Optional[TeamInvite]:
        now_iso = datetime.now(timezone.utc).isoformat()
        try:
            result = (
                await self.supabase_client.table("team_invites")
                .select("*")
                .eq("token", token)
                .eq("status", "pending")
                .gt("expires_at", now_iso)
                .maybe_single()
                .execute()
            )
        except PostgrestAPIError as e:
            logger.warning(f"Invite lookup failed: {e.message}")
            return None

        if result is None or not result.data:
            return None
        return TeamInvite(**result.data)

    # ######################################################################################################################
    # Operations:
    # ######################################################################################################################

    async def send_invite(self, user: AuthenticatedUser, request: TeamInviteRequest) -> TeamInviteResponse:
        """Record the invite, then have Supabase Auth email the invitee a sign-up link"""
        invite_token = await self._create_invite_row(user, request)
        redirect_to = build_redirect_to(self.settings.APP_BASE_URL, invite_token)

        try:
            await self.supabase_client.auth.admin.invite_user_by_email(
                request.email,
                {
                    "redirect_to": redirect_to,
                    "data": {
                        "invited_to_team_id": request.team_id,
                        "invited_role": request.role,
                        "skip_default_team": True,
                    },
                },
            )
        except AuthError as e:
            if is_already_owner(e):
                raise ValidationError("User already has an account.")
            if is_already_invited_or_exists(e):
                logger.info(f"Invitee for team {request.team_id} already has an account, invite row kept")
                return TeamInviteResponse(message="User already exists. They can log in to see the invite.", token=invite_token)
            logger.error(f"❌ Auth invite failed for team {request.team_id}: {e.message}")
            raise ServerError("Auth invite failed")

        logger.info(f"✅ Invite sent for team {request.team_id} by user {user.id}")
        return TeamInviteResponse(message="Invite sent successfully via Supabase Auth.", token=invite_token)

    # ---------------------------------------------------------------------------------------------------------------------

    async def accept_invite(self, request: AcceptInviteRequest, authorization: Optional[str]):
        """Preview a pending invite (action "prepare") or join the signed-in invitee to its team (action "accept")"""
        invite = await self._get_pending_invite(request.token)
        if not invite:
            raise ValidationError("Invalid, expired, or already used invite link.")

        if request.action == "prepare":
            return PrepareInviteResponse(email=invite.normalized_email, team_id=invite.team_id, role=invite.role)

        if request.action != "accept":
            raise ValidationError("Invalid action")

        user = await resolve_user(authorization, self.caller_client_factory)

        if user.normalized_email != invite.normalized_email:
            raise ForbiddenError(f"Email mismatch: this invite is for {invite.normalized_email}, but you are logged in as {user.normalized_email}.")

        now_iso = datetime.now(timezone.utc).isoformat()

        # upsert, so a user already sitting in another workspace is added to this one with the invite's role
        try:
            await self.supabase_client.table("team_members").upsert(
                {
                    "team_id": invite.team_id,
                    "user_id": user.id,
                    "email": invite.normalized_email,
                    "role": invite.role,
                    "status": "active",
                    "invited_by": invite.invited_by,
                    "updated_at": now_iso,
                },
                on_conflict="team_id,user_id",
            ).execute()
        except PostgrestAPIError as e:
            logger.error(f"❌ team_members upsert failed for team {invite.team_id}: {e.message}")
            raise DatabaseError("Failed to join the team database record.")

        try:
            await self.supabase_client.table("team_invites").update({"status": "accepted", "accepted_at": now_iso}).eq("id", invite.id).execute()
        except PostgrestAPIError as e:
            # membership is already in place and the upsert is repeatable; the invite just stays pending
            logger.warning(f"Invite {invite.id} could not be marked accepted: {e.message}")

        logger.info(f"✅ User {user.id} joined team {invite.team_id} as {invite.role}")
        return AcceptInviteResponse(team_id=invite.team_id, role=invite.role)
