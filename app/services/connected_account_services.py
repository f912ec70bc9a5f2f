from datetime import datetime, timedelta, timezone
from supabase import AsyncClient, PostgrestAPIError
from app.custom_error import ValidationError
from app.models.connected_account_models import ConnectedAccountRequest, ConnectedAccountResponse
from app.models.user_models import AuthenticatedUser
import logging

logger = logging.getLogger(__name__)


class ConnectedAccountService:
    def __init__(self, supabase_admin_client: AsyncClient):
        self.supabase_client = supabase_admin_client

    async def store_tokens(self, user: AuthenticatedUser, request: ConnectedAccountRequest, now=None) -> ConnectedAccountResponse:
        """Mark the caller's account for a provider as connected and store its OAuth tokens"""
        now = now or datetime.now(timezone.utc)
        expires_at = (now + timedelta(seconds=request.expires_in)).isoformat()

        # the tokens column is only writable with the service role, hence the admin client
        try:
            await self.supabase_client.rpc(
                "update_connected_account",
                {
                    "p_user_id": user.id,
                    "p_provider": request.provider,
                    "p_status": "connected",
                    "p_tokens": {"access_token": request.access_token, "refresh_token": request.refresh_token},
                    "p_expires_at": expires_at,
                },
            ).execute()
        except PostgrestAPIError as e:
            logger.warning(f"update_connected_account failed for user {user.id} ({request.provider}): {e.message}")
            raise ValidationError(e.message or "Failed to store connected account")

        logger.info(f"✅ {request.provider} account connected for user {user.id}")
        return ConnectedAccountResponse()
