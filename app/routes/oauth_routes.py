from fastapi import APIRouter, Depends
from supabase import AsyncClient
from app.models.connected_account_models import ConnectedAccountRequest, ConnectedAccountResponse
from app.models.user_models import AuthenticatedUser
from app.services.connected_account_services import ConnectedAccountService
from app.utils.supabase_client_handlers import get_supabase_admin_client
from app.utils.user_auth import get_current_user

oauth_router = APIRouter(prefix="/oauth", tags=["OAuth"])


async def get_connected_account_service(supabase_client: AsyncClient = Depends(get_supabase_admin_client)) -> ConnectedAccountService:
    """Dependency to get ConnectedAccountService instance"""
    return ConnectedAccountService(supabase_client)


@oauth_router.post("/connected-accounts", response_model=ConnectedAccountResponse)
async def store_connected_account(
    request: ConnectedAccountRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    connected_account_service: ConnectedAccountService = Depends(get_connected_account_service),
):
    """Store OAuth tokens for one of the caller's connected providers"""
    return await connected_account_service.store_tokens(user, request)
