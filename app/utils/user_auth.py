from fastapi import Depends, Header
from supabase import AuthError
from app.custom_error import AuthenticationError
from app.models.user_models import AuthenticatedUser
from app.utils.supabase_client_handlers import get_supabase_caller_client_factory
from typing import Optional
import logging

logger = logging.getLogger(__name__)

# Every user specific endpoint resolves the caller from the "Authorization: Bearer <JWT>" header before the main business logic.
# The JWT is checked by Supabase Auth itself (auth.get_user), through the narrow anon-key client, so a tampered or expired
# token never reaches a service. The resolved user id is the only identity the services trust; ids in request bodies are ignored.


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    token = authorization[7:] if authorization.startswith("Bearer ") else authorization
    return token.strip() or None


async def resolve_user(authorization: Optional[str], caller_client_factory) -> AuthenticatedUser:
    token = extract_bearer_token(authorization)
    if not token:
        raise AuthenticationError("Missing Authorization bearer token")

    caller_client = await caller_client_factory()
    try:
        response = await caller_client.auth.get_user(token)
    except AuthError as e:
        logger.warning(f"JWT rejected by Supabase Auth: {e.message}")
        raise AuthenticationError("Invalid JWT")

    user = response.user if response else None
    if not user:
        raise AuthenticationError("Invalid JWT")

    return AuthenticatedUser(id=user.id, email=user.email, access_token=token)


async def get_current_user(
    authorization: Optional[str] = Header(None),
    caller_client_factory=Depends(get_supabase_caller_client_factory),
) -> AuthenticatedUser:
    """Resolve the authenticated Supabase user for this request"""
    return await resolve_user(authorization, caller_client_factory)


async def get_optional_authorization(authorization: Optional[str] = Header(None)) -> Optional[str]:
    """Raw Authorization header, for endpoints where authentication depends on the requested action"""
    return authorization
