from supabase import acreate_client, AsyncClient
from supabase.lib.client_options import AsyncClientOptions
from app.configs.app_settings import settings
from typing import Optional

# Two handles with disjoint privileges:
# 1. the admin client (service role key) is created once during startup and is the only one allowed to write ledger,
#    subscription, membership and connected-account rows. It never receives identity claims from a request.
# 2. a caller client (anon key) is created per request, only to resolve who the caller is from their JWT, or to run
#    an RPC under the caller's own row level security.


_supabase_admin_client: Optional[AsyncClient] = None

_NO_SESSION_OPTIONS = {"persist_session": False, "auto_refresh_token": False}


async def create_supabase_admin_client() -> AsyncClient:
    """Create the privileged async supabase client - only called once during startup"""
    global _supabase_admin_client
    if _supabase_admin_client is None:
        _supabase_admin_client = await acreate_client(
            settings.require("SUPABASE_URL"),
            settings.require("SUPABASE_SERVICE_ROLE_KEY"),
            options=AsyncClientOptions(**_NO_SESSION_OPTIONS),
        )
    return _supabase_admin_client


async def get_supabase_admin_client() -> AsyncClient:
    """Dependency function to get the privileged supabase client"""
    if _supabase_admin_client is None:
        # startup could not build it (missing configuration); retrying here raises the descriptive 500
        return await create_supabase_admin_client()
    return _supabase_admin_client


async def close_supabase_admin_client():
    """Clean up supabase client during shutdown"""
    global _supabase_admin_client
    if _supabase_admin_client:
        # Supabase client doesn't have explicit close method, but we reset the reference
        _supabase_admin_client = None


async def create_supabase_caller_client(access_token: Optional[str] = None) -> AsyncClient:
    """Create a narrow anon-key client, optionally acting with the caller's own JWT"""
    headers = {"Authorization": f"Bearer {access_token}"} if access_token else {}
    return await acreate_client(
        settings.require("SUPABASE_URL"),
        settings.require("SUPABASE_ANON_KEY"),
        options=AsyncClientOptions(headers=headers, **_NO_SESSION_OPTIONS),
    )


async def get_supabase_caller_client_factory():
    """Dependency returning the factory, so tests can swap the narrow handle"""
    return create_supabase_caller_client
